"""Context builder: price window + indicators for one pipeline pass."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from commodity_core.analysis.cache import cache_snapshot, get_cached_snapshot
from commodity_core.analysis.indicators import compute_snapshot
from commodity_core.errors import InsufficientDataError
from commodity_core.feed import load_window
from commodity_core.models import MarketContext


def build_context(
    session: Session,
    *,
    window: int = 200,
    ts: datetime | None = None,
    macro: dict[str, float] | None = None,
) -> MarketContext:
    """Load the latest *window* ticks and their indicator snapshot.

    The pass timestamp defaults to the latest tick's timestamp so a pass
    over the same data is reproducible. Raises InsufficientDataError when
    the feed is empty.
    """
    ticks = load_window(session, limit=window)
    if not ticks:
        raise InsufficientDataError("no price ticks stored")

    latest = ticks[-1]
    indicators = get_cached_snapshot(session, latest.timestamp)
    if indicators is None:
        indicators = compute_snapshot(ticks)
        cache_snapshot(session, indicators)

    return MarketContext(
        ts=ts or latest.timestamp,
        ticks=ticks,
        indicators=indicators,
        current_price=latest.close,
        macro=macro or {},
    )
