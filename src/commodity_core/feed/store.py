"""Price tick persistence and window queries."""

from __future__ import annotations

from decimal import Decimal

import structlog
from sqlalchemy import desc
from sqlalchemy.orm import Session

from commodity_core.db.convert import as_utc
from commodity_core.db.tables.market_data import PriceTickRow
from commodity_core.errors import FeedOrderError
from commodity_core.models import PriceTick

log = structlog.get_logger("feed")


def _to_tick(row: PriceTickRow) -> PriceTick:
    return PriceTick(
        timestamp=as_utc(row.timestamp),
        open=Decimal(str(row.open)),
        high=Decimal(str(row.high)),
        low=Decimal(str(row.low)),
        close=Decimal(str(row.close)),
        volume=Decimal(str(row.volume)) if row.volume is not None else None,
    )


def append_tick(session: Session, tick: PriceTick, source: str | None = None) -> int:
    """Append a tick and return its row id.

    Gaps are fine; a timestamp at or before the latest stored one raises
    FeedOrderError.
    """
    latest = (
        session.query(PriceTickRow.timestamp)
        .order_by(desc(PriceTickRow.timestamp))
        .limit(1)
        .scalar()
    )
    if latest is not None and as_utc(tick.timestamp) <= as_utc(latest):
        raise FeedOrderError(
            f"tick at {tick.timestamp.isoformat()} is not newer than latest {latest.isoformat()}"
        )

    row = PriceTickRow(
        timestamp=tick.timestamp,
        open=float(tick.open),
        high=float(tick.high),
        low=float(tick.low),
        close=float(tick.close),
        volume=float(tick.volume) if tick.volume is not None else None,
        source=source,
    )
    session.add(row)
    session.commit()
    session.refresh(row)
    log.debug("tick_appended", tick_id=row.id, close=float(tick.close))
    return row.id


def load_window(session: Session, limit: int = 200) -> list[PriceTick]:
    """Return the most recent *limit* ticks, oldest first."""
    rows = (
        session.query(PriceTickRow)
        .order_by(desc(PriceTickRow.timestamp))
        .limit(limit)
        .all()
    )
    return [_to_tick(r) for r in reversed(rows)]


def get_latest_price(session: Session) -> Decimal | None:
    """Return the most recent close, or None if no data."""
    row = (
        session.query(PriceTickRow.close)
        .order_by(desc(PriceTickRow.timestamp))
        .limit(1)
        .scalar()
    )
    if row is None:
        return None
    return Decimal(str(row))
