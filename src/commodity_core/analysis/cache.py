"""Indicator snapshot cache keyed by tick timestamp."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from commodity_core.db.tables.market_data import IndicatorRow
from commodity_core.models import IndicatorSnapshot

# snapshot field -> column
_COLUMNS = {
    "rsi_14": "rsi_14",
    "macd": "macd",
    "macd_signal": "macd_signal",
    "macd_histogram": "macd_histogram",
    "ema_12": "ema_12",
    "ema_26": "ema_26",
    "sma_short": "sma_5",
    "sma_long": "sma_20",
    "boll_upper": "bollinger_upper",
    "boll_mid": "bollinger_middle",
    "boll_lower": "bollinger_lower",
}


def _as_float(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def cache_snapshot(session: Session, snapshot: IndicatorSnapshot) -> bool:
    """Store *snapshot* unless one already exists for its timestamp.

    Returns True when a row was written.
    """
    exists = (
        session.query(IndicatorRow.id)
        .filter(IndicatorRow.timestamp == snapshot.timestamp)
        .first()
    )
    if exists is not None:
        return False
    row = IndicatorRow(
        timestamp=snapshot.timestamp,
        missing={"fields": list(snapshot.missing)},
        **{col: _as_float(getattr(snapshot, field)) for field, col in _COLUMNS.items()},
    )
    session.add(row)
    session.commit()
    return True


def get_cached_snapshot(session: Session, timestamp: datetime) -> IndicatorSnapshot | None:
    row = session.query(IndicatorRow).filter(IndicatorRow.timestamp == timestamp).first()
    if row is None:
        return None
    values = {}
    for field, col in _COLUMNS.items():
        raw = getattr(row, col)
        values[field] = Decimal(str(raw)) if raw is not None else None
    return IndicatorSnapshot(
        timestamp=timestamp,
        missing=(row.missing or {}).get("fields", []),
        **values,
    )
