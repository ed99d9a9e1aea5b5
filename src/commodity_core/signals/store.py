"""Signal reads: the active signal and recent history."""

from __future__ import annotations

from sqlalchemy import desc
from sqlalchemy.orm import Session

from commodity_core.db.convert import as_decimal, as_utc
from commodity_core.db.tables.signals import SignalRow
from commodity_core.models import Signal


def to_signal(row: SignalRow) -> Signal:
    return Signal(
        id=row.id,
        timestamp=as_utc(row.timestamp),
        signal_type=row.signal_type,
        strength=row.strength,
        probability_up=float(row.probability_up),
        probability_down=float(row.probability_down),
        confidence=float(row.confidence),
        current_price=as_decimal(row.current_price),
        target_price=as_decimal(row.target_price),
        stop_loss=as_decimal(row.stop_loss),
        reasoning=row.reasoning,
        indicators_used=row.indicators_used,
        is_active=row.is_active,
        auto_executed=row.auto_executed,
        executed_at=as_utc(row.executed_at) if row.executed_at is not None else None,
        execution_result=row.execution_result,
    )


def get_active_row(session: Session) -> SignalRow | None:
    return session.query(SignalRow).filter(SignalRow.is_active.is_(True)).one_or_none()


def get_active_signal(session: Session) -> Signal | None:
    """The single active signal, or None."""
    row = get_active_row(session)
    return to_signal(row) if row is not None else None


def list_signals(session: Session, limit: int = 50) -> list[Signal]:
    """Most recent signals first, active or not."""
    rows = (
        session.query(SignalRow)
        .order_by(desc(SignalRow.timestamp), desc(SignalRow.id))
        .limit(limit)
        .all()
    )
    return [to_signal(r) for r in rows]
