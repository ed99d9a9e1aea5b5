"""Signal publisher: turn a recommendation into the single active signal."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from commodity_core.config.schema import PublisherConfig
from commodity_core.db.tables.signals import SignalRow
from commodity_core.errors import ActivationConflictError
from commodity_core.events import SIGNAL_ACTIVATED, EventChannel
from commodity_core.execution.queue import enqueue_for_signal
from commodity_core.models import (
    Action,
    CombinedRecommendation,
    IndicatorSnapshot,
    Signal,
    SignalType,
    Strength,
)
from commodity_core.signals.store import get_active_row, to_signal

log = structlog.get_logger("publisher")

_SIGNAL_TYPES: dict[Action, SignalType] = {
    "BUY_BULL": "BUY",
    "SELL_BEAR": "BUY",
    "BUY_BEAR": "SELL",
    "SELL_BULL": "SELL",
    "HOLD": "HOLD",
}

_SNAPSHOT_FIELDS = ("rsi_14", "macd", "macd_signal", "sma_short", "sma_long")


def signal_type_for(action: Action) -> SignalType:
    return _SIGNAL_TYPES[action]


def strength_for(confidence: float, config: PublisherConfig) -> Strength:
    if confidence >= config.strong_threshold:
        return "STRONG"
    if confidence <= config.weak_threshold:
        return "WEAK"
    return "MODERATE"


class SignalPublisher:
    """Atomically replaces the active signal and enqueues auto-trades.

    The swap (deactivate old, insert new, enqueue) is one transaction.
    The partial unique index on ``is_active`` rejects a concurrent
    second activation; the loser re-reads and retries a bounded number
    of times before raising ActivationConflictError.
    """

    def __init__(
        self,
        config: PublisherConfig | None = None,
        events: EventChannel | None = None,
    ) -> None:
        self.config = config or PublisherConfig()
        self.events = events or EventChannel()

    def build_signal(
        self,
        recommendation: CombinedRecommendation,
        now: datetime,
        indicators: IndicatorSnapshot | None = None,
    ) -> Signal:
        signal_type = signal_type_for(recommendation.action)
        prob_up = max(0.0, min(100.0, 50 + recommendation.composite / 2))

        used: dict = {
            "action": recommendation.action,
            "composite": recommendation.composite,
            "hold_time": recommendation.strategy.suggested_hold_time,
            "factors": [
                {"name": r.name, "score": r.score, "confidence": r.confidence, "signal": r.signal}
                for r in recommendation.factors
            ],
        }
        if indicators is not None:
            for field in _SNAPSHOT_FIELDS:
                value = getattr(indicators, field)
                used[field] = float(value) if value is not None else None

        voting = [r for r in recommendation.factors if r.signal != "HOLD"]
        reasoning = f"{recommendation.action} (composite {recommendation.composite:+.1f})"
        if voting:
            reasoning += ": " + "; ".join(f"{r.name}: {r.reasoning}" for r in voting)

        is_hold = signal_type == "HOLD"
        return Signal(
            timestamp=now,
            signal_type=signal_type,
            strength=strength_for(recommendation.confidence, self.config),
            probability_up=prob_up,
            probability_down=100.0 - prob_up,
            confidence=recommendation.confidence,
            current_price=recommendation.strategy.entry,
            target_price=None if is_hold else recommendation.strategy.target,
            stop_loss=None if is_hold else recommendation.strategy.stop_loss,
            reasoning=reasoning,
            indicators_used=used,
        )

    def publish(
        self,
        session: Session,
        recommendation: CombinedRecommendation,
        now: datetime,
        indicators: IndicatorSnapshot | None = None,
    ) -> Signal | None:
        """Persist *recommendation*; returns the stored signal or None if skipped."""
        signal = self.build_signal(recommendation, now, indicators)

        if signal.signal_type == "HOLD":
            if not self.config.record_hold:
                log.debug("hold_not_recorded", confidence=signal.confidence)
                return None
            row = self._insert(session, signal, active=False)
            session.commit()
            log.info("hold_recorded", signal_id=row.id)
            return to_signal(row)

        if signal.confidence < self.config.min_confidence:
            log.info(
                "signal_below_floor",
                confidence=signal.confidence,
                floor=self.config.min_confidence,
            )
            return None

        for attempt in range(1, self.config.max_activation_retries + 1):
            try:
                published = self._swap(session, signal, now)
            except IntegrityError:
                session.rollback()
                log.warning("activation_conflict", attempt=attempt)
                continue
            if published is None:
                return None
            self.events.publish(SIGNAL_ACTIVATED, published.model_dump(mode="json"))
            return published

        raise ActivationConflictError(
            f"active signal swap failed after {self.config.max_activation_retries} attempts"
        )

    def _swap(self, session: Session, signal: Signal, now: datetime) -> Signal | None:
        current = get_active_row(session)
        if (
            self.config.suppress_duplicates
            and current is not None
            and current.signal_type == signal.signal_type
        ):
            log.info(
                "duplicate_signal_suppressed",
                signal_type=signal.signal_type,
                active_id=current.id,
            )
            session.rollback()
            return None

        session.execute(
            update(SignalRow)
            .where(SignalRow.is_active.is_(True))
            .values(is_active=False)
        )
        row = self._insert(session, signal, active=True)
        queued = enqueue_for_signal(session, row.id, now)
        session.commit()

        log.info(
            "signal_published",
            signal_id=row.id,
            signal_type=row.signal_type,
            strength=row.strength,
            confidence=signal.confidence,
            replaced_id=current.id if current is not None else None,
            queued=queued,
        )
        return to_signal(row)

    def _insert(self, session: Session, signal: Signal, active: bool) -> SignalRow:
        row = SignalRow(
            timestamp=signal.timestamp,
            signal_type=signal.signal_type,
            strength=signal.strength,
            probability_up=signal.probability_up,
            probability_down=signal.probability_down,
            confidence=signal.confidence,
            current_price=float(signal.current_price),
            target_price=float(signal.target_price) if signal.target_price is not None else None,
            stop_loss=float(signal.stop_loss) if signal.stop_loss is not None else None,
            reasoning=signal.reasoning,
            indicators_used=signal.indicators_used,
            is_active=active,
        )
        session.add(row)
        session.flush()
        return row
