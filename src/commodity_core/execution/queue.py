"""Execution queue: PENDING -> PROCESSING -> COMPLETED | FAILED.

Every status change is a conditional UPDATE on the expected current
status, so two workers can never both move the same item. Terminal
items are never modified; a retry inserts a fresh item.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy import desc, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from commodity_core.config.schema import PaperConfig
from commodity_core.db.convert import as_decimal, as_utc
from commodity_core.db.tables.execution import QueueItemRow, UserSettingsRow
from commodity_core.db.tables.paper import PositionRow
from commodity_core.db.tables.signals import SignalRow
from commodity_core.errors import (
    ClaimConflictError,
    ExecutionFailure,
    InvalidTransitionError,
)
from commodity_core.execution.broker import Broker
from commodity_core.execution.retry import RetryPolicy
from commodity_core.logging import bind_context
from commodity_core.models import BrokerOrder, QueueItem, QueueStats
from commodity_core.paper.ledger import PositionLedger

log = structlog.get_logger("execution_queue")

TRANSITIONS: dict[str, frozenset[str]] = {
    "PENDING": frozenset({"PROCESSING"}),
    "PROCESSING": frozenset({"COMPLETED", "FAILED"}),
    "COMPLETED": frozenset(),
    "FAILED": frozenset(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_queue_item(row: QueueItemRow) -> QueueItem:
    return QueueItem(
        id=row.id,
        signal_id=row.signal_id,
        user_id=row.user_id,
        status=row.status,
        attempt=row.attempt,
        created_at=as_utc(row.created_at),
        available_at=as_utc(row.available_at),
        claimed_at=as_utc(row.claimed_at) if row.claimed_at is not None else None,
        processed_at=as_utc(row.processed_at) if row.processed_at is not None else None,
        error_message=row.error_message,
        result=row.result,
    )


_ACTIONS_BY_TYPE = {"BUY": "BUY_BULL", "SELL": "BUY_BEAR"}


def action_for(signal: SignalRow) -> str:
    """The combiner action behind *signal*; rows without one are treated as entries."""
    action = (signal.indicators_used or {}).get("action")
    return action or _ACTIONS_BY_TYPE[signal.signal_type]


def check_transition(current: str, target: str) -> None:
    if target not in TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(f"{current} -> {target} is not allowed")


def enqueue_for_signal(session: Session, signal_id: int, now: datetime) -> int:
    """Add one PENDING item per auto-trading user. Does not commit."""
    user_ids = [
        uid
        for (uid,) in session.query(UserSettingsRow.user_id)
        .filter(UserSettingsRow.auto_trading_enabled.is_(True))
        .order_by(UserSettingsRow.user_id)
        .all()
    ]
    for uid in user_ids:
        session.add(
            QueueItemRow(
                signal_id=signal_id,
                user_id=uid,
                status="PENDING",
                attempt=1,
                created_at=now,
                available_at=now,
            )
        )
    session.flush()
    return len(user_ids)


class ExecutionQueue:
    """Claims and processes queue items.

    Paper-mode users get a simulated position from the ledger; live-mode
    users go through the broker. Any failure lands on the item as FAILED
    with its message verbatim.
    """

    def __init__(
        self,
        ledger: PositionLedger | None = None,
        broker: Broker | None = None,
        paper_config: PaperConfig | None = None,
    ) -> None:
        self.paper_config = paper_config or PaperConfig()
        self.ledger = ledger or PositionLedger(self.paper_config)
        self.broker = broker

    # ── Transitions ───────────────────────────────────────────

    def enqueue_for_signal(self, session: Session, signal_id: int, now: datetime | None = None) -> int:
        count = enqueue_for_signal(session, signal_id, now or _now())
        session.commit()
        return count

    def claim(self, session: Session, item_id: int, now: datetime | None = None) -> QueueItem:
        """Atomically move a PENDING item to PROCESSING.

        Raises ClaimConflictError if the item is no longer PENDING.
        """
        claimed = session.execute(
            update(QueueItemRow)
            .where(QueueItemRow.id == item_id, QueueItemRow.status == "PENDING")
            .values(status="PROCESSING", claimed_at=now or _now())
            .execution_options(synchronize_session=False)
        ).rowcount
        session.commit()
        if claimed != 1:
            raise ClaimConflictError(f"queue item {item_id} is not PENDING")
        row = session.get(QueueItemRow, item_id)
        session.refresh(row)
        log.info("queue_item_claimed", queue_item_id=item_id)
        return to_queue_item(row)

    def complete(
        self,
        session: Session,
        item_id: int,
        result: dict | None = None,
        now: datetime | None = None,
    ) -> QueueItem:
        return self._finish(session, item_id, "COMPLETED", now, result=result)

    def fail(
        self,
        session: Session,
        item_id: int,
        error_message: str,
        now: datetime | None = None,
    ) -> QueueItem:
        return self._finish(session, item_id, "FAILED", now, error_message=error_message)

    def _finish(
        self,
        session: Session,
        item_id: int,
        status: str,
        now: datetime | None,
        result: dict | None = None,
        error_message: str | None = None,
    ) -> QueueItem:
        moved = session.execute(
            update(QueueItemRow)
            .where(QueueItemRow.id == item_id, QueueItemRow.status == "PROCESSING")
            .values(
                status=status,
                processed_at=now or _now(),
                result=result,
                error_message=error_message,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if moved != 1:
            session.rollback()
            row = session.get(QueueItemRow, item_id)
            current = row.status if row is not None else "MISSING"
            check_transition(current, status)
            raise InvalidTransitionError(f"queue item {item_id} changed state concurrently")
        session.commit()
        row = session.get(QueueItemRow, item_id)
        session.refresh(row)
        if status == "FAILED":
            log.warning("queue_item_failed", queue_item_id=item_id, error=error_message)
        else:
            log.info("queue_item_completed", queue_item_id=item_id)
        return to_queue_item(row)

    # ── Processing ────────────────────────────────────────────

    def process(self, session: Session, item_id: int, now: datetime | None = None) -> QueueItem:
        """Execute a claimed item and move it to its terminal state."""
        now = now or _now()
        row = session.get(QueueItemRow, item_id)
        if row is None:
            raise InvalidTransitionError(f"queue item {item_id} does not exist")
        if row.status != "PROCESSING":
            raise InvalidTransitionError(f"queue item {item_id} is {row.status}, not PROCESSING")

        bind_context(queue_item_id=item_id, signal_id=row.signal_id, user_id=row.user_id)
        try:
            return self._execute(session, row, now)
        except ExecutionFailure as e:
            session.rollback()
            return self._record_failure(session, item_id, str(e), now)
        except InvalidTransitionError:
            raise
        except Exception as e:
            session.rollback()
            log.exception("queue_item_error", queue_item_id=item_id)
            return self._record_failure(session, item_id, str(e), now)

    def _record_failure(self, session: Session, item_id: int, message: str, now: datetime) -> QueueItem:
        row = session.get(QueueItemRow, item_id)
        signal = session.get(SignalRow, row.signal_id) if row is not None else None
        # a success for another user on the same signal is kept
        if signal is not None and not signal.auto_executed:
            signal.execution_result = {"success": False, "error": message, "queue_item_id": item_id}
        return self.fail(session, item_id, message, now)

    def _execute(self, session: Session, item: QueueItemRow, now: datetime) -> QueueItem:
        signal = session.get(SignalRow, item.signal_id)
        if signal is None:
            raise ExecutionFailure("Signal not found")
        if not signal.is_active:
            raise ExecutionFailure("Signal no longer active")
        if signal.signal_type == "HOLD":
            raise ExecutionFailure("HOLD signals are not executed")

        settings = (
            session.query(UserSettingsRow)
            .filter(UserSettingsRow.user_id == item.user_id)
            .first()
        )
        if settings is None:
            raise ExecutionFailure("User settings not found")

        action = action_for(signal)
        if action in ("SELL_BULL", "SELL_BEAR"):
            result = self._exit(session, item, signal, settings, action.removeprefix("SELL_"), now)
        else:
            result = self._enter(session, item, signal, settings, action.removeprefix("BUY_"), now)

        signal.auto_executed = True
        signal.executed_at = now
        signal.execution_result = {"success": True, **result}
        session.flush()
        return self.complete(session, item.id, result=result, now=now)

    def _enter(
        self,
        session: Session,
        item: QueueItemRow,
        signal: SignalRow,
        settings: UserSettingsRow,
        instrument_type: str,
        now: datetime,
    ) -> dict:
        """Open a new position in *instrument_type*."""
        instrument_id = settings.preferred_bull_id if instrument_type == "BULL" else settings.preferred_bear_id
        price = as_decimal(signal.current_price)
        value = as_decimal(settings.position_size) or Decimal(str(self.paper_config.default_position_value))
        volume = int(value / price) if price > 0 else 0
        if volume < 1:
            raise ExecutionFailure(f"Calculated volume is below 1 (value {value}, price {price})")

        target = as_decimal(signal.target_price)
        stop = as_decimal(signal.stop_loss)

        if settings.paper_trading_enabled:
            position = self.ledger.open_position(
                session,
                item.user_id,
                instrument_type,
                price,
                value,
                is_paper=True,
                signal_id=signal.id,
                target_price=target,
                stop_loss=stop,
                now=now,
                metadata={"queue_item_id": item.id, "volume": volume},
                commit=False,
            )
            return {
                "mode": "paper",
                "action": f"BUY_{instrument_type}",
                "position_id": position.id,
                "instrument_type": instrument_type,
                "entry_price": float(price),
                "position_value": float(value),
            }

        if self.broker is None:
            raise ExecutionFailure("No broker configured for live trading")
        order = BrokerOrder(
            direction="BUY",
            instrument_type=instrument_type,
            instrument_id=instrument_id,
            value=value,
            quantity=volume,
            reference_price=price,
        )
        outcome = self.broker.execute(order)
        if not outcome.success:
            raise ExecutionFailure(outcome.error or "Broker rejected the order")
        fill = outcome.fill_price or price
        position = self.ledger.open_position(
            session,
            item.user_id,
            instrument_type,
            fill,
            value,
            is_paper=False,
            signal_id=signal.id,
            target_price=target,
            stop_loss=stop,
            now=now,
            metadata={"queue_item_id": item.id, "order_id": outcome.order_id},
            commit=False,
        )
        return {
            "mode": "live",
            "action": f"BUY_{instrument_type}",
            "position_id": position.id,
            "order_id": outcome.order_id,
            "instrument_type": instrument_type,
            "fill_price": float(fill),
            "position_value": float(value),
        }

    def _exit(
        self,
        session: Session,
        item: QueueItemRow,
        signal: SignalRow,
        settings: UserSettingsRow,
        instrument_type: str,
        now: datetime,
    ) -> dict:
        """Sell the user's open *instrument_type* positions."""
        is_paper = settings.paper_trading_enabled
        held = (
            session.query(PositionRow)
            .filter(
                PositionRow.user_id == item.user_id,
                PositionRow.status == "OPEN",
                PositionRow.instrument_type == instrument_type,
                PositionRow.is_paper == is_paper,
            )
            .order_by(PositionRow.id)
            .all()
        )
        if not held:
            raise ExecutionFailure(f"No open {instrument_type} position to sell")

        price = as_decimal(signal.current_price)
        result: dict = {
            "mode": "paper" if is_paper else "live",
            "action": f"SELL_{instrument_type}",
            "instrument_type": instrument_type,
        }
        if not is_paper:
            if self.broker is None:
                raise ExecutionFailure("No broker configured for live trading")
            order = BrokerOrder(
                direction="SELL",
                instrument_type=instrument_type,
                instrument_id=settings.preferred_bull_id if instrument_type == "BULL" else settings.preferred_bear_id,
                value=sum(as_decimal(p.position_value) for p in held),
                quantity=sum(int(as_decimal(p.position_value) / as_decimal(p.entry_price)) for p in held),
                reference_price=price,
            )
            outcome = self.broker.execute(order)
            if not outcome.success:
                raise ExecutionFailure(outcome.error or "Broker rejected the order")
            price = outcome.fill_price or price
            result["order_id"] = outcome.order_id

        closed = [
            self.ledger.close_position(session, p.id, price, "signal", now, commit=False)
            for p in held
        ]
        result.update(
            closed_position_ids=[p.id for p in closed],
            exit_price=float(price),
            profit_loss=float(sum(p.profit_loss for p in closed)),
        )
        return result

    def run_batch(
        self,
        session: Session,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[QueueItem]:
        """Claim and process up to *limit* due PENDING items, oldest first."""
        now = now or _now()
        due = [
            item_id
            for (item_id,) in session.query(QueueItemRow.id)
            .filter(QueueItemRow.status == "PENDING", QueueItemRow.available_at <= now)
            .order_by(QueueItemRow.created_at, QueueItemRow.id)
            .limit(limit)
            .all()
        ]
        processed: list[QueueItem] = []
        for item_id in due:
            try:
                self.claim(session, item_id, now)
            except ClaimConflictError:
                log.debug("queue_item_already_claimed", queue_item_id=item_id)
                continue
            processed.append(self.process(session, item_id, now))
        return processed

    def retry(
        self,
        session: Session,
        item_id: int,
        policy: RetryPolicy,
        now: datetime | None = None,
    ) -> QueueItem | None:
        """Enqueue a fresh attempt for a FAILED item if *policy* allows.

        The failed item itself is left as is.
        """
        now = now or _now()
        row = session.get(QueueItemRow, item_id)
        if row is None or row.status != "FAILED":
            raise InvalidTransitionError(f"only FAILED items can be retried (item {item_id})")
        if not policy.should_retry(row.attempt):
            log.info("retry_exhausted", queue_item_id=item_id, attempt=row.attempt)
            return None

        fresh = QueueItemRow(
            signal_id=row.signal_id,
            user_id=row.user_id,
            status="PENDING",
            attempt=row.attempt + 1,
            created_at=now,
            available_at=now + policy.delay(row.attempt),
        )
        session.add(fresh)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            log.info("retry_already_enqueued", queue_item_id=item_id, attempt=row.attempt + 1)
            return None
        session.refresh(fresh)
        log.info("retry_enqueued", queue_item_id=fresh.id, previous_id=item_id, attempt=fresh.attempt)
        return to_queue_item(fresh)

    # ── Reads ─────────────────────────────────────────────────

    @staticmethod
    def get(session: Session, item_id: int) -> QueueItem | None:
        row = session.get(QueueItemRow, item_id)
        return to_queue_item(row) if row is not None else None

    @staticmethod
    def stats(session: Session) -> QueueStats:
        counts = dict(
            session.query(QueueItemRow.status, func.count(QueueItemRow.id))
            .group_by(QueueItemRow.status)
            .all()
        )
        return QueueStats(
            pending=counts.get("PENDING", 0),
            processing=counts.get("PROCESSING", 0),
            completed=counts.get("COMPLETED", 0),
            failed=counts.get("FAILED", 0),
        )

    @staticmethod
    def recent(session: Session, limit: int = 20) -> list[QueueItem]:
        rows = (
            session.query(QueueItemRow)
            .order_by(desc(QueueItemRow.created_at), desc(QueueItemRow.id))
            .limit(limit)
            .all()
        )
        return [to_queue_item(r) for r in rows]
