"""PositionLedger: open and close positions against a tracked balance."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from commodity_core.config.schema import PaperConfig
from commodity_core.db.convert import as_decimal, as_utc
from commodity_core.db.tables.execution import UserSettingsRow
from commodity_core.db.tables.paper import PositionRow
from commodity_core.errors import ExecutionFailure, LedgerInvariantViolation
from commodity_core.feed import get_latest_price
from commodity_core.models import (
    EXIT_REASONS,
    ExitReason,
    InstrumentType,
    PortfolioSummary,
    Position,
    ProfitLoss,
)
from commodity_core.paper.pnl import (
    compute_pl,
    direction_for,
    exit_reason_at,
    settlement,
)

log = structlog.get_logger("ledger")


def to_position(row: PositionRow) -> Position:
    return Position(
        id=row.id,
        user_id=row.user_id,
        signal_id=row.signal_id,
        direction=row.direction,
        instrument_type=row.instrument_type,
        is_paper=row.is_paper,
        entry_price=as_decimal(row.entry_price),
        entry_timestamp=as_utc(row.entry_timestamp),
        exit_price=as_decimal(row.exit_price),
        exit_timestamp=as_utc(row.exit_timestamp) if row.exit_timestamp is not None else None,
        exit_reason=row.exit_reason,
        position_value=as_decimal(row.position_value),
        target_price=as_decimal(row.target_price),
        stop_loss=as_decimal(row.stop_loss),
        profit_loss=as_decimal(row.profit_loss),
        profit_loss_percent=as_decimal(row.profit_loss_percent),
        status=row.status,
    )


def _balance_column(is_paper: bool):
    return UserSettingsRow.paper_balance if is_paper else UserSettingsRow.current_capital


class PositionLedger:
    """Positions and the per-user balance they draw on.

    Paper positions draw on ``paper_balance``, live ones on
    ``current_capital``. Every balance change is committed in the same
    transaction as the position change that causes it.
    """

    def __init__(self, config: PaperConfig | None = None) -> None:
        self.config = config or PaperConfig()

    # ── Settings ──────────────────────────────────────────────

    def ensure_settings(
        self,
        session: Session,
        user_id: str,
        auto_trading: bool = False,
        paper_trading: bool = True,
    ) -> UserSettingsRow:
        """Return the user's settings row, creating it with the starting balance."""
        row = session.query(UserSettingsRow).filter(UserSettingsRow.user_id == user_id).first()
        if row is not None:
            return row
        row = UserSettingsRow(
            user_id=user_id,
            auto_trading_enabled=auto_trading,
            paper_trading_enabled=paper_trading,
            paper_balance=self.config.starting_balance,
            current_capital=0,
        )
        session.add(row)
        session.commit()
        session.refresh(row)
        log.info("user_settings_created", user_id=user_id)
        return row

    # ── Position lifecycle ────────────────────────────────────

    def open_position(
        self,
        session: Session,
        user_id: str,
        instrument_type: InstrumentType,
        entry_price: Decimal,
        position_value: Decimal,
        *,
        is_paper: bool = True,
        signal_id: int | None = None,
        target_price: Decimal | None = None,
        stop_loss: Decimal | None = None,
        now: datetime | None = None,
        metadata: dict | None = None,
        commit: bool = True,
    ) -> Position:
        """Open a position and deduct its value from the tracked balance.

        With ``commit=False`` the caller owns the transaction, so the
        insert can land together with its own writes.
        """
        value = Decimal(str(position_value))
        if value <= 0:
            raise LedgerInvariantViolation(f"position value must be positive, got {value}")
        if entry_price <= 0:
            raise LedgerInvariantViolation(f"entry price must be positive, got {entry_price}")

        column = _balance_column(is_paper)
        stmt = (
            update(UserSettingsRow)
            .where(UserSettingsRow.user_id == user_id)
            .values({column: column - float(value)})
            .execution_options(synchronize_session=False)
        )
        if is_paper:
            stmt = stmt.where(column >= float(value))
        deducted = session.execute(stmt).rowcount
        if deducted == 0:
            session.rollback()
            exists = session.query(UserSettingsRow.id).filter(UserSettingsRow.user_id == user_id).first()
            if exists is None:
                raise ExecutionFailure("User settings not found")
            raise ExecutionFailure(f"Insufficient paper balance for position value {value}")

        row = PositionRow(
            user_id=user_id,
            signal_id=signal_id,
            direction=direction_for(instrument_type),
            instrument_type=instrument_type,
            is_paper=is_paper,
            entry_price=float(entry_price),
            entry_timestamp=now or datetime.now(timezone.utc),
            position_value=float(value),
            target_price=float(target_price) if target_price is not None else None,
            stop_loss=float(stop_loss) if stop_loss is not None else None,
            status="OPEN",
            metadata_=metadata,
        )
        session.add(row)
        session.flush()
        if commit:
            session.commit()

        log.info(
            "position_opened",
            position_id=row.id,
            user_id=user_id,
            instrument_type=instrument_type,
            is_paper=is_paper,
            entry_price=float(entry_price),
            position_value=float(value),
        )
        return to_position(row)

    def close_position(
        self,
        session: Session,
        position_id: int,
        exit_price: Decimal | None = None,
        reason: ExitReason = "manual",
        now: datetime | None = None,
        commit: bool = True,
    ) -> Position:
        """Close an OPEN position at *exit_price* (latest tick when None).

        A second close, or an unknown *reason*, is rejected with
        LedgerInvariantViolation and leaves the stored row untouched.
        With ``commit=False`` the caller owns the transaction.
        """
        if reason not in EXIT_REASONS:
            raise LedgerInvariantViolation(f"unknown exit reason {reason!r}")
        row = session.get(PositionRow, position_id)
        if row is None:
            raise LedgerInvariantViolation(f"position {position_id} does not exist")
        if row.status != "OPEN":
            raise LedgerInvariantViolation(f"position {position_id} is already {row.status}")

        if exit_price is None:
            exit_price = get_latest_price(session)
            if exit_price is None:
                raise ExecutionFailure("No market price available to close at")

        value = as_decimal(row.position_value)
        pl = compute_pl(row.instrument_type, as_decimal(row.entry_price), exit_price, value)
        closed_at = now or datetime.now(timezone.utc)

        closed = session.execute(
            update(PositionRow)
            .where(PositionRow.id == position_id, PositionRow.status == "OPEN")
            .values(
                status="CLOSED",
                exit_price=float(exit_price),
                exit_timestamp=closed_at,
                exit_reason=reason,
                profit_loss=float(pl.pl_absolute),
                profit_loss_percent=float(pl.pl_percent),
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if closed == 0:
            session.rollback()
            raise LedgerInvariantViolation(f"position {position_id} was closed concurrently")

        column = _balance_column(row.is_paper)
        credited = session.execute(
            update(UserSettingsRow)
            .where(UserSettingsRow.user_id == row.user_id)
            .values({column: column + float(settlement(value, pl))})
            .execution_options(synchronize_session=False)
        ).rowcount
        if credited == 0:
            session.rollback()
            raise LedgerInvariantViolation(f"no balance to credit for user {row.user_id}")

        if commit:
            session.commit()
        session.refresh(row)

        log.info(
            "position_closed",
            position_id=position_id,
            user_id=row.user_id,
            exit_reason=reason,
            exit_price=float(exit_price),
            pl_percent=float(pl.pl_percent),
            pl_absolute=float(pl.pl_absolute),
        )
        return to_position(row)

    # ── Valuation ─────────────────────────────────────────────

    @staticmethod
    def unrealized_pl(position: Position, price: Decimal) -> ProfitLoss:
        """P/L of *position* at *price*. Does not touch storage."""
        return compute_pl(
            position.instrument_type,
            position.entry_price,
            price,
            position.position_value,
        )

    def check_exits(
        self,
        session: Session,
        price: Decimal,
        now: datetime | None = None,
    ) -> list[Position]:
        """Close open positions whose stop or target *price* has crossed."""
        closed: list[Position] = []
        for pos in self.list_positions(session, status="OPEN"):
            reason = exit_reason_at(pos.direction, price, pos.target_price, pos.stop_loss)
            if reason is None:
                continue
            closed.append(self.close_position(session, pos.id, price, reason, now))
        return closed

    def close_all(
        self,
        session: Session,
        price: Decimal,
        reason: ExitReason = "session_close",
        now: datetime | None = None,
        user_id: str | None = None,
    ) -> list[Position]:
        return [
            self.close_position(session, pos.id, price, reason, now)
            for pos in self.list_positions(session, user_id=user_id, status="OPEN")
        ]

    # ── Reads ─────────────────────────────────────────────────

    @staticmethod
    def get_position(session: Session, position_id: int) -> Position | None:
        row = session.get(PositionRow, position_id)
        return to_position(row) if row is not None else None

    @staticmethod
    def list_positions(
        session: Session,
        user_id: str | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[Position]:
        query = session.query(PositionRow)
        if user_id is not None:
            query = query.filter(PositionRow.user_id == user_id)
        if status is not None:
            query = query.filter(PositionRow.status == status)
        query = query.order_by(PositionRow.entry_timestamp.desc(), PositionRow.id.desc())
        if limit is not None:
            query = query.limit(limit)
        return [to_position(r) for r in query.all()]

    def portfolio_summary(
        self,
        session: Session,
        user_id: str,
        price: Decimal | None = None,
        is_paper: bool = True,
    ) -> PortfolioSummary:
        """Balance plus realized and unrealized P/L for one user."""
        settings = session.query(UserSettingsRow).filter(UserSettingsRow.user_id == user_id).first()
        balance = Decimal("0")
        if settings is not None:
            balance = as_decimal(settings.paper_balance if is_paper else settings.current_capital)

        positions = [p for p in self.list_positions(session, user_id=user_id) if p.is_paper == is_paper]
        realized = sum(
            (p.profit_loss for p in positions if p.status == "CLOSED" and p.profit_loss is not None),
            Decimal("0"),
        )
        open_positions = [p for p in positions if p.status == "OPEN"]
        unrealized = Decimal("0")
        if price is not None:
            unrealized = sum(
                (self.unrealized_pl(p, price).pl_absolute for p in open_positions),
                Decimal("0"),
            )

        return PortfolioSummary(
            user_id=user_id,
            balance=balance,
            open_positions=len(open_positions),
            realized_pl=realized,
            unrealized_pl=unrealized,
        )
