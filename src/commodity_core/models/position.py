"""Position and P/L models for the ledger."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict

from commodity_core.models.analysis import InstrumentType

ExitReason = Literal["manual", "signal", "stop_loss", "take_profit", "session_close"]
EXIT_REASONS: frozenset[str] = frozenset(get_args(ExitReason))


class Position(BaseModel):
    """An open or closed position, paper or live."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    signal_id: int | None = None
    direction: Literal["LONG", "SHORT"]
    instrument_type: InstrumentType
    is_paper: bool = True
    entry_price: Decimal
    entry_timestamp: datetime
    exit_price: Decimal | None = None
    exit_timestamp: datetime | None = None
    exit_reason: ExitReason | None = None
    position_value: Decimal
    target_price: Decimal | None = None
    stop_loss: Decimal | None = None
    profit_loss: Decimal | None = None
    profit_loss_percent: Decimal | None = None
    status: Literal["OPEN", "CLOSED"] = "OPEN"


class ProfitLoss(BaseModel):
    """Realized or unrealized result of a position at a given price."""

    price: Decimal
    pl_percent: Decimal
    pl_absolute: Decimal


class PortfolioSummary(BaseModel):
    user_id: str
    balance: Decimal
    open_positions: int
    realized_pl: Decimal
    unrealized_pl: Decimal
