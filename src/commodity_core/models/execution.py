"""Execution queue and broker hand-off models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from commodity_core.models.analysis import InstrumentType

QueueStatus = Literal["PENDING", "PROCESSING", "COMPLETED", "FAILED"]


class QueueItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    signal_id: int
    user_id: str
    status: QueueStatus
    attempt: int = 1
    created_at: datetime
    available_at: datetime
    claimed_at: datetime | None = None
    processed_at: datetime | None = None
    error_message: str | None = None
    result: dict[str, Any] | None = None


class QueueStats(BaseModel):
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


class BrokerOrder(BaseModel):
    """Validated instruction handed to the broker collaborator."""

    direction: Literal["BUY", "SELL"]
    instrument_type: InstrumentType
    instrument_id: str | None = None
    value: Decimal
    quantity: int
    reference_price: Decimal


class BrokerResult(BaseModel):
    success: bool
    fill_price: Decimal | None = None
    order_id: str | None = None
    error: str | None = None
