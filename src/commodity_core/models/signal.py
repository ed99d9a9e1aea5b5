"""Signal model: the durable record a recommendation yields."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SignalType = Literal["BUY", "SELL", "HOLD"]
Strength = Literal["STRONG", "MODERATE", "WEAK"]


class Signal(BaseModel):
    """A published signal. ``id`` is None until persisted."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    timestamp: datetime
    signal_type: SignalType
    strength: Strength
    probability_up: float = Field(ge=0.0, le=100.0)
    probability_down: float = Field(ge=0.0, le=100.0)
    confidence: float = Field(ge=0.0, le=100.0)
    current_price: Decimal
    target_price: Decimal | None = None
    stop_loss: Decimal | None = None
    reasoning: str = ""
    indicators_used: dict[str, Any] | None = None
    is_active: bool = False
    auto_executed: bool = False
    executed_at: datetime | None = None
    execution_result: dict[str, Any] | None = None
