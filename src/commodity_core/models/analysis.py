"""Tool results and the fused recommendation."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ToolSignal = Literal["BUY", "SELL", "HOLD"]
Action = Literal["BUY_BULL", "BUY_BEAR", "SELL_BULL", "SELL_BEAR", "HOLD"]
InstrumentType = Literal["BULL", "BEAR"]


class ToolResult(BaseModel):
    """Output of one tool scorer for one pass."""

    model_config = ConfigDict(frozen=True)

    name: str
    score: float = Field(ge=-100.0, le=100.0)
    confidence: float = Field(ge=0.0, le=100.0)
    signal: ToolSignal
    reasoning: str = ""

    @classmethod
    def fallback(cls, name: str, reason: str) -> ToolResult:
        """Neutral stand-in for a scorer that failed or timed out."""
        return cls(name=name, score=0.0, confidence=0.0, signal="HOLD", reasoning=reason)


class TradeStrategy(BaseModel):
    entry: Decimal
    target: Decimal
    stop_loss: Decimal
    suggested_hold_time: str


class CombinedRecommendation(BaseModel):
    """Fused view of all tool results. Recomputed every pass, never stored."""

    action: Action
    confidence: float = Field(ge=0.0, le=100.0)
    composite: float = Field(ge=-100.0, le=100.0)
    factors: list[ToolResult] = Field(default_factory=list)
    strategy: TradeStrategy

    @property
    def is_bullish(self) -> bool:
        return self.action in ("BUY_BULL", "SELL_BEAR")
