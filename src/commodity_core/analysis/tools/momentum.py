"""Momentum pulse: short-horizon acceleration of the price."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.errors import InsufficientDataError
from commodity_core.models import MarketContext, ToolResult


@register
class MomentumPulse(ToolScorer):
    """Compare 1m/5m/15m percentage changes to detect acceleration.

    short  = change_1m - change_5m / 5
    medium = change_5m - change_15m / 3
    pulse  = |short * 50 + medium * 30| * sensitivity
    """

    name = "momentum_pulse"
    label = "Momentum Pulse"
    min_ticks = 2
    docs = {
        "thesis": "A move that is speeding up over the last minutes tends to carry on for a few more.",
        "data": "Percentage change from the oldest tick inside the 1, 5, 15 and 60 minute look-backs to the current price.",
        "risk": "Single-tick spikes read as strong pulses; gaps in the feed shorten the effective look-back.",
    }

    def __init__(self, **params: Any) -> None:
        super().__init__(**params)
        self.sensitivity = float(self.params.get("sensitivity", 1.0))
        self.min_pulse = float(self.params.get("min_pulse", 3.0))

    def _change(self, context: MarketContext, seconds: int) -> float:
        cutoff = context.ts - timedelta(seconds=seconds)
        recent = [t for t in context.ticks if t.timestamp >= cutoff]
        if len(recent) < 2:
            return 0.0
        oldest = float(recent[0].close)
        return (float(context.current_price) - oldest) / oldest * 100

    def score(self, context: MarketContext) -> ToolResult:
        self.require_ticks(context)
        if context.current_price <= 0:
            raise InsufficientDataError("momentum pulse needs a positive current price")

        c1 = self._change(context, 60)
        c5 = self._change(context, 300)
        c15 = self._change(context, 900)

        short_accel = c1 - c5 / 5
        medium_accel = c5 - c15 / 3
        pulse = abs(short_accel * 50 + medium_accel * 30) * self.sensitivity

        if pulse < self.min_pulse:
            return self.result(0, 30, "HOLD", "No significant momentum pulse")

        clamped = min(pulse, 25.0)
        positive = short_accel > 0
        return self.result(
            score=clamped if positive else -clamped,
            confidence=min(pulse * 3, 95),
            signal="BUY" if positive else "SELL",
            reasoning=f"{'Positive' if positive else 'Negative'} pulse: {pulse:.1f}% acceleration",
        )
