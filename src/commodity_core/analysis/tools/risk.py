"""Risk per minute: recent per-minute volatility against its own baseline."""

from __future__ import annotations

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.models import MarketContext, PriceTick, ToolResult


def per_minute_volatility(ticks: list[PriceTick]) -> float:
    """Sum of absolute returns divided by the minutes they span."""
    total_change = 0.0
    total_minutes = 0.0
    for prev, curr in zip(ticks, ticks[1:]):
        total_change += abs(float(curr.close - prev.close)) / float(prev.close)
        total_minutes += (curr.timestamp - prev.timestamp).total_seconds() / 60
    if total_minutes <= 0:
        return 0.0
    return total_change / total_minutes * 100


@register
class RiskPerMinute(ToolScorer):
    name = "risk_per_minute"
    label = "Risk Per Minute"
    min_ticks = 60
    docs = {
        "thesis": "Calm markets reward entries; a volatility burst relative to the recent baseline is a reason to stand aside.",
        "data": "Per-minute absolute return of the latest 30 ticks compared with the 30 before them.",
        "risk": "A single baseline window can itself be unusual; the comparison is relative only.",
    }

    def score(self, context: MarketContext) -> ToolResult:
        ticks = self.require_ticks(context)
        current = per_minute_volatility(ticks[-30:])
        baseline = per_minute_volatility(ticks[-60:-30]) or current
        confidence = min(len(ticks[-60:]) * 2, 85)

        if current > baseline * 1.5:
            return self.result(-15, confidence, "HOLD", f"High risk: {current:.3f}%/min vs {baseline:.3f}%/min")
        if current < baseline * 0.5:
            return self.result(10, confidence, "BUY", f"Low risk: {current:.3f}%/min vs {baseline:.3f}%/min")
        return self.result(5, confidence, "HOLD", f"Normal risk: {current:.3f}%/min")
