"""Reversal meter: overextension by RSI, band position and divergence."""

from __future__ import annotations

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.models import MarketContext, PriceTick, ToolResult


def band_position(price: float, lower: float, upper: float) -> float:
    """0 at the lower band, 1 at the upper band."""
    if upper == lower:
        return 0.5
    return (price - lower) / (upper - lower)


def has_divergence(ticks: list[PriceTick]) -> bool:
    """Price and short-term momentum moving in opposite directions."""
    if len(ticks) < 10:
        return False
    recent = [float(t.close) for t in ticks[-10:]]
    price_trend = recent[-1] - recent[0]
    momentum_recent = recent[-1] - recent[-4]
    momentum_older = recent[-5] - recent[-8]
    return (price_trend > 0 and momentum_recent < momentum_older) or (
        price_trend < 0 and momentum_recent > momentum_older
    )


@register
class ReversalMeter(ToolScorer):
    name = "reversal_meter"
    label = "Reversal Meter"
    min_ticks = 20
    docs = {
        "thesis": "Stretched moves snap back: extreme RSI, band excursions and momentum divergence raise the odds of a reversal.",
        "data": "RSI(14) and Bollinger(20, 2) from the indicator snapshot, plus the last 10 closes for divergence.",
        "risk": "Strong trends stay overbought for a long time; fading them early is costly.",
    }

    def score(self, context: MarketContext) -> ToolResult:
        ticks = self.require_ticks(context)
        ind = context.indicators
        price = float(context.current_price)

        probability = 0.0
        direction: str | None = None
        reasons: list[str] = []

        if ind.rsi_14 is not None:
            rsi = float(ind.rsi_14)
            if rsi > 80:
                probability += (rsi - 80) * 4
                direction = "DOWN"
                reasons.append(f"RSI overbought ({rsi:.0f})")
            elif rsi < 20:
                probability += (20 - rsi) * 4
                direction = "UP"
                reasons.append(f"RSI oversold ({rsi:.0f})")

        if ind.has("boll_lower", "boll_upper"):
            pos = band_position(price, float(ind.boll_lower), float(ind.boll_upper))
            if pos > 0.95:
                probability += 15
                direction = direction or "DOWN"
                reasons.append("Above upper band")
            elif pos < 0.05:
                probability += 15
                direction = direction or "UP"
                reasons.append("Below lower band")

        if has_divergence(ticks):
            probability += 10
            reasons.append("Momentum divergence")

        probability = min(probability, 95.0)
        if probability < 25 or direction is None:
            return self.result(0, 40, "HOLD", "No reversal signals")

        up = direction == "UP"
        return self.result(
            score=15 if up else -15,
            confidence=probability,
            signal="BUY" if up else "SELL",
            reasoning=", ".join(reasons),
        )
