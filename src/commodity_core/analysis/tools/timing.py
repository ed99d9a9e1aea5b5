"""Trade timing score: is now a sensible moment to trade at all."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.models import MarketContext, ToolResult

GOOD_HOURS = frozenset({9, 10, 11, 14, 15, 16})
SESSION_OPEN_HOUR = 8
SESSION_CLOSE_HOUR = 22


def market_open(local: datetime) -> bool:
    return local.weekday() < 5 and SESSION_OPEN_HOUR <= local.hour < SESSION_CLOSE_HOUR


@register
class TradeTimingScore(ToolScorer):
    """Start at 50 and adjust for volatility, trend, levels and session.

    ``utc_offset_hours`` shifts the pass timestamp into the exchange's
    local session before the hour checks.
    """

    name = "trade_timing"
    label = "Trade Timing"
    min_ticks = 20
    docs = {
        "thesis": "Trades placed in active, trending sessions away from nearby resistance work out more often.",
        "data": "Mean range of the last 20 ticks, SMA(5) vs SMA(20), 50-tick support/resistance and the session clock.",
        "risk": "Additive heuristics with hand-picked weights; a closed market dominates every other input.",
    }

    def __init__(self, **params: Any) -> None:
        super().__init__(**params)
        self.utc_offset = timedelta(hours=float(self.params.get("utc_offset_hours", 0)))

    def score(self, context: MarketContext) -> ToolResult:
        ticks = self.require_ticks(context)
        price = float(context.current_price)
        timing = 50.0
        reasons: list[str] = []

        latest = ticks[-20:]
        volatility = sum(float(t.high - t.low) / float(t.close) for t in latest) / len(latest) * 100
        if 0.3 <= volatility <= 2:
            timing += 12
            reasons.append("Volatility in range")

        ind = context.indicators
        if ind.has("sma_short", "sma_long"):
            diff = (float(ind.sma_short) - float(ind.sma_long)) / float(ind.sma_long) * 100
            if diff > 0.5:
                timing += 15
                reasons.append("Uptrend")
            elif diff < -0.5:
                timing -= 10
                reasons.append("Downtrend")

        level = ticks[-50:]
        high = max(float(t.high) for t in level)
        low = min(float(t.low) for t in level)
        threshold = (high - low) * 0.05
        if price - low < threshold:
            timing += 10
            reasons.append("Near support")
        elif high - price < threshold:
            timing -= 10
            reasons.append("Near resistance")

        local = context.ts + self.utc_offset
        if local.hour in GOOD_HOURS:
            timing += 8
            reasons.append("Active hours")
        if not market_open(local):
            timing -= 25
            reasons.append("Market closed")

        timing = max(0.0, min(100.0, timing))
        if timing > 70:
            score = 15
        elif timing > 50:
            score = 5
        elif timing < 30:
            score = -15
        else:
            score = 0

        if timing >= 70:
            signal = "BUY"
        elif timing <= 30:
            signal = "SELL"
        else:
            signal = "HOLD"
        return self.result(
            score=score,
            confidence=timing,
            signal=signal,
            reasoning=f"Timing {timing:.0f}/100: " + (", ".join(reasons) or "neutral"),
        )
