"""Volatility window: rank the current hour of day by historical return."""

from __future__ import annotations

import math
from dataclasses import dataclass

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.models import MarketContext, ToolResult


@dataclass
class HourStats:
    hour: int
    volatility: float
    avg_return: float
    samples: int


def hourly_stats(context: MarketContext) -> list[HourStats]:
    stats = []
    for hour in range(24):
        in_hour = [t for t in context.ticks if t.timestamp.hour == hour]
        if len(in_hour) < 2:
            stats.append(HourStats(hour, 0.0, 0.0, 0))
            continue
        vol = sum(float(t.high - t.low) / float(t.close) for t in in_hour) / len(in_hour)
        total = sum(
            float(b.close - a.close) / float(a.close)
            for a, b in zip(in_hour, in_hour[1:])
        )
        stats.append(HourStats(hour, vol * 100, total / (len(in_hour) - 1) * 100, len(in_hour)))
    return stats


@register
class VolatilityWindow(ToolScorer):
    name = "volatility_window"
    label = "Volatility Window"
    min_ticks = 24
    docs = {
        "thesis": "Returns cluster by hour of day; the top third of hours are better entry windows than the bottom third.",
        "data": "Trailing ticks grouped by UTC hour: mean high-low range and mean tick-to-tick return per hour.",
        "risk": "Hour rankings from a short window are noisy and shift around session changes and holidays.",
    }

    def score(self, context: MarketContext) -> ToolResult:
        self.require_ticks(context)
        stats = hourly_stats(context)
        hour = context.ts.hour
        current = stats[hour]
        if current.samples == 0:
            return self.result(0, 0, "HOLD", f"No history for hour {hour:02d}:00")

        ranked = sorted((s for s in stats if s.samples > 0), key=lambda s: -s.avg_return)
        rank = next(i for i, s in enumerate(ranked) if s.hour == hour) + 1
        total = len(ranked)
        good = rank <= math.ceil(total / 3)
        bad = rank > math.ceil(total * 2 / 3)

        return self.result(
            score=10 if good else -10 if bad else 0,
            confidence=min(current.samples * 5, 90),
            signal="BUY" if good else "HOLD",
            reasoning=f"Hour {hour:02d}:00 ranks #{rank}/{total} by average return",
        )
