"""Smart exit optimizer: which holding period has historically paid best."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.models import MarketContext, PriceTick, ToolResult

HOLD_PERIODS_MIN = (5, 15, 60, 240, 1440)


@dataclass
class HoldStats:
    minutes: int
    avg_return: float
    win_rate: float
    max_drawdown: float
    score: float


def _label(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} min"
    if minutes < 1440:
        return f"{minutes // 60} h"
    return f"{minutes // 1440} d"


def evaluate_hold(ticks: list[PriceTick], minutes: int) -> HoldStats | None:
    """Enter at every tick and exit at the first tick *minutes* later."""
    secs = np.array([t.timestamp.timestamp() for t in ticks], dtype=np.float64)
    closes = np.array([float(t.close) for t in ticks], dtype=np.float64)
    lows = np.array([float(t.low) for t in ticks], dtype=np.float64)

    exits = np.searchsorted(secs, secs + minutes * 60, side="left")
    entries = np.flatnonzero(exits < len(ticks))
    if entries.size == 0:
        return None
    exits = exits[entries]

    entry_prices = closes[entries]
    returns = (closes[exits] - entry_prices) / entry_prices * 100
    lowest = np.array([lows[i : j + 1].min() for i, j in zip(entries, exits)])
    drawdowns = (entry_prices - lowest) / entry_prices * 100

    avg = float(np.mean(returns))
    win_rate = float(np.count_nonzero(returns > 0)) / returns.size * 100
    max_dd = float(np.max(drawdowns))
    score = (
        win_rate * 0.4
        + max(0.0, (avg + 5) * 5) * 0.3
        + max(0.0, (5 - max_dd) * 10) * 0.3
    )
    return HoldStats(minutes, avg, win_rate, max_dd, min(score, 100.0))


@register
class SmartExitOptimizer(ToolScorer):
    """Rates the best historical holding period. Never votes a direction."""

    name = "smart_exit"
    label = "Smart Exit Optimizer"
    min_ticks = 100
    docs = {
        "thesis": "A market with a reliable holding period is a better one to be in; the tool scores conviction, not direction.",
        "data": "Simulated entries at every tick with exits after 5m, 15m, 1h, 4h and 1d: average return, win rate, max drawdown.",
        "risk": "Overlapping simulated trades share outcomes, so win rates overstate independence.",
    }

    def score(self, context: MarketContext) -> ToolResult:
        ticks = self.require_ticks(context)
        stats = [s for s in (evaluate_hold(ticks, m) for m in HOLD_PERIODS_MIN) if s is not None]
        if not stats:
            return self.result(0, 30, "HOLD", "Window too short for any holding period")

        best = stats[0]
        for s in stats[1:]:
            if s.score > best.score:
                best = s

        latest = ticks[-50:]
        avg_range = sum(float(t.high - t.low) / float(t.close) for t in latest) / len(latest) * 100
        confidence = min(best.score, 90.0)
        if confidence > 60:
            score = 10
        elif confidence > 40:
            score = 5
        else:
            score = 0
        return self.result(
            score=score,
            confidence=confidence,
            signal="HOLD",
            reasoning=(
                f"Optimal hold: {_label(best.minutes)} "
                f"(win rate {best.win_rate:.0f}%, target +{avg_range * 0.5:.2f}%)"
            ),
        )
