"""Frequency analyzer: which trading cadence has historically paid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.models import MarketContext, PriceTick, ToolResult

INTERVALS = (
    (60, "1 min"),
    (300, "5 min"),
    (900, "15 min"),
    (3600, "1 hour"),
    (14400, "4 hours"),
    (86400, "1 day"),
)


@dataclass
class CadenceScore:
    label: str
    win_rate: float
    total_return: float
    noise_ratio: float
    score: int


def _bucket(ticks: list[PriceTick], seconds: int) -> list[list[PriceTick]]:
    groups: list[list[PriceTick]] = []
    current: list[PriceTick] = []
    start = ticks[0].timestamp
    for tick in ticks:
        if (tick.timestamp - start).total_seconds() > seconds:
            if current:
                groups.append(current)
            current = [tick]
            start = tick.timestamp
        else:
            current.append(tick)
    if current:
        groups.append(current)
    return groups


def simulate_cadence(ticks: list[PriceTick], seconds: int, label: str) -> CadenceScore:
    """Replay a momentum-continuation rule on *seconds*-wide buckets."""
    if len(ticks) < 10:
        return CadenceScore(label, 0.0, 0.0, 1.0, 0)

    groups = _bucket(ticks, seconds)
    if len(groups) < 5:
        return CadenceScore(label, 50.0, 0.0, 0.5, 30)

    wins = losses = 0
    total_return = 0.0
    noise_sum = 0.0
    for prev, curr, nxt in zip(groups, groups[1:], groups[2:]):
        prev_close = float(prev[-1].close)
        curr_close = float(curr[-1].close)
        next_close = float(nxt[-1].close)
        prev_change = (curr_close - prev_close) / prev_close
        next_change = (next_close - curr_close) / curr_close

        if (prev_change > 0 and next_change > 0) or (prev_change < 0 and next_change < 0):
            wins += 1
            total_return += abs(next_change) * 100
        else:
            losses += 1
            total_return -= abs(next_change) * 100

        noise_sum += sum(float(t.high - t.low) / float(t.close) for t in curr) / len(curr)

    trades = wins + losses
    win_rate = wins / trades * 100 if trades else 50.0
    noise_ratio = min(noise_sum / max(len(groups) - 2, 1) * 100, 1.0)
    score = round(
        win_rate * 0.4
        + max(0.0, min(total_return + 50, 100.0)) * 0.3
        + (1 - noise_ratio) * 100 * 0.3
    )
    return CadenceScore(label, win_rate, total_return, noise_ratio, max(0, min(100, score)))


@register
class FrequencyAnalyzer(ToolScorer):
    """Pick the bucket width where momentum continuation worked best."""

    name = "frequency_analyzer"
    label = "Frequency Analyzer"
    min_ticks = 50
    docs = {
        "thesis": "Some cadences carry momentum better than others; trade only when the best cadence has a strong record.",
        "data": "Trailing ticks bucketed at 1m, 5m, 15m, 1h, 4h and 1d; win rate, cumulative return and intra-bucket noise per cadence.",
        "risk": "Past continuation rates drift with regime; coarse cadences have few samples in a short window.",
    }

    def __init__(self, **params: Any) -> None:
        super().__init__(**params)
        self.buy_threshold = int(self.params.get("buy_threshold", 60))

    def score(self, context: MarketContext) -> ToolResult:
        ticks = self.require_ticks(context)
        results = [simulate_cadence(ticks, seconds, label) for seconds, label in INTERVALS]
        best = results[0]
        for r in results[1:]:
            if r.score > best.score:
                best = r

        if best.score > 70:
            score = 15
        elif best.score > 50:
            score = 5
        else:
            score = -5
        return self.result(
            score=score,
            confidence=min(best.score, 95),
            signal="BUY" if best.score > self.buy_threshold else "HOLD",
            reasoning=f"Best cadence: {best.label} (score {best.score}/100, win rate {best.win_rate:.0f}%)",
        )
