"""Micro-pattern scanner: double bottoms/tops, breakouts and dojis."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.models import MarketContext, PriceTick, ToolResult

Direction = Literal["UP", "DOWN", "NEUTRAL"]


@dataclass
class Pattern:
    name: str
    direction: Direction
    confidence: int


def _double_bottom(recent: list[PriceTick]) -> Pattern | None:
    lows = [float(t.low) for t in recent]
    floor = min(lows)
    near = [i for i, low in enumerate(lows) if low <= floor * 1.02]
    if len(near) >= 2 and near[-1] - near[0] >= 3 and float(recent[0].close) > floor * 1.01:
        return Pattern("Double Bottom", "UP", 65)
    return None


def _double_top(recent: list[PriceTick]) -> Pattern | None:
    highs = [float(t.high) for t in recent]
    ceiling = max(highs)
    near = [i for i, high in enumerate(highs) if high >= ceiling * 0.98]
    if len(near) >= 2 and near[-1] - near[0] >= 3 and float(recent[0].close) < ceiling * 0.99:
        return Pattern("Double Top", "DOWN", 65)
    return None


def _breakout(recent: list[PriceTick]) -> Pattern | None:
    latest, older = recent[:5], recent[5:20]
    if not older:
        return None
    if max(float(t.high) for t in latest) > max(float(t.high) for t in older) * 1.005:
        return Pattern("Breakout", "UP", 60)
    if min(float(t.low) for t in latest) < min(float(t.low) for t in older) * 0.995:
        return Pattern("Breakdown", "DOWN", 60)
    return None


def _doji(recent: list[PriceTick]) -> Pattern | None:
    tick = recent[0]
    body = abs(float(tick.close - tick.open))
    spread = float(tick.high - tick.low)
    if spread > 0 and body / spread < 0.1:
        return Pattern("Doji", "NEUTRAL", 55)
    return None


DETECTORS = (_double_bottom, _double_top, _breakout, _doji)


def find_patterns(ticks: list[PriceTick], lookback: int = 30) -> list[Pattern]:
    """Run every detector over the last *lookback* ticks."""
    # detectors index from the newest tick
    recent = list(reversed(ticks[-lookback:]))
    return [p for p in (detect(recent) for detect in DETECTORS) if p is not None]


@register
class MicroPatternScanner(ToolScorer):
    name = "micro_pattern"
    label = "Micro Pattern Scanner"
    min_ticks = 20
    docs = {
        "thesis": "Short chart formations in the last half hour hint at the next leg.",
        "data": "Last 30 ticks: lows/highs for double bottoms and tops, 5-vs-15 tick range for breakouts, latest candle body for dojis.",
        "risk": "Formations are detected mechanically with fixed tolerances and fire often in choppy markets.",
    }

    def score(self, context: MarketContext) -> ToolResult:
        ticks = self.require_ticks(context)
        patterns = find_patterns(ticks)
        if not patterns:
            return self.result(0, 40, "HOLD", "No clear patterns detected")

        strongest = patterns[0]
        for p in patterns[1:]:
            if p.confidence > strongest.confidence:
                strongest = p

        if strongest.direction == "UP":
            score, signal = 12, "BUY"
        elif strongest.direction == "DOWN":
            score, signal = -12, "SELL"
        else:
            score, signal = 0, "HOLD"
        return self.result(
            score=score,
            confidence=strongest.confidence,
            signal=signal,
            reasoning=f"{strongest.name} detected ({len(patterns)} pattern(s))",
        )
