"""Combiner: fuse the nine tool results into one recommendation."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal

from commodity_core.config.schema import CombinerConfig
from commodity_core.errors import AggregationError
from commodity_core.models import (
    Action,
    CombinedRecommendation,
    InstrumentType,
    ToolResult,
    ToolSignal,
    TradeStrategy,
)

TOOL_COUNT = 9

_PRICE_QUANT = Decimal("0.0001")


# ── Weighting policies ──────────────────────────────────────────


class WeightingPolicy(ABC):
    """Assigns each tool result its reliability weight."""

    name: str

    @abstractmethod
    def weight(self, result: ToolResult) -> float: ...


class ConfidenceWeighting(WeightingPolicy):
    """Weight = confidence, so a 0-confidence fallback contributes nothing."""

    name = "confidence"

    def weight(self, result: ToolResult) -> float:
        return result.confidence


class EqualWeighting(WeightingPolicy):
    name = "equal"

    def weight(self, result: ToolResult) -> float:
        return 1.0


class StaticWeighting(WeightingPolicy):
    """Per-tool multiplier on top of confidence. Unlisted tools get 1.0."""

    name = "static"

    def __init__(self, weights: dict[str, float]) -> None:
        self.weights = dict(weights)

    def weight(self, result: ToolResult) -> float:
        return self.weights.get(result.name, 1.0) * result.confidence


def build_weighting(config: CombinerConfig) -> WeightingPolicy:
    if config.weighting == "equal":
        return EqualWeighting()
    if config.weighting == "static":
        return StaticWeighting(config.static_weights)
    return ConfidenceWeighting()


# ── Combiner ────────────────────────────────────────────────────


def _agreeing_signal(action: Action) -> ToolSignal:
    if action in ("BUY_BULL", "SELL_BEAR"):
        return "BUY"
    if action in ("BUY_BEAR", "SELL_BULL"):
        return "SELL"
    return "HOLD"


class Combiner:
    """Deterministic, order-independent fusion of tool results.

    composite = sum(w * score) / sum(w), clamped to [-100, 100]. A
    composite inside the deadband, exactly zero, or backed by a
    confidence below the floor yields HOLD.
    """

    def __init__(
        self,
        config: CombinerConfig | None = None,
        weighting: WeightingPolicy | None = None,
        expected_count: int = TOOL_COUNT,
    ) -> None:
        self.config = config or CombinerConfig()
        self.weighting = weighting or build_weighting(self.config)
        self.expected_count = expected_count

    def composite(self, results: list[ToolResult]) -> float:
        weights = [self.weighting.weight(r) for r in results]
        total = math.fsum(weights)
        if total <= 0:
            return 0.0
        value = math.fsum(w * r.score for w, r in zip(weights, results)) / total
        return max(-100.0, min(100.0, value))

    def combine(
        self,
        results: list[ToolResult],
        current_price: Decimal,
        holding: InstrumentType | None = None,
    ) -> CombinedRecommendation:
        """Fuse *results* into a recommendation priced off *current_price*.

        *holding* is the instrument the caller already holds; a composite
        against it turns the action into the matching SELL_*.
        """
        if len(results) != self.expected_count:
            raise AggregationError(
                f"expected {self.expected_count} tool results, got {len(results)}"
            )

        factors = sorted(results, key=lambda r: r.name)
        composite = self.composite(factors)
        action = self._direction(composite, holding)
        confidence = self._confidence(factors, action)

        if action != "HOLD" and (composite == 0 or confidence < self.config.confidence_floor):
            action = "HOLD"
            confidence = self._confidence(factors, action)

        return CombinedRecommendation(
            action=action,
            confidence=confidence,
            composite=composite,
            factors=factors,
            strategy=self._strategy(Decimal(current_price), composite, action),
        )

    def _direction(self, composite: float, holding: InstrumentType | None) -> Action:
        if composite == 0 or abs(composite) < self.config.deadband:
            return "HOLD"
        if composite > 0:
            return "SELL_BEAR" if holding == "BEAR" else "BUY_BULL"
        return "SELL_BULL" if holding == "BULL" else "BUY_BEAR"

    def _confidence(self, factors: list[ToolResult], action: Action) -> float:
        wanted = _agreeing_signal(action)
        agreeing = [r.confidence for r in factors if r.signal == wanted]
        if not agreeing:
            return 0.0
        mean = math.fsum(agreeing) / len(agreeing)
        return min(mean, self.config.max_confidence)

    def _strategy(self, entry: Decimal, composite: float, action: Action) -> TradeStrategy:
        target_pct = Decimal(str(self.config.target_pct))
        stop_pct = Decimal(str(self.config.stop_pct))
        # bearish actions target a falling price
        if action in ("BUY_BEAR", "SELL_BULL"):
            target = entry * (1 - target_pct)
            stop = entry * (1 + stop_pct)
        else:
            target = entry * (1 + target_pct)
            stop = entry * (1 - stop_pct)

        if action == "HOLD":
            hold_time = "-"
        elif abs(composite) > 30:
            hold_time = "15-60 min"
        else:
            hold_time = "5-15 min"

        return TradeStrategy(
            entry=entry,
            target=target.quantize(_PRICE_QUANT, rounding=ROUND_HALF_UP),
            stop_loss=stop.quantize(_PRICE_QUANT, rounding=ROUND_HALF_UP),
            suggested_hold_time=hold_time,
        )
