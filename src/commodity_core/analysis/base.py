"""ToolScorer abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from commodity_core.errors import InsufficientDataError
from commodity_core.models import MarketContext, PriceTick, ToolResult, ToolSignal


class ToolScorer(ABC):
    """Base class for the analysis tools.

    Subclasses set ``name`` (registry key and result name), ``label``
    (human-readable title) and ``docs``, and implement score(). Raise
    InsufficientDataError when the context cannot support the heuristic;
    the bank turns that into a neutral result.
    """

    name: str
    label: str
    min_ticks: int = 0
    docs: dict[str, str] = {}

    def __init__(self, **params: Any) -> None:
        self.params = params

    @abstractmethod
    def score(self, context: MarketContext) -> ToolResult:
        """Score one market context."""
        ...

    def require_ticks(self, context: MarketContext, count: int | None = None) -> list[PriceTick]:
        needed = self.min_ticks if count is None else count
        if len(context.ticks) < needed:
            raise InsufficientDataError(
                f"{self.name} needs {needed} ticks, got {len(context.ticks)}"
            )
        return context.ticks

    def result(
        self,
        score: float,
        confidence: float,
        signal: ToolSignal,
        reasoning: str,
    ) -> ToolResult:
        return ToolResult(
            name=self.name,
            score=max(-100.0, min(100.0, float(score))),
            confidence=max(0.0, min(100.0, float(confidence))),
            signal=signal,
            reasoning=reasoning,
        )
