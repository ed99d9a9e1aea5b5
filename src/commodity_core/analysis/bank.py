"""Scorer bank: run every registered tool against one context, bounded in time."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait

import structlog

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import TOOL_REGISTRY
from commodity_core.config.schema import ScoringConfig
from commodity_core.errors import InsufficientDataError
from commodity_core.models import MarketContext, ToolResult

# Ensure all tool modules are imported so @register fires
import commodity_core.analysis.tools  # noqa: F401

log = structlog.get_logger("scorer_bank")


class ScorerBank:
    """Fixed set of tool scorers evaluated concurrently.

    score_all() always returns one result per scorer, in name order. A
    scorer that raises, overruns ``timeout_s`` or is disabled contributes
    ToolResult.fallback() instead.
    """

    def __init__(
        self,
        scorers: list[ToolScorer],
        timeout_s: float = 2.0,
        max_workers: int | None = None,
        disabled: list[str] | None = None,
    ) -> None:
        self.scorers = sorted(scorers, key=lambda s: s.name)
        self.timeout_s = timeout_s
        self.max_workers = max_workers or len(self.scorers) or 1
        self.disabled = set(disabled or [])

    @classmethod
    def from_registry(cls, config: ScoringConfig | None = None) -> ScorerBank:
        config = config or ScoringConfig()
        scorers = [
            tool_cls(**config.params.get(name, {}))
            for name, tool_cls in sorted(TOOL_REGISTRY.items())
        ]
        return cls(
            scorers,
            timeout_s=config.timeout_s,
            max_workers=config.max_workers,
            disabled=config.disabled,
        )

    @property
    def names(self) -> list[str]:
        return [s.name for s in self.scorers]

    def score_all(self, context: MarketContext) -> list[ToolResult]:
        active = [s for s in self.scorers if s.name not in self.disabled]
        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="scorer")
        try:
            futures: dict[str, Future[ToolResult]] = {
                s.name: pool.submit(s.score, context) for s in active
            }
            wait(futures.values(), timeout=self.timeout_s)
        finally:
            # never block on a stuck scorer
            pool.shutdown(wait=False, cancel_futures=True)

        results: list[ToolResult] = []
        for scorer in self.scorers:
            if scorer.name in self.disabled:
                results.append(ToolResult.fallback(scorer.name, "Tool disabled"))
                continue
            results.append(self._collect(scorer.name, futures[scorer.name]))
        return results

    def _collect(self, name: str, future: Future[ToolResult]) -> ToolResult:
        if not future.done():
            future.cancel()
            log.warning("scorer_timeout", tool=name, timeout_s=self.timeout_s)
            return ToolResult.fallback(name, f"Timed out after {self.timeout_s}s")

        try:
            return future.result()
        except InsufficientDataError as e:
            log.debug("scorer_insufficient_data", tool=name, reason=str(e))
            return ToolResult.fallback(name, f"Insufficient data: {e}")
        except Exception as e:
            log.exception("scorer_error", tool=name)
            return ToolResult.fallback(name, f"Error: {e}")
