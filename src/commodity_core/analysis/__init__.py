"""Market analysis: indicators, the nine tool scorers, the bank and the combiner."""

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import TOOL_REGISTRY, register

__all__ = ["TOOL_REGISTRY", "ToolScorer", "register"]
