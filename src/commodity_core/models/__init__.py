"""Pydantic domain models."""

from commodity_core.models.analysis import (
    Action,
    CombinedRecommendation,
    InstrumentType,
    ToolResult,
    ToolSignal,
    TradeStrategy,
)
from commodity_core.models.execution import (
    BrokerOrder,
    BrokerResult,
    QueueItem,
    QueueStats,
    QueueStatus,
)
from commodity_core.models.market import IndicatorSnapshot, MarketContext, PriceTick
from commodity_core.models.position import (
    EXIT_REASONS,
    ExitReason,
    PortfolioSummary,
    Position,
    ProfitLoss,
)
from commodity_core.models.signal import Signal, SignalType, Strength

__all__ = [
    "EXIT_REASONS",
    "Action",
    "BrokerOrder",
    "BrokerResult",
    "CombinedRecommendation",
    "ExitReason",
    "IndicatorSnapshot",
    "InstrumentType",
    "MarketContext",
    "PortfolioSummary",
    "Position",
    "PriceTick",
    "ProfitLoss",
    "QueueItem",
    "QueueStats",
    "QueueStatus",
    "Signal",
    "SignalType",
    "Strength",
    "ToolResult",
    "ToolSignal",
    "TradeStrategy",
]
