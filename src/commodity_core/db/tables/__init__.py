"""Import all table modules so Base.metadata knows about them."""

from commodity_core.db.tables.execution import QueueItemRow, UserSettingsRow
from commodity_core.db.tables.market_data import IndicatorRow, PriceTickRow
from commodity_core.db.tables.paper import PositionRow
from commodity_core.db.tables.signals import SignalRow

__all__ = [
    "IndicatorRow",
    "PositionRow",
    "PriceTickRow",
    "QueueItemRow",
    "SignalRow",
    "UserSettingsRow",
]
