"""Position ledger and P/L math for paper and live positions."""

from commodity_core.paper.ledger import PositionLedger, to_position
from commodity_core.paper.pnl import compute_pl, direction_for, pl_absolute, pl_percent

__all__ = [
    "PositionLedger",
    "compute_pl",
    "direction_for",
    "pl_absolute",
    "pl_percent",
    "to_position",
]
