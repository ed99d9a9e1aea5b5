"""Tool scorers. Importing this package registers all of them."""

from commodity_core.analysis.tools import (  # noqa: F401
    correlation,
    exits,
    frequency,
    momentum,
    patterns,
    reversal,
    risk,
    timing,
    volatility,
)
