"""Market data models: price ticks, indicator snapshots, scorer context."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PriceTick(BaseModel):
    """One minute-resolution OHLC observation. Immutable once stored."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal | None = None


class IndicatorSnapshot(BaseModel):
    """Indicators for the latest tick of a window.

    A ``None`` field means insufficient data, never a literal zero; its
    name is also listed in ``missing``.
    """

    timestamp: datetime
    rsi_14: Decimal | None = None
    macd: Decimal | None = None
    macd_signal: Decimal | None = None
    macd_histogram: Decimal | None = None
    ema_12: Decimal | None = None
    ema_26: Decimal | None = None
    sma_short: Decimal | None = None
    sma_long: Decimal | None = None
    boll_upper: Decimal | None = None
    boll_mid: Decimal | None = None
    boll_lower: Decimal | None = None
    missing: list[str] = Field(default_factory=list)

    def has(self, *fields: str) -> bool:
        """True when every named field was computed."""
        return all(getattr(self, f) is not None for f in fields)


class MarketContext(BaseModel):
    """Everything a tool scorer may read for one pipeline pass.

    ``ts`` is the pass timestamp; scorers use it instead of the wall clock.
    ``macro`` carries optional external factor readings (e.g. ``usd_strength``).
    """

    ts: datetime
    ticks: list[PriceTick] = Field(default_factory=list)
    indicators: IndicatorSnapshot
    current_price: Decimal
    macro: dict[str, float] = Field(default_factory=dict)
