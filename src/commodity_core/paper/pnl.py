"""Profit/loss calculations for BULL/BEAR certificates. Pure functions, no DB."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

from commodity_core.models import InstrumentType, ProfitLoss

CENT = Decimal("0.01")


def direction_for(instrument_type: InstrumentType) -> Literal["LONG", "SHORT"]:
    """BULL certificates are long the underlying, BEAR certificates short."""
    return "LONG" if instrument_type == "BULL" else "SHORT"


def pl_percent(instrument_type: InstrumentType, entry: Decimal, exit_price: Decimal) -> Decimal:
    """Percent result at *exit_price*, full precision.

    BULL: (exit - entry) / entry * 100
    BEAR: (entry - exit) / entry * 100
    """
    if instrument_type == "BULL":
        return (exit_price - entry) / entry * 100
    return (entry - exit_price) / entry * 100


def pl_absolute(position_value: Decimal, percent: Decimal) -> Decimal:
    """Currency result, rounded half-up to cents."""
    return (position_value * percent / 100).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_pl(
    instrument_type: InstrumentType,
    entry: Decimal,
    exit_price: Decimal,
    position_value: Decimal,
) -> ProfitLoss:
    percent = pl_percent(instrument_type, entry, exit_price)
    return ProfitLoss(
        price=exit_price,
        pl_percent=percent,
        pl_absolute=pl_absolute(position_value, percent),
    )


def settlement(position_value: Decimal, pl: ProfitLoss) -> Decimal:
    """Amount returned to the balance on close: committed capital plus result."""
    return position_value + pl.pl_absolute


def exit_reason_at(
    direction: str,
    price: Decimal,
    target: Decimal | None,
    stop: Decimal | None,
) -> str | None:
    """Which exit, if any, *price* triggers. Stop is checked before target."""
    if direction == "LONG":
        if stop is not None and price <= stop:
            return "stop_loss"
        if target is not None and price >= target:
            return "take_profit"
    else:
        if stop is not None and price >= stop:
            return "stop_loss"
        if target is not None and price <= target:
            return "take_profit"
    return None
