"""Technical indicators: pure functions on price series.

Every function takes closes oldest-first and returns None when the series
is shorter than the indicator's lookback.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from statistics import mean

from commodity_core.errors import InsufficientDataError
from commodity_core.models import IndicatorSnapshot, PriceTick

RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
SMA_SHORT = 5
SMA_LONG = 20
BOLL_PERIOD = 20
BOLL_STD = 2


def sma(closes: Sequence[Decimal], period: int) -> Decimal | None:
    """Simple moving average of the last *period* closes."""
    if period <= 0 or len(closes) < period:
        return None
    return Decimal(sum(closes[-period:])) / period


def ema_series(closes: Sequence[Decimal], period: int) -> list[Decimal]:
    """Exponential moving average series, seeded with the SMA of the first *period* closes.

    The returned list is aligned to ``closes[period - 1:]``; it is empty when
    there are fewer than *period* closes.
    """
    if period <= 0 or len(closes) < period:
        return []
    k = Decimal(2) / Decimal(period + 1)
    value = Decimal(sum(closes[:period])) / period
    out = [value]
    for price in closes[period:]:
        value = (price - value) * k + value
        out.append(value)
    return out


def ema(closes: Sequence[Decimal], period: int) -> Decimal | None:
    series = ema_series(closes, period)
    return series[-1] if series else None


def macd(
    closes: Sequence[Decimal],
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
    signal: int = MACD_SIGNAL,
) -> tuple[Decimal | None, Decimal | None, Decimal | None]:
    """MACD line, signal line and histogram.

    The line needs *slow* closes; the signal line needs ``slow + signal - 1``.
    Missing parts come back as None.
    """
    slow_series = ema_series(closes, slow)
    if not slow_series:
        return None, None, None
    fast_series = ema_series(closes, fast)
    # Align the fast EMA to the slow one (both end on the latest close).
    offset = len(fast_series) - len(slow_series)
    line = [f - s for f, s in zip(fast_series[offset:], slow_series)]
    signal_series = ema_series(line, signal)
    if not signal_series:
        return line[-1], None, None
    return line[-1], signal_series[-1], line[-1] - signal_series[-1]


def rsi(closes: Sequence[Decimal], period: int = RSI_PERIOD) -> Decimal | None:
    """Relative Strength Index (Wilder's smoothing).

    Returns a Decimal in [0, 100] or None if there are fewer than
    ``period + 1`` data points.
    """
    if len(closes) < period + 1:
        return None

    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]

    # Seed with simple average of first *period* changes
    gains = [d if d > 0 else Decimal(0) for d in deltas[:period]]
    losses = [-d if d < 0 else Decimal(0) for d in deltas[:period]]
    avg_gain = Decimal(mean(gains))
    avg_loss = Decimal(mean(losses))

    for d in deltas[period:]:
        avg_gain = (avg_gain * (period - 1) + (d if d > 0 else Decimal(0))) / period
        avg_loss = (avg_loss * (period - 1) + (-d if d < 0 else Decimal(0))) / period

    if avg_loss == 0:
        # flat series reads as neutral
        return Decimal(100) if avg_gain > 0 else Decimal(50)
    rs = avg_gain / avg_loss
    return Decimal(100) - Decimal(100) / (1 + rs)


def bollinger_bands(
    closes: Sequence[Decimal],
    period: int = BOLL_PERIOD,
    num_std: int | float = BOLL_STD,
) -> tuple[Decimal, Decimal, Decimal] | None:
    """Bollinger Bands (SMA +/- num_std * population stdev).

    Returns ``(lower, middle, upper)`` or None if fewer than *period* data
    points are available.
    """
    if len(closes) < period:
        return None

    window = closes[-period:]
    middle = Decimal(sum(window)) / period
    variance = sum((p - middle) ** 2 for p in window) / period
    offset = Decimal(variance).sqrt() * Decimal(str(num_std))
    return (middle - offset, middle, middle + offset)


def compute_snapshot(ticks: Sequence[PriceTick], last_n: int | None = None) -> IndicatorSnapshot:
    """Compute the full indicator snapshot for the latest tick of *ticks*.

    *last_n* trims the window to its trailing ticks first. Fields whose
    lookback is not covered are None and listed in ``missing``.
    """
    if not ticks:
        raise InsufficientDataError("compute_snapshot needs at least one tick")
    window = list(ticks[-last_n:]) if last_n else list(ticks)
    closes = [t.close for t in window]

    macd_line, macd_sig, macd_hist = macd(closes)
    bands = bollinger_bands(closes)
    lower, middle, upper = bands if bands is not None else (None, None, None)

    values = {
        "rsi_14": rsi(closes),
        "macd": macd_line,
        "macd_signal": macd_sig,
        "macd_histogram": macd_hist,
        "ema_12": ema(closes, MACD_FAST),
        "ema_26": ema(closes, MACD_SLOW),
        "sma_short": sma(closes, SMA_SHORT),
        "sma_long": sma(closes, SMA_LONG),
        "boll_upper": upper,
        "boll_mid": middle,
        "boll_lower": lower,
    }
    return IndicatorSnapshot(
        timestamp=window[-1].timestamp,
        missing=[name for name, value in values.items() if value is None],
        **values,
    )
