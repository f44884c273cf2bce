"""Technical indicators — moving averages, ATR, Bollinger Bands. Pure functions, no I/O.

Every function returns a full series aligned with its input (oldest first).
Entries before an indicator is seeded are ``float('nan')``.
"""

import math

from bandtrader.strategy.models import CandleData


MA_METHODS = ("sma", "ema", "smma", "lwma")
APPLIED_PRICES = ("close", "open", "high", "low", "median", "typical", "weighted")


def applied_price(candles: list[CandleData], price: str = "close") -> list[float]:
    """Extract the price series an indicator is applied to.

    ``median`` = (H+L)/2, ``typical`` = (H+L+C)/3, ``weighted`` = (H+L+2C)/4.

    Raises ``ValueError`` for an unknown price name.
    """
    if price == "close":
        return [c.close for c in candles]
    if price == "open":
        return [c.open for c in candles]
    if price == "high":
        return [c.high for c in candles]
    if price == "low":
        return [c.low for c in candles]
    if price == "median":
        return [(c.high + c.low) / 2.0 for c in candles]
    if price == "typical":
        return [(c.high + c.low + c.close) / 3.0 for c in candles]
    if price == "weighted":
        return [(c.high + c.low + 2.0 * c.close) / 4.0 for c in candles]
    raise ValueError(f"Unknown applied price '{price}'")


# ── Moving averages ──────────────────────────────────────────────────────


def calculate_sma(values: list[float], period: int) -> list[float]:
    """Simple moving average over a rolling window of *period* values."""
    out: list[float] = [float("nan")] * len(values)
    if period <= 0 or len(values) < period:
        return out
    window_sum = sum(values[:period])
    out[period - 1] = window_sum / period
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        out[i] = window_sum / period
    return out


def calculate_ema(values: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = value × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the SMA of the first *period*
    values.
    """
    out: list[float] = [float("nan")] * len(values)
    if period <= 0 or len(values) < period:
        return out

    k = 2.0 / (period + 1)
    out[period - 1] = sum(values[:period]) / period
    for i in range(period, len(values)):
        out[i] = values[i] * k + out[i - 1] * (1 - k)
    return out


def calculate_smma(values: list[float], period: int) -> list[float]:
    """Smoothed (Wilder) moving average, seeded with an SMA."""
    out: list[float] = [float("nan")] * len(values)
    if period <= 0 or len(values) < period:
        return out

    out[period - 1] = sum(values[:period]) / period
    for i in range(period, len(values)):
        out[i] = (out[i - 1] * (period - 1) + values[i]) / period
    return out


def calculate_lwma(values: list[float], period: int) -> list[float]:
    """Linear-weighted moving average; the newest value weighs *period*."""
    out: list[float] = [float("nan")] * len(values)
    if period <= 0 or len(values) < period:
        return out

    denom = period * (period + 1) / 2.0
    for i in range(period - 1, len(values)):
        window = values[i - period + 1 : i + 1]
        out[i] = sum(w * v for w, v in zip(range(1, period + 1), window)) / denom
    return out


def calculate_ma(values: list[float], period: int, method: str = "sma") -> list[float]:
    """Dispatch to the moving average named by *method*.

    Raises ``ValueError`` for an unknown method.
    """
    if method == "sma":
        return calculate_sma(values, period)
    if method == "ema":
        return calculate_ema(values, period)
    if method == "smma":
        return calculate_smma(values, period)
    if method == "lwma":
        return calculate_lwma(values, period)
    raise ValueError(f"Unknown moving-average method '{method}'")


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr(candles: list[CandleData], period: int = 14) -> list[float]:
    """Calculate the Average True Range series over *period* candles.

    Uses the standard True Range definition:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Each ATR value is the simple average of the last *period* true ranges,
    so the first value lands at index *period* (a previous close is needed
    for every TR in the window).
    """
    out: list[float] = [float("nan")] * len(candles)
    if period <= 0 or len(candles) < period + 1:
        return out

    true_ranges: list[float] = [float("nan")]
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        true_ranges.append(
            max(high - low, abs(high - prev_close), abs(low - prev_close))
        )

    window_sum = sum(true_ranges[1 : period + 1])
    out[period] = window_sum / period
    for i in range(period + 1, len(candles)):
        window_sum += true_ranges[i] - true_ranges[i - period]
        out[i] = window_sum / period
    return out


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    candles: list[CandleData],
    period: int = 20,
    std_dev: float = 2.0,
    method: str = "sma",
    price: str = "close",
) -> tuple[list[float], list[float], list[float]]:
    """Calculate Bollinger Bands.

    Middle = MA(*price*, *period*, *method*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ

    σ is the population deviation of the last *period* prices around the
    middle band.

    Returns ``(upper, middle, lower)`` — each list has the same length
    as *candles*.
    """
    values = applied_price(candles, price)
    middle = calculate_ma(values, period, method)
    n = len(values)

    upper: list[float] = [float("nan")] * n
    lower: list[float] = [float("nan")] * n

    for i in range(n):
        mid = middle[i]
        if math.isnan(mid) or i < period - 1:
            continue
        window = values[i - period + 1 : i + 1]
        sigma = math.sqrt(sum((x - mid) ** 2 for x in window) / period)
        upper[i] = mid + std_dev * sigma
        lower[i] = mid - std_dev * sigma

    return upper, middle, lower
