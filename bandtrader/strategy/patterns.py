"""Candlestick pattern recognition — pure functions, no I/O.

Single-bar patterns (Doji, Hammer, Shooting Star) and two-bar patterns
(Bullish/Bearish Engulfing).  Every pattern except Doji must also pass a
minimum body gate, ``body >= atr × min_body_atr_multiplier``, so bars in
near-zero volatility never qualify.  A zero range or zero ATR means
"no pattern", never an error.
"""

from typing import Optional

from bandtrader.strategy.models import CandleData, PatternKind, PatternResult


# Hammer / Shooting Star geometry
MAX_PIN_BODY_RATIO = 0.3
MIN_PIN_SHADOW_TO_BODY = 2.0
MAX_PIN_OPPOSITE_SHADOW_TO_BODY = 0.2


def _body(candle: CandleData) -> float:
    return abs(candle.close - candle.open)


def _range(candle: CandleData) -> float:
    return candle.high - candle.low


def _upper_shadow(candle: CandleData) -> float:
    return candle.high - max(candle.open, candle.close)


def _lower_shadow(candle: CandleData) -> float:
    return min(candle.open, candle.close) - candle.low


def _passes_body_gate(body: float, atr: float, min_body_atr_multiplier: float) -> bool:
    if atr <= 0:
        return False
    return body >= atr * min_body_atr_multiplier


def is_doji(candle: CandleData, max_body_ratio: float) -> bool:
    """Body is at most *max_body_ratio* of the bar's range."""
    bar_range = _range(candle)
    if bar_range <= 0:
        return False
    return _body(candle) / bar_range <= max_body_ratio


def is_hammer(candle: CandleData, atr: float, min_body_atr_multiplier: float) -> bool:
    """Small body near the top with a long lower shadow."""
    bar_range = _range(candle)
    if bar_range <= 0:
        return False
    body = _body(candle)
    if body / bar_range > MAX_PIN_BODY_RATIO:
        return False
    if _lower_shadow(candle) < MIN_PIN_SHADOW_TO_BODY * body:
        return False
    if _upper_shadow(candle) > MAX_PIN_OPPOSITE_SHADOW_TO_BODY * body:
        return False
    return _passes_body_gate(body, atr, min_body_atr_multiplier)


def is_shooting_star(candle: CandleData, atr: float, min_body_atr_multiplier: float) -> bool:
    """Mirror of the hammer: small body near the low, long upper shadow."""
    bar_range = _range(candle)
    if bar_range <= 0:
        return False
    body = _body(candle)
    if body / bar_range > MAX_PIN_BODY_RATIO:
        return False
    if _upper_shadow(candle) < MIN_PIN_SHADOW_TO_BODY * body:
        return False
    if _lower_shadow(candle) > MAX_PIN_OPPOSITE_SHADOW_TO_BODY * body:
        return False
    return _passes_body_gate(body, atr, min_body_atr_multiplier)


def is_bullish_engulfing(
    current: CandleData,
    previous: CandleData,
    atr: float,
    min_body_atr_multiplier: float,
) -> bool:
    """Bearish bar followed by a bullish bar whose body contains it."""
    if previous.close >= previous.open or current.close <= current.open:
        return False
    if not (current.close > previous.open and current.open < previous.close):
        return False
    return _passes_body_gate(_body(current), atr, min_body_atr_multiplier)


def is_bearish_engulfing(
    current: CandleData,
    previous: CandleData,
    atr: float,
    min_body_atr_multiplier: float,
) -> bool:
    """Bullish bar followed by a bearish bar whose body contains it."""
    if previous.close <= previous.open or current.close >= current.open:
        return False
    if not (current.close < previous.open and current.open > previous.close):
        return False
    return _passes_body_gate(_body(current), atr, min_body_atr_multiplier)


def recognize(
    current: CandleData,
    previous: Optional[CandleData],
    atr: float,
    min_body_atr_multiplier: float,
    max_doji_body_ratio: float,
    side: Optional[str] = None,
) -> PatternResult:
    """Classify *current* (with *previous* for two-bar patterns).

    When a bar satisfies several definitions the more specific one wins:
    engulfing, then hammer / shooting star, then doji.  ``side="buy"``
    or ``side="sell"`` restricts the reversal patterns to that direction,
    so a bar that is both a hammer and a bearish engulfing still reads as
    a hammer to a buyer.
    """
    body = _body(current)
    if _range(current) <= 0 or atr <= 0:
        return PatternResult(PatternKind.NONE, body)

    bullish = side in (None, "buy")
    bearish = side in (None, "sell")

    if previous is not None:
        if bullish and is_bullish_engulfing(current, previous, atr, min_body_atr_multiplier):
            return PatternResult(PatternKind.BULLISH_ENGULFING, body)
        if bearish and is_bearish_engulfing(current, previous, atr, min_body_atr_multiplier):
            return PatternResult(PatternKind.BEARISH_ENGULFING, body)
    if bullish and is_hammer(current, atr, min_body_atr_multiplier):
        return PatternResult(PatternKind.HAMMER, body)
    if bearish and is_shooting_star(current, atr, min_body_atr_multiplier):
        return PatternResult(PatternKind.SHOOTING_STAR, body)
    if is_doji(current, max_doji_body_ratio):
        return PatternResult(PatternKind.DOJI, body)
    return PatternResult(PatternKind.NONE, body)
