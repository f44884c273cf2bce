"""Entry signal generators — pure functions, no I/O.

Each generator reads the most recently closed bar(s) of a ``MarketData``
snapshot and returns ``"buy"``, ``"sell"`` or ``None``.  Only Doji-Bounce
looks at the forming bar (offset 0), as its confirmation candle.

Regime gating and open-position checks are the arbiter's job, so they are
not duplicated here.
"""

from typing import Optional

from bandtrader.strategy.market_data import ATR, BB_LOWER, BB_UPPER, MarketData, band_reader
from bandtrader.strategy.models import PatternKind
from bandtrader.strategy.patterns import is_doji, recognize
from bandtrader.strategy.regime import detect_crossover
from bandtrader.strategy.squeeze import is_squeeze_active

_BULLISH_CONFIRMATIONS = (PatternKind.BULLISH_ENGULFING, PatternKind.HAMMER)
_BEARISH_CONFIRMATIONS = (PatternKind.BEARISH_ENGULFING, PatternKind.SHOOTING_STAR)


def doji_bounce(market: MarketData, settings) -> Optional[str]:
    """Doji at a band, confirmed by the forming bar.

    Buy conditions (ALL required):
        1. Bar 1 is a doji.
        2. Bar 1's low pierced the lower band.
        3. Bar 0 is bullish and closes above bar 1's high.

    Sell conditions mirror the buy on the upper band.  The buy side is
    checked first, so it wins if a very wide doji pierced both bands.
    """
    read = band_reader(market, settings)
    upper = read(BB_UPPER, 1)
    lower = read(BB_LOWER, 1)
    if upper == 0.0 or lower == 0.0:
        return None

    doji = market.bar(1)
    if not is_doji(doji, settings.max_doji_body_ratio):
        return None

    forming = market.bar(0)

    if doji.low < lower:
        if forming.close > forming.open and forming.close > doji.high:
            return "buy"

    if doji.high > upper:
        if forming.close < forming.open and forming.close < doji.low:
            return "sell"

    return None


def mean_reversion_bounce(market: MarketData, settings) -> Optional[str]:
    """Band pierce that closed back inside, confirmed by a reversal candle.

    Buy: bar 1's low went below the lower band, its close finished above
    it, and bar 1 is a bullish engulfing (of bar 2) or a hammer.

    Sell: bar 1's high went above the upper band, its close finished below
    it, and bar 1 is a bearish engulfing or a shooting star.
    """
    read = band_reader(market, settings)
    upper = read(BB_UPPER, 1)
    lower = read(BB_LOWER, 1)
    atr = market.indicator(ATR, settings.atr_period, 1)
    if upper == 0.0 or lower == 0.0 or atr == 0.0:
        return None

    bar = market.bar(1)
    prev = market.bar(2)

    def _pattern(side: str) -> PatternKind:
        return recognize(
            bar, prev, atr,
            settings.min_body_atr_multiplier,
            settings.max_doji_body_ratio,
            side=side,
        ).kind

    if bar.low < lower and bar.close > lower:
        if _pattern("buy") in _BULLISH_CONFIRMATIONS:
            return "buy"

    if bar.high > upper and bar.close < upper:
        if _pattern("sell") in _BEARISH_CONFIRMATIONS:
            return "sell"

    return None


def squeeze_breakout(market: MarketData, settings) -> Optional[str]:
    """Close outside the bands while the squeeze is active."""
    if not is_squeeze_active(market, settings):
        return None

    read = band_reader(market, settings)
    upper = read(BB_UPPER, 1)
    lower = read(BB_LOWER, 1)
    if upper == 0.0 or lower == 0.0:
        return None

    close = market.bar(1).close
    if close > upper:
        return "buy"
    if close < lower:
        return "sell"
    return None


def trend_follow_crossover(market: MarketData, settings) -> Optional[str]:
    """Fast/slow EMA crossover between the last two closed bars."""
    return detect_crossover(
        market, settings.trend_fast_period, settings.trend_slow_period,
    )
