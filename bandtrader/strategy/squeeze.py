"""Bollinger squeeze detection — pure functions over a market snapshot."""

from bandtrader.strategy.market_data import ATR, BB_LOWER, BB_MIDDLE, BB_UPPER, MarketData, band_reader


def band_width(market: MarketData, settings, offset: int) -> float:
    """Return ``(upper − lower) / middle`` at *offset*, or ``0.0`` if unavailable."""
    read = band_reader(market, settings)
    middle = read(BB_MIDDLE, offset)
    if middle == 0.0:
        return 0.0
    return (read(BB_UPPER, offset) - read(BB_LOWER, offset)) / middle


def is_squeeze_active(market: MarketData, settings) -> bool:
    """Check whether Bollinger width sits at a volatility-adjusted minimum.

    Both conditions must hold on the last closed bar:
        1. width ≤ ATR × ``max_squeeze_width_atr_multiplier``
        2. width is the minimum over the last ``squeeze_lookback`` closed
           bars, itself included.

    A zero middle band or zero ATR means no squeeze.  Bars in the window
    whose bands are unavailable do not take part in the minimum.
    """
    current = band_width(market, settings, 1)
    if current == 0.0:
        return False

    atr = market.indicator(ATR, settings.atr_period, 1)
    if atr == 0.0:
        return False
    if current > atr * settings.max_squeeze_width_atr_multiplier:
        return False

    for offset in range(2, settings.squeeze_lookback + 1):
        width = band_width(market, settings, offset)
        if width == 0.0:
            continue
        if width < current:
            return False
    return True
