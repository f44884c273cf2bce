"""Market regime and moving-average crossover detection.

Provides two EMA-based reads of the market:
- ``classify_regime()``: ranging vs trending from the one-bar slope of a
  long EMA, expressed in price increments (points).
- ``detect_crossover()``: fast/slow EMA cross between the last two closed
  bars, shared by the trend-follow entry and its reversal exit.
"""

from dataclasses import dataclass
from typing import Literal, Optional

from bandtrader.strategy.market_data import MA, MarketData


@dataclass(frozen=True)
class RegimeState:
    """Snapshot of the long-EMA slope and the resulting regime label."""

    regime: Literal["ranging", "trending", "unknown"]
    ema_current: float
    ema_previous: float
    slope_points: float

    @property
    def is_ranging(self) -> bool:
        return self.regime == "ranging"


def classify_regime(
    market: MarketData,
    ema_period: int,
    max_slope_points: float,
) -> RegimeState:
    """Label the market from ``|EMA[1] − EMA[2]| / point``.

    Rules:
        - **Ranging**: slope ≤ *max_slope_points*.
        - **Trending**: slope above the threshold.
        - **Unknown**: either EMA value (or the point size) is missing.
          Unknown never counts as ranging, so mean-reversion stays off.
    """
    ema_1 = market.indicator(MA, ema_period, 1, method="ema")
    ema_2 = market.indicator(MA, ema_period, 2, method="ema")

    if ema_1 == 0.0 or ema_2 == 0.0 or market.point <= 0:
        return RegimeState("unknown", ema_1, ema_2, 0.0)

    slope = abs(ema_1 - ema_2) / market.point
    regime = "ranging" if slope <= max_slope_points else "trending"
    return RegimeState(regime, ema_1, ema_2, slope)


def detect_crossover(
    market: MarketData,
    fast_period: int,
    slow_period: int,
) -> Optional[str]:
    """Return ``"buy"`` / ``"sell"`` when the fast EMA crossed the slow one.

    The cross is measured between offsets 2 and 1 (the last two closed
    bars).  Any missing EMA value yields ``None``.
    """
    fast_2 = market.indicator(MA, fast_period, 2, method="ema")
    slow_2 = market.indicator(MA, slow_period, 2, method="ema")
    fast_1 = market.indicator(MA, fast_period, 1, method="ema")
    slow_1 = market.indicator(MA, slow_period, 1, method="ema")

    if 0.0 in (fast_2, slow_2, fast_1, slow_1):
        return None
    if fast_2 <= slow_2 and fast_1 > slow_1:
        return "buy"
    if fast_2 >= slow_2 and fast_1 < slow_1:
        return "sell"
    return None
