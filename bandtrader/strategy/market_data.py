"""Market data snapshot — bar and indicator access by offset for one cycle.

Offsets count back from the forming bar: offset 0 is the bar still
forming, offset 1 the most recently closed bar, and so on.
"""

import math
from typing import Callable

from bandtrader.errors import DataUnavailableError
from bandtrader.strategy.indicators import (
    applied_price,
    calculate_atr,
    calculate_bollinger,
    calculate_ma,
)
from bandtrader.strategy.models import CandleData


MA = "ma"
BB_UPPER = "bb_upper"
BB_MIDDLE = "bb_middle"
BB_LOWER = "bb_lower"
ATR = "atr"

INDICATOR_KINDS = (MA, BB_UPPER, BB_MIDDLE, BB_LOWER, ATR)


class MarketData:
    """Read-only view over one instrument's candles for a single cycle.

    Indicator series are computed lazily and cached, so repeated lookups of
    the same (kind, period, offset) within a cycle always agree.

    Args:
        candles: Oldest-first candles; the last one is the forming bar.
        point: Minimum price increment of the instrument.
    """

    def __init__(self, candles: list[CandleData], point: float) -> None:
        self._candles = list(candles)
        self.point = point
        self._cache: dict[tuple, list[float]] = {}

    def __len__(self) -> int:
        return len(self._candles)

    def bar(self, offset: int) -> CandleData:
        """Return the bar at *offset*.

        Raises ``DataUnavailableError`` if not enough bars were loaded.
        """
        if offset < 0 or offset >= len(self._candles):
            raise DataUnavailableError(
                f"Bar at offset {offset} unavailable "
                f"({len(self._candles)} bars loaded)"
            )
        return self._candles[-1 - offset]

    def indicator(
        self,
        kind: str,
        period: int,
        offset: int,
        method: str = "sma",
        price: str = "close",
        deviation: float = 2.0,
    ) -> float:
        """Return an indicator value at *offset*, or ``0.0`` if unavailable."""
        if kind not in INDICATOR_KINDS:
            raise ValueError(f"Unknown indicator kind '{kind}'")
        if offset < 0 or offset >= len(self._candles):
            return 0.0

        if kind == ATR:
            key = (ATR, period)
        elif kind == MA:
            key = (MA, period, method, price)
        else:
            key = (kind, period, method, price, deviation)

        series = self._cache.get(key)
        if series is None:
            series = self._compute(kind, period, method, price, deviation)
            self._cache[key] = series

        value = series[len(series) - 1 - offset]
        if math.isnan(value):
            return 0.0
        return value

    def _compute(
        self,
        kind: str,
        period: int,
        method: str,
        price: str,
        deviation: float,
    ) -> list[float]:
        if kind == ATR:
            return calculate_atr(self._candles, period)
        if kind == MA:
            return calculate_ma(applied_price(self._candles, price), period, method)

        upper, middle, lower = calculate_bollinger(
            self._candles, period, deviation, method, price,
        )
        # Store the sibling bands too, they are always requested together.
        for band_kind, band in ((BB_UPPER, upper), (BB_MIDDLE, middle), (BB_LOWER, lower)):
            self._cache[(band_kind, period, method, price, deviation)] = band
        return {BB_UPPER: upper, BB_MIDDLE: middle, BB_LOWER: lower}[kind]


def band_reader(market: MarketData, settings) -> Callable[[str, int], float]:
    """Bind the configured Bollinger parameters for repeated band lookups."""

    def _read(kind: str, offset: int) -> float:
        return market.indicator(
            kind,
            settings.bb_period,
            offset,
            method=settings.bb_method,
            price=settings.bb_applied_price,
            deviation=settings.bb_deviation,
        )

    return _read
