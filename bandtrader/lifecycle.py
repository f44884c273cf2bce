"""Trade lifecycle manager — per-tick stop management and reversal exits.

Runs on every tick, independent of the new-bar gate.  For each managed
position it evaluates, in order:

    1. Breakeven lock (both strategy families).
    2. Reversal exit (trend-follow family only): fast/slow EMA crossed
       against the position between the last two closed bars.
    3. Trailing stop (both families, when ``trailing_stop_points`` > 0).

Each check issues at most one intent per position per tick.  A position
closed by the reversal exit gets no further intents.  Trailing compares
against the stop the breakeven step has just set.
"""

from dataclasses import dataclass
from typing import Iterable, Union

from bandtrader.risk.trailing_stop import breakeven_stop, trailing_stop
from bandtrader.strategy.market_data import MarketData
from bandtrader.strategy.models import Position, StrategyIdentity
from bandtrader.strategy.regime import detect_crossover


@dataclass(frozen=True)
class StopAdjustment:
    """Move a position's stop to *new_stop*."""

    ref: str
    new_stop: float
    reason: str  # "breakeven" or "trailing"


@dataclass(frozen=True)
class ClosePosition:
    """Close a position at market."""

    ref: str
    reason: str


LifecycleIntent = Union[StopAdjustment, ClosePosition]


class TradeLifecycleManager:
    """Emits stop-adjustment and close intents for open positions.

    Args:
        settings: ``StrategySettings`` (breakeven, trailing, trend periods).
        point: Instrument price increment.
        digits: Instrument price precision.
    """

    def __init__(self, settings, point: float, digits: int = 5) -> None:
        self._settings = settings
        self._point = point
        self._digits = digits

    def evaluate(
        self,
        positions: Iterable[Position],
        market: MarketData,
        bid: float,
        ask: float,
        value_per_point: float,
    ) -> list[LifecycleIntent]:
        """Return intents for every position, in execution order."""
        s = self._settings
        positions = list(positions)
        intents: list[LifecycleIntent] = []

        reversal = None
        if any(p.identity is StrategyIdentity.TREND_FOLLOW for p in positions):
            reversal = detect_crossover(market, s.trend_fast_period, s.trend_slow_period)

        for position in positions:
            stop = position.stop_loss

            be = breakeven_stop(
                position,
                value_per_point,
                s.breakeven_trigger_points,
                s.breakeven_buffer_points,
                self._point,
                self._digits,
                current_stop=stop,
            )
            if be is not None:
                intents.append(StopAdjustment(position.ref, be, "breakeven"))
                stop = be

            if position.identity is StrategyIdentity.TREND_FOLLOW:
                against = "sell" if position.is_long else "buy"
                if reversal == against:
                    intents.append(ClosePosition(position.ref, "trend_reversal"))
                    continue

            exit_price = bid if position.is_long else ask
            trail = trailing_stop(
                position,
                exit_price,
                s.trailing_stop_points,
                self._point,
                self._digits,
                current_stop=stop,
            )
            if trail is not None:
                intents.append(StopAdjustment(position.ref, trail, "trailing"))

        return intents
