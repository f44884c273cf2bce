"""Breakeven and trailing-stop rules — progressive SL management, pure math.

Rules:
  - Breakeven: once unrealized profit reaches the money value of
    ``trigger_points``, lock the stop at entry ± ``buffer_points``.
  - Trailing: once price is ``trailing_points`` in profit, trail the stop
    that distance behind price, never below entry (long) / above entry
    (short).

Both rules only ever tighten a stop; a candidate that would loosen it is
discarded.
"""

from typing import Optional

from bandtrader.strategy.models import Position


def _has_stop(stop: Optional[float]) -> bool:
    return stop is not None and stop > 0


def is_improvement(position: Position, candidate: float, current: Optional[float]) -> bool:
    """True when *candidate* gives strictly more protection than *current*."""
    if not _has_stop(current):
        return True
    if position.is_long:
        return candidate > current
    return candidate < current


def breakeven_stop(
    position: Position,
    value_per_point: float,
    trigger_points: float,
    buffer_points: float,
    point: float,
    digits: int = 5,
    current_stop: Optional[float] = None,
) -> Optional[float]:
    """Return the breakeven stop if it should be applied now, else ``None``.

    Args:
        position: Open position snapshot.
        value_per_point: Account-currency value of one point per unit.
        trigger_points: Profit distance that arms the breakeven.
        buffer_points: Distance beyond entry where the stop is locked.
        point: Instrument price increment.
        digits: Price precision for rounding.
        current_stop: Stop to compare against; defaults to the position's.
    """
    if current_stop is None:
        current_stop = position.stop_loss

    trigger_money = trigger_points * value_per_point * position.volume
    if position.unrealized_profit < trigger_money:
        return None

    if position.is_long:
        target = round(position.entry_price + buffer_points * point, digits)
    else:
        target = round(position.entry_price - buffer_points * point, digits)

    if not is_improvement(position, target, current_stop):
        return None
    return target


def trailing_stop(
    position: Position,
    current_price: float,
    trailing_points: float,
    point: float,
    digits: int = 5,
    current_stop: Optional[float] = None,
) -> Optional[float]:
    """Return a new trailing stop if price has moved far enough, else ``None``.

    *current_price* is the price the position would close at (bid for a
    long, ask for a short).
    """
    if trailing_points <= 0 or point <= 0:
        return None
    if current_stop is None:
        current_stop = position.stop_loss

    if position.is_long:
        profit_points = (current_price - position.entry_price) / point
        candidate = round(current_price - trailing_points * point, digits)
        beyond_entry = candidate > position.entry_price
    else:
        profit_points = (position.entry_price - current_price) / point
        candidate = round(current_price + trailing_points * point, digits)
        beyond_entry = candidate < position.entry_price

    if profit_points < trailing_points:
        return None
    if not beyond_entry:
        return None
    if not is_improvement(position, candidate, current_stop):
        return None
    return candidate
