"""Stop-loss and take-profit planning — pure math, no I/O.

The stop is ATR-scaled; the target is always ``REWARD_RISK`` times the
stop distance, recomputed from the dynamic stop so the ratio holds whatever
the configured fixed take-profit says.
"""

from dataclasses import dataclass

from bandtrader.risk.position_sizer import calculate_volume, stop_distance_points
from bandtrader.strategy.models import Signal, StrategyIdentity


REWARD_RISK = 3.0


@dataclass(frozen=True)
class RiskLevels:
    """Computed stop-loss and take-profit for a trade."""

    sl: float
    tp: float
    stop_points: int
    tp_points: int


@dataclass(frozen=True)
class TradeIntent:
    """A fully sized entry ready for the execution gateway."""

    direction: str
    volume: float
    entry_price: float
    sl: float
    tp: float
    identity: StrategyIdentity
    label: str


def calculate_levels(
    entry_price: float,
    direction: str,
    stop_points: int,
    point: float,
    digits: int = 5,
    reward_risk: float = REWARD_RISK,
) -> RiskLevels:
    """Place SL/TP *stop_points* and ``reward_risk × stop_points`` from entry.

    - **Buy**:  SL below entry, TP above.
    - **Sell**: SL above entry, TP below.

    Raises:
        ValueError: If *direction* is not ``"buy"`` or ``"sell"``.
    """
    tp_points = int(round(stop_points * reward_risk))
    sl_dist = stop_points * point
    tp_dist = tp_points * point

    if direction == "buy":
        sl = entry_price - sl_dist
        tp = entry_price + tp_dist
    elif direction == "sell":
        sl = entry_price + sl_dist
        tp = entry_price - tp_dist
    else:
        raise ValueError(f"direction must be 'buy' or 'sell', got '{direction}'")

    return RiskLevels(
        sl=round(sl, digits),
        tp=round(tp, digits),
        stop_points=stop_points,
        tp_points=tp_points,
    )


def plan_trade(
    signal: Signal,
    entry_price: float,
    atr: float,
    equity: float,
    instrument,
    value_per_point: float,
    settings,
) -> TradeIntent:
    """Turn a signal into a sized trade intent.

    Args:
        signal: Arbiter output.
        entry_price: Ask for buys, bid for sells.
        atr: ATR of the last closed bar.
        equity: Current account equity.
        instrument: ``InstrumentSpec`` (point, digits, volume limits).
        value_per_point: Account-currency value of one point per unit.
        settings: ``StrategySettings``.

    Raises:
        SizingError: Propagated from ``calculate_volume``.
    """
    stop_points = stop_distance_points(atr, settings.atr_stop_multiplier, instrument.point)
    levels = calculate_levels(
        entry_price, signal.direction, stop_points, instrument.point, instrument.digits,
    )
    volume = calculate_volume(
        equity=equity,
        risk_pct=settings.risk_percent,
        stop_points=stop_points,
        value_per_point=value_per_point,
        max_volume=settings.max_volume,
        volume_min=instrument.volume_min,
        volume_step=instrument.volume_step,
        volume_max=instrument.volume_max,
    )
    return TradeIntent(
        direction=signal.direction,
        volume=volume,
        entry_price=entry_price,
        sl=levels.sl,
        tp=levels.tp,
        identity=signal.identity,
        label=signal.origin,
    )
