"""Position sizing — pure math, no I/O.

Converts a risk percentage and an ATR-derived stop distance into a trade
volume that respects the instrument's volume constraints.
"""

from bandtrader.errors import SizingError


MIN_STOP_POINTS = 10


def stop_distance_points(atr: float, atr_stop_multiplier: float, point: float) -> int:
    """Stop distance in points: ``round(ATR × multiplier / point)``.

    Falls back to ``MIN_STOP_POINTS`` when the computed distance is not
    positive (e.g. ATR unavailable).
    """
    if point <= 0:
        return MIN_STOP_POINTS
    points = int(round(atr * atr_stop_multiplier / point))
    if points <= 0:
        return MIN_STOP_POINTS
    return points


def round_to_step(volume: float, step: float) -> float:
    """Round *volume* to the nearest multiple of *step*."""
    if step <= 0:
        return volume
    return round(round(volume / step) * step, 8)


def calculate_volume(
    equity: float,
    risk_pct: float,
    stop_points: float,
    value_per_point: float,
    max_volume: float,
    volume_min: float,
    volume_step: float,
    volume_max: float,
) -> float:
    """Calculate the trade volume.

    Formula::

        risk_amount = equity × (risk_pct / 100)
        raw_volume  = risk_amount / (stop_points × value_per_point)

    then capped at *max_volume*, rounded to *volume_step* and clamped to
    ``[volume_min, min(max_volume, volume_max)]``.

    Args:
        equity: Current account equity.
        risk_pct: Percentage of equity to risk (e.g. 1.0 for 1 %).
        stop_points: Stop-loss distance in points.
        value_per_point: Account-currency value of one point for one unit
            of volume.
        max_volume: Configured hard cap.
        volume_min: Broker minimum volume.
        volume_step: Broker volume increment.
        volume_max: Broker maximum volume.

    Raises:
        SizingError: If equity, stop distance or value per point is not
            positive.
    """
    if equity <= 0:
        raise SizingError(f"equity must be positive, got {equity}")
    if stop_points <= 0:
        raise SizingError(f"stop_points must be positive, got {stop_points}")
    if value_per_point <= 0:
        raise SizingError(f"value_per_point must be positive, got {value_per_point}")

    risk_amount = equity * (risk_pct / 100.0)
    volume = risk_amount / (stop_points * value_per_point)

    cap = min(max_volume, volume_max) if volume_max > 0 else max_volume
    volume = min(volume, max_volume)
    volume = round_to_step(volume, volume_step)
    volume = min(volume, cap)
    return max(volume, volume_min)
