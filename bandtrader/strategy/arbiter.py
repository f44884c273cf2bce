"""Signal arbiter — runs the generators in priority order once per closed bar.

Flow per cycle:
    1. New-bar gate: compare the forming bar's time with the injected
       ``CycleContext``; same bar → nothing to do.
    2. Volatility gate: ATR[1] ≥ ATR[2] × ``min_atr_multiplier``.
    3. Walk ``GENERATOR_PRIORITY``, skipping disabled generators, families
       that already hold a position or pending order, and regime-gated
       generators when the market is not ranging.
    4. First non-None direction wins.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from bandtrader.errors import DataUnavailableError
from bandtrader.strategy.market_data import ATR, MarketData
from bandtrader.strategy.models import CycleContext, Signal, StrategyIdentity
from bandtrader.strategy.regime import classify_regime
from bandtrader.strategy.registry import GENERATOR_PRIORITY, GeneratorSpec


@dataclass(frozen=True)
class ArbiterDecision:
    """Outcome of one arbiter cycle plus the context for the next one."""

    context: CycleContext
    new_bar: bool
    signal: Optional[Signal] = None
    reason: str = ""
    checks: dict = field(default_factory=dict)


def volatility_gate(market: MarketData, atr_period: int, min_atr_multiplier: float) -> bool:
    """Return True when closed-bar ATR has not collapsed versus the bar before."""
    atr_1 = market.indicator(ATR, atr_period, 1)
    atr_2 = market.indicator(ATR, atr_period, 2)
    if atr_1 == 0.0 or atr_2 == 0.0:
        return False
    return atr_1 >= atr_2 * min_atr_multiplier


class SignalArbiter:
    """Chooses at most one trade intent per closed bar.

    Args:
        settings: ``StrategySettings`` with periods, thresholds and flags.
        generators: Priority-ordered generator specs (defaults to the
            registry order).
    """

    def __init__(
        self,
        settings,
        generators: tuple[GeneratorSpec, ...] = GENERATOR_PRIORITY,
    ) -> None:
        self._settings = settings
        self._generators = generators

    def evaluate(
        self,
        market: MarketData,
        context: CycleContext,
        held: Iterable[StrategyIdentity],
    ) -> ArbiterDecision:
        """Run one arbiter cycle.

        Args:
            market: Snapshot whose last bar is the forming one.
            context: Checkpoint returned by the previous cycle.
            held: Strategy identities that already own an open position or
                a pending order.
        """
        try:
            forming = market.bar(0)
        except DataUnavailableError:
            return ArbiterDecision(context, new_bar=False, reason="data_unavailable")

        new_bar, next_context = context.advance(forming.time)
        if not new_bar:
            return ArbiterDecision(next_context, new_bar=False, reason="same_bar")

        held = set(held)
        s = self._settings
        checks: dict = {
            "volatility_ok": False,
            "ranging": False,
            "held": sorted(i.value for i in held),
        }

        if not volatility_gate(market, s.atr_period, s.min_atr_multiplier):
            return ArbiterDecision(
                next_context, new_bar=True, reason="low_volatility", checks=checks,
            )
        checks["volatility_ok"] = True

        regime = classify_regime(market, s.regime_ema_period, s.max_ranging_slope_points)
        checks["ranging"] = regime.is_ranging
        checks["slope_points"] = round(regime.slope_points, 2)

        for spec in self._generators:
            if not spec.is_enabled(s):
                continue
            if spec.identity in held:
                continue
            if spec.requires_ranging and not regime.is_ranging:
                continue
            try:
                direction = spec.generate(market, s)
            except DataUnavailableError:
                checks[spec.label] = "data_unavailable"
                continue
            checks[spec.label] = direction or "none"
            if direction is not None:
                return ArbiterDecision(
                    next_context,
                    new_bar=True,
                    signal=Signal(direction, spec.identity, spec.label),
                    reason="signal",
                    checks=checks,
                )

        return ArbiterDecision(next_context, new_bar=True, reason="no_signal", checks=checks)
