"""Signal generator registry — the fixed priority order used by the arbiter.

Each entry names the generator, the strategy family that owns its trades,
the settings flag that enables it, and whether it only runs in a ranging
market.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from bandtrader.strategy.generators import (
    doji_bounce,
    mean_reversion_bounce,
    squeeze_breakout,
    trend_follow_crossover,
)
from bandtrader.strategy.models import StrategyIdentity


@dataclass(frozen=True)
class GeneratorSpec:
    label: str
    identity: StrategyIdentity
    generate: Callable[..., Optional[str]]
    enabled_flag: str
    requires_ranging: bool = False

    def is_enabled(self, settings) -> bool:
        return bool(getattr(settings, self.enabled_flag))


GENERATOR_PRIORITY: tuple[GeneratorSpec, ...] = (
    GeneratorSpec("doji_bounce", StrategyIdentity.BOLLINGER, doji_bounce, "enable_doji_bounce"),
    GeneratorSpec(
        "mean_reversion_bounce", StrategyIdentity.BOLLINGER, mean_reversion_bounce,
        "enable_mean_reversion", requires_ranging=True,
    ),
    GeneratorSpec("squeeze_breakout", StrategyIdentity.BOLLINGER, squeeze_breakout, "enable_squeeze_breakout"),
    GeneratorSpec(
        "trend_follow_crossover", StrategyIdentity.TREND_FOLLOW, trend_follow_crossover,
        "enable_trend_follow",
    ),
)
