"""Strategy data models — typed representations for strategy inputs and outputs."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class CandleData:
    """A single candlestick bar for strategy consumption."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


class StrategyIdentity(str, Enum):
    """Strategy family that owns a position or pending order."""

    BOLLINGER = "bollinger"
    TREND_FOLLOW = "trend_follow"


class PatternKind(str, Enum):
    NONE = "none"
    DOJI = "doji"
    HAMMER = "hammer"
    SHOOTING_STAR = "shooting_star"
    BULLISH_ENGULFING = "bullish_engulfing"
    BEARISH_ENGULFING = "bearish_engulfing"


@dataclass(frozen=True)
class PatternResult:
    """Outcome of candlestick classification plus the body size checked."""

    kind: PatternKind
    body: float = 0.0

    @property
    def found(self) -> bool:
        return self.kind is not PatternKind.NONE


@dataclass(frozen=True)
class Signal:
    """A trade entry signal produced by the arbiter."""

    direction: str  # "buy" or "sell"
    identity: StrategyIdentity
    origin: str  # generator label, e.g. "doji_bounce"


@dataclass(frozen=True)
class Position:
    """Read-only snapshot of an open broker position tagged with its strategy."""

    ref: str
    side: str  # "buy" or "sell"
    entry_price: float
    volume: float
    identity: StrategyIdentity
    unrealized_profit: float = 0.0
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    @property
    def is_long(self) -> bool:
        return self.side == "buy"


@dataclass(frozen=True)
class CycleContext:
    """Per-cycle checkpoint carried between evaluations by the caller.

    Holds the open time of the forming bar seen on the previous cycle so
    new-bar gating does not depend on hidden module state.
    """

    last_bar_time: Optional[str] = None

    def advance(self, forming_bar_time: str) -> tuple[bool, "CycleContext"]:
        """Return ``(is_new_bar, next_context)`` for the current forming bar."""
        if forming_bar_time == self.last_bar_time:
            return False, self
        return True, CycleContext(last_bar_time=forming_bar_time)
