"""Broker data models — typed representations of OANDA v20 API objects."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Candle:
    """A single candlestick bar."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: int
    complete: bool


@dataclass(frozen=True)
class AccountSummary:
    """Summary of an OANDA account."""

    account_id: str
    balance: float
    equity: float
    open_position_count: int
    currency: str


@dataclass(frozen=True)
class InstrumentSpec:
    """Price precision and volume limits of a tradeable instrument.

    ``point`` is the minimum price increment (``10 ** -digits``); volumes
    are OANDA units.
    """

    name: str
    digits: int
    point: float
    volume_min: float
    volume_step: float
    volume_max: float


@dataclass(frozen=True)
class Price:
    """Current bid/ask and the quote→home currency conversion factor."""

    instrument: str
    bid: float
    ask: float
    time: str
    home_conversion: float = 1.0

    def value_per_point(self, point: float) -> float:
        """Account-currency value of one point for one unit."""
        return point * self.home_conversion


@dataclass(frozen=True)
class OrderRequest:
    """A market order request payload."""

    instrument: str
    units: float  # positive=buy, negative=sell
    stop_loss_price: float
    take_profit_price: float
    tag: str = ""
    comment: str = ""
    digits: int = 5


@dataclass(frozen=True)
class OrderResponse:
    """Response from placing an order."""

    order_id: str
    instrument: str
    units: float
    price: float
    time: str
    trade_id: str = ""


@dataclass(frozen=True)
class Trade:
    """An open trade with SL/TP details and its client tag."""

    trade_id: str
    instrument: str
    units: float  # positive=long, negative=short
    price: float
    unrealized_pnl: float
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None
    open_time: str = ""
    tag: str = ""


@dataclass(frozen=True)
class PendingOrder:
    """A pending entry order (dependent SL/TP orders are excluded)."""

    order_id: str
    instrument: str
    order_type: str
    units: float
    tag: str = ""
