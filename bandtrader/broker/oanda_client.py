"""OANDA v20 REST API async client.

Plays every external role the decision core needs: market data provider
(candles, prices), account/instrument metadata provider, execution
gateway (open / modify stop / close) and position/order query.

Read-only calls retry transient failures; trade-mutating calls are sent
exactly once and raise ``GatewayRejectedError`` on any refusal.
"""

import asyncio
import logging
from typing import Optional

import httpx

from bandtrader.broker.models import (
    AccountSummary,
    Candle,
    InstrumentSpec,
    OrderRequest,
    OrderResponse,
    PendingOrder,
    Price,
    Trade,
)
from bandtrader.config import MAX_CANDLES, Config
from bandtrader.errors import GatewayRejectedError

logger = logging.getLogger("bandtrader")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

# Dependent orders hang off a trade and are not entry orders.
_DEPENDENT_ORDER_TYPES = {"STOP_LOSS", "TAKE_PROFIT", "TRAILING_STOP_LOSS", "GUARANTEED_STOP_LOSS"}


def _reject_reason(resp: httpx.Response) -> str:
    """Extract OANDA's reason text from an error or reject payload."""
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    for key in (
        "orderRejectTransaction",
        "orderCancelTransaction",
        "stopLossOrderRejectTransaction",
    ):
        txn = data.get(key)
        if txn:
            return txn.get("rejectReason") or txn.get("reason") or key
    return data.get("errorMessage") or f"HTTP {resp.status_code}"


class OandaClient:
    """Async client wrapping OANDA v20 REST API."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.oanda_base_url
        self._account_id = config.oanda_account_id
        self._headers = {
            "Authorization": f"Bearer {config.oanda_api_token}",
            "Content-Type": "application/json",
        }

    @property
    def _account_url(self) -> str:
        return f"{self._base_url}/v3/accounts/{self._account_id}"

    # ── Transport helpers ────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute a read-only HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers,
                        timeout=30.0,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "OANDA %s %s returned %d — retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "OANDA %s %s transport error (%s) — retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _send_once(self, method: str, url: str, body: dict) -> dict:
        """Send a trade-mutating request exactly once.

        Raises ``GatewayRejectedError`` for transport failures and any
        non-2xx response.
        """
        try:
            async with httpx.AsyncClient() as client:
                resp = await getattr(client, method)(
                    url,
                    headers=self._headers,
                    json=body,
                    timeout=30.0,
                )
        except httpx.TransportError as exc:
            raise GatewayRejectedError(f"transport error: {exc}") from exc

        if resp.status_code >= 400:
            raise GatewayRejectedError(_reject_reason(resp))
        return resp.json()

    # ── Market data ──────────────────────────────────────────────────────

    async def fetch_candles(
        self,
        instrument: str,
        granularity: str,
        count: int = 50,
    ) -> list[Candle]:
        """Fetch candlestick data from OANDA.

        Args:
            instrument: e.g. ``"EUR_USD"``
            granularity: e.g. ``"H1"``, ``"M15"``
            count: number of candles to request (capped at ``MAX_CANDLES``)

        Returns:
            List of ``Candle`` objects ordered oldest-first.  The last one
            is normally the forming (incomplete) bar.
        """
        url = f"{self._base_url}/v3/instruments/{instrument}/candles"
        params = {
            "granularity": granularity,
            "count": min(count, MAX_CANDLES),
            "price": "M",  # mid prices
        }

        resp = await self._request_with_retry("get", url, params=params)

        candles: list[Candle] = []
        for c in resp.json().get("candles", []):
            mid = c["mid"]
            candles.append(
                Candle(
                    time=c["time"],
                    open=float(mid["o"]),
                    high=float(mid["h"]),
                    low=float(mid["l"]),
                    close=float(mid["c"]),
                    volume=int(c["volume"]),
                    complete=bool(c["complete"]),
                )
            )
        return candles

    async def get_price(self, instrument: str) -> Price:
        """Return the current bid/ask and home-currency conversion factor."""
        url = f"{self._account_url}/pricing"
        params = {"instruments": instrument}

        resp = await self._request_with_retry("get", url, params=params)

        p = resp.json()["prices"][0]
        factors = p.get("quoteHomeConversionFactors") or {}
        return Price(
            instrument=p["instrument"],
            bid=float(p["bids"][0]["price"]),
            ask=float(p["asks"][0]["price"]),
            time=p.get("time", ""),
            home_conversion=float(factors.get("positiveUnits", "1.0")),
        )

    # ── Account / instrument metadata ────────────────────────────────────

    async def get_account_summary(self) -> AccountSummary:
        """Query OANDA for account balance, equity, and open position count."""
        url = f"{self._account_url}/summary"

        resp = await self._request_with_retry("get", url)

        acct = resp.json()["account"]
        return AccountSummary(
            account_id=acct["id"],
            balance=float(acct["balance"]),
            equity=float(acct["NAV"]),
            open_position_count=int(acct["openPositionCount"]),
            currency=acct["currency"],
        )

    async def get_instrument_spec(self, instrument: str) -> InstrumentSpec:
        """Return price precision and unit limits for *instrument*."""
        url = f"{self._account_url}/instruments"
        params = {"instruments": instrument}

        resp = await self._request_with_retry("get", url, params=params)

        info = resp.json()["instruments"][0]
        digits = int(info["displayPrecision"])
        units_precision = int(info.get("tradeUnitsPrecision", 0))
        return InstrumentSpec(
            name=info["name"],
            digits=digits,
            point=10.0 ** -digits,
            volume_min=float(info.get("minimumTradeSize", "1")),
            volume_step=10.0 ** -units_precision,
            volume_max=float(info.get("maximumOrderUnits", "100000000")),
        )

    # ── Execution gateway ────────────────────────────────────────────────

    async def place_order(self, order: OrderRequest) -> OrderResponse:
        """Place a market order with stop-loss, take-profit and client tag.

        Raises:
            GatewayRejectedError: The order was rejected or cancelled
                instead of filled.
        """
        url = f"{self._account_url}/orders"
        digits = order.digits
        extensions = {"tag": order.tag, "comment": order.comment}
        body = {
            "order": {
                "type": "MARKET",
                "instrument": order.instrument,
                "units": str(int(order.units)),
                "stopLossOnFill": {
                    "price": f"{order.stop_loss_price:.{digits}f}",
                },
                "takeProfitOnFill": {
                    "price": f"{order.take_profit_price:.{digits}f}",
                },
                "clientExtensions": extensions,
                "tradeClientExtensions": extensions,
            }
        }

        data = await self._send_once("post", url, body)

        fill = data.get("orderFillTransaction")
        if not fill:
            cancel = data.get("orderCancelTransaction") or {}
            raise GatewayRejectedError(cancel.get("reason", "order not filled"))
        return OrderResponse(
            order_id=fill["id"],
            instrument=fill["instrument"],
            units=float(fill["units"]),
            price=float(fill["price"]),
            time=fill["time"],
            trade_id=(fill.get("tradeOpened") or {}).get("tradeID", ""),
        )

    async def modify_trade_sl(
        self,
        trade_id: str,
        new_sl_price: float,
        digits: int = 5,
    ) -> dict:
        """Update the stop-loss on an open trade.

        Returns:
            Raw OANDA response dict.
        """
        url = f"{self._account_url}/trades/{trade_id}/orders"
        body = {
            "stopLoss": {
                "price": f"{new_sl_price:.{digits}f}",
            }
        }
        return await self._send_once("put", url, body)

    async def close_trade(self, trade_id: str) -> dict:
        """Close all units of a single trade at market.

        Raises:
            GatewayRejectedError: The close order was not filled.
        """
        url = f"{self._account_url}/trades/{trade_id}/close"

        data = await self._send_once("put", url, {"units": "ALL"})

        if not data.get("orderFillTransaction"):
            cancel = data.get("orderCancelTransaction") or {}
            raise GatewayRejectedError(cancel.get("reason", "close not filled"))
        return data

    # ── Position / order query ───────────────────────────────────────────

    async def list_open_trades(self) -> list[Trade]:
        """Return all open trades with SL/TP details and client tags."""
        url = f"{self._account_url}/openTrades"

        resp = await self._request_with_retry("get", url)

        trades: list[Trade] = []
        for t in resp.json().get("trades", []):
            sl_price = None
            tp_price = None
            if "stopLossOrder" in t:
                sl_price = float(t["stopLossOrder"].get("price", 0))
            if "takeProfitOrder" in t:
                tp_price = float(t["takeProfitOrder"].get("price", 0))
            trades.append(
                Trade(
                    trade_id=t["id"],
                    instrument=t["instrument"],
                    units=float(t["currentUnits"]),
                    price=float(t["price"]),
                    unrealized_pnl=float(t.get("unrealizedPL", "0")),
                    stop_loss_price=sl_price,
                    take_profit_price=tp_price,
                    open_time=t.get("openTime", ""),
                    tag=(t.get("clientExtensions") or {}).get("tag", ""),
                )
            )
        return trades

    async def list_pending_orders(self) -> list[PendingOrder]:
        """Return pending entry orders with the tag their trade will carry."""
        url = f"{self._account_url}/pendingOrders"

        resp = await self._request_with_retry("get", url)

        orders: list[PendingOrder] = []
        for o in resp.json().get("orders", []):
            if o.get("type") in _DEPENDENT_ORDER_TYPES:
                continue
            tag = (
                (o.get("tradeClientExtensions") or {}).get("tag")
                or (o.get("clientExtensions") or {}).get("tag", "")
            )
            orders.append(
                PendingOrder(
                    order_id=o["id"],
                    instrument=o.get("instrument", ""),
                    order_type=o.get("type", ""),
                    units=float(o.get("units", "0")),
                    tag=tag,
                )
            )
        return orders

