"""BandTrader — Trading engine (orchestration loop).

Connects market data, the signal arbiter, risk sizing, the lifecycle
manager and the broker into a single polling loop.  Each poll is one tick:

    1. Snapshot candles, price, open trades and pending orders.
    2. Lifecycle manager (every tick): breakeven, reversal exit, trailing.
    3. Arbiter (once per new bar): at most one entry signal.
    4. Sizing + order placement for that signal.

No call is retried within a cycle; the next tick re-evaluates from a fresh
broker snapshot.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from bandtrader.api.routers import record_signal, update_bot_status
from bandtrader.broker.models import InstrumentSpec, OrderRequest, PendingOrder, Trade
from bandtrader.config import Config
from bandtrader.errors import GatewayRejectedError, SizingError
from bandtrader.lifecycle import ClosePosition, LifecycleIntent, TradeLifecycleManager
from bandtrader.risk.sl_tp import plan_trade
from bandtrader.strategy.arbiter import SignalArbiter
from bandtrader.strategy.market_data import ATR, MarketData
from bandtrader.strategy.models import CandleData, CycleContext, Position, StrategyIdentity

logger = logging.getLogger("bandtrader")


class TradingEngine:
    """Orchestrates one tick of evaluation and execution per call.

    Args:
        config: Application configuration (instrument, timeframe, strategy
            settings).
        broker: An ``OandaClient`` (or compatible duck-type / mock).
        context: Starting new-bar checkpoint; defaults to "no bar seen".
    """

    def __init__(
        self,
        config: Config,
        broker,
        context: Optional[CycleContext] = None,
    ) -> None:
        self._config = config
        self._settings = config.strategy
        self._broker = broker
        self._arbiter = SignalArbiter(self._settings)
        self._lifecycle: Optional[TradeLifecycleManager] = None
        self._spec: Optional[InstrumentSpec] = None
        self._context = context or CycleContext()
        self._running: bool = False
        self._cycle_count: int = 0

    @property
    def instrument(self) -> str:
        return self._config.instrument

    @property
    def context(self) -> CycleContext:
        """Checkpoint that will be handed to the arbiter on the next tick."""
        return self._context

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Fetch instrument metadata and build the lifecycle manager."""
        self._spec = await self._broker.get_instrument_spec(self.instrument)
        self._lifecycle = TradeLifecycleManager(
            self._settings, self._spec.point, self._spec.digits,
        )
        update_bot_status(
            running=True,
            instrument=self.instrument,
            granularity=self._config.granularity,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(
            "Engine ready for %s %s (point=%s, min units=%s)",
            self.instrument, self._config.granularity,
            self._spec.point, self._spec.volume_min,
        )
        self._running = True

    def stop(self) -> None:
        """Signal the engine to stop after the current cycle."""
        self._running = False

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(
        self,
        poll_interval: int | None = None,
        max_cycles: int = 0,
    ) -> list[dict]:
        """Run the tick loop until stopped.

        Args:
            poll_interval: Seconds between ticks. Defaults to config.
            max_cycles: Stop after this many ticks (0 = unlimited).

        Returns:
            List of per-tick result dicts.
        """
        if poll_interval is None:
            poll_interval = self._config.poll_interval_seconds
        results: list[dict] = []
        cycle = 0

        while self._running:
            cycle += 1
            self._cycle_count += 1
            try:
                result = await self.run_once()
            except Exception as exc:
                logger.error("Cycle %d error: %s", cycle, exc)
                result = {"action": "error", "reason": str(exc)}
            results.append(result)
            logger.debug("Cycle %d: %s", cycle, result.get("action", "unknown"))
            update_bot_status(
                cycle_count=self._cycle_count,
                last_cycle_at=datetime.now(timezone.utc).isoformat(),
                last_action=result.get("action"),
            )

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep — checks _running every second
            for _ in range(poll_interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        update_bot_status(running=False)
        return results

    # ── Single tick ──────────────────────────────────────────────────────

    async def run_once(self, utc_now: Optional[datetime] = None) -> dict:
        """Execute one tick.

        Returns a dict describing the entry decision, always including the
        lifecycle actions taken this tick:

        - ``{"action": "waiting", "reason": "same_bar" | "market_closed", ...}``
        - ``{"action": "skipped", "reason": "...", ...}``
        - ``{"action": "order_placed", ...}``
        - ``{"action": "rejected", "reason": "...", ...}``
        """
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)
        if self._spec is None or self._lifecycle is None:
            await self.initialize()
        spec = self._spec
        s = self._settings

        # 1 ── Snapshot
        raw = await self._broker.fetch_candles(
            self.instrument, self._config.granularity, count=s.bars_required,
        )
        if raw and raw[-1].complete:
            # Market closed: the last candle is already complete.
            logger.debug("No forming bar for %s (last %s complete)", self.instrument, raw[-1].time)
            return {"action": "waiting", "reason": "market_closed", "lifecycle": []}
        market = MarketData(
            [CandleData(c.time, c.open, c.high, c.low, c.close, c.volume) for c in raw],
            spec.point,
        )
        price = await self._broker.get_price(self.instrument)
        trades = await self._broker.list_open_trades()
        orders = await self._broker.list_pending_orders()
        positions = self._managed_positions(trades)
        value_per_point = price.value_per_point(spec.point)

        # 2 ── Lifecycle (every tick)
        intents = self._lifecycle.evaluate(
            positions, market, price.bid, price.ask, value_per_point,
        )
        lifecycle_actions = [
            await self._execute_intent(intent, utc_now) for intent in intents
        ]

        # 3 ── Arbiter (new bar only)
        held = {p.identity for p in positions} | self._pending_identities(orders)
        decision = self._arbiter.evaluate(market, self._context, held)
        self._context = decision.context

        if not decision.new_bar:
            return {
                "action": "waiting",
                "reason": decision.reason,
                "lifecycle": lifecycle_actions,
            }

        update_bot_status(last_bar_time=self._context.last_bar_time)

        if decision.signal is None:
            logger.debug("No entry on bar %s: %s", self._context.last_bar_time, decision.reason)
            record_signal({
                "instrument": self.instrument,
                "direction": None,
                "strategy": None,
                "status": "skipped",
                "reason": decision.reason,
                "checks": decision.checks,
                "evaluated_at": utc_now.isoformat(),
            })
            return {
                "action": "skipped",
                "reason": decision.reason,
                "lifecycle": lifecycle_actions,
            }

        signal = decision.signal
        logger.info(
            "%s signal from %s (%s) on %s",
            signal.direction.upper(), signal.origin, signal.identity.value, self.instrument,
        )
        update_bot_status(last_signal_time=utc_now.isoformat())

        # 4 ── Sizing + order
        entry_price = price.ask if signal.direction == "buy" else price.bid
        atr = market.indicator(ATR, s.atr_period, 1)
        summary = await self._broker.get_account_summary()
        try:
            intent = plan_trade(
                signal, entry_price, atr, summary.equity, spec, value_per_point, s,
            )
        except SizingError as exc:
            logger.warning("Skipping %s signal — sizing failed: %s", signal.origin, exc)
            self._record_entry(signal, "skipped", f"sizing failed: {exc}", utc_now)
            return {
                "action": "skipped",
                "reason": "sizing_failed",
                "detail": str(exc),
                "lifecycle": lifecycle_actions,
            }

        units = intent.volume if intent.direction == "buy" else -intent.volume
        order_req = OrderRequest(
            instrument=self.instrument,
            units=units,
            stop_loss_price=intent.sl,
            take_profit_price=intent.tp,
            tag=s.tag_for(intent.identity),
            comment=intent.label,
            digits=spec.digits,
        )
        try:
            order_resp = await self._broker.place_order(order_req)
        except (GatewayRejectedError, httpx.HTTPError) as exc:
            logger.error("Order for %s signal rejected: %s", signal.origin, exc)
            self._record_entry(signal, "rejected", str(exc), utc_now)
            return {
                "action": "rejected",
                "reason": str(exc),
                "strategy": signal.identity.value,
                "lifecycle": lifecycle_actions,
            }

        logger.info(
            "Opened %s %s units=%s sl=%s tp=%s (%s)",
            intent.direction, self.instrument, units, intent.sl, intent.tp, intent.label,
        )
        self._record_entry(signal, "entered", intent.label, utc_now)
        update_bot_status(last_order_time=utc_now.isoformat())

        return {
            "action": "order_placed",
            "order_id": order_resp.order_id,
            "direction": intent.direction,
            "strategy": intent.identity.value,
            "origin": intent.label,
            "units": units,
            "entry": entry_price,
            "sl": intent.sl,
            "tp": intent.tp,
            "lifecycle": lifecycle_actions,
        }

    # ── Helpers ──────────────────────────────────────────────────────────

    def _managed_positions(self, trades: list[Trade]) -> list[Position]:
        """Convert this instrument's tagged trades into core positions."""
        positions: list[Position] = []
        for t in trades:
            if t.instrument != self.instrument:
                continue
            identity = self._settings.identity_for_tag(t.tag)
            if identity is None:
                continue
            positions.append(
                Position(
                    ref=t.trade_id,
                    side="buy" if t.units > 0 else "sell",
                    entry_price=t.price,
                    volume=abs(t.units),
                    identity=identity,
                    unrealized_profit=t.unrealized_pnl,
                    stop_loss=t.stop_loss_price,
                    take_profit=t.take_profit_price,
                )
            )
        return positions

    def _pending_identities(self, orders: list[PendingOrder]) -> set[StrategyIdentity]:
        held: set[StrategyIdentity] = set()
        for o in orders:
            if o.instrument and o.instrument != self.instrument:
                continue
            identity = self._settings.identity_for_tag(o.tag)
            if identity is not None:
                held.add(identity)
        return held

    async def _execute_intent(self, intent: LifecycleIntent, utc_now: datetime) -> dict:
        """Send one lifecycle intent to the gateway; failures are reported only."""
        try:
            if isinstance(intent, ClosePosition):
                await self._broker.close_trade(intent.ref)
                logger.info("Closed trade %s (%s)", intent.ref, intent.reason)
                action = {"action": "closed", "trade_id": intent.ref, "reason": intent.reason}
            else:
                await self._broker.modify_trade_sl(
                    intent.ref, intent.new_stop, digits=self._spec.digits,
                )
                logger.info(
                    "Moved stop of trade %s to %s (%s)",
                    intent.ref, intent.new_stop, intent.reason,
                )
                action = {
                    "action": "stop_moved",
                    "trade_id": intent.ref,
                    "stop": intent.new_stop,
                    "reason": intent.reason,
                }
        except (GatewayRejectedError, httpx.HTTPError) as exc:
            logger.warning("Gateway rejected %s for trade %s: %s", intent.reason, intent.ref, exc)
            action = {
                "action": "rejected",
                "trade_id": intent.ref,
                "reason": intent.reason,
                "detail": str(exc),
            }
        record_signal({**action, "instrument": self.instrument, "evaluated_at": utc_now.isoformat()})
        return action

    def _record_entry(self, signal, status: str, reason: str, utc_now: datetime) -> None:
        record_signal({
            "instrument": self.instrument,
            "direction": signal.direction,
            "strategy": signal.identity.value,
            "origin": signal.origin,
            "status": status,
            "reason": reason,
            "evaluated_at": utc_now.isoformat(),
        })
