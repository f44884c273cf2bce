"""Internal API routers — /status, /signals, /positions endpoints.

No business logic. Reads the shared state the engine pushes each cycle and
delegates position queries to the broker.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

logger = logging.getLogger("bandtrader")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_DEFAULT_STATUS: dict = {
    "mode": "idle",
    "running": False,
    "instrument": None,
    "granularity": None,
    "cycle_count": 0,
    "last_cycle_at": None,
    "last_bar_time": None,
    "last_action": None,
    "last_signal_time": None,
    "last_order_time": None,
}

_MAX_SIGNAL_HISTORY = 50

_status: dict = {**_DEFAULT_STATUS}
_signal_history: list[dict] = []
_broker = None  # Set via configure_routers()
_settings = None  # Set via configure_routers()


def configure_routers(broker=None, settings=None, status: Optional[dict] = None) -> None:
    """Inject dependencies from the application startup.

    Args:
        broker: An ``OandaClient`` instance (or duck-type) for /positions.
        settings: ``StrategySettings`` used to map trade tags to strategies.
        status: Optional initial status fields.
    """
    global _broker, _settings  # noqa: PLW0603
    _broker = broker
    _settings = settings
    if status:
        _status.update(status)


def update_bot_status(**fields) -> None:
    """Update individual fields of the engine status dict."""
    _status.update(fields)


def record_signal(entry: dict) -> None:
    """Append one arbiter or lifecycle decision to the capped history."""
    _signal_history.append(entry)
    if len(_signal_history) > _MAX_SIGNAL_HISTORY:
        del _signal_history[0]


def reset_state() -> None:
    """Restore defaults (used at startup and by tests)."""
    _status.clear()
    _status.update(_DEFAULT_STATUS)
    _signal_history.clear()


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status() -> dict:
    return dict(_status)


@router.get("/signals")
async def get_signals(limit: int = Query(default=20, ge=1, le=_MAX_SIGNAL_HISTORY)) -> dict:
    """Most recent decisions, newest first."""
    return {"signals": list(reversed(_signal_history))[:limit]}


@router.get("/positions")
async def get_positions() -> dict:
    """Open trades owned by one of the two strategy families."""
    if _broker is None:
        return {"positions": []}
    try:
        trades = await _broker.list_open_trades()
    except Exception as exc:
        logger.error("Failed to list open trades: %s", exc)
        return {"positions": [], "error": str(exc)}

    positions = []
    for t in trades:
        identity = _settings.identity_for_tag(t.tag) if _settings else None
        if identity is None:
            continue
        positions.append({
            "trade_id": t.trade_id,
            "instrument": t.instrument,
            "strategy": identity.value,
            "direction": "buy" if t.units > 0 else "sell",
            "units": abs(t.units),
            "entry_price": t.price,
            "stop_loss": t.stop_loss_price,
            "take_profit": t.take_profit_price,
            "unrealized_pnl": t.unrealized_pnl,
        })
    return {"positions": positions}
