"""BandTrader — application entry point.

Boots the FastAPI status server and provides the CLI entry point for
paper and live modes.
"""

import logging

from fastapi import FastAPI

from bandtrader.api.routers import router

app = FastAPI(title="BandTrader Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("bandtrader")


@app.get("/health")
async def health():
    return {"status": "ok"}


def warn_if_live(mode: str) -> bool:
    """Log a prominent warning when running in live mode.

    Returns ``True`` if *mode* is ``"live"``.
    """
    if mode == "live":
        logger.warning(
            "LIVE TRADING MODE — Real money at risk! Starting in 5 seconds..."
        )
        return True
    return False


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and start the engine (with or without the API)."""
    import argparse
    import asyncio
    import signal
    import time

    from bandtrader.api.routers import configure_routers
    from bandtrader.broker.oanda_client import OandaClient
    from bandtrader.config import load_config
    from bandtrader.engine import TradingEngine

    parser = argparse.ArgumentParser(description="BandTrader trading bot")
    parser.add_argument(
        "--mode",
        choices=["paper", "live"],
        default="paper",
        help="Trading mode (default: paper)",
    )
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the trading engine without the API server",
    )
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if warn_if_live(args.mode):
        time.sleep(5)

    broker = OandaClient(config)
    engine = TradingEngine(config=config, broker=broker)
    configure_routers(
        broker=broker,
        settings=config.strategy,
        status={"mode": args.mode, "instrument": config.instrument},
    )

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received — stopping gracefully.")
        engine.stop()

    signal.signal(signal.SIGINT, handle_shutdown)

    if args.engine_only:
        asyncio.run(_run_engine_only(engine))
    else:
        asyncio.run(_run_with_api(engine, config.api_port))


async def _run_engine_only(engine) -> None:
    await engine.initialize()
    await engine.run()
    logger.info("BandTrader engine stopped.")


async def _run_with_api(engine, port: int) -> None:
    """Start the API server and the trading engine concurrently."""
    import asyncio

    import uvicorn

    server = uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    )

    async def _run_engine():
        try:
            await engine.initialize()
            await engine.run()
        finally:
            server.should_exit = True

    logger.info("Status API available at http://localhost:%d", port)
    results = await asyncio.gather(
        server.serve(),
        _run_engine(),
        return_exceptions=True,
    )
    logger.info("BandTrader stopped. Results: %s", results)


if __name__ == "__main__":
    _run_cli()
