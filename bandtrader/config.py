"""BandTrader — application configuration.

Loads .env variables into typed config objects.
Validates required variables and strategy parameter ranges on startup.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from bandtrader.strategy.indicators import APPLIED_PRICES, MA_METHODS
from bandtrader.strategy.models import StrategyIdentity


_REQUIRED_VARS = [
    "OANDA_ACCOUNT_ID",
    "OANDA_API_TOKEN",
    "OANDA_ENVIRONMENT",
]

# Per-request candle limit of the OANDA v20 candles endpoint
MAX_CANDLES = 5000
EMA_WARMUP_PERIODS = 8


@dataclass(frozen=True)
class StrategySettings:
    """Strategy, risk and trade-management parameters.

    Distances suffixed ``_points`` are in minimum price increments.
    """

    risk_percent: float = 1.0
    atr_stop_multiplier: float = 1.5
    take_profit_points: float = 600.0  # validated only; TP is always 3× the stop
    bb_period: int = 20
    bb_deviation: float = 2.0
    bb_method: str = "sma"
    bb_applied_price: str = "close"
    squeeze_lookback: int = 100
    atr_period: int = 14
    min_body_atr_multiplier: float = 0.3
    max_doji_body_ratio: float = 0.1
    regime_ema_period: int = 200
    max_ranging_slope_points: float = 15.0
    min_atr_multiplier: float = 0.8
    max_squeeze_width_atr_multiplier: float = 1.0
    breakeven_trigger_points: float = 150.0
    breakeven_buffer_points: float = 20.0
    max_volume: float = 100_000.0
    enable_doji_bounce: bool = True
    enable_mean_reversion: bool = True
    enable_squeeze_breakout: bool = True
    enable_trend_follow: bool = True
    trend_fast_period: int = 50
    trend_slow_period: int = 200
    trailing_stop_points: float = 0.0
    bollinger_tag: str = "bandtrader-bb"
    trend_tag: str = "bandtrader-trend"

    def tag_for(self, identity: StrategyIdentity) -> str:
        """Return the broker tag that marks trades of *identity*."""
        if identity is StrategyIdentity.BOLLINGER:
            return self.bollinger_tag
        return self.trend_tag

    def identity_for_tag(self, tag: str | None) -> StrategyIdentity | None:
        """Map a broker tag back to its strategy, or ``None`` if unmanaged."""
        if tag == self.bollinger_tag:
            return StrategyIdentity.BOLLINGER
        if tag == self.trend_tag:
            return StrategyIdentity.TREND_FOLLOW
        return None

    @property
    def bars_required(self) -> int:
        """Number of candles to load so every indicator reads as on full history.

        Windowed indicators only need their lookback.  Recursive averages
        are seeded from an SMA, so they get ``EMA_WARMUP_PERIODS`` periods
        of history for the seed to decay out.  Capped at ``MAX_CANDLES``.
        """
        recursive = [self.regime_ema_period, self.trend_slow_period]
        if self.bb_method == "ema":
            recursive.append(self.bb_period)
        elif self.bb_method == "smma":
            # SMMA(n) smooths like EMA(2n - 1)
            recursive.append(2 * self.bb_period)

        needed = max(
            max(recursive) * EMA_WARMUP_PERIODS,
            self.bb_period + self.squeeze_lookback,
            self.atr_period + 2,
        ) + 3
        return min(needed, MAX_CANDLES)


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    oanda_account_id: str
    oanda_api_token: str
    oanda_environment: str  # "practice" or "live"
    instrument: str = "EUR_USD"
    granularity: str = "H1"
    poll_interval_seconds: int = 5
    log_level: str = "INFO"
    api_port: int = 8080
    strategy: StrategySettings = field(default_factory=StrategySettings)

    @property
    def oanda_base_url(self) -> str:
        """Return the OANDA v20 API base URL based on environment."""
        if self.oanda_environment == "live":
            return "https://api-fxtrade.oanda.com"
        return "https://api-fxpractice.oanda.com"


def validate_settings(settings: StrategySettings) -> None:
    """Range-check strategy parameters.

    Raises ``ValueError`` listing every violated option.
    """
    problems: list[str] = []

    for name in (
        "bb_period", "squeeze_lookback", "atr_period",
        "regime_ema_period", "trend_fast_period", "trend_slow_period",
    ):
        if getattr(settings, name) <= 0:
            problems.append(f"{name} must be positive")

    for name in (
        "atr_stop_multiplier", "bb_deviation", "take_profit_points", "max_volume",
    ):
        if getattr(settings, name) <= 0:
            problems.append(f"{name} must be positive")

    for name in (
        "min_body_atr_multiplier", "max_ranging_slope_points", "min_atr_multiplier",
        "max_squeeze_width_atr_multiplier", "breakeven_trigger_points",
        "breakeven_buffer_points", "trailing_stop_points",
    ):
        if getattr(settings, name) < 0:
            problems.append(f"{name} must not be negative")

    if not 0 < settings.risk_percent <= 100:
        problems.append("risk_percent must be in (0, 100]")
    if not 0 < settings.max_doji_body_ratio <= 1:
        problems.append("max_doji_body_ratio must be in (0, 1]")
    if settings.trend_fast_period >= settings.trend_slow_period:
        problems.append("trend_fast_period must be below trend_slow_period")
    if settings.bb_method not in MA_METHODS:
        problems.append(f"bb_method must be one of {', '.join(MA_METHODS)}")
    if settings.bb_applied_price not in APPLIED_PRICES:
        problems.append(f"bb_applied_price must be one of {', '.join(APPLIED_PRICES)}")
    if not settings.bollinger_tag or not settings.trend_tag:
        problems.append("strategy tags must not be empty")
    elif settings.bollinger_tag == settings.trend_tag:
        problems.append("bollinger_tag and trend_tag must differ")

    if problems:
        raise ValueError("Invalid strategy settings: " + "; ".join(problems))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> StrategySettings:
    """Build ``StrategySettings`` from the environment and validate it."""
    d = StrategySettings()
    settings = StrategySettings(
        risk_percent=float(os.environ.get("RISK_PERCENT", d.risk_percent)),
        atr_stop_multiplier=float(os.environ.get("ATR_STOP_MULTIPLIER", d.atr_stop_multiplier)),
        take_profit_points=float(os.environ.get("TAKE_PROFIT_POINTS", d.take_profit_points)),
        bb_period=int(os.environ.get("BB_PERIOD", d.bb_period)),
        bb_deviation=float(os.environ.get("BB_DEVIATION", d.bb_deviation)),
        bb_method=os.environ.get("BB_METHOD", d.bb_method).lower(),
        bb_applied_price=os.environ.get("BB_APPLIED_PRICE", d.bb_applied_price).lower(),
        squeeze_lookback=int(os.environ.get("SQUEEZE_LOOKBACK", d.squeeze_lookback)),
        atr_period=int(os.environ.get("ATR_PERIOD", d.atr_period)),
        min_body_atr_multiplier=float(
            os.environ.get("MIN_BODY_ATR_MULTIPLIER", d.min_body_atr_multiplier)
        ),
        max_doji_body_ratio=float(os.environ.get("MAX_DOJI_BODY_RATIO", d.max_doji_body_ratio)),
        regime_ema_period=int(os.environ.get("REGIME_EMA_PERIOD", d.regime_ema_period)),
        max_ranging_slope_points=float(
            os.environ.get("MAX_RANGING_SLOPE_POINTS", d.max_ranging_slope_points)
        ),
        min_atr_multiplier=float(os.environ.get("MIN_ATR_MULTIPLIER", d.min_atr_multiplier)),
        max_squeeze_width_atr_multiplier=float(
            os.environ.get("MAX_SQUEEZE_WIDTH_ATR_MULTIPLIER", d.max_squeeze_width_atr_multiplier)
        ),
        breakeven_trigger_points=float(
            os.environ.get("BREAKEVEN_TRIGGER_POINTS", d.breakeven_trigger_points)
        ),
        breakeven_buffer_points=float(
            os.environ.get("BREAKEVEN_BUFFER_POINTS", d.breakeven_buffer_points)
        ),
        max_volume=float(os.environ.get("MAX_VOLUME", d.max_volume)),
        enable_doji_bounce=_env_bool("ENABLE_DOJI_BOUNCE", d.enable_doji_bounce),
        enable_mean_reversion=_env_bool("ENABLE_MEAN_REVERSION", d.enable_mean_reversion),
        enable_squeeze_breakout=_env_bool("ENABLE_SQUEEZE_BREAKOUT", d.enable_squeeze_breakout),
        enable_trend_follow=_env_bool("ENABLE_TREND_FOLLOW", d.enable_trend_follow),
        trend_fast_period=int(os.environ.get("TREND_FAST_PERIOD", d.trend_fast_period)),
        trend_slow_period=int(os.environ.get("TREND_SLOW_PERIOD", d.trend_slow_period)),
        trailing_stop_points=float(os.environ.get("TRAILING_STOP_POINTS", d.trailing_stop_points)),
        bollinger_tag=os.environ.get("BOLLINGER_TAG", d.bollinger_tag),
        trend_tag=os.environ.get("TREND_TAG", d.trend_tag),
    )
    validate_settings(settings)
    return settings


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent, or listing out-of-range strategy options.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    return Config(
        oanda_account_id=os.environ["OANDA_ACCOUNT_ID"],
        oanda_api_token=os.environ["OANDA_API_TOKEN"],
        oanda_environment=os.environ.get("OANDA_ENVIRONMENT", "practice"),
        instrument=os.environ.get("INSTRUMENT", "EUR_USD"),
        granularity=os.environ.get("GRANULARITY", "H1"),
        poll_interval_seconds=int(os.environ.get("POLL_INTERVAL_SECONDS", "5")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=int(os.environ.get("API_PORT", "8080")),
        strategy=load_settings(),
    )
