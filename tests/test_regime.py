"""Tests for bandtrader.strategy.regime — EMA slope regime and crossovers."""

import math

import pytest

from bandtrader.strategy.market_data import MA, MarketData
from bandtrader.strategy.models import CandleData
from bandtrader.strategy.regime import classify_regime, detect_crossover

from market_fakes import ScriptedMarket, make_settings


def _market(point: float = 0.0001) -> ScriptedMarket:
    return ScriptedMarket(make_settings(), point=point)


class TestClassifyRegime:
    def test_flat_slope_is_ranging(self):
        market = _market().set_ema(50, 1, 1.1010).set_ema(50, 2, 1.1000)
        state = classify_regime(market, 50, 15.0)
        assert state.regime == "ranging"
        assert state.is_ranging is True
        assert state.slope_points == pytest.approx(10.0)

    def test_steep_slope_is_trending(self):
        market = _market().set_ema(50, 1, 1.0980).set_ema(50, 2, 1.1000)
        state = classify_regime(market, 50, 15.0)
        assert state.regime == "trending"
        assert state.is_ranging is False

    def test_slope_at_threshold_is_ranging(self):
        market = _market().set_ema(50, 1, 1.1015).set_ema(50, 2, 1.1000)
        assert classify_regime(market, 50, 15.5).is_ranging is True

    def test_missing_ema_is_unknown(self):
        """Unavailable EMA never counts as ranging."""
        market = _market().set_ema(50, 1, 1.1000)
        state = classify_regime(market, 50, 15.0)
        assert state.regime == "unknown"
        assert state.is_ranging is False

    def test_zero_point_is_unknown(self):
        market = _market(point=0.0).set_ema(50, 1, 1.1).set_ema(50, 2, 1.1)
        assert classify_regime(market, 50, 15.0).regime == "unknown"


class TestDetectCrossover:
    def _cross(self, fast_2, slow_2, fast_1, slow_1):
        market = (
            _market()
            .set_ema(5, 2, fast_2).set_ema(10, 2, slow_2)
            .set_ema(5, 1, fast_1).set_ema(10, 1, slow_1)
        )
        return detect_crossover(market, 5, 10)

    def test_bullish_cross(self):
        assert self._cross(1.0990, 1.1000, 1.1010, 1.1000) == "buy"

    def test_bearish_cross(self):
        assert self._cross(1.1010, 1.1000, 1.0990, 1.1000) == "sell"

    def test_touch_then_cross_counts(self):
        assert self._cross(1.1000, 1.1000, 1.1005, 1.1000) == "buy"

    def test_no_cross_when_fast_stays_above(self):
        assert self._cross(1.1010, 1.1000, 1.1020, 1.1000) is None

    def test_missing_value_yields_none(self):
        assert self._cross(1.0990, 0.0, 1.1010, 1.1000) is None


# ── Loaded history vs full history ───────────────────────────────────────


def _wave_candles(n: int) -> list[CandleData]:
    """Slow sine wave with a gentle drift, enough for repeated EMA crosses."""
    candles: list[CandleData] = []
    prev = 1.1000
    for i in range(n):
        close = 1.1000 + 0.0100 * math.sin(2 * math.pi * i / 80) + 0.00001 * i
        candles.append(
            CandleData(
                f"bar-{i}", prev, max(prev, close) + 0.0002, min(prev, close) - 0.0002, close,
            )
        )
        prev = close
    return candles


class TestLoadedHistory:
    def test_bars_required_matches_full_history(self):
        """Crossovers and regimes read from the loaded window equal those from all history."""
        settings = make_settings(regime_ema_period=50, trend_fast_period=20, trend_slow_period=50)
        window = settings.bars_required
        candles = _wave_candles(1200)

        crosses = 0
        for end in range(800, 1200):
            full = MarketData(candles[:end], 0.00001)
            loaded = MarketData(candles[end - window:end], 0.00001)

            expected = detect_crossover(full, 20, 50)
            assert detect_crossover(loaded, 20, 50) == expected
            assert classify_regime(loaded, 50, 15.0).regime == classify_regime(full, 50, 15.0).regime
            assert loaded.indicator(MA, 50, 1, method="ema") == pytest.approx(
                full.indicator(MA, 50, 1, method="ema"), abs=1e-6,
            )
            crosses += expected is not None

        assert crosses > 0
