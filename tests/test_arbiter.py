"""Tests for bandtrader.strategy.arbiter — gating and generator priority."""

from bandtrader.errors import DataUnavailableError
from bandtrader.strategy.arbiter import SignalArbiter, volatility_gate
from bandtrader.strategy.generators import mean_reversion_bounce
from bandtrader.strategy.models import CycleContext, StrategyIdentity
from bandtrader.strategy.registry import GENERATOR_PRIORITY, GeneratorSpec

from market_fakes import ScriptedMarket, bar, make_settings


FORMING_TIME = "2025-03-03T10:00:00Z"


def _base_market(**overrides) -> ScriptedMarket:
    """Bands, steady ATR and a forming bar; no generator fires yet."""
    market = ScriptedMarket(make_settings(**overrides))
    market.set_bands(1, 1.1060, 1.1010, 1.0960)
    market.set_atr(1, 0.0030).set_atr(2, 0.0030)
    market.set_bar(0, bar(1.1010, 1.1012, 1.1008, 1.1010, time=FORMING_TIME))
    return market


def _with_doji_buy(market: ScriptedMarket) -> ScriptedMarket:
    market.set_bar(1, bar(1.0965, 1.0975, 1.0955, 1.0966))
    market.set_bar(0, bar(1.0966, 1.0982, 1.0964, 1.0980, time=FORMING_TIME))
    return market


def _with_trend_cross(market: ScriptedMarket) -> ScriptedMarket:
    market.set_ema(5, 2, 1.0990).set_ema(10, 2, 1.1000)
    market.set_ema(5, 1, 1.1010).set_ema(10, 1, 1.1000)
    return market


def _with_mean_reversion_buy(market: ScriptedMarket) -> ScriptedMarket:
    market.set_bar(2, bar(1.0963, 1.0966, 1.0956, 1.0958))
    market.set_bar(1, bar(1.0955, 1.0967, 1.0950, 1.0965))
    return market


def _ranging(market: ScriptedMarket) -> ScriptedMarket:
    return market.set_ema(50, 1, 1.1005).set_ema(50, 2, 1.1000)


def _trending(market: ScriptedMarket) -> ScriptedMarket:
    return market.set_ema(50, 1, 1.1050).set_ema(50, 2, 1.1000)


# ── Registry ─────────────────────────────────────────────────────────────


class TestRegistry:
    def test_priority_order(self):
        assert [g.label for g in GENERATOR_PRIORITY] == [
            "doji_bounce",
            "mean_reversion_bounce",
            "squeeze_breakout",
            "trend_follow_crossover",
        ]

    def test_identities(self):
        by_label = {g.label: g for g in GENERATOR_PRIORITY}
        assert by_label["doji_bounce"].identity is StrategyIdentity.BOLLINGER
        assert by_label["squeeze_breakout"].identity is StrategyIdentity.BOLLINGER
        assert by_label["trend_follow_crossover"].identity is StrategyIdentity.TREND_FOLLOW
        assert by_label["mean_reversion_bounce"].requires_ranging is True


# ── Gates ────────────────────────────────────────────────────────────────


class TestGates:
    def test_same_bar_waits(self):
        market = _with_doji_buy(_base_market())
        context = CycleContext(last_bar_time=FORMING_TIME)
        decision = SignalArbiter(market.settings).evaluate(market, context, set())
        assert decision.new_bar is False
        assert decision.reason == "same_bar"
        assert decision.signal is None
        assert decision.context == context

    def test_new_bar_advances_context(self):
        market = _base_market()
        decision = SignalArbiter(market.settings).evaluate(market, CycleContext(), set())
        assert decision.new_bar is True
        assert decision.context.last_bar_time == FORMING_TIME

    def test_low_volatility_blocks_all(self):
        """ATR[1] below ATR[2] × 0.8 suppresses every generator."""
        market = _with_doji_buy(_base_market())
        market.set_atr(1, 0.0020)
        decision = SignalArbiter(market.settings).evaluate(market, CycleContext(), set())
        assert decision.signal is None
        assert decision.reason == "low_volatility"
        assert decision.context.last_bar_time == FORMING_TIME

    def test_volatility_gate_boundary(self):
        """Equal ATR passes a multiplier of 1.0."""
        market = _base_market()
        assert volatility_gate(market, 14, 1.0) is True
        market.set_atr(1, 0.0025)
        assert volatility_gate(market, 14, 0.8) is True
        market.set_atr(1, 0.0023)
        assert volatility_gate(market, 14, 0.8) is False

    def test_volatility_gate_needs_both_values(self):
        market = _base_market()
        market.set_atr(2, 0.0)
        assert volatility_gate(market, 14, 0.8) is False

    def test_no_forming_bar(self):
        market = ScriptedMarket(make_settings())
        decision = SignalArbiter(market.settings).evaluate(market, CycleContext(), set())
        assert decision.reason == "data_unavailable"
        assert decision.new_bar is False


# ── Priority and exclusion ───────────────────────────────────────────────


class TestPriority:
    def test_doji_beats_trend_follow(self):
        market = _with_trend_cross(_with_doji_buy(_base_market()))
        decision = SignalArbiter(market.settings).evaluate(market, CycleContext(), set())
        assert decision.signal.origin == "doji_bounce"
        assert decision.signal.identity is StrategyIdentity.BOLLINGER
        assert decision.signal.direction == "buy"
        assert decision.reason == "signal"

    def test_doji_beats_mean_reversion(self):
        """A doji-shaped hammer fires both Bollinger generators; Doji-Bounce wins."""
        market = _ranging(_base_market())
        market.set_atr(1, 0.0020).set_atr(2, 0.0020)
        market.set_bar(2, bar(1.0995, 1.1002, 1.0985, 1.0990))
        market.set_bar(1, bar(1.0991, 1.1000, 1.0900, 1.0999))
        market.set_bar(0, bar(1.0999, 1.1012, 1.0998, 1.1010, time=FORMING_TIME))
        assert mean_reversion_bounce(market, market.settings) == "buy"

        decision = SignalArbiter(market.settings).evaluate(market, CycleContext(), set())
        assert decision.signal.origin == "doji_bounce"

    def test_held_family_is_skipped(self):
        """An open Bollinger position hands the bar to the trend generator."""
        market = _with_trend_cross(_with_doji_buy(_base_market()))
        decision = SignalArbiter(market.settings).evaluate(
            market, CycleContext(), {StrategyIdentity.BOLLINGER},
        )
        assert decision.signal.origin == "trend_follow_crossover"
        assert decision.signal.identity is StrategyIdentity.TREND_FOLLOW

    def test_both_families_held(self):
        market = _with_trend_cross(_with_doji_buy(_base_market()))
        decision = SignalArbiter(market.settings).evaluate(
            market, CycleContext(),
            [StrategyIdentity.BOLLINGER, StrategyIdentity.TREND_FOLLOW],
        )
        assert decision.signal is None
        assert decision.reason == "no_signal"
        assert decision.checks["held"] == ["bollinger", "trend_follow"]

    def test_disabled_generator_skipped(self):
        market = _with_doji_buy(_base_market(enable_doji_bounce=False))
        decision = SignalArbiter(market.settings).evaluate(market, CycleContext(), set())
        assert decision.signal is None
        assert "doji_bounce" not in decision.checks

    def test_mean_reversion_only_when_ranging(self):
        market = _ranging(_with_mean_reversion_buy(_base_market()))
        decision = SignalArbiter(market.settings).evaluate(market, CycleContext(), set())
        assert decision.signal.origin == "mean_reversion_bounce"
        assert decision.checks["ranging"] is True

        market = _trending(_with_mean_reversion_buy(_base_market()))
        decision = SignalArbiter(market.settings).evaluate(market, CycleContext(), set())
        assert decision.signal is None
        assert "mean_reversion_bounce" not in decision.checks

    def test_generator_data_error_does_not_stop_others(self):
        def _broken(market, settings):
            raise DataUnavailableError("bar 2 missing")

        generators = (
            GeneratorSpec("broken", StrategyIdentity.BOLLINGER, _broken, "enable_doji_bounce"),
            GeneratorSpec(
                "always_sell", StrategyIdentity.TREND_FOLLOW,
                lambda m, s: "sell", "enable_trend_follow",
            ),
        )
        market = _base_market()
        decision = SignalArbiter(market.settings, generators).evaluate(
            market, CycleContext(), set(),
        )
        assert decision.checks["broken"] == "data_unavailable"
        assert decision.signal.origin == "always_sell"
        assert decision.signal.direction == "sell"

    def test_first_signal_wins(self):
        generators = (
            GeneratorSpec("first", StrategyIdentity.BOLLINGER, lambda m, s: "buy", "enable_doji_bounce"),
            GeneratorSpec("second", StrategyIdentity.TREND_FOLLOW, lambda m, s: "sell", "enable_trend_follow"),
        )
        market = _base_market()
        decision = SignalArbiter(market.settings, generators).evaluate(
            market, CycleContext(), set(),
        )
        assert decision.signal.origin == "first"
        assert "second" not in decision.checks
