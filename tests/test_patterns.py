"""Tests for bandtrader.strategy.patterns — candlestick recognition."""

import pytest

from bandtrader.strategy.models import CandleData, PatternKind
from bandtrader.strategy.patterns import (
    is_bearish_engulfing,
    is_bullish_engulfing,
    is_doji,
    is_hammer,
    is_shooting_star,
    recognize,
)


def _c(o, h, l, c) -> CandleData:
    return CandleData("2025-01-01T00:00:00Z", o, h, l, c)


HAMMER = _c(1.0970, 1.0981, 1.0900, 1.0980)
SHOOTING_STAR = _c(1.1010, 1.1080, 1.0999, 1.1000)
DOJI = _c(1.1000, 1.1010, 1.0990, 1.1001)
FLAT = _c(1.1000, 1.1000, 1.1000, 1.1000)
BEARISH_PREV = _c(1.1010, 1.1012, 1.0998, 1.1000)
BULLISH_ENGULFER = _c(1.0995, 1.1022, 1.0993, 1.1020)
BULLISH_PREV = _c(1.1000, 1.1012, 1.0998, 1.1010)
BEARISH_ENGULFER = _c(1.1015, 1.1017, 1.0988, 1.0990)

ATR = 0.0030
MULT = 0.3


# ── Single-bar patterns ──────────────────────────────────────────────────


class TestSingleBar:
    def test_doji(self):
        assert is_doji(DOJI, 0.1) is True
        assert is_doji(HAMMER, 0.1) is False

    def test_zero_range_is_never_a_pattern(self):
        """A bar with high == low returns no pattern instead of dividing by zero."""
        assert is_doji(FLAT, 0.1) is False
        assert is_hammer(FLAT, ATR, MULT) is False
        assert is_shooting_star(FLAT, ATR, MULT) is False
        assert recognize(FLAT, None, ATR, MULT, 0.1).kind is PatternKind.NONE

    def test_hammer(self):
        assert is_hammer(HAMMER, ATR, MULT) is True
        assert is_shooting_star(HAMMER, ATR, MULT) is False

    def test_shooting_star(self):
        assert is_shooting_star(SHOOTING_STAR, ATR, MULT) is True
        assert is_hammer(SHOOTING_STAR, ATR, MULT) is False

    def test_body_gate_rejects_small_bodies(self):
        """A hammer-shaped bar with body < ATR × multiplier does not qualify."""
        assert is_hammer(HAMMER, 0.0100, MULT) is False

    def test_zero_atr_fails_gate(self):
        assert is_hammer(HAMMER, 0.0, MULT) is False
        assert recognize(HAMMER, None, 0.0, MULT, 0.1).kind is PatternKind.NONE


# ── Two-bar patterns ─────────────────────────────────────────────────────


class TestEngulfing:
    def test_bullish_engulfing(self):
        assert is_bullish_engulfing(BULLISH_ENGULFER, BEARISH_PREV, ATR, MULT) is True
        assert is_bearish_engulfing(BULLISH_ENGULFER, BEARISH_PREV, ATR, MULT) is False

    def test_bearish_engulfing(self):
        assert is_bearish_engulfing(BEARISH_ENGULFER, BULLISH_PREV, ATR, MULT) is True

    def test_requires_opposite_previous_bar(self):
        assert is_bullish_engulfing(BULLISH_ENGULFER, BULLISH_PREV, ATR, MULT) is False

    def test_body_must_contain_previous_body(self):
        small = _c(1.1001, 1.1012, 1.0999, 1.1008)
        assert is_bullish_engulfing(small, BEARISH_PREV, 0.0001, MULT) is False

    def test_engulfing_body_gate(self):
        assert is_bullish_engulfing(BULLISH_ENGULFER, BEARISH_PREV, 0.0200, MULT) is False


# ── recognize() priority ─────────────────────────────────────────────────


class TestRecognize:
    @pytest.mark.parametrize(
        "current, previous, expected",
        [
            (BULLISH_ENGULFER, BEARISH_PREV, PatternKind.BULLISH_ENGULFING),
            (BEARISH_ENGULFER, BULLISH_PREV, PatternKind.BEARISH_ENGULFING),
            (HAMMER, None, PatternKind.HAMMER),
            (SHOOTING_STAR, None, PatternKind.SHOOTING_STAR),
            (DOJI, None, PatternKind.DOJI),
        ],
    )
    def test_classification(self, current, previous, expected):
        result = recognize(current, previous, ATR, MULT, 0.1)
        assert result.kind is expected
        assert result.found is True

    def test_no_pattern(self):
        plain = _c(1.1000, 1.1030, 1.0990, 1.1025)
        result = recognize(plain, None, ATR, MULT, 0.1)
        assert result.found is False
        assert result.body == pytest.approx(0.0025)

    def test_side_filters_reversal_patterns(self):
        """A bearish-engulfing hammer reads as a hammer to a buyer only."""
        hammer_engulfer = _c(1.1010, 1.1011, 1.0960, 1.1000)
        small_bull = _c(1.1002, 1.1009, 1.1001, 1.1008)

        assert recognize(hammer_engulfer, small_bull, ATR, MULT, 0.1).kind is PatternKind.BEARISH_ENGULFING
        assert recognize(hammer_engulfer, small_bull, ATR, MULT, 0.1, side="buy").kind is PatternKind.HAMMER
        assert recognize(hammer_engulfer, small_bull, ATR, MULT, 0.1, side="sell").kind is PatternKind.BEARISH_ENGULFING
