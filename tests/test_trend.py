import numpy as np
import pytest

from ta_engine.config import FallbackReason
from ta_engine.technical_indicators import MovingAverages, TrendIndicators


def naive_macd_history(close, fast, slow):
    """Recompute the MACD of every prefix from scratch."""
    if len(close) < slow:
        return [0.0]
    return [
        MovingAverages.ema(close[:i], fast) - MovingAverages.ema(close[:i], slow)
        for i in range(slow, len(close) + 1)
    ]


@pytest.fixture
def noisy_closes():
    rng = np.random.default_rng(11)
    return 100 + np.cumsum(rng.normal(0, 1, 90))


def test_history_is_single_zero_below_slow_period():
    history = TrendIndicators.calculate_macd_history([1.0] * 25, fast=12, slow=26)
    assert history.tolist() == [0.0]


def test_history_length(noisy_closes):
    history = TrendIndicators.calculate_macd_history(noisy_closes, fast=12, slow=26)
    assert len(history) == len(noisy_closes) - 26 + 1


def test_history_matches_prefix_recompute_exactly(noisy_closes):
    history = TrendIndicators.calculate_macd_history(noisy_closes, fast=12, slow=26)
    assert history.tolist() == naive_macd_history(noisy_closes, 12, 26)


def test_history_with_fast_longer_than_slow(noisy_closes):
    closes = noisy_closes[:20]
    history = TrendIndicators.calculate_macd_history(closes, fast=9, slow=4)
    assert history.tolist() == naive_macd_history(closes, 9, 4)


def test_short_series_signal_is_zero_and_tagged():
    closes = [float(c) for c in range(1, 11)]
    result = TrendIndicators.calculate_macd(closes)
    assert result.signal == 0.0
    assert result.signal_fallback == FallbackReason.INSUFFICIENT_HISTORY
    # line still uses the bootstrapped EMAs
    expected_line = MovingAverages.ema(closes, 12) - MovingAverages.ema(closes, 26)
    assert result.line == expected_line
    assert result.histogram == result.line


def test_histogram_is_line_minus_signal(noisy_closes):
    result = TrendIndicators.calculate_macd(noisy_closes)
    assert result.signal_fallback is None
    assert result.histogram == result.line - result.signal


def test_line_uses_exposed_ema_periods(noisy_closes):
    result = TrendIndicators.calculate_macd(noisy_closes, ema_short_period=5, ema_long_period=35)
    expected = MovingAverages.ema(noisy_closes, 5) - MovingAverages.ema(noisy_closes, 35)
    assert result.line == expected


def test_signal_is_ema_of_history(noisy_closes):
    result = TrendIndicators.calculate_macd(noisy_closes)
    history = naive_macd_history(noisy_closes, 12, 26)
    assert result.signal == MovingAverages.ema(history, 9)


def test_constant_series_has_flat_macd():
    result = TrendIndicators.calculate_macd([50.0] * 60)
    assert result.line == pytest.approx(0.0)
    assert result.signal == pytest.approx(0.0)
    assert result.histogram == pytest.approx(0.0)
