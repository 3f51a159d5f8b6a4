import pytest
import numpy as np
from datetime import datetime, timedelta

from ta_engine.market_data import Bar
from ta_engine.technical_indicators import TechnicalData


def bars_from_closes(closes, highs=None, lows=None, volumes=None, opens=None):
    """Build bars one minute apart; high/low default to the close +/- 1."""
    start = datetime(2024, 1, 1, 9, 15)
    n = len(closes)
    highs = highs if highs is not None else [c + 1.0 for c in closes]
    lows = lows if lows is not None else [c - 1.0 for c in closes]
    volumes = volumes if volumes is not None else [1000.0] * n
    opens = opens if opens is not None else list(closes)
    return [
        Bar(start + timedelta(minutes=i), opens[i], highs[i], lows[i], closes[i], volumes[i])
        for i in range(n)
    ]


@pytest.fixture
def make_bars():
    return bars_from_closes


@pytest.fixture
def random_walk_bars():
    rng = np.random.default_rng(1234)
    closes = 100 * np.exp(np.cumsum(rng.normal(0, 0.01, 150)))
    highs = closes * (1 + np.abs(rng.normal(0, 0.003, 150)))
    lows = closes * (1 - np.abs(rng.normal(0, 0.003, 150)))
    volumes = rng.lognormal(8.0, 0.5, 150)
    return bars_from_closes(closes.tolist(), highs.tolist(), lows.tolist(), volumes.tolist())


@pytest.fixture
def make_technical():
    def _make(**overrides):
        values = dict(
            sma_short=0.0, sma_medium=0.0, sma_long=0.0,
            ema_short=0.0, ema_long=0.0,
            macd=0.0, macd_signal=0.0, macd_histogram=0.0,
            rsi=50.0,
            bb_upper=0.0, bb_middle=0.0, bb_lower=0.0, bb_position=0.5,
            volume_ma=0.0, volume_ratio=1.0,
            resistance=0.0, support=0.0,
        )
        values.update(overrides)
        return TechnicalData(**values)
    return _make
