"""
Bar Model and Series Extraction

Input side of the indicator pipeline. A bar sequence arrives ordered by
ascending timestamp from a market-data collaborator; this module turns it
into the parallel numeric series the indicator stages consume.

    Bar sequence  ->  PriceSeries (close, high, low, volume)

The pipeline assumes the caller's ordering and never sorts, deduplicates or
checks for gaps. "Recent" always means "highest index".

Frame adapters follow the OHLCV DataFrame convention used across the
analysis tooling: columns Open, High, Low, Close, Volume indexed by a
DatetimeIndex.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Sequence, Union

import numpy as np
import pandas as pd

from ta_engine.config import LABELS, CandleDirection

# Module-level logger
logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

REQUIRED_COLUMNS: List[str] = ['Open', 'High', 'Low', 'Close', 'Volume']

# Column names accepted as the bar timestamp when the index is not datetime
TIMESTAMP_COLUMNS: List[str] = ['timestamp', 'date', 'datetime', 'time']


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class Bar:
    """One sampled period of market activity."""
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True, eq=False)
class PriceSeries:
    """
    Parallel numeric views of a bar sequence.

    All four arrays have the length of the source sequence and share its
    order, so index ``i`` in every array refers to the same bar.
    """
    close: np.ndarray
    high: np.ndarray
    low: np.ndarray
    volume: np.ndarray

    def __len__(self) -> int:
        return len(self.close)

    @property
    def last_close(self) -> float:
        """Most recent close."""
        return float(self.close[-1])


@dataclass(frozen=True)
class Candle:
    """Body summary of a single bar."""
    timestamp: datetime
    open: float
    close: float
    direction: CandleDirection
    change_pct: float                        # (close - open) / open * 100

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "close": self.close,
            "direction": self.direction.value,
            "change_pct": self.change_pct
        }


# =============================================================================
# SERIES EXTRACTION
# =============================================================================

def extract_series(bars: Sequence[Bar]) -> PriceSeries:
    """
    Project a bar sequence into close/high/low/volume arrays.

    Parameters
    ----------
    bars : Sequence[Bar]
        Bars in ascending timestamp order

    Returns
    -------
    PriceSeries
        float64 arrays, one entry per bar, order preserved
    """
    n = len(bars)
    close = np.empty(n, dtype=float)
    high = np.empty(n, dtype=float)
    low = np.empty(n, dtype=float)
    volume = np.empty(n, dtype=float)

    for i, bar in enumerate(bars):
        close[i] = bar.close
        high[i] = bar.high
        low[i] = bar.low
        volume[i] = bar.volume

    return PriceSeries(close=close, high=high, low=low, volume=volume)


# =============================================================================
# DATAFRAME ADAPTERS
# =============================================================================

def bars_from_dataframe(df: pd.DataFrame) -> List[Bar]:
    """
    Convert an OHLCV DataFrame into bars.

    Column names are matched case-insensitively. The timestamp comes from a
    DatetimeIndex or, failing that, from a 'timestamp'/'date' column.

    Parameters
    ----------
    df : pd.DataFrame
        OHLCV data with columns: Open, High, Low, Close, Volume

    Returns
    -------
    List[Bar]
        Bars in the frame's row order

    Raises
    ------
    ValueError
        If a required column is missing or no timestamp can be found
    """
    lookup = {str(c).lower(): c for c in df.columns}
    missing = [c for c in REQUIRED_COLUMNS if c.lower() not in lookup]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    if isinstance(df.index, pd.DatetimeIndex):
        timestamps = df.index
    else:
        ts_col = next((lookup[c] for c in TIMESTAMP_COLUMNS if c in lookup), None)
        if ts_col is None:
            raise ValueError(
                "No timestamp found: expected a DatetimeIndex or one of "
                f"{TIMESTAMP_COLUMNS} columns"
            )
        timestamps = pd.to_datetime(df[ts_col])

    opens, highs, lows, closes, volumes = (
        df[lookup[c.lower()]].astype(float).to_numpy() for c in REQUIRED_COLUMNS
    )

    bars = [
        Bar(
            timestamp=pd.Timestamp(ts).to_pydatetime(),
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            volume=float(v)
        )
        for ts, o, h, l, c, v in zip(timestamps, opens, highs, lows, closes, volumes)
    ]

    logger.debug(f"Converted {len(bars)} rows to bars")
    return bars


def bars_to_dataframe(bars: Sequence[Bar]) -> pd.DataFrame:
    """Convert bars into an OHLCV DataFrame indexed by timestamp."""
    df = pd.DataFrame(
        {
            'Open': [b.open for b in bars],
            'High': [b.high for b in bars],
            'Low': [b.low for b in bars],
            'Close': [b.close for b in bars],
            'Volume': [b.volume for b in bars],
        },
        index=pd.DatetimeIndex([b.timestamp for b in bars], name='timestamp'),
    )
    return df


def load_bars(path: Union[str, Path]) -> List[Bar]:
    """
    Read bars from a CSV or Parquet file.

    CSV files are expected to carry a timestamp column; Parquet files may
    store it as the index.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == '.csv':
        df = pd.read_csv(path)
    elif suffix in ('.parquet', '.pq'):
        df = pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported bar file format: {path.suffix!r} (use .csv or .parquet)")

    logger.info(f"Loaded {len(df)} rows from {path}")
    return bars_from_dataframe(df)


# =============================================================================
# BAR SUMMARIES
# =============================================================================

def recent_candles(
    bars: Sequence[Bar],
    count: int = LABELS.recent_candle_count
) -> List[Candle]:
    """
    Summarize the last ``count`` bars as candle bodies.

    A bar is bearish when it closes below its open, bullish otherwise.
    """
    if count <= 0:
        return []

    candles = []
    for bar in bars[-count:]:
        direction = CandleDirection.BEARISH if bar.close < bar.open else CandleDirection.BULLISH
        change = (bar.close - bar.open) / bar.open * 100 if bar.open > 0 else 0.0
        candles.append(Candle(
            timestamp=bar.timestamp,
            open=bar.open,
            close=bar.close,
            direction=direction,
            change_pct=change
        ))
    return candles


def price_change_pct(bars: Sequence[Bar]) -> float:
    """Percentage change of the last close versus the previous close."""
    if len(bars) < 2:
        return 0.0
    previous = bars[-2].close
    if previous <= 0:
        return 0.0
    return (bars[-1].close - previous) / previous * 100
