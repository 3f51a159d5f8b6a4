"""
Technical Snapshot Engine

Derives a fixed battery of technical metrics from a bounded OHLCV window and
classifies the result for a downstream decision process.

INDICATOR ARCHITECTURE
    Every stage is a pure function of the extracted series and an explicit
    parameter set. Stages never share intermediate state, so each one can be
    tested in isolation and the snapshot is plain composition.

    Stage 1 - MOVING AVERAGES
        - SMA at three periods (short, medium, long)
        - EMA at two periods, seeded with the SMA of the first `period` values

    Stage 2 - MOMENTUM
        - RSI with Wilder's smoothing of average gain / average loss

    Stage 3 - TREND OSCILLATOR
        - MACD line from the two exposed EMAs
        - Signal line: EMA over the MACD value of every prefix of the series

    Stage 4 - VOLATILITY BANDS
        - Bollinger middle/upper/lower (population standard deviation)
        - Position of the latest close inside the band

    Stage 5 - VOLUME
        - Volume moving average and current/average ratio

    Stage 6 - LEVELS
        - Static support/resistance over a lookback window
        - Percentage distance of the current price from each level

    Stage 7 - CLASSIFICATION
        - Short/medium/overall trend labels, MACD direction, RSI and band zones

DEGENERATE INPUT POLICY
    Normal market conditions never raise. Short history shrinks periods or
    returns configured neutral values; zero variance, zero average loss and
    zero average volume substitute configured defaults. Every substitution is
    tagged with a FallbackReason so callers can tell a computed zero from a
    default. Only an empty bar sequence yields no result (None).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ta_engine.config import (
    DEFAULT_CONFIG,
    LABELS,
    PRESETS,
    BandZone,
    FallbackReason,
    IndicatorConfig,
    LabelThresholds,
    MACDDirection,
    OverallTrend,
    RSIZone,
    TrendDirection,
    get_preset,
)
from ta_engine.market_data import (
    Bar,
    Candle,
    PriceSeries,
    bars_from_dataframe,
    extract_series,
    load_bars,
    price_change_pct,
    recent_candles,
)

# Module-level logger
logger = logging.getLogger(__name__)

# Module version
ENGINE_VERSION: str = "1.0.0"


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class IndicatorValue:
    """
    A stage output that may have been resolved to a configured default.

    ``fallback`` is None when the value was computed from the data.
    """
    value: float
    fallback: Optional[FallbackReason] = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback is not None


@dataclass(frozen=True)
class MACDResult:
    """MACD line, signal line and histogram for the latest bar."""
    line: float
    signal: float
    histogram: float
    signal_fallback: Optional[FallbackReason] = None


@dataclass(frozen=True)
class BollingerResult:
    """Bollinger Bands for the latest window."""
    upper: float
    middle: float
    lower: float
    position: float                          # (close - lower) / (upper - lower)
    position_fallback: Optional[FallbackReason] = None


@dataclass(frozen=True)
class StaticLevels:
    """Support and resistance over the lookback window."""
    resistance: float
    support: float
    fallback: Optional[FallbackReason] = None


@dataclass(frozen=True)
class TechnicalData:
    """
    Snapshot of every indicator for one computation.

    ``fallbacks`` names the fields that hold a configured default rather
    than a value computed from the data.
    """
    sma_short: float
    sma_medium: float
    sma_long: float
    ema_short: float
    ema_long: float
    macd: float
    macd_signal: float
    macd_histogram: float
    rsi: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    bb_position: float
    volume_ma: float
    volume_ratio: float
    resistance: float
    support: float
    fallbacks: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "sma_short": self.sma_short,
            "sma_medium": self.sma_medium,
            "sma_long": self.sma_long,
            "ema_short": self.ema_short,
            "ema_long": self.ema_long,
            "macd": self.macd,
            "macd_signal": self.macd_signal,
            "macd_histogram": self.macd_histogram,
            "rsi": self.rsi,
            "bb_upper": self.bb_upper,
            "bb_middle": self.bb_middle,
            "bb_lower": self.bb_lower,
            "bb_position": self.bb_position,
            "volume_ma": self.volume_ma,
            "volume_ratio": self.volume_ratio,
            "resistance": self.resistance,
            "support": self.support,
            "fallbacks": list(self.fallbacks)
        }


@dataclass(frozen=True)
class TrendAnalysis:
    """Categorical reading of a snapshot against the latest close."""
    short_term: TrendDirection
    medium_term: TrendDirection
    macd: MACDDirection
    overall: OverallTrend
    rsi_level: float
    rsi_zone: RSIZone
    band_zone: BandZone

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "short_term": self.short_term.value,
            "medium_term": self.medium_term.value,
            "macd": self.macd.value,
            "overall": self.overall.value,
            "rsi_level": self.rsi_level,
            "rsi_zone": self.rsi_zone.value,
            "band_zone": self.band_zone.value
        }


@dataclass(frozen=True)
class LevelsAnalysis:
    """
    Static and dynamic levels with the price's distance from each.

    Dynamic levels are the Bollinger bands of the same snapshot. Distances
    are percentages: room to resistance above the price, and how far the
    price sits above support.
    """
    static_resistance: float
    static_support: float
    dynamic_resistance: float
    dynamic_support: float
    price_vs_resistance: float
    price_vs_support: float
    fallbacks: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "static_resistance": self.static_resistance,
            "static_support": self.static_support,
            "dynamic_resistance": self.dynamic_resistance,
            "dynamic_support": self.dynamic_support,
            "price_vs_resistance": self.price_vs_resistance,
            "price_vs_support": self.price_vs_support,
            "fallbacks": list(self.fallbacks)
        }


@dataclass(frozen=True)
class AnalysisResult:
    """
    Complete output of one pipeline call.

    ``generated_at`` is wall-clock metadata, so two results for the same
    bars differ there; compare ``technical``, ``trend`` and ``levels``
    (or ``to_dict()`` without ``generated_at``) to check determinism.
    """
    technical: TechnicalData
    trend: TrendAnalysis
    levels: LevelsAnalysis
    price: float
    bar_count: int
    config: IndicatorConfig
    generated_at: str = field(default_factory=lambda: datetime.now().isoformat())
    version: str = ENGINE_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "price": self.price,
            "bar_count": self.bar_count,
            "preset": self.config.name,
            "config": self.config.to_dict(),
            "technical": self.technical.to_dict(),
            "trend": self.trend.to_dict(),
            "levels": self.levels.to_dict(),
            "generated_at": self.generated_at,
            "version": self.version
        }


@dataclass(frozen=True)
class MarketData:
    """
    Market state handed to a decision collaborator.

    Bundles the latest bar with the three analysis outputs and a short
    candle history.
    """
    symbol: str
    timeframe: str
    price: float
    high: float
    low: float
    volume: float
    price_change_pct: float
    timestamp: datetime
    recent_candles: List[Candle]
    technical: TechnicalData
    trend: TrendAnalysis
    levels: LevelsAnalysis

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "price": self.price,
            "high": self.high,
            "low": self.low,
            "volume": self.volume,
            "price_change_pct": self.price_change_pct,
            "timestamp": self.timestamp.isoformat(),
            "recent_candles": [c.to_dict() for c in self.recent_candles],
            "technical": self.technical.to_dict(),
            "trend": self.trend.to_dict(),
            "levels": self.levels.to_dict()
        }


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


# =============================================================================
# MOVING AVERAGES
# =============================================================================

class MovingAverages:
    """
    Simple and exponential moving averages of the latest value.

    Short history never fails: the SMA window shrinks to what is available
    and the EMA falls back to the SMA of the whole series.
    """

    @staticmethod
    def sma(values: Sequence[float], period: int) -> float:
        """
        Arithmetic mean of the last ``min(period, len(values))`` values.

        Returns 0.0 for an empty input or a non-positive period.
        """
        arr = _as_array(values)
        n = len(arr)
        if n == 0 or period <= 0:
            return 0.0
        window = min(period, n)
        return float(np.mean(arr[n - window:]))

    @staticmethod
    def ema(values: Sequence[float], period: int) -> float:
        """
        Exponential moving average of the latest value.

        EMA_t = value_t * k + EMA_(t-1) * (1 - k),  k = 2 / (period + 1)

        The recurrence is seeded with the SMA of the first ``period`` values
        and applied forward over the rest. With fewer than ``period`` values
        the result is the SMA of everything available.

        Parameters
        ----------
        values : Sequence[float]
            Values in chronological order
        period : int
            Smoothing period

        Returns
        -------
        float
            EMA after the last value (0.0 for an empty input)
        """
        arr = _as_array(values)
        n = len(arr)
        if n == 0:
            return 0.0
        if period <= 0 or n < period:
            return MovingAverages.sma(arr, n)

        multiplier = 2.0 / (period + 1)
        ema = MovingAverages.sma(arr[:period], period)
        for value in arr[period:].tolist():
            ema = value * multiplier + ema * (1 - multiplier)
        return ema

    @staticmethod
    def ema_path(values: Sequence[float], period: int) -> np.ndarray:
        """
        EMA of every prefix of ``values``.

        Entry ``i`` equals ``ema(values[:i + 1], period)`` exactly: prefixes
        shorter than ``period`` hold the SMA of the prefix, and from the
        seed onward the recurrence runs through the same operations in the
        same order as a from-scratch computation on each prefix.
        """
        arr = _as_array(values)
        n = len(arr)
        path = np.empty(n, dtype=float)
        if n == 0:
            return path
        if period <= 0:
            for i in range(n):
                path[i] = MovingAverages.sma(arr[:i + 1], i + 1)
            return path

        for i in range(min(period - 1, n)):
            path[i] = MovingAverages.sma(arr[:i + 1], i + 1)

        if n >= period:
            multiplier = 2.0 / (period + 1)
            ema = MovingAverages.sma(arr[:period], period)
            path[period - 1] = ema
            tail = arr.tolist()
            for i in range(period, n):
                ema = tail[i] * multiplier + ema * (1 - multiplier)
                path[i] = ema

        return path


# =============================================================================
# MOMENTUM
# =============================================================================

class MomentumIndicators:
    """RSI (Wilder, 1978) over the close series."""

    @staticmethod
    def calculate_rsi(
        close: Sequence[float],
        period: int = DEFAULT_CONFIG.rsi_period,
        neutral_value: float = DEFAULT_CONFIG.rsi_neutral_value,
        max_value: float = DEFAULT_CONFIG.rsi_max_value
    ) -> IndicatorValue:
        """
        Calculate Relative Strength Index using Wilder's smoothing.

        RSI = max - max / (1 + RS),  RS = Average Gain / Average Loss

        Average gain and loss are seeded with the plain mean of the first
        ``period`` changes, then smoothed with
        ``avg = (avg * (period - 1) + new) / period``.

        Parameters
        ----------
        close : Sequence[float]
            Closing prices
        period : int
            Lookback period (default: 14)
        neutral_value : float
            Returned when history is insufficient or the series is flat
        max_value : float
            Oscillator ceiling (default: 100)

        Returns
        -------
        IndicatorValue
            RSI in [0, max_value]; tagged when a neutral default was used
        """
        arr = _as_array(close)
        if len(arr) < period + 1:
            return IndicatorValue(neutral_value, FallbackReason.INSUFFICIENT_HISTORY)

        changes = np.diff(arr)
        gains = np.where(changes > 0, changes, 0.0)
        losses = np.where(changes > 0, 0.0, -changes)

        avg_gain = float(np.mean(gains[:period]))
        avg_loss = float(np.mean(losses[:period]))

        for gain, loss in zip(gains[period:].tolist(), losses[period:].tolist()):
            avg_gain = (avg_gain * (period - 1) + gain) / period
            avg_loss = (avg_loss * (period - 1) + loss) / period

        if avg_loss == 0:
            if avg_gain == 0:
                return IndicatorValue(neutral_value, FallbackReason.ZERO_LOSS_FLAT)
            return IndicatorValue(max_value)

        rs = avg_gain / avg_loss
        return IndicatorValue(max_value - max_value / (1.0 + rs))


# =============================================================================
# TREND OSCILLATOR
# =============================================================================

class TrendIndicators:
    """MACD (Appel, 1979) with a signal line over the full MACD history."""

    @staticmethod
    def calculate_macd_history(
        close: Sequence[float],
        fast: int = DEFAULT_CONFIG.macd_fast_period,
        slow: int = DEFAULT_CONFIG.macd_slow_period
    ) -> np.ndarray:
        """
        MACD value of every prefix with at least ``slow`` closes.

        Entry ``j`` is ``ema(close[:slow + j], fast) - ema(close[:slow + j], slow)``.
        Fewer than ``slow`` closes yield the single value 0.0.
        """
        arr = _as_array(close)
        if len(arr) < slow:
            return np.array([0.0])

        fast_path = MovingAverages.ema_path(arr, fast)
        slow_path = MovingAverages.ema_path(arr, slow)
        return fast_path[slow - 1:] - slow_path[slow - 1:]

    @staticmethod
    def calculate_macd(
        close: Sequence[float],
        ema_short_period: int = DEFAULT_CONFIG.ema_short_period,
        ema_long_period: int = DEFAULT_CONFIG.ema_long_period,
        fast: int = DEFAULT_CONFIG.macd_fast_period,
        slow: int = DEFAULT_CONFIG.macd_slow_period,
        signal: int = DEFAULT_CONFIG.macd_signal_period
    ) -> MACDResult:
        """
        Calculate MACD line, signal line and histogram.

        MACD = EMA(short) - EMA(long)
        Signal = EMA(MACD history, signal)
        Histogram = MACD - Signal

        Parameters
        ----------
        close : Sequence[float]
            Closing prices
        ema_short_period, ema_long_period : int
            Periods of the two exposed EMAs forming the line
        fast, slow : int
            Periods used to rebuild the MACD history
        signal : int
            Signal line period

        Returns
        -------
        MACDResult
            Latest line, signal and histogram
        """
        arr = _as_array(close)
        line = MovingAverages.ema(arr, ema_short_period) - MovingAverages.ema(arr, ema_long_period)

        history = TrendIndicators.calculate_macd_history(arr, fast, slow)
        signal_value = MovingAverages.ema(history, signal)
        fallback = FallbackReason.INSUFFICIENT_HISTORY if len(arr) < slow else None

        return MACDResult(
            line=line,
            signal=signal_value,
            histogram=line - signal_value,
            signal_fallback=fallback
        )


# =============================================================================
# VOLATILITY BANDS
# =============================================================================

class VolatilityIndicators:
    """Bollinger Bands (Bollinger, 1983) and band position."""

    @staticmethod
    def calculate_bollinger_bands(
        close: Sequence[float],
        period: int = DEFAULT_CONFIG.bb_period,
        std_dev: float = DEFAULT_CONFIG.bb_std_dev,
        min_threshold: float = DEFAULT_CONFIG.bb_min_threshold,
        default_position: float = DEFAULT_CONFIG.bb_default_position,
        upper_adjust: float = DEFAULT_CONFIG.bb_upper_adjust,
        lower_adjust: float = DEFAULT_CONFIG.bb_lower_adjust
    ) -> BollingerResult:
        """
        Calculate Bollinger Bands and the latest close's position in them.

        Middle = SMA(close, period)
        Upper  = Middle + std_dev * StdDev(close, period)
        Lower  = Middle - std_dev * StdDev(close, period)
        %B     = (close - Lower) / (Upper - Lower)

        StdDev is the population deviation over the same window as the
        middle band. A zero-width band is widened to ``middle * adjust``, which
        inverts the band (upper < lower) when the middle is negative.
        %B is not clamped; it falls back to ``default_position`` when the
        band is not wider than ``min_threshold``, tagged ZERO_BAND_WIDTH only
        when the width is exactly zero.

        Returns
        -------
        BollingerResult
            Bands and position; all zeros for an empty input
        """
        arr = _as_array(close)
        n = len(arr)
        if n == 0:
            return BollingerResult(0.0, 0.0, 0.0, default_position, FallbackReason.EMPTY_INPUT)

        window = arr[n - min(period, n):]
        middle = MovingAverages.sma(arr, period)
        std = float(np.sqrt(np.sum((window - middle) ** 2) / len(window)))

        upper = middle + std * std_dev
        lower = middle - std * std_dev

        if upper == lower:
            upper = middle * upper_adjust
            lower = middle * lower_adjust

        width = upper - lower
        if upper > lower and width > min_threshold:
            position = (float(arr[-1]) - lower) / width
            fallback = None
        else:
            position = default_position
            fallback = FallbackReason.ZERO_BAND_WIDTH if width == 0 else FallbackReason.NARROW_BAND

        return BollingerResult(
            upper=upper,
            middle=middle,
            lower=lower,
            position=position,
            position_fallback=fallback
        )


# =============================================================================
# VOLUME
# =============================================================================

class VolumeIndicators:
    """Volume moving average and relative volume."""

    @staticmethod
    def calculate_volume_ma(
        volume: Sequence[float],
        period: int = DEFAULT_CONFIG.volume_ma_period
    ) -> float:
        return MovingAverages.sma(volume, period)

    @staticmethod
    def calculate_volume_ratio(
        volume: Sequence[float],
        volume_ma: float,
        default_ratio: float = DEFAULT_CONFIG.default_volume_ratio
    ) -> IndicatorValue:
        """Current volume over its moving average, or the default when the average is zero."""
        arr = _as_array(volume)
        if len(arr) == 0:
            return IndicatorValue(default_ratio, FallbackReason.EMPTY_INPUT)
        if volume_ma <= 0:
            return IndicatorValue(default_ratio, FallbackReason.ZERO_VOLUME_AVERAGE)
        return IndicatorValue(float(arr[-1]) / volume_ma)


# =============================================================================
# LEVELS
# =============================================================================

class LevelIndicators:
    """Static support/resistance and percentage distances."""

    @staticmethod
    def calculate_support_resistance(
        high: Sequence[float],
        low: Sequence[float],
        current_price: float,
        lookback: int = DEFAULT_CONFIG.support_resistance_lookback
    ) -> StaticLevels:
        """
        Highest high and lowest low over the last ``lookback`` bars.

        The window shrinks to the available bars. An empty window collapses
        both levels onto the current price.
        """
        highs = _as_array(high)
        lows = _as_array(low)
        window = min(max(lookback, 0), len(highs), len(lows))
        if window == 0:
            return StaticLevels(current_price, current_price, FallbackReason.EMPTY_LOOKBACK)

        return StaticLevels(
            resistance=float(np.max(highs[len(highs) - window:])),
            support=float(np.min(lows[len(lows) - window:]))
        )

    @staticmethod
    def distance_to_resistance_pct(resistance: float, price: float) -> IndicatorValue:
        """Room to resistance: (resistance - price) / price * 100."""
        if price <= 0:
            return IndicatorValue(0.0, FallbackReason.NON_POSITIVE_PRICE)
        return IndicatorValue((resistance - price) / price * 100)

    @staticmethod
    def distance_to_support_pct(support: float, price: float) -> IndicatorValue:
        """Height above support: (price - support) / support * 100."""
        if support <= 0:
            return IndicatorValue(0.0, FallbackReason.NON_POSITIVE_PRICE)
        return IndicatorValue((price - support) / support * 100)

    @staticmethod
    def price_vs_average_pct(price: float, average: float) -> IndicatorValue:
        """Price relative to a moving average: (price - average) / average * 100."""
        if average <= 0:
            return IndicatorValue(0.0, FallbackReason.NON_POSITIVE_PRICE)
        return IndicatorValue((price - average) / average * 100)


# =============================================================================
# CLASSIFICATION
# =============================================================================

class TrendClassifier:
    """
    Maps snapshot values into categorical labels.

    All comparisons are strict, so every label is binary or ternary with
    no "unknown" outcome.
    """

    def __init__(self, labels: LabelThresholds = LABELS):
        self.labels = labels

    @staticmethod
    def classify_direction(price: float, average: float) -> TrendDirection:
        return TrendDirection.UP if price > average else TrendDirection.DOWN

    @staticmethod
    def classify_macd(macd: float, signal: float) -> MACDDirection:
        return MACDDirection.BULLISH if macd > signal else MACDDirection.BEARISH

    @staticmethod
    def classify_overall(short_term: TrendDirection, medium_term: TrendDirection) -> OverallTrend:
        if short_term == TrendDirection.UP and medium_term == TrendDirection.UP:
            return OverallTrend.STRONG_UP
        if short_term == TrendDirection.DOWN and medium_term == TrendDirection.DOWN:
            return OverallTrend.STRONG_DOWN
        return OverallTrend.RANGING

    def classify_rsi_zone(self, rsi: float) -> RSIZone:
        if rsi > self.labels.rsi_overbought:
            return RSIZone.OVERBOUGHT
        if rsi < self.labels.rsi_oversold:
            return RSIZone.OVERSOLD
        return RSIZone.NEUTRAL

    def classify_band_zone(self, position: float) -> BandZone:
        if position > self.labels.band_upper_zone:
            return BandZone.UPPER
        if position < self.labels.band_lower_zone:
            return BandZone.LOWER
        return BandZone.MIDDLE

    def classify(self, price: float, technical: TechnicalData) -> TrendAnalysis:
        """
        Classify a snapshot against the latest close.

        Short-term compares with the medium SMA, medium-term with the long
        SMA; the overall trend is strong only when both agree.
        """
        short_term = self.classify_direction(price, technical.sma_medium)
        medium_term = self.classify_direction(price, technical.sma_long)

        return TrendAnalysis(
            short_term=short_term,
            medium_term=medium_term,
            macd=self.classify_macd(technical.macd, technical.macd_signal),
            overall=self.classify_overall(short_term, medium_term),
            rsi_level=technical.rsi,
            rsi_zone=self.classify_rsi_zone(technical.rsi),
            band_zone=self.classify_band_zone(technical.bb_position)
        )


# =============================================================================
# PIPELINE
# =============================================================================

def _technical_from_series(series: PriceSeries, config: IndicatorConfig) -> TechnicalData:
    close = series.close
    fallbacks: List[str] = []

    ema_short = MovingAverages.ema(close, config.ema_short_period)
    ema_long = MovingAverages.ema(close, config.ema_long_period)

    macd = TrendIndicators.calculate_macd(
        close,
        ema_short_period=config.ema_short_period,
        ema_long_period=config.ema_long_period,
        fast=config.macd_fast_period,
        slow=config.macd_slow_period,
        signal=config.macd_signal_period
    )
    if macd.signal_fallback is not None:
        fallbacks.append("macd_signal")

    rsi = MomentumIndicators.calculate_rsi(
        close,
        period=config.rsi_period,
        neutral_value=config.rsi_neutral_value,
        max_value=config.rsi_max_value
    )
    if rsi.is_fallback:
        fallbacks.append("rsi")

    bands = VolatilityIndicators.calculate_bollinger_bands(
        close,
        period=config.bb_period,
        std_dev=config.bb_std_dev,
        min_threshold=config.bb_min_threshold,
        default_position=config.bb_default_position,
        upper_adjust=config.bb_upper_adjust,
        lower_adjust=config.bb_lower_adjust
    )
    if bands.position_fallback is not None:
        fallbacks.append("bb_position")

    volume_ma = VolumeIndicators.calculate_volume_ma(series.volume, config.volume_ma_period)
    volume_ratio = VolumeIndicators.calculate_volume_ratio(
        series.volume, volume_ma, config.default_volume_ratio
    )
    if volume_ratio.is_fallback:
        fallbacks.append("volume_ratio")

    levels = LevelIndicators.calculate_support_resistance(
        series.high, series.low, series.last_close, config.support_resistance_lookback
    )
    if levels.fallback is not None:
        fallbacks.extend(["resistance", "support"])

    if fallbacks:
        logger.debug(f"Fallback defaults applied ({config.name}): {', '.join(fallbacks)}")

    return TechnicalData(
        sma_short=MovingAverages.sma(close, config.sma_short_period),
        sma_medium=MovingAverages.sma(close, config.sma_medium_period),
        sma_long=MovingAverages.sma(close, config.sma_long_period),
        ema_short=ema_short,
        ema_long=ema_long,
        macd=macd.line,
        macd_signal=macd.signal,
        macd_histogram=macd.histogram,
        rsi=rsi.value,
        bb_upper=bands.upper,
        bb_middle=bands.middle,
        bb_lower=bands.lower,
        bb_position=bands.position,
        volume_ma=volume_ma,
        volume_ratio=volume_ratio.value,
        resistance=levels.resistance,
        support=levels.support,
        fallbacks=tuple(fallbacks)
    )


def calculate_technical_data(
    bars: Sequence[Bar],
    config: IndicatorConfig = DEFAULT_CONFIG
) -> Optional[TechnicalData]:
    """
    Compute the technical snapshot for a bar window.

    Parameters
    ----------
    bars : Sequence[Bar]
        Bars in ascending timestamp order
    config : IndicatorConfig
        Parameter set for this instrument

    Returns
    -------
    Optional[TechnicalData]
        Fresh snapshot, or None for an empty bar sequence
    """
    if len(bars) == 0:
        logger.debug("No bars supplied - no technical snapshot")
        return None

    logger.debug(f"Computing snapshot over {len(bars)} bars ({config.name})")
    return _technical_from_series(extract_series(bars), config)


def calculate_trend_analysis(
    bars: Sequence[Bar],
    technical: Optional[TechnicalData],
    labels: LabelThresholds = LABELS
) -> Optional[TrendAnalysis]:
    """Classify a snapshot against the latest close; None without data."""
    if len(bars) == 0 or technical is None:
        return None
    return TrendClassifier(labels).classify(bars[-1].close, technical)


def calculate_levels_analysis(
    bars: Sequence[Bar],
    technical: Optional[TechnicalData],
    config: IndicatorConfig = DEFAULT_CONFIG
) -> Optional[LevelsAnalysis]:
    """
    Static levels over the lookback window, dynamic levels from the bands.

    Returns None for an empty bar sequence or a missing snapshot.
    """
    if len(bars) == 0 or technical is None:
        return None

    price = bars[-1].close
    lookback = min(config.support_resistance_lookback, len(bars))

    if lookback == 0:
        return LevelsAnalysis(
            static_resistance=price,
            static_support=price,
            dynamic_resistance=technical.bb_upper,
            dynamic_support=technical.bb_lower,
            price_vs_resistance=0.0,
            price_vs_support=0.0,
            fallbacks=("static_resistance", "static_support")
        )

    window = extract_series(bars[len(bars) - lookback:])
    static = LevelIndicators.calculate_support_resistance(
        window.high, window.low, price, lookback
    )
    to_resistance = LevelIndicators.distance_to_resistance_pct(static.resistance, price)
    to_support = LevelIndicators.distance_to_support_pct(static.support, price)

    fallbacks = []
    if to_resistance.is_fallback:
        fallbacks.append("price_vs_resistance")
    if to_support.is_fallback:
        fallbacks.append("price_vs_support")

    return LevelsAnalysis(
        static_resistance=static.resistance,
        static_support=static.support,
        dynamic_resistance=technical.bb_upper,
        dynamic_support=technical.bb_lower,
        price_vs_resistance=to_resistance.value,
        price_vs_support=to_support.value,
        fallbacks=tuple(fallbacks)
    )


def build_market_data(
    bars: Sequence[Bar],
    config: IndicatorConfig = DEFAULT_CONFIG,
    symbol: str = "UNKNOWN",
    timeframe: str = "",
    labels: LabelThresholds = LABELS
) -> Optional[MarketData]:
    """
    Assemble the market state for a decision collaborator.

    Returns None for an empty bar sequence.
    """
    technical = calculate_technical_data(bars, config)
    if technical is None:
        return None

    current = bars[-1]
    return MarketData(
        symbol=symbol,
        timeframe=timeframe,
        price=current.close,
        high=current.high,
        low=current.low,
        volume=current.volume,
        price_change_pct=price_change_pct(bars),
        timestamp=current.timestamp,
        recent_candles=recent_candles(bars, labels.recent_candle_count),
        technical=technical,
        trend=calculate_trend_analysis(bars, technical, labels),
        levels=calculate_levels_analysis(bars, technical, config)
    )


# =============================================================================
# MAIN INDICATOR ENGINE
# =============================================================================

class TechnicalIndicatorEngine:
    """
    Binds one parameter set to one instrument's computations.

    The engine keeps no state between calls; every call recomputes from the
    full window it is given. Create one engine per instrument to tune
    instruments independently.

    Usage
    -----
    >>> engine = TechnicalIndicatorEngine(get_preset("aggressive"))
    >>> result = engine.analyze(bars)
    >>> print(result.trend.overall.value)
    """

    def __init__(
        self,
        config: IndicatorConfig = DEFAULT_CONFIG,
        labels: LabelThresholds = LABELS
    ):
        """
        Initialize the indicator engine.

        Parameters
        ----------
        config : IndicatorConfig
            Parameter set for this instrument
        labels : LabelThresholds
            Thresholds for the descriptive RSI and band labels
        """
        self.config = config
        self.labels = labels

        logger.info(f"TechnicalIndicatorEngine initialized with {config.name} preset")

    def calculate(self, bars: Sequence[Bar]) -> Optional[TechnicalData]:
        return calculate_technical_data(bars, self.config)

    def calculate_trend_analysis(
        self,
        bars: Sequence[Bar],
        technical: Optional[TechnicalData]
    ) -> Optional[TrendAnalysis]:
        return calculate_trend_analysis(bars, technical, self.labels)

    def calculate_levels_analysis(
        self,
        bars: Sequence[Bar],
        technical: Optional[TechnicalData]
    ) -> Optional[LevelsAnalysis]:
        return calculate_levels_analysis(bars, technical, self.config)

    def analyze(self, bars: Sequence[Bar]) -> Optional[AnalysisResult]:
        """
        Run the complete pipeline over a bar window.

        Returns
        -------
        Optional[AnalysisResult]
            Snapshot, trend and levels, or None for an empty bar sequence
        """
        technical = self.calculate(bars)
        if technical is None:
            logger.warning("No bars to analyze")
            return None

        return AnalysisResult(
            technical=technical,
            trend=self.calculate_trend_analysis(bars, technical),
            levels=self.calculate_levels_analysis(bars, technical),
            price=bars[-1].close,
            bar_count=len(bars),
            config=self.config
        )

    def process(self, df: pd.DataFrame) -> Optional[AnalysisResult]:
        """Run the pipeline over an OHLCV DataFrame."""
        logger.info(f"Processing {len(df)} bars of data")
        return self.analyze(bars_from_dataframe(df))

    def build_market_data(
        self,
        bars: Sequence[Bar],
        symbol: str = "UNKNOWN",
        timeframe: str = ""
    ) -> Optional[MarketData]:
        return build_market_data(bars, self.config, symbol, timeframe, self.labels)


# =============================================================================
# REPORT GENERATION
# =============================================================================

def format_indicator_report(result: AnalysisResult, symbol: str = "UNKNOWN") -> str:
    """
    Render an analysis result as a plain-text console report.

    Parameters
    ----------
    result : AnalysisResult
        Output from TechnicalIndicatorEngine.analyze()
    symbol : str
        Instrument label for the header
    """
    tech = result.technical
    trend = result.trend
    levels = result.levels
    price = result.price

    lines = [
        "=" * 70,
        "TECHNICAL SNAPSHOT REPORT",
        "=" * 70,
        f"Symbol: {symbol}",
        f"Preset: {result.config.name}",
        f"Bars: {result.bar_count}",
        f"Price: {price:.4f}",
        f"Generated: {result.generated_at}",
        f"Version: {result.version}",
        "",
        "-" * 70,
        "MOVING AVERAGES",
        "-" * 70,
    ]

    for label, period, value in (
        ("SMA", result.config.sma_short_period, tech.sma_short),
        ("SMA", result.config.sma_medium_period, tech.sma_medium),
        ("SMA", result.config.sma_long_period, tech.sma_long),
    ):
        relative = LevelIndicators.price_vs_average_pct(price, value).value
        lines.append(f"  {label} {period:>3}: {value:.4f} | price vs average: {relative:+.2f}%")
    lines.append(f"  EMA {result.config.ema_short_period:>3}: {tech.ema_short:.4f}")
    lines.append(f"  EMA {result.config.ema_long_period:>3}: {tech.ema_long:.4f}")

    lines += [
        "",
        "-" * 70,
        "TREND",
        "-" * 70,
        f"  Short-term: {trend.short_term.value}",
        f"  Medium-term: {trend.medium_term.value}",
        f"  Overall: {trend.overall.value}",
        f"  MACD direction: {trend.macd.value}",
        "",
        "-" * 70,
        "MOMENTUM & VOLATILITY",
        "-" * 70,
        f"  RSI: {tech.rsi:.2f} ({trend.rsi_zone.value})",
        f"  MACD: {tech.macd:.4f} | Signal: {tech.macd_signal:.4f} | Histogram: {tech.macd_histogram:.4f}",
        f"  Bollinger: upper {tech.bb_upper:.4f} | middle {tech.bb_middle:.4f} | lower {tech.bb_lower:.4f}",
        f"  Band position: {tech.bb_position * 100:.2f}% ({trend.band_zone.value})",
        f"  Volume MA: {tech.volume_ma:.2f} | Ratio: {tech.volume_ratio:.2f}",
        "",
        "-" * 70,
        "KEY LEVELS",
        "-" * 70,
        f"  Static resistance: {levels.static_resistance:.4f} ({levels.price_vs_resistance:+.2f}% away)",
        f"  Static support: {levels.static_support:.4f} ({levels.price_vs_support:+.2f}% above)",
        f"  Dynamic resistance: {levels.dynamic_resistance:.4f}",
        f"  Dynamic support: {levels.dynamic_support:.4f}",
    ]

    applied = list(tech.fallbacks) + list(levels.fallbacks)
    if applied:
        lines += [
            "",
            "-" * 70,
            "FALLBACK DEFAULTS",
            "-" * 70,
        ]
        lines += [f"  ! {name}" for name in applied]

    lines.append("=" * 70)
    return "\n".join(lines)


def print_indicator_report(result: AnalysisResult, symbol: str = "UNKNOWN") -> None:
    """Print a snapshot report to console."""
    print("\n" + format_indicator_report(result, symbol))


# =============================================================================
# COMMAND LINE INTERFACE
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for command-line execution.

    Returns
    -------
    int
        Exit code (0 for success, 1 for failure, 2 when the input has no bars)
    """
    import argparse

    parser = argparse.ArgumentParser(
        description="Technical Snapshot Engine"
    )
    parser.add_argument("--input", "-i", required=True,
                        help="OHLCV bars (.csv or .parquet)")
    parser.add_argument("--preset", "-p", default="default",
                        choices=sorted(PRESETS),
                        help="Indicator parameter preset (default: default)")
    parser.add_argument("--symbol", "-s", default="UNKNOWN",
                        help="Instrument label for the report")
    parser.add_argument("--timeframe", "-t", default="",
                        help="Bar timeframe label (e.g. 15m)")
    parser.add_argument("--json", "-j", default=None,
                        help="Write the analysis as JSON to this path")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        bars = load_bars(args.input)

        engine = TechnicalIndicatorEngine(get_preset(args.preset))
        result = engine.analyze(bars)
        if result is None:
            logger.error(f"No bars in {args.input} - nothing to analyze")
            return 2

        print_indicator_report(result, args.symbol)

        if args.json:
            payload = result.to_dict()
            market = engine.build_market_data(bars, args.symbol, args.timeframe)
            payload["market"] = market.to_dict()
            with open(args.json, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, default=str)
            logger.info(f"Saved analysis to {args.json}")

        return 0

    except Exception as e:
        logger.error(f"Processing failed: {e}")
        return 1


if __name__ == "__main__":
    import sys
    sys.exit(main())
