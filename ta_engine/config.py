"""
Configuration Module for the Technical Snapshot Engine

This module centralizes the indicator parameter sets, named presets, label
thresholds and enumerations used throughout the indicator pipeline.

All "magic numbers" are defined here to ensure:
1. Single source of truth for periods, multipliers and fallback defaults
2. Independent tuning per instrument (one parameter set per instrument)
3. Transparency in assumptions and thresholds
4. Consistency across all modules

A parameter set is immutable once constructed. The same instance may be read
by any number of concurrent computations.
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, List, Mapping


# =============================================================================
# ENUMERATIONS
# =============================================================================

class TrendDirection(Enum):
    """Price position relative to a moving average."""
    UP = "up"
    DOWN = "down"


class MACDDirection(Enum):
    """MACD line relative to its signal line."""
    BULLISH = "bullish"
    BEARISH = "bearish"


class OverallTrend(Enum):
    """Composite of the short-term and medium-term directions."""
    STRONG_UP = "strong up"
    STRONG_DOWN = "strong down"
    RANGING = "ranging"


class RSIZone(Enum):
    """Descriptive RSI level."""
    OVERBOUGHT = "overbought"
    OVERSOLD = "oversold"
    NEUTRAL = "neutral"


class BandZone(Enum):
    """Descriptive position inside the Bollinger band."""
    UPPER = "upper"
    MIDDLE = "middle"
    LOWER = "lower"


class CandleDirection(Enum):
    """Body direction of a single bar."""
    BULLISH = "bullish"
    BEARISH = "bearish"


class FallbackReason(Enum):
    """Why a stage substituted a configured default for a computed value."""
    EMPTY_INPUT = "empty_input"
    INSUFFICIENT_HISTORY = "insufficient_history"
    ZERO_LOSS_FLAT = "zero_loss_flat"
    ZERO_BAND_WIDTH = "zero_band_width"
    NARROW_BAND = "narrow_band"
    ZERO_VOLUME_AVERAGE = "zero_volume_average"
    EMPTY_LOOKBACK = "empty_lookback"
    NON_POSITIVE_PRICE = "non_positive_price"


# =============================================================================
# INDICATOR PARAMETER SET
# =============================================================================

# Fields that must be at least 1 (lookback may be 0)
_PERIOD_FIELDS: List[str] = [
    "sma_short_period",
    "sma_medium_period",
    "sma_long_period",
    "ema_short_period",
    "ema_long_period",
    "macd_fast_period",
    "macd_slow_period",
    "macd_signal_period",
    "rsi_period",
    "bb_period",
    "volume_ma_period",
]

# Fields that must be real numbers (bool excluded)
_NUMERIC_FIELDS: List[str] = [
    "rsi_neutral_value",
    "rsi_max_value",
    "bb_std_dev",
    "bb_min_threshold",
    "bb_default_position",
    "bb_upper_adjust",
    "bb_lower_adjust",
    "default_volume_ratio",
]


@dataclass(frozen=True)
class IndicatorConfig:
    """
    Periods, multipliers and fallback defaults for one instrument.

    Defaults are the industry-standard parameters used by the "default"
    preset. Construct custom sets with ``from_dict`` or ``with_overrides``.
    """

    name: str = "custom"

    # Simple moving averages
    sma_short_period: int = 5
    sma_medium_period: int = 20     # short-term trend reference
    sma_long_period: int = 50       # medium-term trend reference

    # Exponential moving averages (also form the MACD line)
    ema_short_period: int = 12
    ema_long_period: int = 26

    # MACD history and signal line
    macd_fast_period: int = 12
    macd_slow_period: int = 26
    macd_signal_period: int = 9

    # RSI
    rsi_period: int = 14
    rsi_neutral_value: float = 50.0   # returned when history is insufficient
    rsi_max_value: float = 100.0

    # Bollinger Bands
    bb_period: int = 20
    bb_std_dev: float = 2.0
    bb_min_threshold: float = 0.0001  # minimum band width for a position
    bb_default_position: float = 0.5  # centered
    bb_upper_adjust: float = 1.001
    bb_lower_adjust: float = 0.999

    # Volume
    volume_ma_period: int = 20
    default_volume_ratio: float = 1.0

    # Support / resistance
    support_resistance_lookback: int = 20

    def __post_init__(self):
        """Reject invalid parameter sets at construction."""
        self.validate()

    def validate(self) -> None:
        """
        Check every field against its allowed range.

        Raises
        ------
        ValueError
            Listing every offending field
        """
        problems = []
        for field_name in _PERIOD_FIELDS:
            value = getattr(self, field_name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                problems.append(f"{field_name} must be an integer >= 1 (got {value!r})")

        lookback = self.support_resistance_lookback
        if not isinstance(lookback, int) or isinstance(lookback, bool) or lookback < 0:
            problems.append(
                f"support_resistance_lookback must be an integer >= 0 (got {lookback!r})"
            )

        bad_numbers = set()
        for field_name in _NUMERIC_FIELDS:
            value = getattr(self, field_name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                problems.append(f"{field_name} must be a number (got {value!r})")
                bad_numbers.add(field_name)

        def number_ok(*names: str) -> bool:
            return not bad_numbers.intersection(names)

        if number_ok("bb_std_dev") and self.bb_std_dev < 0:
            problems.append(f"bb_std_dev must be >= 0 (got {self.bb_std_dev})")
        if number_ok("bb_min_threshold") and self.bb_min_threshold < 0:
            problems.append(f"bb_min_threshold must be >= 0 (got {self.bb_min_threshold})")
        if number_ok("rsi_max_value") and self.rsi_max_value <= 0:
            problems.append(f"rsi_max_value must be > 0 (got {self.rsi_max_value})")
        if number_ok("rsi_neutral_value", "rsi_max_value") and not (
            0 <= self.rsi_neutral_value <= self.rsi_max_value
        ):
            problems.append(
                f"rsi_neutral_value must be within [0, rsi_max_value] (got {self.rsi_neutral_value})"
            )

        if problems:
            raise ValueError("Invalid indicator config: " + "; ".join(problems))

    def with_overrides(self, **changes: Any) -> "IndicatorConfig":
        """Return a new validated parameter set with the given fields replaced."""
        _check_known_fields(changes)
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "IndicatorConfig":
        """
        Build a custom parameter set on top of the default preset.

        Args:
            values: Field name to value; unspecified fields keep their defaults

        Returns:
            Validated IndicatorConfig
        """
        _check_known_fields(values)
        return cls(**dict(values))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def _check_known_fields(values: Mapping[str, Any]) -> None:
    known = {f.name for f in fields(IndicatorConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown indicator config fields: {unknown}")


# =============================================================================
# LABEL THRESHOLDS
# =============================================================================

@dataclass(frozen=True)
class LabelThresholds:
    """Thresholds for the descriptive labels handed to downstream consumers."""

    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0

    # Bollinger position zones on the [0, 1] band scale
    band_upper_zone: float = 0.7
    band_lower_zone: float = 0.3

    # Bars summarized in the recent-candle view
    recent_candle_count: int = 5


# =============================================================================
# NAMED PRESETS
# =============================================================================

# Industry-standard parameters, suitable for most timeframes
DEFAULT_CONFIG = IndicatorConfig(name="default")

# Short-horizon trading: shorter periods, more sensitive to recent moves
AGGRESSIVE_CONFIG = IndicatorConfig(
    name="aggressive",
    sma_short_period=3,
    sma_medium_period=10,
    sma_long_period=30,
    rsi_period=10,
    bb_period=15,
    volume_ma_period=15,
    support_resistance_lookback=15,
)

# Long-horizon trading: longer periods and a wider band to filter noise
CONSERVATIVE_CONFIG = IndicatorConfig(
    name="conservative",
    sma_short_period=10,
    sma_medium_period=30,
    sma_long_period=100,
    rsi_period=21,
    bb_period=30,
    bb_std_dev=2.5,
    volume_ma_period=30,
    support_resistance_lookback=30,
)

PRESETS: Dict[str, IndicatorConfig] = {
    "default": DEFAULT_CONFIG,
    "aggressive": AGGRESSIVE_CONFIG,
    "conservative": CONSERVATIVE_CONFIG,
}

LABELS = LabelThresholds()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_preset(name: str) -> IndicatorConfig:
    """
    Look up a named preset.

    Args:
        name: One of 'default', 'aggressive', 'conservative' (any case)

    Returns:
        The shared, immutable preset instance

    Raises:
        ValueError: If the name is not a known preset
    """
    key = name.strip().lower()
    if key not in PRESETS:
        raise ValueError(
            f"Unknown preset {name!r} (available: {', '.join(sorted(PRESETS))})"
        )
    return PRESETS[key]
