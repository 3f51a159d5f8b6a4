import dataclasses

import pytest

from ta_engine.config import (
    AGGRESSIVE_CONFIG,
    CONSERVATIVE_CONFIG,
    DEFAULT_CONFIG,
    IndicatorConfig,
    get_preset,
)


def test_default_preset_values():
    cfg = DEFAULT_CONFIG
    assert (cfg.sma_short_period, cfg.sma_medium_period, cfg.sma_long_period) == (5, 20, 50)
    assert (cfg.ema_short_period, cfg.ema_long_period) == (12, 26)
    assert (cfg.macd_fast_period, cfg.macd_slow_period, cfg.macd_signal_period) == (12, 26, 9)
    assert cfg.rsi_period == 14
    assert cfg.rsi_neutral_value == 50.0
    assert cfg.rsi_max_value == 100.0
    assert cfg.bb_period == 20
    assert cfg.bb_std_dev == 2.0
    assert cfg.bb_min_threshold == 0.0001
    assert cfg.bb_default_position == 0.5
    assert (cfg.bb_upper_adjust, cfg.bb_lower_adjust) == (1.001, 0.999)
    assert cfg.volume_ma_period == 20
    assert cfg.default_volume_ratio == 1.0
    assert cfg.support_resistance_lookback == 20


def test_aggressive_preset_is_shorter():
    cfg = AGGRESSIVE_CONFIG
    assert (cfg.sma_short_period, cfg.sma_medium_period, cfg.sma_long_period) == (3, 10, 30)
    assert cfg.rsi_period == 10
    assert cfg.bb_period == 15
    assert cfg.volume_ma_period == 15
    assert cfg.support_resistance_lookback == 15
    assert cfg.bb_std_dev == 2.0


def test_conservative_preset_is_longer_and_wider():
    cfg = CONSERVATIVE_CONFIG
    assert (cfg.sma_short_period, cfg.sma_medium_period, cfg.sma_long_period) == (10, 30, 100)
    assert cfg.rsi_period == 21
    assert cfg.bb_period == 30
    assert cfg.bb_std_dev == 2.5
    assert cfg.volume_ma_period == 30
    assert cfg.support_resistance_lookback == 30


def test_config_is_immutable():
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_CONFIG.rsi_period = 7


def test_get_preset_is_case_insensitive():
    assert get_preset("Aggressive") is AGGRESSIVE_CONFIG
    assert get_preset(" conservative ") is CONSERVATIVE_CONFIG
    assert get_preset("default").name == "default"


def test_get_preset_unknown_name():
    with pytest.raises(ValueError, match="Unknown preset"):
        get_preset("scalper")


def test_with_overrides_returns_new_instance():
    custom = DEFAULT_CONFIG.with_overrides(rsi_period=7, name="fast-rsi")
    assert custom.rsi_period == 7
    assert custom.name == "fast-rsi"
    assert DEFAULT_CONFIG.rsi_period == 14


def test_with_overrides_rejects_unknown_field():
    with pytest.raises(ValueError, match="Unknown indicator config fields"):
        DEFAULT_CONFIG.with_overrides(rsi_len=7)


def test_from_dict_builds_on_defaults():
    custom = IndicatorConfig.from_dict({"bb_period": 10, "bb_std_dev": 1.5})
    assert custom.bb_period == 10
    assert custom.bb_std_dev == 1.5
    assert custom.rsi_period == DEFAULT_CONFIG.rsi_period


def test_invalid_periods_are_rejected():
    with pytest.raises(ValueError) as excinfo:
        IndicatorConfig(rsi_period=0, bb_period=-3)
    message = str(excinfo.value)
    assert "rsi_period" in message
    assert "bb_period" in message


def test_zero_lookback_is_allowed():
    assert IndicatorConfig(support_resistance_lookback=0).support_resistance_lookback == 0


def test_negative_multiplier_is_rejected():
    with pytest.raises(ValueError, match="bb_std_dev"):
        IndicatorConfig(bb_std_dev=-1.0)


@pytest.mark.parametrize("neutral", [150.0, -1.0])
def test_rsi_neutral_outside_range_is_rejected(neutral):
    with pytest.raises(ValueError, match="rsi_neutral_value"):
        DEFAULT_CONFIG.with_overrides(rsi_neutral_value=neutral)


def test_rsi_neutral_at_bounds_is_allowed():
    assert DEFAULT_CONFIG.with_overrides(rsi_neutral_value=0.0).rsi_neutral_value == 0.0
    assert DEFAULT_CONFIG.with_overrides(rsi_neutral_value=100.0).rsi_neutral_value == 100.0


def test_non_numeric_values_raise_value_error():
    with pytest.raises(ValueError, match="bb_std_dev must be a number"):
        IndicatorConfig.from_dict({"bb_std_dev": "2.0"})


def test_every_non_numeric_field_is_listed():
    with pytest.raises(ValueError) as excinfo:
        IndicatorConfig.from_dict({"bb_default_position": None, "rsi_max_value": "100", "bb_upper_adjust": True})
    message = str(excinfo.value)
    assert "bb_default_position" in message
    assert "rsi_max_value" in message
    assert "bb_upper_adjust" in message


def test_to_dict_round_trips_through_from_dict():
    values = AGGRESSIVE_CONFIG.to_dict()
    assert IndicatorConfig.from_dict(values) == AGGRESSIVE_CONFIG
