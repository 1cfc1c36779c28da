"""Threshold evaluator and health index."""
import math

import pytest

from config.config_loader import load_config
from core.errors import ConfigError
from health.health_index import compute_health_score
from health.state_mapping import score_to_category
from health.thresholds import (
    DEFAULT_THRESHOLDS,
    Direction,
    StatusLevel,
    build_threshold_table,
    evaluate,
    evaluate_reading,
)
from raw_ingest.reading import SensorReading


@pytest.mark.parametrize(
    "parameter, value, expected",
    [
        ("vibration_rms", 2.79, StatusLevel.NORMAL),
        ("vibration_rms", 2.8, StatusLevel.WARNING),
        ("vibration_rms", 4.49, StatusLevel.WARNING),
        ("vibration_rms", 4.5, StatusLevel.CRITICAL),
        ("motor_surface_temp", 70, StatusLevel.WARNING),
        ("motor_surface_temp", 85, StatusLevel.CRITICAL),
        ("bearing_temp", 64.9, StatusLevel.NORMAL),
        ("bearing_temp", 80, StatusLevel.CRITICAL),
        ("power_factor", 0.9, StatusLevel.NORMAL),
        ("power_factor", 0.85, StatusLevel.WARNING),
        ("power_factor", 0.71, StatusLevel.WARNING),
        ("power_factor", 0.70, StatusLevel.CRITICAL),
        ("grid_voltage", 220, StatusLevel.NORMAL),
        ("grid_voltage", 242, StatusLevel.WARNING),
        ("grid_voltage", 187, StatusLevel.CRITICAL),
        ("grid_frequency", 50.2, StatusLevel.NORMAL),
        ("grid_frequency", 51.0, StatusLevel.CRITICAL),
    ],
)
def test_bounds_resolve_to_worse_band(parameter, value, expected):
    assert evaluate(parameter, value).level is expected


def test_absent_value_is_skipped_not_normal():
    assert evaluate("vibration_rms", None) is None
    assert evaluate("vibration_rms", math.nan) is None
    assert evaluate("not_a_parameter", 1.0) is None


def test_penalty_scales_with_level():
    assert evaluate("vibration_rms", 1.0).penalty == 0.0
    assert evaluate("vibration_rms", 3.0).penalty == 15.0
    assert evaluate("vibration_rms", 5.0).penalty == 30.0


def test_evaluate_is_idempotent():
    assert evaluate("bearing_temp", 72.0) == evaluate("bearing_temp", 72.0)


def test_evaluate_reading_follows_table_order():
    reading = SensorReading(power_factor=0.9, vibration_rms=1.0, bearing_temp=50)
    names = [s.parameter for s in evaluate_reading(reading)]
    assert names == ["vibration_rms", "bearing_temp", "power_factor"]


def test_default_yaml_matches_builtin_table():
    table = build_threshold_table(load_config()["thresholds"])
    assert table == DEFAULT_THRESHOLDS
    assert table["power_factor"].direction is Direction.LOW_IS_BAD


def test_inverted_bounds_rejected():
    with pytest.raises(ConfigError):
        build_threshold_table({"vibration_rms": {"normal": 4.5, "warning": 2.8}})


def test_deviation_requires_nominal():
    with pytest.raises(ConfigError):
        build_threshold_table({"grid_voltage": {"normal": 22, "warning": 33, "direction": "deviation"}})


class TestHealthIndex:
    def test_all_normal_is_healthy(self):
        reading = SensorReading(vibration_rms=1.2, bearing_temp=40, power_factor=0.92)
        result = compute_health_score(reading)

        assert result["score"] == 100.0
        assert result["category"] == "Healthy"
        assert result["parameters_evaluated"] == 3

    def test_penalties_accumulate(self):
        reading = SensorReading(vibration_rms=5.0, bearing_temp=70)
        result = compute_health_score(reading)

        assert result["score"] == 60.0
        assert result["category"] == "At Risk"
        assert [f["status"] for f in result["factors"]] == ["critical", "warning"]

    def test_score_never_negative(self):
        reading = SensorReading(
            vibration_rms=9, motor_surface_temp=99, bearing_temp=99, motor_current=30,
            grid_voltage=150, power_factor=0.3, grid_frequency=45, dust_density=900,
        )
        result = compute_health_score(reading)
        assert result["score"] == 0.0
        assert result["category"] == "Critical"

    @pytest.mark.parametrize(
        "score, category",
        [(100, "Healthy"), (80, "Healthy"), (79.9, "At Risk"), (60, "At Risk"), (59.9, "Critical"), (None, "Unknown")],
    )
    def test_category_bands(self, score, category):
        assert score_to_category(score) == category
