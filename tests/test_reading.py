"""Telemetry payload parsing and topic routing."""
import pytest

from raw_ingest.reading import SensorReading, parse_reading
from raw_ingest.telemetry_listener import TelemetryListener


def test_interface_field_names():
    reading = parse_reading(
        {"motorId": "M7", "vibrationRms": 5.0, "motorSurfaceTemp": 60, "powerFactor": "0.88"}
    )

    assert reading.motor_id == "M7"
    assert reading.vibration_rms == 5.0
    assert reading.motor_surface_temp == 60.0
    assert reading.power_factor == 0.88
    assert reading.bearing_temp is None


def test_store_keys_are_accepted():
    reading = parse_reading({"vibration_rms_mm_s": 3.1, "motor_temp": 55, "pf": 0.8, "dust": 120})

    assert reading.vibration_rms == 3.1
    assert reading.motor_surface_temp == 55.0
    assert reading.power_factor == 0.8
    assert reading.dust_density == 120.0


def test_malformed_field_degrades_to_absent():
    reading = parse_reading({"vibrationRms": "n/a", "bearingTemp": float("inf"), "gridVoltage": True})

    assert reading.vibration_rms is None
    assert reading.bearing_temp is None
    assert reading.grid_voltage is None


def test_first_alias_in_payload_order_wins():
    assert parse_reading({"vibration_rms_mm_s": 1.0, "vibrationRms": 2.0}).vibration_rms == 1.0
    assert parse_reading({"vibrationRms": 2.0, "vibration_rms_mm_s": 1.0}).vibration_rms == 2.0


def test_millisecond_timestamp_normalized():
    reading = parse_reading({"timestamp": 1_700_000_000_000})
    assert reading.timestamp == 1_700_000_000.0


def test_reading_is_immutable():
    reading = SensorReading(vibration_rms=1.0)
    with pytest.raises(AttributeError):
        reading.vibration_rms = 2.0


def test_present_lists_only_reported_fields():
    assert SensorReading(vibration_rms=1.0, health_index=90).present() == {
        "vibration_rms": 1.0,
        "health_index": 90,
    }


class TestTelemetryListener:
    def test_motor_id_from_topic(self):
        got = []
        listener = TelemetryListener("mechasense/telemetry/#", got.append)

        assert listener.on_message("mechasense/telemetry/PUMP_2", {"vibrationRms": 1.0}) is True
        assert got[0].motor_id == "PUMP_2"

    def test_other_topics_ignored(self):
        got = []
        listener = TelemetryListener("mechasense/telemetry/#", got.append)

        assert listener.on_message("plc/cp2e/status", {"W1": 1}) is False
        assert got == []

    def test_non_mapping_payload_dropped(self):
        got = []
        listener = TelemetryListener("mechasense/telemetry/#", got.append)

        assert listener.on_message("mechasense/telemetry/M1", [1, 2, 3]) is False
        assert got == []
