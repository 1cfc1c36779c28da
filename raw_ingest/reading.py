import logging
import math
import time
from dataclasses import dataclass, fields
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensorReading:
    """
    One telemetry snapshot of one motor.
    Every measured field is optional: None means "not reported",
    which is NOT the same as a normal value.
    """

    motor_id: str = "default"
    timestamp: float = 0.0

    grid_voltage: Optional[float] = None
    motor_current: Optional[float] = None
    power_consumption: Optional[float] = None
    power_factor: Optional[float] = None
    daily_energy_kwh: Optional[float] = None
    grid_frequency: Optional[float] = None
    vibration_rms: Optional[float] = None
    motor_surface_temp: Optional[float] = None
    bearing_temp: Optional[float] = None
    dust_density: Optional[float] = None
    health_index: Optional[float] = None

    def get(self, parameter: str) -> Optional[float]:
        return getattr(self, parameter, None)

    def present(self) -> dict:
        """Measured fields that carry a value."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name in MEASUREMENT_FIELDS and getattr(self, f.name) is not None
        }


# =========================================================
# FIELD ALIASES
# =========================================================
# interface name (collaborator) and telemetry-store key → field
FIELD_ALIASES = {
    "gridVoltage": "grid_voltage",
    "voltage": "grid_voltage",
    "motorCurrent": "motor_current",
    "current": "motor_current",
    "powerConsumption": "power_consumption",
    "power": "power_consumption",
    "powerFactor": "power_factor",
    "pf": "power_factor",
    "dailyEnergyKwh": "daily_energy_kwh",
    "energy_kwh": "daily_energy_kwh",
    "gridFrequency": "grid_frequency",
    "frequency": "grid_frequency",
    "vibrationRms": "vibration_rms",
    "vibration_rms_mm_s": "vibration_rms",
    "motorSurfaceTemp": "motor_surface_temp",
    "motor_temp": "motor_surface_temp",
    "bearingTemp": "bearing_temp",
    "dustDensity": "dust_density",
    "dust": "dust_density",
    "healthIndex": "health_index",
}

MEASUREMENT_FIELDS = (
    "grid_voltage",
    "motor_current",
    "power_consumption",
    "power_factor",
    "daily_energy_kwh",
    "grid_frequency",
    "vibration_rms",
    "motor_surface_temp",
    "bearing_temp",
    "dust_density",
    "health_index",
)


def _to_float(key, raw):
    if raw is None:
        return None

    if isinstance(raw, bool):
        logger.warning(f"[Ingest] Ignoring boolean value for {key}")
        return None

    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning(f"[Ingest] Ignoring non-numeric {key}={raw!r}")
        return None

    if not math.isfinite(value):
        logger.warning(f"[Ingest] Ignoring non-finite {key}={raw!r}")
        return None

    return value


def parse_reading(payload: dict, motor_id: str = None) -> SensorReading:
    """
    Build a SensorReading from a telemetry payload.

    Accepts both the collaborator field names (camelCase) and the
    raw telemetry-store keys. A malformed field degrades to absent;
    the reading itself is never rejected for one bad field.
    """
    if not isinstance(payload, dict):
        raise TypeError(f"Reading payload must be a mapping, got {type(payload).__name__}")

    values = {}

    for key, raw in payload.items():
        name = FIELD_ALIASES.get(key, key)
        if name not in MEASUREMENT_FIELDS:
            continue

        value = _to_float(key, raw)
        if value is None:
            continue

        # aliases of one field: the first key in payload order wins
        values.setdefault(name, value)

    ts = _to_float("timestamp", payload.get("timestamp"))
    if ts is None:
        ts = time.time()
    elif ts > 1e12:
        # store writes milliseconds
        ts = ts / 1000.0

    return SensorReading(
        motor_id=str(motor_id or payload.get("motorId") or payload.get("motor_id") or "default"),
        timestamp=ts,
        **values,
    )
