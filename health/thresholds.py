"""
Threshold evaluation.

Maps one parameter value to NORMAL / WARNING / CRITICAL and a penalty.
Stateless: every call recomputes from the value and the table.

Tie-break: a value sitting exactly on a bound belongs to the worse band.
"""

import math
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.errors import ConfigError


class StatusLevel(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class Direction(Enum):
    HIGH_IS_BAD = "high"
    LOW_IS_BAD = "low"
    DEVIATION = "deviation"


@dataclass(frozen=True)
class ThresholdRule:
    normal_bound: float
    warning_bound: float
    direction: Direction = Direction.HIGH_IS_BAD
    weight: float = 0.0
    nominal: Optional[float] = None

    def measure(self, value: float) -> float:
        if self.direction is Direction.DEVIATION:
            return abs(value - self.nominal)
        return value


@dataclass(frozen=True)
class ParameterStatus:
    parameter: str
    value: float
    level: StatusLevel
    penalty: float


# =========================================================
# DEFAULT TABLE
# =========================================================
DEFAULT_THRESHOLDS = OrderedDict(
    [
        ("vibration_rms", ThresholdRule(2.8, 4.5, Direction.HIGH_IS_BAD, 30)),
        ("motor_surface_temp", ThresholdRule(70, 85, Direction.HIGH_IS_BAD, 15)),
        ("bearing_temp", ThresholdRule(65, 80, Direction.HIGH_IS_BAD, 20)),
        ("motor_current", ThresholdRule(10, 15, Direction.HIGH_IS_BAD, 10)),
        ("grid_voltage", ThresholdRule(22, 33, Direction.DEVIATION, 5, nominal=220)),
        ("power_factor", ThresholdRule(0.85, 0.70, Direction.LOW_IS_BAD, 10)),
        ("grid_frequency", ThresholdRule(0.5, 1.0, Direction.DEVIATION, 5, nominal=50)),
        ("dust_density", ThresholdRule(150, 300, Direction.HIGH_IS_BAD, 5)),
    ]
)


def classify(value: float, rule: ThresholdRule) -> StatusLevel:
    x = rule.measure(value)

    if rule.direction is Direction.LOW_IS_BAD:
        if x <= rule.warning_bound:
            return StatusLevel.CRITICAL
        if x <= rule.normal_bound:
            return StatusLevel.WARNING
        return StatusLevel.NORMAL

    if x >= rule.warning_bound:
        return StatusLevel.CRITICAL
    if x >= rule.normal_bound:
        return StatusLevel.WARNING
    return StatusLevel.NORMAL


def penalty_for(level: StatusLevel, rule: ThresholdRule) -> float:
    if level is StatusLevel.CRITICAL:
        return float(rule.weight)
    if level is StatusLevel.WARNING:
        return rule.weight / 2.0
    return 0.0


def evaluate(parameter: str, value, table=DEFAULT_THRESHOLDS) -> Optional[ParameterStatus]:
    """
    Evaluate one parameter.
    Returns None when the value is absent / non-finite or the
    parameter is not in the table (skip, never default to normal).
    """
    if value is None:
        return None

    rule = table.get(parameter)
    if rule is None:
        return None

    value = float(value)
    if not math.isfinite(value):
        return None

    level = classify(value, rule)
    return ParameterStatus(
        parameter=parameter,
        value=value,
        level=level,
        penalty=penalty_for(level, rule),
    )


def evaluate_reading(reading, table=DEFAULT_THRESHOLDS) -> list:
    """All present parameters of a reading, in table order."""
    statuses = []
    for parameter in table:
        status = evaluate(parameter, reading.get(parameter), table)
        if status is not None:
            statuses.append(status)
    return statuses


# =========================================================
# CONFIG
# =========================================================
def build_threshold_table(section: dict) -> "OrderedDict[str, ThresholdRule]":
    """
    Build an ordered table from the `thresholds` config section.
    Order in the YAML file is kept.
    """
    if not section:
        return OrderedDict(DEFAULT_THRESHOLDS)

    table = OrderedDict()

    for parameter, entry in section.items():
        try:
            direction = Direction(entry.get("direction", "high"))
            rule = ThresholdRule(
                normal_bound=float(entry["normal"]),
                warning_bound=float(entry["warning"]),
                direction=direction,
                weight=float(entry.get("weight", 0.0)),
                nominal=(
                    float(entry["nominal"]) if entry.get("nominal") is not None else None
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid threshold for {parameter}: {e}") from e

        if direction is Direction.DEVIATION and rule.nominal is None:
            raise ConfigError(f"Threshold {parameter}: deviation needs a nominal value")

        if direction is Direction.LOW_IS_BAD:
            ordered = rule.warning_bound < rule.normal_bound
        else:
            ordered = rule.normal_bound < rule.warning_bound
        if not ordered:
            raise ConfigError(
                f"Threshold {parameter}: warning bound must be worse than normal bound"
            )

        table[parameter] = rule

    return table
