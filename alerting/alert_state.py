# alerting/alert_state.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from health.thresholds import DEFAULT_THRESHOLDS, StatusLevel, evaluate

# Fixed evaluation order. The first critical parameter found here is the
# one reported with the alert.
ALERT_PARAMETERS = (
    "vibration_rms",
    "motor_surface_temp",
    "bearing_temp",
    "motor_current",
    "grid_voltage",
    "power_factor",
    "dust_density",
)

HEALTH_INDEX = "health_index"


class SideEffect(Enum):
    NONE = "none"
    SEND_ON = "send_on"
    SEND_OFF = "send_off"


@dataclass
class AlertState:
    """
    Per-machine latch + cooldown.
    is_latched_critical == True  ⇒  ON sent, OFF not yet sent.
    """

    cooldown_window: float = 30.0
    last_alert_timestamp: Optional[float] = None
    is_latched_critical: bool = False

    def snapshot(self):
        return (self.last_alert_timestamp, self.is_latched_critical)

    def restore(self, snap):
        self.last_alert_timestamp, self.is_latched_critical = snap


@dataclass
class AlertDecision:
    side_effect: SideEffect = SideEffect.NONE
    critical: bool = False
    parameter: Optional[str] = None
    value: Optional[float] = None
    reasons: list = field(default_factory=list)
    suppressed_by: Optional[str] = None


def detect_critical(reading, table=DEFAULT_THRESHOLDS, health_threshold=60.0) -> AlertDecision:
    """
    Find critical conditions without touching any state.
    Health index wins the "most severe" slot; otherwise the first
    critical parameter in ALERT_PARAMETERS order.
    """
    decision = AlertDecision()

    health = reading.get(HEALTH_INDEX)
    if health is not None and health < health_threshold:
        decision.reasons.append(f"Health Index: {health:.1f}%")
        decision.parameter = HEALTH_INDEX
        decision.value = health

    for parameter in ALERT_PARAMETERS:
        status = evaluate(parameter, reading.get(parameter), table)
        if status is None or status.level is not StatusLevel.CRITICAL:
            continue

        decision.reasons.append(f"{parameter}: {status.value}")
        if decision.parameter is None:
            decision.parameter = parameter
            decision.value = status.value

    decision.critical = bool(decision.reasons)
    return decision


def evaluate_alert(reading, table, health_threshold, state: AlertState, now: float) -> AlertDecision:
    """
    One dispatcher step. Mutates `state`, returns the side effect.

    critical & latched              → NONE (no duplicate ON)
    critical & inside cooldown      → NONE (rate limit)
    critical                        → SEND_ON, latch, stamp
    not critical & latched          → SEND_OFF, clear latch
    """
    decision = detect_critical(reading, table, health_threshold)

    if decision.critical:
        if state.is_latched_critical:
            decision.suppressed_by = "latched"
            return decision

        if (
            state.last_alert_timestamp is not None
            and now - state.last_alert_timestamp < state.cooldown_window
        ):
            decision.suppressed_by = "cooldown"
            return decision

        state.is_latched_critical = True
        state.last_alert_timestamp = now
        decision.side_effect = SideEffect.SEND_ON
        return decision

    if state.is_latched_critical:
        state.is_latched_critical = False
        decision.side_effect = SideEffect.SEND_OFF

    return decision
