import logging
import threading
import time

from alerting.alert_state import AlertState, SideEffect, evaluate_alert
from health.thresholds import DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """
    Alert Dispatcher
    ================
    Reading → latched ON / OFF actuator command.

    - One AlertState per motor, one shared actuator
    - ON is published when the first motor latches, OFF when the
      last latched motor recovers
    - Decision + publish run under one lock
    - Failed publish rolls the motor's state back, so the latch only
      reflects commands the broker acknowledged
    - Clock is injectable (cooldown is wall-clock based)
    """

    def __init__(
        self,
        publisher,
        table=DEFAULT_THRESHOLDS,
        health_threshold=60.0,
        cooldown_sec=30.0,
        enabled=True,
        clock=time.time,
    ):
        self.publisher = publisher
        self.table = table
        self.health_threshold = health_threshold
        self.cooldown_sec = cooldown_sec
        self.enabled = enabled
        self._clock = clock

        self._states = {}
        self._lock = threading.RLock()

        self.last_alert = None
        self.metrics = {
            "readings": 0,
            "on_sent": 0,
            "off_sent": 0,
            "publish_failed": 0,
            "suppressed": 0,
        }

    @classmethod
    def from_config(cls, publisher, table, config: dict, clock=time.time):
        alert = config.get("alert", {})
        return cls(
            publisher,
            table=table,
            health_threshold=float(alert.get("critical_health_threshold", 60)),
            cooldown_sec=float(alert.get("cooldown_sec", 30)),
            enabled=bool(alert.get("enabled", True)),
            clock=clock,
        )

    # =========================================================
    # INTERNAL
    # =========================================================
    def state_for(self, motor_id) -> AlertState:
        with self._lock:
            if motor_id not in self._states:
                self._states[motor_id] = AlertState(cooldown_window=self.cooldown_sec)
            return self._states[motor_id]

    def latched_motors(self) -> list:
        with self._lock:
            return [m for m, s in self._states.items() if s.is_latched_critical]

    def _others_latched(self, motor_id) -> bool:
        return any(m != motor_id for m in self.latched_motors())

    # =========================================================
    # PUBLIC API
    # =========================================================
    def process(self, reading):
        """
        Evaluate one reading and actuate.
        Returns the AlertDecision (side_effect NONE when disabled,
        suppressed, the actuator is already in the wanted position,
        or the publish failed).
        """
        motor_id = reading.motor_id

        with self._lock:
            self.metrics["readings"] += 1

            state = self.state_for(motor_id)
            snap = state.snapshot()
            now = self._clock()

            decision = evaluate_alert(
                reading,
                self.table,
                self.health_threshold,
                state,
                now,
            )

            if not self.enabled:
                state.restore(snap)
                decision.side_effect = SideEffect.NONE
                return decision

            if decision.side_effect is not SideEffect.NONE and self._others_latched(motor_id):
                # actuator already ON for another motor: latch / release
                # this motor only
                decision.suppressed_by = "actuator_shared"
                decision.side_effect = SideEffect.NONE
                logger.info(
                    f"[Alert] {motor_id} {'latched' if state.is_latched_critical else 'released'}, "
                    f"actuator held by {self.latched_motors()}"
                )

            if decision.suppressed_by:
                self.metrics["suppressed"] += 1
                logger.debug(f"[Alert] {motor_id} suppressed ({decision.suppressed_by})")

            if decision.side_effect is SideEffect.SEND_ON:
                logger.warning(f"[Alert] {motor_id} CRITICAL: {decision.reasons}")
                ok = self.publisher.send_on(decision.parameter, decision.value, motor_id=motor_id)
                if ok:
                    self.metrics["on_sent"] += 1
                    self.last_alert = {
                        "motor_id": motor_id,
                        "time": now,
                        "parameter": decision.parameter,
                        "value": decision.value,
                    }

            elif decision.side_effect is SideEffect.SEND_OFF:
                logger.info(f"[Alert] {motor_id} back to normal, releasing actuator")
                ok = self.publisher.send_off()
                if ok:
                    self.metrics["off_sent"] += 1

            else:
                return decision

            if not ok:
                self.metrics["publish_failed"] += 1
                state.restore(snap)
                decision.side_effect = SideEffect.NONE
                logger.warning(f"[Alert] {motor_id} command not delivered, will retry")

            return decision
