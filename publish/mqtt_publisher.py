import logging
import time

logger = logging.getLogger(__name__)

DEFAULT_CONTROL_TOPIC = "PLC/CP2E/Control"
DEFAULT_STATUS_TOPIC = "plc/cp2e/status"


class ActuatorPublisher:
    """
    PLC Actuator Publisher

    Responsibility:
    - Build control-command payloads (W1 = ON, W2 = OFF)
    - Hand them to the messaging session
    - Remember the last actuator feedback
    - NO alert logic
    """

    def __init__(
        self,
        session,
        control_topic=DEFAULT_CONTROL_TOPIC,
        status_topic=DEFAULT_STATUS_TOPIC,
        clock=time.time,
    ):
        self.session = session
        self.control_topic = control_topic
        self.status_topic = status_topic
        self._clock = clock

        self.last_feedback = None

    @classmethod
    def from_config(cls, session, config: dict) -> "ActuatorPublisher":
        topics = config.get("mqtt", {}).get("topics", {})
        return cls(
            session,
            control_topic=topics.get("control", DEFAULT_CONTROL_TOPIC),
            status_topic=topics.get("status", DEFAULT_STATUS_TOPIC),
        )

    # =========================================================
    # INTERNAL
    # =========================================================
    def _envelope(self, command: dict) -> dict:
        payload = dict(command)
        payload["timestamp"] = int(self._clock())
        payload["source"] = self.session.client_id
        return payload

    def _publish(self, payload) -> bool:
        return self.session.publish(self.control_topic, payload, qos=1)

    # =========================================================
    # COMMANDS
    # =========================================================
    def send_on(self, alert_type=None, alert_value=None, motor_id=None) -> bool:
        """Assert alarm / actuator (W1). motor_id names the motor that raised it."""
        command = {
            "W1": 1,
            "alertType": alert_type or "CRITICAL",
            "alertValue": alert_value,
        }
        if motor_id is not None:
            command["motorId"] = motor_id
        payload = self._envelope(command)

        ok = self._publish(payload)
        if ok:
            logger.info(f"[PLC] ON sent to {self.control_topic}: {alert_type}={alert_value}")
        else:
            logger.error("[PLC] Failed to send ON signal")
        return ok

    def send_off(self) -> bool:
        """Clear alarm / actuator (W2)."""
        payload = self._envelope({"W2": 1})

        ok = self._publish(payload)
        if ok:
            logger.info(f"[PLC] OFF sent to {self.control_topic}")
        else:
            logger.error("[PLC] Failed to send OFF signal")
        return ok

    def send_command(self, command: dict) -> bool:
        """Arbitrary command; timestamp / source are always stamped."""
        ok = self._publish(self._envelope(command))
        if not ok:
            logger.error(f"[PLC] Failed to send command {command}")
        return ok

    # =========================================================
    # FEEDBACK
    # =========================================================
    def subscribe_feedback(self):
        self.session.subscribe(self.status_topic, qos=1)

    def handle_feedback(self, topic, payload):
        """Message listener for the actuator status topic."""
        if topic != self.status_topic:
            return False

        self.last_feedback = {
            "payload": payload,
            "received_at": self._clock(),
        }
        logger.info(f"[PLC] Status feedback: {payload}")
        return True
