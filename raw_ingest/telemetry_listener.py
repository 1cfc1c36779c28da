import logging

import paho.mqtt.client as mqtt

from raw_ingest.reading import parse_reading

logger = logging.getLogger(__name__)


class TelemetryListener:
    """
    Telemetry Listener
    ------------------
    Message listener registered on the messaging session.

    Expected telemetry topic:
        mechasense/telemetry/{motor_id}

    Matching messages are parsed into SensorReading and handed
    to `sink` (normally ReadingQueue.put). Parsing happens on the
    network thread; evaluation does not.
    """

    def __init__(self, topic_filter: str, sink):
        self.topic_filter = topic_filter
        self.sink = sink

    def on_message(self, topic: str, payload) -> bool:
        if not mqtt.topic_matches_sub(self.topic_filter, topic):
            return False

        try:
            reading = parse_reading(payload, motor_id=_parse_topic(topic))
        except TypeError as e:
            logger.warning(f"[Ingest] Dropping malformed reading on {topic}: {e}")
            return False

        self.sink(reading)
        return True


# =========================================================
# TOPIC PARSER
# =========================================================
def _parse_topic(topic: str):
    """
    Supported formats:

    Per motor:
        <prefix>/telemetry/<MOTOR_ID>

    Single motor (legacy):
        <prefix>/telemetry
    """

    parts = topic.split("/")

    if len(parts) >= 3 and parts[-2] == "telemetry":
        return parts[-1]

    # motor id may still come from the payload's motorId
    return None
