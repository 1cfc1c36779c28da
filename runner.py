import argparse
import json
import logging
import signal
import sys
import threading

from alerting.dispatcher import AlertDispatcher
from analytics.health_assessment import HealthAssessment
from analytics.prognostics.failure_predictor import FailurePredictorClient
from config.config_loader import load_config, load_yaml
from core.errors import InvalidAnswerError, TransportError
from core.reading_queue import ReadingQueue
from core.ring_buffer import VibrationHistory
from expert_system.catalog import load_knowledge_base
from expert_system.diagnosis_engine import DiagnosisEngine, format_report
from health.thresholds import build_threshold_table
from publish.mqtt_publisher import ActuatorPublisher
from publish.mqtt_session import SessionSettings, SessionState, get_session, shutdown_session
from raw_ingest.reading import parse_reading
from raw_ingest.telemetry_listener import TelemetryListener

logger = logging.getLogger("mechasense")

EXIT_OK = 0
EXIT_BAD_INPUT = 1
EXIT_TRANSPORT_FAILED = 2


# ==================================================
# MONITOR (LONG RUNNING)
# ==================================================
def run_monitor(config) -> int:
    table = build_threshold_table(config["thresholds"])

    # =========================
    # TRANSPORT
    # =========================
    session = get_session(SessionSettings.from_config(config))
    publisher = ActuatorPublisher.from_config(session, config)

    # =========================
    # ENGINES
    # =========================
    dispatcher = AlertDispatcher.from_config(publisher, table, config)
    history = VibrationHistory(maxlen=int(config["predictor"].get("history_size", 50)))
    readings = ReadingQueue.from_config(config)

    telemetry = TelemetryListener(
        topic_filter=config["mqtt"]["topics"]["telemetry"],
        sink=readings.put,
    )

    stop = threading.Event()
    failed = threading.Event()

    # =========================
    # CALLBACKS
    # =========================
    def on_reading(reading):
        history.append(reading)
        dispatcher.process(reading)

    def on_message(topic, payload):
        if publisher.handle_feedback(topic, payload):
            return
        telemetry.on_message(topic, payload)

    def on_status(state):
        if state is SessionState.FAILED:
            failed.set()
            stop.set()

    def on_signal(signum, frame):
        logger.info(f"[Runner] Signal {signum}, shutting down")
        stop.set()

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)

    # =========================
    # START
    # =========================
    readings.start(on_reading)
    publisher.subscribe_feedback()
    session.subscribe(telemetry.topic_filter, qos=1)

    try:
        if session.connect(on_status, on_message) is None:
            raise TransportError(f"Could not start MQTT session to {session.settings.broker}")
        stop.wait()
    finally:
        readings.stop()
        shutdown_session()
        logger.info(
            f"[Runner] Stopped. queue={readings.get_status()['metrics']} "
            f"alerts={dispatcher.metrics}"
        )

    if failed.is_set():
        raise TransportError("Persistent broker disconnection; actuator control lost")

    return EXIT_OK


# ==================================================
# ONE-SHOT COMMANDS
# ==================================================
def run_diagnose(config, answers_path) -> int:
    kb = load_knowledge_base(config.get("knowledge_base"))
    engine = DiagnosisEngine(kb)

    raw = load_yaml(answers_path)
    if isinstance(raw, dict):
        raw = raw.get("answers", raw)

    try:
        if not isinstance(raw, dict):
            raise InvalidAnswerError("Answers file must map symptom id to No / Sometimes / Yes")
        report = engine.diagnose(raw)
    except InvalidAnswerError as e:
        logger.error(f"[Runner] Invalid answers in {answers_path}: {e}")
        return EXIT_BAD_INPUT

    print(format_report(report))
    return EXIT_OK


def run_assess(config, request_path) -> int:
    """
    request file:
    {
        "sensorData": {...reading...},
        "vibrationReadings": [{"vibration_rms": 2.1, "timestamp": ...}, ...]
    }
    """
    table = build_threshold_table(config["thresholds"])
    assessment = HealthAssessment(FailurePredictorClient.from_config(config), table)

    with open(request_path, "r", encoding="utf-8") as f:
        body = json.load(f)

    reading = parse_reading(body.get("sensorData") or {})
    result = assessment.assess(reading, body.get("vibrationReadings") or [])

    print(json.dumps(result, indent=2))
    return EXIT_OK


def run_actuate(config, action, alert_type=None, alert_value=None, payload=None, timeout=10.0) -> int:
    """
    Manual PLC command (operator panel).

    Runs in its own process with its own session; a running monitor
    keeps its latch, so a manual OFF during a critical condition is
    not re-asserted until that motor recovers and goes critical again.
    """
    session = get_session(SessionSettings.from_config(config))
    publisher = ActuatorPublisher.from_config(session, config)

    settled = threading.Event()

    def on_status(state):
        if state in (SessionState.CONNECTED, SessionState.FAILED):
            settled.set()

    try:
        if session.connect(on_status) is None:
            raise TransportError(f"Could not start MQTT session to {session.settings.broker}")
        if not settled.wait(timeout) or not session.is_connected():
            raise TransportError(f"Broker {session.settings.broker} not reachable within {timeout}s")

        if action == "on":
            ok = publisher.send_on(alert_type or "MANUAL", alert_value)
        elif action == "off":
            ok = publisher.send_off()
        else:
            ok = publisher.send_command(payload or {})
    finally:
        shutdown_session()

    print(json.dumps({"action": action, "topic": publisher.control_topic, "acknowledged": ok}))
    return EXIT_OK if ok else EXIT_TRANSPORT_FAILED


def build_parser():
    parser = argparse.ArgumentParser(prog="mechasense", description="Motor health edge service")
    parser.add_argument("--config", default=None, help="YAML config (default: bundled)")
    parser.add_argument("--log-level", default="INFO")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("monitor", help="Evaluate live telemetry and drive the PLC (default)")

    diag = sub.add_parser("diagnose", help="Run the expert system on an answers file")
    diag.add_argument("answers", help="YAML/JSON mapping symptom id → No|Sometimes|Yes")

    assess = sub.add_parser("assess", help="Health score + remote failure prediction")
    assess.add_argument("request", help="JSON file with sensorData / vibrationReadings")

    act = sub.add_parser("actuate", help="Send a manual command to the PLC and wait for the ack")
    act.add_argument("action", choices=["on", "off", "command"])
    act.add_argument("--alert-type", default=None, help="alertType for ON (default MANUAL)")
    act.add_argument("--alert-value", type=float, default=None)
    act.add_argument("--payload", type=json.loads, default=None, help="JSON object for `command`")
    act.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for the broker")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "actuate" and args.action == "command" and not isinstance(args.payload, dict):
        parser.error("actuate command needs --payload with a JSON object")

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)

    if args.command == "diagnose":
        return run_diagnose(config, args.answers)
    if args.command == "assess":
        return run_assess(config, args.request)

    try:
        if args.command == "actuate":
            return run_actuate(
                config,
                args.action,
                alert_type=args.alert_type,
                alert_value=args.alert_value,
                payload=args.payload,
                timeout=args.timeout,
            )
        return run_monitor(config)
    except TransportError as e:
        logger.critical(f"[Runner] {e}")
        return EXIT_TRANSPORT_FAILED


if __name__ == "__main__":
    sys.exit(main())

# ==================================================
# NOTES
# - Readings are evaluated on the ReadingQueue worker,
#   never on the paho network thread (publish waits for PUBACK)
# - Actuator latch only reflects acknowledged commands
# - FAILED session = operator action required (exit code 2)
# - One PLC for all motors: OFF only once no motor is latched
# - `actuate` never touches a running monitor's latch
# ==================================================
