"""
Shared fixtures: a paho-compatible fake client, a controllable clock,
and recording doubles for the publisher / session.
"""
import pytest

from publish import mqtt_session
from publish.mqtt_session import MessagingSession, SessionSettings


# ── Fake paho client ─────────────────────────────────────────────────────────

class FakeMessageInfo:
    def __init__(self, rc=0, published=True, mid=1):
        self.rc = rc
        self.mid = mid
        self._published = published
        self.waited = False

    def wait_for_publish(self, timeout=None):
        self.waited = True

    def is_published(self):
        return self._published


class FakeMessage:
    def __init__(self, topic, payload: bytes):
        self.topic = topic
        self.payload = payload


class FakeMqttClient:
    """Records calls; tests fire the paho callbacks by hand."""

    def __init__(self, client_id):
        self.client_id = client_id
        self.on_pre_connect = None
        self.on_connect = None
        self.on_connect_fail = None
        self.on_disconnect = None
        self.on_message = None

        self.connect_calls = []
        self.published = []
        self.subscribed = []
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False

        self.publish_rc = 0
        self.publish_acked = True

    # client API
    def connect_async(self, host, port=1883, keepalive=60):
        self.connect_calls.append((host, port, keepalive))

    def loop_start(self):
        self.loop_started = True

    def loop_stop(self):
        self.loop_stopped = True

    def disconnect(self):
        self.disconnected = True

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append((topic, payload, qos, retain))
        return FakeMessageInfo(rc=self.publish_rc, published=self.publish_acked, mid=len(self.published))

    def subscribe(self, topic, qos=0):
        self.subscribed.append((topic, qos))
        return 0, len(self.subscribed)

    # simulation helpers
    def attempt(self):
        if self.on_pre_connect:
            self.on_pre_connect(self, None)

    def connack(self, rc=0):
        self.attempt()
        if self.on_connect:
            self.on_connect(self, None, {}, rc, None)

    def fail_attempt(self):
        self.attempt()
        if self.on_connect_fail:
            self.on_connect_fail(self, None)

    def drop(self, rc=7):
        if self.on_disconnect:
            self.on_disconnect(self, None, {}, rc, None)

    def deliver(self, topic, payload: bytes):
        if self.on_message:
            self.on_message(self, None, FakeMessage(topic, payload))


class FakeClientFactory:
    def __init__(self):
        self.clients = []

    def __call__(self, settings, client_id):
        client = FakeMqttClient(client_id)
        self.clients.append(client)
        return client

    @property
    def last(self):
        return self.clients[-1]


@pytest.fixture
def client_factory():
    return FakeClientFactory()


@pytest.fixture
def settings():
    return SessionSettings(
        broker="broker.test",
        port=1883,
        client_id="mechasense-test",
        max_reconnect_attempts=3,
        publish_timeout=0.1,
    )


@pytest.fixture
def session(settings, client_factory):
    s = MessagingSession(settings, client_factory)
    yield s
    s.disconnect()


@pytest.fixture(autouse=True)
def _reset_singleton():
    yield
    mqtt_session.shutdown_session()


# ── Clock ────────────────────────────────────────────────────────────────────

class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ── Publisher / session doubles ──────────────────────────────────────────────

class RecordingPublisher:
    def __init__(self):
        self.calls = []
        self.motors = []
        self.ok = True

    def send_on(self, alert_type=None, alert_value=None, motor_id=None):
        self.calls.append(("on", alert_type, alert_value))
        self.motors.append(motor_id)
        return self.ok

    def send_off(self):
        self.calls.append(("off",))
        return self.ok

    def kinds(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def publisher():
    return RecordingPublisher()


class RecordingSession:
    client_id = "mechasense-test"

    def __init__(self):
        self.published = []
        self.subscribed = []
        self.ok = True

    def publish(self, topic, payload, qos=1, retain=False):
        self.published.append((topic, payload, qos))
        return self.ok

    def subscribe(self, topic, qos=1):
        self.subscribed.append((topic, qos))
        return True


@pytest.fixture
def recording_session():
    return RecordingSession()
