import json
import logging
import secrets
import string
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionSettings:
    broker: str = "localhost"
    port: int = 1883
    transport: str = "tcp"
    ws_path: str = "/mqtt"
    tls: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    keepalive: int = 60
    client_id: Optional[str] = None
    client_id_prefix: str = "mechasense-edge"
    max_reconnect_attempts: int = 10
    reconnect_delay_min: float = 5.0
    reconnect_delay_max: float = 60.0
    publish_timeout: float = 5.0

    @classmethod
    def from_config(cls, config: dict) -> "SessionSettings":
        m = config.get("mqtt", {})
        s = config.get("session", {})
        return cls(
            broker=m.get("broker", "localhost"),
            port=int(m.get("port", 1883)),
            transport=m.get("transport", "tcp"),
            ws_path=m.get("ws_path", "/mqtt"),
            tls=bool(m.get("tls", False)),
            username=m.get("username"),
            password=m.get("password"),
            keepalive=int(m.get("keepalive", 60)),
            client_id=m.get("client_id"),
            client_id_prefix=m.get("client_id_prefix", "mechasense-edge"),
            max_reconnect_attempts=int(s.get("max_reconnect_attempts", 10)),
            reconnect_delay_min=float(s.get("reconnect_delay_min_sec", 5)),
            reconnect_delay_max=float(s.get("reconnect_delay_max_sec", 60)),
            publish_timeout=float(s.get("publish_timeout_sec", 5)),
        )


# =========================================================
# CLIENT IDENTITY
# =========================================================
_BASE36 = string.digits + string.ascii_lowercase
_CLIENT_ID = None
_CLIENT_ID_LOCK = threading.Lock()


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if n == 0:
            return out


def stable_client_id(prefix: str = "mechasense-edge") -> str:
    """
    One id per process. A reconnect presents the same id,
    so the broker sees the same logical client.
    """
    global _CLIENT_ID
    with _CLIENT_ID_LOCK:
        if _CLIENT_ID is None:
            rand = "".join(secrets.choice(_BASE36) for _ in range(4))
            _CLIENT_ID = f"{prefix}-{_base36(int(time.time() * 1000))}-{rand}"
        return _CLIENT_ID


def default_client_factory(settings: SessionSettings, client_id: str):
    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        clean_session=True,
        transport=settings.transport,
    )

    if settings.username:
        client.username_pw_set(settings.username, settings.password)

    if settings.tls:
        client.tls_set()

    if settings.transport == "websockets":
        client.ws_set_options(path=settings.ws_path)

    client.reconnect_delay_set(
        min_delay=max(1, int(settings.reconnect_delay_min)),
        max_delay=max(1, int(settings.reconnect_delay_max)),
    )
    return client


class MessagingSession:
    """
    MQTT Messaging Session
    ======================
    Owns the ONE broker connection of this process.

    - connect()   : first caller starts the attempt, later callers
                    attach their callbacks to it
    - reconnect   : paho backoff, bounded attempt counter,
                    FAILED once the ceiling is passed (no silent
                    infinite retry)
    - publish()   : QoS-1 with PUBACK wait; dropped when not connected
    - disconnect(): immediate, safe in any state, unregisters callbacks

    Never call publish() from a status / message callback:
    those run on the paho network thread, which also delivers
    the PUBACK being waited for.
    """

    def __init__(self, settings: SessionSettings = None, client_factory=None):
        self.settings = settings or SessionSettings()
        self.client_id = self.settings.client_id or stable_client_id(
            self.settings.client_id_prefix
        )
        self._client_factory = client_factory or default_client_factory

        self._lock = threading.RLock()
        self._publish_lock = threading.Lock()

        self._client = None
        self._state = SessionState.DISCONNECTED
        self._attempts = 0

        self._status_listeners = []
        self._message_listeners = []
        self._subscriptions = {}

    # =========================================================
    # STATE
    # =========================================================
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    def _transition(self, new_state):
        """Caller holds the lock. Returns listeners to notify."""
        if new_state is self._state:
            return []
        logger.info(f"[MQTT] {self._state.value} → {new_state.value}")
        self._state = new_state
        return list(self._status_listeners)

    def _notify(self, state, listeners):
        for callback in listeners:
            try:
                callback(state)
            except Exception:
                logger.exception("[MQTT] Status listener failed")

    # =========================================================
    # CONNECT
    # =========================================================
    def connect(self, on_status_change=None, on_message=None):
        """
        Return the live client handle, or None when the session
        has given up (FAILED) or the client could not be started.
        """
        with self._lock:
            if on_status_change is not None and on_status_change not in self._status_listeners:
                self._status_listeners.append(on_status_change)
            if on_message is not None and on_message not in self._message_listeners:
                self._message_listeners.append(on_message)

            state = self._state

            if state is SessionState.FAILED:
                logger.error(
                    "[MQTT] Max reconnection attempts reached; disconnect() or reconnect() first"
                )
                return None

            if state in (SessionState.CONNECTING, SessionState.RECONNECTING):
                logger.debug("[MQTT] Connection already in progress, attaching callbacks")
                return self._client

            if state is SessionState.CONNECTED:
                client = self._client
            else:
                client = self._start()

        if state is SessionState.CONNECTED and on_status_change is not None:
            self._notify(SessionState.CONNECTED, [on_status_change])

        return client

    def _start(self):
        """Caller holds the lock; state is DISCONNECTED."""
        s = self.settings
        logger.info(f"[MQTT] Connecting to {s.broker}:{s.port} as {self.client_id}")

        try:
            client = self._client_factory(s, self.client_id)
            self._bind(client)
            client.connect_async(s.broker, s.port, keepalive=s.keepalive)
        except (OSError, ValueError) as e:
            logger.error(f"[MQTT] Failed to create client: {e}")
            return None

        self._client = client
        self._attempts = 0
        listeners = self._transition(SessionState.CONNECTING)
        client.loop_start()

        # RLock: listeners may call back into the session
        self._notify(SessionState.CONNECTING, listeners)
        return client

    def _bind(self, client):
        client.on_pre_connect = self._on_pre_connect
        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

    @staticmethod
    def _detach(client):
        client.on_pre_connect = None
        client.on_connect = None
        client.on_connect_fail = None
        client.on_disconnect = None
        client.on_message = None

    # =========================================================
    # PAHO CALLBACKS (network thread)
    # =========================================================
    def _on_pre_connect(self, client, userdata):
        with self._lock:
            if client is not self._client:
                return
            self._attempts += 1
            logger.info(
                f"[MQTT] Connection attempt {self._attempts}/{self.settings.max_reconnect_attempts}"
            )
            listeners = self._transition(SessionState.CONNECTING)
        self._notify(SessionState.CONNECTING, listeners)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            self._on_attempt_failed(client, f"refused by broker ({reason_code})")
            return

        with self._lock:
            if client is not self._client:
                return
            self._attempts = 0
            subscriptions = list(self._subscriptions.items())
            listeners = self._transition(SessionState.CONNECTED)

        logger.info(f"[MQTT] Connected to {self.settings.broker}:{self.settings.port}")

        # clean session: every CONNACK starts without subscriptions
        for topic, qos in subscriptions:
            client.subscribe(topic, qos=qos)
            logger.info(f"[MQTT] Subscribed to: {topic}")

        self._notify(SessionState.CONNECTED, listeners)

    def _on_connect_fail(self, client, userdata):
        self._on_attempt_failed(client, "broker unreachable")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        self._on_attempt_failed(client, f"connection lost ({reason_code})")

    def _on_attempt_failed(self, client, reason):
        with self._lock:
            if client is not self._client:
                return
            if self._state in (SessionState.DISCONNECTED, SessionState.FAILED):
                return

            logger.warning(f"[MQTT] {reason}")

            give_up = self._attempts >= self.settings.max_reconnect_attempts
            if give_up:
                self._client = None
                new_state = SessionState.FAILED
            else:
                new_state = SessionState.RECONNECTING
            listeners = self._transition(new_state)

        if give_up:
            logger.error(
                f"[MQTT] Giving up after {self._attempts} attempts; operator action required"
            )
            self._teardown(client)

        self._notify(new_state, listeners)

    def _on_message(self, client, userdata, message):
        try:
            payload = json.loads(message.payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning(f"[MQTT] Dropping undecodable message on {message.topic}: {e}")
            return

        with self._lock:
            listeners = list(self._message_listeners)

        for callback in listeners:
            try:
                callback(message.topic, payload)
            except Exception:
                logger.exception(f"[MQTT] Message listener failed on {message.topic}")

    # =========================================================
    # PUBLISH / SUBSCRIBE
    # =========================================================
    def publish(self, topic: str, payload, qos: int = 1, retain: bool = False) -> bool:
        """
        True once the broker acknowledged (QoS >= 1) or the message
        was handed to the socket (QoS 0). Never buffers.
        """
        with self._lock:
            client = self._client if self._state is SessionState.CONNECTED else None

        if client is None:
            logger.warning(f"[MQTT] Not connected ({self._state.value}), dropped publish to {topic}")
            return False

        data = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)

        # submission order == broker order
        with self._publish_lock:
            info = client.publish(topic, data, qos=qos, retain=retain)

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"[MQTT] Publish to {topic} rejected (rc={info.rc})")
            return False

        if qos == 0:
            return True

        try:
            info.wait_for_publish(timeout=self.settings.publish_timeout)
        except (RuntimeError, ValueError) as e:
            logger.error(f"[MQTT] Publish to {topic} failed: {e}")
            return False

        if not info.is_published():
            logger.error(f"[MQTT] No PUBACK for {topic} within {self.settings.publish_timeout}s")
            return False

        return True

    def subscribe(self, topic: str, qos: int = 1) -> bool:
        """
        Record the subscription; it is (re)issued on every CONNACK.
        Returns True when it was also sent right now.
        """
        with self._lock:
            self._subscriptions[topic] = qos
            client = self._client if self._state is SessionState.CONNECTED else None

        if client is None:
            logger.debug(f"[MQTT] Subscription to {topic} deferred until connected")
            return False

        result, _mid = client.subscribe(topic, qos=qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"[MQTT] Failed to subscribe to {topic} (rc={result})")
            return False

        logger.info(f"[MQTT] Subscribed to: {topic}")
        return True

    def subscriptions(self) -> dict:
        with self._lock:
            return dict(self._subscriptions)

    # =========================================================
    # TEARDOWN
    # =========================================================
    def disconnect(self):
        """
        Intentional teardown. Safe in any state; cancels a pending
        backoff and silences every registered callback first.
        """
        with self._lock:
            client = self._client
            self._client = None
            self._status_listeners.clear()
            self._message_listeners.clear()
            self._subscriptions.clear()
            self._attempts = 0
            self._transition(SessionState.DISCONNECTED)

        if client is not None:
            logger.info("[MQTT] Disconnecting...")
            self._teardown(client)

    def _teardown(self, client):
        self._detach(client)
        try:
            client.disconnect()
        finally:
            client.loop_stop()

    def reconnect(self):
        """
        Manual reconnect (operator action): same identity, same
        listeners and subscriptions, attempt counter reset.
        """
        with self._lock:
            status_listeners = list(self._status_listeners)
            message_listeners = list(self._message_listeners)
            subscriptions = dict(self._subscriptions)

        self.disconnect()

        with self._lock:
            self._status_listeners.extend(status_listeners)
            self._message_listeners.extend(message_listeners)
            self._subscriptions.update(subscriptions)

        return self.connect()


# =========================================================
# PROCESS SINGLETON
# =========================================================
_SESSION = None
_SESSION_LOCK = threading.Lock()


def get_session(settings: SessionSettings = None, client_factory=None) -> MessagingSession:
    """
    The process-wide session. Settings are only used on first call.
    """
    global _SESSION
    with _SESSION_LOCK:
        if _SESSION is None:
            _SESSION = MessagingSession(settings, client_factory)
        return _SESSION


def shutdown_session():
    global _SESSION
    with _SESSION_LOCK:
        session = _SESSION
        _SESSION = None

    if session is not None:
        session.disconnect()
