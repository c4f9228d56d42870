"""
StatusPublisher - MQTT mirror of the session state

Bounded Context: Publishing coordinator status to an MQTT broker
Responsibilities:
  - MQTT connection lifecycle (connect, disconnect)
  - Mirror every SessionStateStore change to a status topic
  - Skip publications whose content did not change

QoS Policy:
  - Status: QoS from MQTTConfig (default 1) + retained (last status persisted)

Payload:
  Compact snapshot: status, flags, session id, error, progress, speed,
  plate statistics. Frame images and raw detections are never published.

Threading:
  - MQTT client runs its own network thread (loop_start/loop_stop)
  - publish_state() is called from whichever thread changed the state
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import paho.mqtt.client as mqtt

from platestream_ws.analytics import PlateSummary
from platestream_ws.config import MQTTConfig
from platestream_ws.schemas import StreamingState
from platestream_ws.store import SessionStateStore

logger = logging.getLogger(__name__)


def format_status(state: StreamingState, client_id: str) -> Dict[str, Any]:
    """Status payload for a snapshot (no timestamp)."""
    return {
        "client_id": client_id,
        "status": state.status.value,
        "session_id": state.session_id,
        "is_connected": state.is_connected,
        "is_streaming": state.is_streaming,
        "is_paused": state.is_paused,
        "error": state.error,
        "progress": state.progress.to_dict(),
        "processing_speed": state.processing_speed,
        "plates": PlateSummary.from_plates(state.unique_plates).to_dict(),
    }


class StatusPublisher:
    """
    Retained status topic fed by a SessionStateStore.

    Example:
        publisher = StatusPublisher(config.mqtt_config, client_id="gate_01")
        if publisher.connect(timeout=5.0):
            detach = publisher.attach(client.store)

        # Later
        detach()
        publisher.disconnect()
    """

    def __init__(
        self,
        config: MQTTConfig,
        client_id: str,
        client: Optional[mqtt.Client] = None,
    ):
        """
        Initialize status publisher.

        Args:
            config: Broker settings and status topic template
            client_id: Coordinator identifier ({client_id} in the topic)
            client: Preconfigured paho client (tests inject a fake)
        """
        self.config = config
        self.client_id = client_id
        self.topic = config.status_topic.format(client_id=client_id)

        if client is None:
            client = mqtt.Client(
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
                client_id=f"{client_id}_status",
            )
            if config.username and config.password:
                client.username_pw_set(config.username, config.password)
        self.client = client
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._running = False
        self._last_payload: Optional[Dict[str, Any]] = None
        self._publish_lock = threading.Lock()
        self._published = 0

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    @property
    def published_count(self) -> int:
        return self._published

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to the broker and wait for CONNACK.

        Returns:
            True if connected, False on error or timeout
        """
        try:
            logger.info(f"🔌 Connecting status mirror to {self.config.broker}:{self.config.port}")
            self.client.connect(self.config.broker, self.config.port, keepalive=60)
            self.client.loop_start()
            self._running = True

            if self._connected.wait(timeout=timeout):
                logger.info(f"✅ Status mirror connected, topic: {self.topic}")
                return True
            logger.error(f"❌ Status mirror connection timeout after {timeout}s")
            return False

        except (OSError, ValueError) as e:
            logger.error(f"❌ Error connecting status mirror: {e}")
            return False

    def disconnect(self) -> None:
        """Publish an offline marker and disconnect. Safe to call repeatedly."""
        if not self._running:
            return
        logger.info("🔌 Disconnecting status mirror")
        self._publish({"client_id": self.client_id, "status": "offline"})
        self.client.loop_stop()
        self.client.disconnect()
        self._running = False
        self._connected.clear()

    def attach(self, store: SessionStateStore) -> Callable[[], None]:
        """Publish the current state now and on every change; returns detach."""
        self.publish_state(store.state)
        return store.add_listener(self.publish_state)

    def publish_state(self, state: StreamingState) -> bool:
        """
        Publish a snapshot unless it matches the previous publication.

        Returns:
            True if a message was handed to the client
        """
        payload = format_status(state, self.client_id)
        with self._publish_lock:
            if payload == self._last_payload:
                return False
            self._last_payload = payload
        return self._publish(payload)

    def _publish(self, payload: Dict[str, Any]) -> bool:
        if not self._connected.is_set():
            return False

        message = dict(payload, timestamp=datetime.now().isoformat())
        try:
            info = self.client.publish(
                self.topic,
                json.dumps(message),
                qos=self.config.qos,
                retain=True,
            )
        except (OSError, ValueError) as e:
            logger.error(f"❌ Error publishing status: {e}")
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"❌ Status publish rejected (rc={info.rc})")
            return False

        self._published += 1
        logger.debug(f"📤 Status published: {payload.get('status')}")
        return True

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code == 0:
            logger.info(f"✅ Connected to broker (rc={reason_code})")
            self._connected.set()
            # Republish after reconnects so the retained message is current
            with self._publish_lock:
                last = self._last_payload
            if last is not None:
                self._publish(last)
        else:
            logger.error(f"❌ Connection failed (rc={reason_code})")
            self._connected.clear()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code != 0:
            logger.warning(f"⚠️ Unexpected disconnection (rc={reason_code})")
        else:
            logger.info("✅ Disconnected from broker")
        self._connected.clear()
