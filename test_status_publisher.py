"""
Test Status Publisher (Without Real Broker)
===========================================

MQTT status mirror driven by a fake paho client.

Usage:
    pytest test_status_publisher.py
"""

import json
from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest

from platestream_control import StatusPublisher, format_status
from platestream_ws import Envelope, MQTTConfig, SessionStateStore, StreamingStatus
from platestream_ws.store import connected


class FakeMqttClient:
    """Records publications; connect() acknowledges immediately unless told not to."""

    def __init__(self, accept=True, rc=mqtt.MQTT_ERR_SUCCESS):
        self.accept = accept
        self.rc = rc
        self.on_connect = None
        self.on_disconnect = None
        self.published = []
        self.loop_running = False
        self.disconnected = False

    def connect(self, host, port, keepalive=60):
        self.host, self.port = host, port
        if self.accept:
            self.on_connect(self, None, {}, 0, None)

    def loop_start(self):
        self.loop_running = True

    def loop_stop(self):
        self.loop_running = False

    def disconnect(self):
        self.disconnected = True
        self.on_disconnect(self, None, {}, 0, None)

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append({
            'topic': topic,
            'payload': json.loads(payload),
            'qos': qos,
            'retain': retain,
        })
        return SimpleNamespace(rc=self.rc)


@pytest.fixture
def mqtt_config():
    return MQTTConfig(broker="broker.test", port=1884)


@pytest.fixture
def fake_mqtt():
    return FakeMqttClient()


@pytest.fixture
def publisher(mqtt_config, fake_mqtt):
    return StatusPublisher(mqtt_config, client_id="gate_01", client=fake_mqtt)


def test_topic_from_template(publisher):
    assert publisher.topic == "platestream/status/gate_01"


def test_connect_waits_for_connack(publisher, fake_mqtt):
    assert publisher.connect(timeout=0.1) is True

    assert publisher.is_connected
    assert (fake_mqtt.host, fake_mqtt.port) == ("broker.test", 1884)
    assert fake_mqtt.loop_running


def test_connect_timeout(mqtt_config):
    publisher = StatusPublisher(mqtt_config, client_id="gate_01", client=FakeMqttClient(accept=False))

    assert publisher.connect(timeout=0.01) is False
    assert not publisher.is_connected


def test_attach_publishes_retained_status(publisher, fake_mqtt, logger):
    store = SessionStateStore(logger)
    publisher.connect(timeout=0.1)

    publisher.attach(store)
    store.apply(lambda s: connected(s, "s1"))

    assert [m['payload']['status'] for m in fake_mqtt.published] == ["disconnected", "connected"]
    message = fake_mqtt.published[-1]
    assert message['topic'] == "platestream/status/gate_01"
    assert message['qos'] == 1
    assert message['retain'] is True
    assert message['payload']['session_id'] == "s1"
    assert "timestamp" in message['payload']
    assert publisher.published_count == 2


def test_unchanged_snapshot_is_not_republished(publisher, fake_mqtt, logger):
    store = SessionStateStore(logger)
    publisher.connect(timeout=0.1)
    publisher.attach(store)

    assert publisher.publish_state(store.state) is False
    assert len(fake_mqtt.published) == 1


def test_payload_never_carries_frames(logger):
    store = SessionStateStore(logger)
    store.apply(lambda s: connected(s, "s1"))
    store.handle(Envelope(type="streaming_update", data={
        "frame_data": {"image_base64": "QUJD"},
        "current_detections": [{"plate_text": "ABC123"}],
        "detection_summary": {"best_plates": [{"plate_text": "ABC123", "best_confidence": 0.9}]},
    }))

    payload = format_status(store.state, "gate_01")

    assert "current_frame" not in payload
    assert "detections" not in payload
    assert payload['plates']['total_plates'] == 1
    assert payload['status'] == StreamingStatus.CONNECTED.value


def test_state_before_connack_is_published_on_connect(mqtt_config, logger):
    fake = FakeMqttClient(accept=False)
    publisher = StatusPublisher(mqtt_config, client_id="gate_01", client=fake)
    store = SessionStateStore(logger)

    publisher.attach(store)
    assert fake.published == []

    fake.on_connect(fake, None, {}, 0, None)

    assert [m['payload']['status'] for m in fake.published] == ["disconnected"]


def test_rejected_publish_is_not_counted(mqtt_config, logger):
    fake = FakeMqttClient(rc=mqtt.MQTT_ERR_NO_CONN)
    publisher = StatusPublisher(mqtt_config, client_id="gate_01", client=fake)
    publisher.connect(timeout=0.1)

    assert publisher.publish_state(SessionStateStore(logger).state) is False
    assert publisher.published_count == 0


def test_disconnect_publishes_offline(publisher, fake_mqtt):
    publisher.connect(timeout=0.1)

    publisher.disconnect()
    publisher.disconnect()

    assert fake_mqtt.published[-1]['payload']['status'] == "offline"
    assert len(fake_mqtt.published) == 1
    assert fake_mqtt.disconnected
    assert not publisher.is_connected
