"""
Test Configuration
==================

ClientConfig / StreamingOptions / MQTTConfig validation and YAML loading.

Usage:
    pytest test_config.py
"""

from pathlib import Path

import pytest

from platestream_ws import ClientConfig, MQTTConfig, StreamingOptions


def test_defaults():
    config = ClientConfig()

    assert config.reconnect_interval == 3.0
    assert config.max_reconnect_attempts == 5
    assert config.mqtt_config is None
    assert config.streaming_options == StreamingOptions()


def test_session_url():
    config = ClientConfig(ws_base_url="wss://alpr.example.com/")

    assert config.session_url("session_1_abc") == "wss://alpr.example.com/api/v1/streaming/ws/session_1_abc"


def test_streaming_options_to_form():
    form = StreamingOptions(confidence_threshold=0.5, send_all_frames=True).to_form()

    assert form == {
        "confidence_threshold": "0.5",
        "iou_threshold": "0.4",
        "frame_skip": "2",
        "max_duration": "600",
        "send_all_frames": "true",
        "adaptive_quality": "true",
        "enable_thumbnails": "true",
    }


@pytest.mark.parametrize("kwargs", [
    {"confidence_threshold": 1.5},
    {"iou_threshold": -0.1},
    {"frame_skip": 0},
    {"max_duration": 0},
])
def test_streaming_options_validation(kwargs):
    with pytest.raises(ValueError):
        StreamingOptions(**kwargs)


def test_streaming_options_rejects_unknown_keys():
    with pytest.raises(ValueError, match="Unknown streaming option"):
        StreamingOptions.from_dict({"frame_skipp": 3})


@pytest.mark.parametrize("kwargs", [
    {"ws_base_url": "http://alpr:8000"},
    {"api_base_url": "ws://alpr:8000"},
    {"reconnect_interval": -1},
    {"max_reconnect_attempts": -1},
    {"http_timeout": 0},
    {"client_id": ""},
])
def test_client_config_validation(kwargs):
    with pytest.raises(ValueError):
        ClientConfig(**kwargs)


@pytest.mark.parametrize("kwargs", [
    {"broker": ""},
    {"broker": "localhost", "port": 70000},
    {"broker": "localhost", "qos": 3},
])
def test_mqtt_config_validation(kwargs):
    with pytest.raises(ValueError):
        MQTTConfig(**kwargs)


def test_from_yaml(tmp_path):
    path = tmp_path / "client.yaml"
    path.write_text(
        'ws_base_url: "ws://alpr.local:8000"\n'
        'api_base_url: "http://alpr.local:8000"\n'
        "max_reconnect_attempts: 2\n"
        'client_id: "gate_01"\n'
        "streaming_options:\n"
        "  frame_skip: 3\n"
        "  send_all_frames: true\n"
        "mqtt_config:\n"
        '  broker: "localhost"\n'
        "  qos: 0\n"
    )

    config = ClientConfig.from_yaml(path)

    assert config.ws_base_url == "ws://alpr.local:8000"
    assert config.max_reconnect_attempts == 2
    assert config.client_id == "gate_01"
    assert config.streaming_options.frame_skip == 3
    assert config.streaming_options.send_all_frames is True
    assert config.mqtt_config == MQTTConfig(broker="localhost", qos=0)


def test_from_yaml_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert ClientConfig.from_yaml(path) == ClientConfig()


def test_from_yaml_rejects_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ValueError, match="mapping"):
        ClientConfig.from_yaml(path)


def test_from_yaml_rejects_unknown_top_level_key(tmp_path):
    path = tmp_path / "typo.yaml"
    path.write_text("reconect_interval: 2\n")

    with pytest.raises(TypeError):
        ClientConfig.from_yaml(path)


def test_sample_config_leaves_status_mirror_off():
    config = ClientConfig.from_yaml(Path(__file__).parent / "config" / "client.yaml")

    assert config.mqtt_config is None
    assert config.max_reconnect_attempts == 5
    assert config.streaming_options == StreamingOptions()
