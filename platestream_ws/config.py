"""
Configuration schema for the streaming client.

This module defines the configuration structure for the coordinator:
service endpoints, reconnection policy, upload options and the optional
MQTT status mirror.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

RESULT_FORMATS = ("json", "csv")


@dataclass(frozen=True)
class StreamingOptions:
    """
    Processing options sent with the upload.

    Every field is submitted as a multipart form value.
    """

    confidence_threshold: float = 0.3
    iou_threshold: float = 0.4
    frame_skip: int = 2
    max_duration: int = 600  # seconds
    send_all_frames: bool = False
    adaptive_quality: bool = True
    enable_thumbnails: bool = True

    def __post_init__(self):
        """Validate processing options."""
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(
                f"confidence_threshold must be in [0.0, 1.0], got {self.confidence_threshold}"
            )

        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError(
                f"iou_threshold must be in [0.0, 1.0], got {self.iou_threshold}"
            )

        if self.frame_skip < 1:
            raise ValueError(
                f"frame_skip must be >= 1, got {self.frame_skip}"
            )

        if self.max_duration <= 0:
            raise ValueError(
                f"max_duration must be > 0, got {self.max_duration}"
            )

    def to_form(self) -> Dict[str, str]:
        """
        Flatten to multipart form fields.

        Booleans are sent lowercase ("true"/"false") as the backend expects.
        """
        form = {}
        for f in fields(self):
            value = getattr(self, f.name)
            form[f.name] = str(value).lower() if isinstance(value, bool) else str(value)
        return form

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StreamingOptions":
        """Build from a partial mapping; unknown keys are rejected."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(
                f"Unknown streaming option(s): {', '.join(sorted(unknown))}. "
                f"Valid options: {', '.join(sorted(known))}"
            )
        return cls(**data)


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration for the status mirror."""

    broker: str
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1  # Status is control-plane traffic

    status_topic: str = "platestream/status/{client_id}"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("MQTT broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )


@dataclass(frozen=True)
class ClientConfig:
    """
    Main configuration for the streaming client.

    Immutable after construction (frozen dataclass).
    """

    # Service endpoints
    ws_base_url: str = "ws://localhost:8000"
    api_base_url: str = "http://localhost:8000"

    # Reconnection policy
    reconnect_interval: float = 3.0  # seconds, fixed (not exponential)
    max_reconnect_attempts: int = 5

    # HTTP
    http_timeout: float = 60.0

    # Identification (MQTT client id, status topic)
    client_id: str = "platestream_client"

    # Upload defaults
    streaming_options: StreamingOptions = field(default_factory=StreamingOptions)

    # Optional status mirror
    mqtt_config: Optional[MQTTConfig] = None

    def __post_init__(self):
        """Validate client configuration."""
        if not self.ws_base_url.startswith(("ws://", "wss://")):
            raise ValueError(
                f"ws_base_url must start with ws:// or wss://, got {self.ws_base_url}"
            )

        if not self.api_base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"api_base_url must start with http:// or https://, got {self.api_base_url}"
            )

        if self.reconnect_interval < 0:
            raise ValueError(
                f"reconnect_interval must be >= 0, got {self.reconnect_interval}"
            )

        if self.max_reconnect_attempts < 0:
            raise ValueError(
                f"max_reconnect_attempts must be >= 0, got {self.max_reconnect_attempts}"
            )

        if self.http_timeout <= 0:
            raise ValueError(
                f"http_timeout must be > 0, got {self.http_timeout}"
            )

        if not self.client_id:
            raise ValueError("client_id cannot be empty")

    def session_url(self, session_id: str) -> str:
        """WebSocket endpoint for one session."""
        return f"{self.ws_base_url.rstrip('/')}/api/v1/streaming/ws/{session_id}"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ClientConfig":
        """Build from a parsed YAML mapping (nested sections optional)."""
        data = dict(data or {})

        streaming_options = StreamingOptions.from_dict(data.pop("streaming_options", None))

        mqtt_config_data = data.pop("mqtt_config", None)
        mqtt_config = MQTTConfig(**mqtt_config_data) if mqtt_config_data else None

        return cls(
            streaming_options=streaming_options,
            mqtt_config=mqtt_config,
            **data,
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "ClientConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            ws_base_url: "ws://alpr.local:8000"
            api_base_url: "http://alpr.local:8000"
            reconnect_interval: 3.0
            max_reconnect_attempts: 5
            client_id: "gate_01"

            streaming_options:
              confidence_threshold: 0.4
              frame_skip: 3

            mqtt_config:
              broker: "localhost"
              port: 1883
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping: {yaml_path}")

        return cls.from_dict(data)
