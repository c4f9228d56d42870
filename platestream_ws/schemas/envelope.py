"""
Envelope Schema & Codec
=======================

Bounded Context: Wire Protocol

Every frame exchanged over the streaming WebSocket is a JSON object:

    {"type": "<tag>", "data": {...}, "error": "<text>"}

`data` and `error` are optional. Payload contents are opaque to the codec;
only the shape of the envelope is validated.

Design:
- MessageType: closed enumeration of the tags the coordinator branches on
- Envelope: immutable, accepts any string tag (forward compatible)
- encode()/decode(): strict at the boundary, EnvelopeDecodeError on failure
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..exceptions import EnvelopeDecodeError


class MessageType(str, Enum):
    """Envelope tags known to the coordinator."""

    # Inbound system messages
    CONNECTION_ESTABLISHED = "connection_established"
    STREAMING_STARTED = "streaming_started"
    STREAMING_UPDATE = "streaming_update"
    STREAMING_COMPLETED = "streaming_completed"
    STREAMING_ERROR = "streaming_error"
    PROCESSING_PAUSED = "processing_paused"
    PROCESSING_RESUMED = "processing_resumed"
    PROCESSING_STOPPED = "processing_stopped"

    # Inbound application messages (subscribers only)
    UPLOAD_PROGRESS = "upload_progress"
    SYSTEM_MESSAGE = "system_message"

    # Outbound commands
    PAUSE_PROCESSING = "pause_processing"
    RESUME_PROCESSING = "resume_processing"
    STOP_PROCESSING = "stop_processing"
    GET_STATUS = "get_status"


MessageTag = Union[MessageType, str]


def tag_value(message_type: MessageTag) -> str:
    """Normalize a MessageType member or free-form string to its wire tag."""
    if isinstance(message_type, MessageType):
        return message_type.value
    return str(message_type)


@dataclass(frozen=True)
class Envelope:
    """
    Immutable tagged message.

    Attributes:
        type: Wire tag (MessageType value or any application tag)
        data: Optional structured payload
        error: Optional error text

    Example:
        >>> Envelope(type=MessageType.PAUSE_PROCESSING.value).to_dict()
        {'type': 'pause_processing'}
    """
    type: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def command(cls, message_type: MessageTag, data: Optional[Dict[str, Any]] = None) -> 'Envelope':
        """Build an outbound envelope."""
        return cls(type=tag_value(message_type), data=data)

    @property
    def message_type(self) -> Optional[MessageType]:
        """The known MessageType for this tag, or None for application tags."""
        try:
            return MessageType(self.type)
        except ValueError:
            return None

    @property
    def payload(self) -> Dict[str, Any]:
        """`data` or an empty dict, as handed to subscribers."""
        return self.data if self.data is not None else {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict (absent fields omitted)."""
        result: Dict[str, Any] = dict(self.extra)
        result['type'] = self.type
        if self.data is not None:
            result['data'] = self.data
        if self.error is not None:
            result['error'] = self.error
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Envelope':
        """Deserialize from dict.

        Raises:
            EnvelopeDecodeError: If the shape is not an envelope
        """
        if not isinstance(data, dict):
            raise EnvelopeDecodeError(
                f"Envelope must be a JSON object, got {type(data).__name__}"
            )

        message_type = data.get('type')
        if not isinstance(message_type, str) or not message_type:
            raise EnvelopeDecodeError("Envelope is missing a string 'type'")

        payload = data.get('data')
        if payload is not None and not isinstance(payload, dict):
            raise EnvelopeDecodeError(
                f"Envelope 'data' must be an object, got {type(payload).__name__}"
            )

        error = data.get('error')
        if error is not None and not isinstance(error, str):
            error = str(error)

        extra = {k: v for k, v in data.items() if k not in ('type', 'data', 'error')}
        return cls(type=message_type, data=payload, error=error, extra=extra)


def encode(envelope: Union[Envelope, Dict[str, Any]]) -> str:
    """
    Serialize an outbound envelope to a JSON text frame.

    Raises:
        EnvelopeDecodeError: If a dict payload is not a valid envelope
        TypeError: If the payload is not JSON serializable
    """
    if not isinstance(envelope, Envelope):
        envelope = Envelope.from_dict(envelope)
    return json.dumps(envelope.to_dict())


def decode(frame: Union[str, bytes]) -> Envelope:
    """
    Parse an inbound text (or UTF-8 binary) frame.

    Raises:
        EnvelopeDecodeError: On invalid UTF-8, invalid JSON or a non-envelope shape
    """
    try:
        if isinstance(frame, (bytes, bytearray)):
            frame = frame.decode('utf-8')
        data = json.loads(frame)
    except UnicodeDecodeError as e:
        raise EnvelopeDecodeError(f"Frame is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise EnvelopeDecodeError(f"Frame is not valid JSON: {e}") from e
    return Envelope.from_dict(data)
