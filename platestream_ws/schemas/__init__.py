"""
platestream Schemas
===================

Bounded Context: Data Structures

Immutable, typed data structures for the streaming protocol and for the
coordinator's observable state.

Public API
----------
Envelope Types:
    MessageType: Known envelope tags
    Envelope: Tagged message {type, data, error}
    encode, decode: Wire codec

State Types:
    StreamingStatus: Processing phase enum
    StreamingFrame, StreamingProgress, StreamingState

Example:
    >>> from platestream_ws.schemas import Envelope, MessageType, encode
    >>> encode(Envelope.command(MessageType.PAUSE_PROCESSING))
    '{"type": "pause_processing"}'
"""

from .envelope import MessageType, MessageTag, Envelope, tag_value, encode, decode
from .state import (
    StreamingStatus,
    STREAMING_STATUSES,
    StreamingFrame,
    StreamingProgress,
    StreamingState,
)

__all__ = [
    # Envelope types
    'MessageType',
    'MessageTag',
    'Envelope',
    'tag_value',
    'encode',
    'decode',
    # State types
    'StreamingStatus',
    'STREAMING_STATUSES',
    'StreamingFrame',
    'StreamingProgress',
    'StreamingState',
]
