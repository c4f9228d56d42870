"""
platestream Streaming Session Coordinator
=========================================

Bounded Context: Real-time session with the plate processing service

This package keeps a long-lived WebSocket connection to the processing
service, fans inbound typed messages out to subscribers, derives one
coherent session status from the unordered event stream and governs the
lifecycle of an upload-triggered processing job.

Architecture:
- schemas/: Envelope codec and immutable state snapshots
- logging/: Structured JSON logging with pluggable sinks (DebugConsole)
- transport: websockets-based connection with callback lifecycle
- connection: ConnectionManager (lifecycle + routing)
- reconnect: ReconnectionScheduler (fixed interval, bounded attempts)
- subscriptions: SubscriptionRegistry (per-tag handler lists)
- store: SessionStateStore and pure transition functions
- client: StreamingClient (the coordinator facade)
- analytics: PlateSummary and plate filters

Design Philosophy:
- One writer: every transition goes through the SessionStateStore
- Immutability: frozen dataclasses for envelopes and state snapshots
- Explicit wiring: no module-level singletons
- Observability: structured logs (JSON) with typed events

Public API
----------
Coordinator:
    StreamingClient, ClientConfig, StreamingOptions, MQTTConfig

Components:
    ConnectionManager, ReconnectionScheduler, SubscriptionRegistry,
    SessionStateStore, WebSocketTransport

Schemas:
    MessageType, Envelope, StreamingStatus, StreamingState,
    StreamingFrame, StreamingProgress

Logging:
    LogEvent, StructuredLogger, create_logger, DebugConsole

Example:
    >>> from platestream_ws import StreamingClient, ClientConfig, MessageType
    >>>
    >>> client = StreamingClient(ClientConfig(ws_base_url="ws://alpr.local:8000",
    ...                                       api_base_url="http://alpr.local:8000"))
    >>> client.on_message(MessageType.STREAMING_UPDATE,
    ...                   lambda data: print(data.get('progress')))
    >>> client.connect()
    >>> # once client.state.is_connected:
    >>> client.start_streaming("parking.mp4")
    >>> client.pause_streaming()
    >>> client.resume_streaming()
    >>> client.close()
"""

__version__ = "0.1.0"

from .analytics import PlateSummary, filter_plates, sort_plates
from .client import StreamingClient
from .config import ClientConfig, MQTTConfig, StreamingOptions
from .connection import ConnectionManager, generate_session_id
from .exceptions import EnvelopeDecodeError, InvalidStateError, StreamingError, TransportError
from .logging import DebugConsole, LogEvent, StructuredLogger, create_logger
from .reconnect import ReconnectionScheduler
from .schemas import (
    Envelope,
    MessageType,
    StreamingFrame,
    StreamingProgress,
    StreamingState,
    StreamingStatus,
    decode,
    encode,
)
from .store import SessionStateStore, apply_message
from .subscriptions import SubscriptionRegistry
from .transport import ConnectionState, WebSocketTransport

__all__ = [
    # Coordinator
    'StreamingClient',
    'ClientConfig',
    'StreamingOptions',
    'MQTTConfig',
    # Components
    'ConnectionManager',
    'ReconnectionScheduler',
    'SubscriptionRegistry',
    'SessionStateStore',
    'WebSocketTransport',
    'ConnectionState',
    'apply_message',
    'generate_session_id',
    # Schemas
    'Envelope',
    'MessageType',
    'StreamingStatus',
    'StreamingState',
    'StreamingFrame',
    'StreamingProgress',
    'encode',
    'decode',
    # Analytics
    'PlateSummary',
    'filter_plates',
    'sort_plates',
    # Errors
    'StreamingError',
    'InvalidStateError',
    'EnvelopeDecodeError',
    'TransportError',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
    'DebugConsole',
]
