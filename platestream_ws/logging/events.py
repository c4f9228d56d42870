"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (category.action)
- Searchable in log aggregators and filterable in the DebugConsole

Event Naming Convention:
    <category>.<action>[.<outcome>]

    category: websocket, message, session, upload, download, api, error
    action: connected, received, transition, scheduled
    outcome: success, failed, exhausted

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.session_id
    | filter event = "websocket.reconnect.scheduled"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - websocket.*: Connection lifecycle
    - message.*: Inbound/outbound envelopes
    - session.*: Session state store transitions
    - upload.* / download.* / api.*: REST calls
    - error.*: Error conditions
    """

    # ========== WebSocket Events ==========
    WS_CONNECTING = "websocket.connecting"
    """Opening a new connection for a session."""

    WS_CONNECTED = "websocket.connected"
    """Connection open."""

    WS_ALREADY_CONNECTED = "websocket.already_connected"
    """connect() called while a connection is open or opening."""

    WS_CLOSED = "websocket.closed"
    """Connection closed (any code)."""

    WS_DISCONNECTED = "websocket.disconnected"
    """Caller-initiated disconnect completed."""

    WS_RECONNECT_SCHEDULED = "websocket.reconnect.scheduled"
    """Reconnection timer armed."""

    WS_RECONNECTING = "websocket.reconnecting"
    """Reconnection timer fired."""

    WS_RECONNECT_EXHAUSTED = "websocket.reconnect.exhausted"
    """Maximum reconnection attempts reached."""

    WS_STALE_EVENT = "websocket.stale_event"
    """Callback from a transport that is no longer current."""

    # ========== Message Events ==========
    MESSAGE_RECEIVED = "message.received"
    """Inbound envelope decoded."""

    MESSAGE_SENT = "message.sent"
    """Outbound envelope transmitted."""

    MESSAGE_SEND_FAILED = "message.send.failed"
    """Outbound envelope could not be transmitted."""

    # ========== Session Events ==========
    SESSION_TRANSITION = "session.transition"
    """Session status changed."""

    SESSION_RESET = "session.reset"
    """Session state hard reset."""

    # ========== REST Events ==========
    UPLOAD_STARTED = "upload.started"
    """Source file upload started."""

    UPLOAD_COMPLETED = "upload.completed"
    """Source file accepted by the backend."""

    UPLOAD_FAILED = "upload.failed"
    """Source file upload failed."""

    DOWNLOAD_COMPLETED = "download.completed"
    """Result artifact written to disk."""

    DOWNLOAD_FAILED = "download.failed"
    """Result artifact could not be retrieved."""

    API_REQUEST = "api.request"
    """REST request issued."""

    # ========== Error Events ==========
    TRANSPORT_ERROR = "error.transport"
    """Connection-level failure."""

    DECODE_ERROR = "error.decode"
    """Inbound frame could not be decoded."""

    HANDLER_ERROR = "error.handler"
    """Subscriber callback raised."""

    TRANSITION_ERROR = "error.transition"
    """State transition raised."""

    LISTENER_ERROR = "error.listener"
    """State listener raised."""

    API_ERROR = "error.api"
    """REST call failed."""


# Event categories for filtering
WEBSOCKET_EVENTS = {
    LogEvent.WS_CONNECTING,
    LogEvent.WS_CONNECTED,
    LogEvent.WS_ALREADY_CONNECTED,
    LogEvent.WS_CLOSED,
    LogEvent.WS_DISCONNECTED,
    LogEvent.WS_RECONNECT_SCHEDULED,
    LogEvent.WS_RECONNECTING,
    LogEvent.WS_RECONNECT_EXHAUSTED,
    LogEvent.WS_STALE_EVENT,
}

MESSAGE_EVENTS = {
    LogEvent.MESSAGE_RECEIVED,
    LogEvent.MESSAGE_SENT,
    LogEvent.MESSAGE_SEND_FAILED,
}

API_EVENTS = {
    LogEvent.UPLOAD_STARTED,
    LogEvent.UPLOAD_COMPLETED,
    LogEvent.UPLOAD_FAILED,
    LogEvent.DOWNLOAD_COMPLETED,
    LogEvent.DOWNLOAD_FAILED,
    LogEvent.API_REQUEST,
}

ERROR_EVENTS = {
    LogEvent.TRANSPORT_ERROR,
    LogEvent.DECODE_ERROR,
    LogEvent.HANDLER_ERROR,
    LogEvent.TRANSITION_ERROR,
    LogEvent.LISTENER_ERROR,
    LogEvent.API_ERROR,
}


def event_category(event: LogEvent) -> str:
    """Return the leading namespace of an event ("websocket", "error", ...)."""
    return event.value.split(".", 1)[0]
