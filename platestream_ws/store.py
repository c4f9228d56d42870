"""
Session State Store
===================

Bounded Context: Session status derivation

Holds the single StreamingState snapshot of a coordinator and derives it
from inbound system messages and local commands.

Design:
- Transitions are pure functions (state, input) -> state; they read
  nothing but their arguments and are unit-testable in isolation
- apply_message() maps each known inbound tag to exactly one transition;
  unknown tags leave the state untouched
- SessionStateStore is the only writer: it swaps immutable snapshots and
  notifies listeners after each change

Architecture:
    ConnectionManager → SessionStateStore.apply(...) → listeners
                                     ↑
                 StreamingClient (upload / clear_error)
"""

import math
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from .logging import StructuredLogger, LogEvent
from .schemas import (
    Envelope,
    MessageType,
    StreamingFrame,
    StreamingProgress,
    StreamingState,
    StreamingStatus,
)

StateListener = Callable[[StreamingState], None]
Transition = Callable[[StreamingState], StreamingState]

DEFAULT_STREAMING_ERROR = "Streaming error"
JPEG_DATA_URI_PREFIX = "data:image/jpeg;base64,"


# ─────────────────────────────────────────────────────────────────────────────
# Payload helpers
# ─────────────────────────────────────────────────────────────────────────────

def _as_int(value: Any) -> int:
    return int(_as_float(value))


def _as_float(value: Any) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    # inf and nan count as missing
    return number if math.isfinite(number) else 0.0


# ─────────────────────────────────────────────────────────────────────────────
# Local transitions
# ─────────────────────────────────────────────────────────────────────────────

def initial_state() -> StreamingState:
    """Fully disconnected shape."""
    return StreamingState()


def connected(state: StreamingState, session_id: str) -> StreamingState:
    return replace(
        state,
        is_connected=True,
        session_id=session_id,
        status=StreamingStatus.CONNECTED,
        error=None,
    )


def closed(state: StreamingState) -> StreamingState:
    """Connection lost or closed. Job data is kept for inspection."""
    return replace(
        state,
        is_connected=False,
        is_streaming=False,
        is_paused=False,
        session_id="",
        status=StreamingStatus.DISCONNECTED,
    )


def transport_error(state: StreamingState, message: str) -> StreamingState:
    return replace(
        state,
        is_streaming=False,
        is_paused=False,
        status=StreamingStatus.ERROR,
        error=message,
    )


def retries_exhausted(state: StreamingState, message: str) -> StreamingState:
    """Terminal error; status stays whatever the close transition left."""
    return replace(state, error=message)


def upload_started(state: StreamingState) -> StreamingState:
    return replace(
        state,
        status=StreamingStatus.UPLOADING,
        error=None,
        is_streaming=False,
        is_paused=False,
    )


def upload_accepted(state: StreamingState) -> StreamingState:
    # streaming_started may overtake the HTTP response; never regress it
    if state.status != StreamingStatus.UPLOADING:
        return state
    return replace(state, status=StreamingStatus.INITIALIZING)


def upload_failed(state: StreamingState, message: str) -> StreamingState:
    return replace(
        state,
        status=StreamingStatus.ERROR,
        error=message,
        is_streaming=False,
        is_paused=False,
    )


def error_cleared(state: StreamingState) -> StreamingState:
    return replace(state, error=None)


# ─────────────────────────────────────────────────────────────────────────────
# Inbound message transitions
# ─────────────────────────────────────────────────────────────────────────────

def streaming_started(state: StreamingState, envelope: Envelope) -> StreamingState:
    return replace(state, is_streaming=True, status=StreamingStatus.PROCESSING, error=None)


def streaming_update(state: StreamingState, envelope: Envelope) -> StreamingState:
    """
    Merge a progress snapshot.

    progress/processing_speed come from data.progress, current_frame only when
    a frame image is present, detections and unique_plates are replaced.
    """
    data = envelope.payload
    changes: Dict[str, Any] = {}

    progress = data.get('progress')
    if isinstance(progress, dict):
        changes['progress'] = StreamingProgress(
            processed=_as_int(progress.get('processed_frames')),
            total=_as_int(progress.get('total_frames')),
            percent=_as_float(progress.get('progress_percent')),
        )
        changes['processing_speed'] = _as_float(progress.get('processing_speed'))

    frame_data = data.get('frame_data')
    if isinstance(frame_data, dict) and isinstance(frame_data.get('image_base64'), str):
        frame_info = data.get('frame_info')
        if not isinstance(frame_info, dict):
            frame_info = {}
        changes['current_frame'] = StreamingFrame(
            image=JPEG_DATA_URI_PREFIX + frame_data['image_base64'],
            frame_number=_as_int(frame_info.get('frame_number')),
            timestamp=_as_float(frame_info.get('timestamp')),
            processing_time=_as_float(frame_info.get('processing_time')),
        )

    detections = data.get('current_detections')
    if isinstance(detections, list):
        changes['detections'] = tuple(detections)

    summary = data.get('detection_summary')
    if isinstance(summary, dict) and isinstance(summary.get('best_plates'), list):
        changes['unique_plates'] = tuple(summary['best_plates'])

    if not changes:
        return state
    return replace(state, **changes)


def streaming_completed(state: StreamingState, envelope: Envelope) -> StreamingState:
    return replace(state, is_streaming=False, status=StreamingStatus.COMPLETED)


def streaming_error(state: StreamingState, envelope: Envelope) -> StreamingState:
    message = envelope.error or envelope.payload.get('message') or DEFAULT_STREAMING_ERROR
    return replace(
        state,
        is_streaming=False,
        is_paused=False,
        status=StreamingStatus.ERROR,
        error=str(message),
    )


def processing_paused(state: StreamingState, envelope: Envelope) -> StreamingState:
    return replace(state, is_paused=True, status=StreamingStatus.PAUSED)


def processing_resumed(state: StreamingState, envelope: Envelope) -> StreamingState:
    return replace(state, is_paused=False, status=StreamingStatus.PROCESSING)


def processing_stopped(state: StreamingState, envelope: Envelope) -> StreamingState:
    return replace(state, is_streaming=False, is_paused=False, status=StreamingStatus.STOPPED)


MESSAGE_TRANSITIONS: Dict[MessageType, Callable[[StreamingState, Envelope], StreamingState]] = {
    MessageType.STREAMING_STARTED: streaming_started,
    MessageType.STREAMING_UPDATE: streaming_update,
    MessageType.STREAMING_COMPLETED: streaming_completed,
    MessageType.STREAMING_ERROR: streaming_error,
    MessageType.PROCESSING_PAUSED: processing_paused,
    MessageType.PROCESSING_RESUMED: processing_resumed,
    MessageType.PROCESSING_STOPPED: processing_stopped,
}


def apply_message(state: StreamingState, envelope: Envelope) -> StreamingState:
    """
    Transition function for inbound system messages.

    connection_established and unknown tags return the state unchanged.
    """
    message_type = envelope.message_type
    if message_type is None:
        return state
    transition = MESSAGE_TRANSITIONS.get(message_type)
    if transition is None:
        return state
    return transition(state, envelope)


# ─────────────────────────────────────────────────────────────────────────────
# Store
# ─────────────────────────────────────────────────────────────────────────────

class SessionStateStore:
    """
    Single owner of a coordinator's StreamingState.

    Readers use the `state` property (an immutable snapshot). Writers are the
    ConnectionManager and StreamingClient, which call apply()/handle()
    while holding the coordinator lock.

    Example:
        >>> store = SessionStateStore(logger)
        >>> store.handle(Envelope(type="streaming_started"))
        >>> store.state.status
        <StreamingStatus.PROCESSING: 'processing'>
    """

    def __init__(self, logger: StructuredLogger):
        self.logger = logger
        self._state = initial_state()
        self._listeners: List[StateListener] = []
        self._listeners_lock = threading.Lock()

    @property
    def state(self) -> StreamingState:
        return self._state

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback invoked with each new snapshot; returns remover."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._listeners_lock:
                self._listeners = [l for l in self._listeners if l is not listener]

        return remove

    def apply(self, transition: Transition, reason: Optional[str] = None) -> StreamingState:
        """Apply a local transition and notify listeners if anything changed."""
        previous = self._state
        new_state = transition(previous)
        if new_state == previous:
            return previous

        self._state = new_state
        if new_state.status != previous.status:
            self.logger.info(
                event=LogEvent.SESSION_TRANSITION,
                message=f"{previous.status.value} -> {new_state.status.value}",
                metadata={
                    'from': previous.status.value,
                    'to': new_state.status.value,
                    'reason': reason,
                    'session_id': new_state.session_id,
                }
            )
        self._notify(new_state)
        return new_state

    def handle(self, envelope: Envelope) -> StreamingState:
        """Feed an inbound envelope through apply_message()."""
        return self.apply(lambda state: apply_message(state, envelope), reason=envelope.type)

    def reset(self) -> StreamingState:
        """Hard reset to the fully disconnected shape."""
        self.logger.info(event=LogEvent.SESSION_RESET, message="Session state reset")
        return self.apply(lambda state: initial_state(), reason="reset")

    def _notify(self, state: StreamingState) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.LISTENER_ERROR,
                    message="State listener failed",
                    exc_info=e,
                    metadata={'status': state.status.value}
                )
