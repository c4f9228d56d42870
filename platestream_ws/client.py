"""
Streaming Client
================

Bounded Context: Session coordinator facade

Composes one coordinator: a single lock, one SessionStateStore, one
SubscriptionRegistry, one ConnectionManager (with its ReconnectionScheduler)
and the REST client used for upload and result retrieval.

Architecture:
    StreamingClient
        ├── ConnectionManager ──→ WebSocketTransport (reader thread)
        │       └── ReconnectionScheduler (timer threads)
        ├── SubscriptionRegistry   (application handlers)
        ├── SessionStateStore      (single StreamingState owner)
        └── StreamingApiClient     (upload / download, outside the lock)

Job Lifecycle:
    connect() → start_streaming(file) → uploading → initializing
        → processing ⇄ paused → completed | stopped | error

Example:
    >>> with StreamingClient(ClientConfig.from_yaml("config.yaml")) as client:
    ...     client.on_message(MessageType.STREAMING_UPDATE, print_progress)
    ...     client.connect()
    ...     # wait for client.state.is_connected
    ...     client.start_streaming("parking.mp4")
"""

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

from .analytics import PlateSummary
from .config import RESULT_FORMATS, ClientConfig, StreamingOptions
from .connection import ConnectionManager, TransportFactory, generate_session_id
from .exceptions import InvalidStateError
from .logging import StructuredLogger
from .reconnect import TimerFactory, _daemon_timer
from .schemas import Envelope, MessageTag, MessageType, StreamingState, StreamingStatus
from .store import (
    SessionStateStore,
    error_cleared,
    upload_accepted,
    upload_failed,
    upload_started,
)
from .subscriptions import MessageHandler, SubscriptionRegistry
from .transport import ConnectionState, WebSocketTransport

if TYPE_CHECKING:
    from platestream_api import StreamingApiClient

DEFAULT_UPLOAD_ERROR = "Error uploading video"


class StreamingClient:
    """
    Streaming session coordinator.

    Thread Safety:
        All state changes are serialized by one RLock shared with the
        ConnectionManager and its scheduler. The upload HTTP call runs
        outside the lock so inbound messages keep flowing.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        logger: Optional[StructuredLogger] = None,
        api: Optional["StreamingApiClient"] = None,
        transport_factory: TransportFactory = WebSocketTransport,
        timer_factory: TimerFactory = _daemon_timer,
        session_id_factory: Callable[[], str] = generate_session_id,
    ):
        """
        Initialize the coordinator.

        Args:
            config: Client configuration (defaults apply when None)
            logger: Structured logger (default: platestream.streaming_client)
            api: REST client (built from config when None)
            transport_factory: Builds a WebSocket transport for a URL
            timer_factory: Builds reconnection timers
            session_id_factory: Generates logical session ids
        """
        self.config = config or ClientConfig()
        self.logger = logger or StructuredLogger(component="streaming_client")
        if api is None:
            from platestream_api import StreamingApiClient
            api = StreamingApiClient(
                base_url=self.config.api_base_url,
                timeout=self.config.http_timeout,
                logger=self.logger,
            )
        self.api = api

        self._lock = threading.RLock()
        self.store = SessionStateStore(self.logger)
        self.subscriptions = SubscriptionRegistry(self.logger)
        self.connection = ConnectionManager(
            url_for_session=self.config.session_url,
            store=self.store,
            subscriptions=self.subscriptions,
            logger=self.logger,
            reconnect_interval=self.config.reconnect_interval,
            max_reconnect_attempts=self.config.max_reconnect_attempts,
            lock=self._lock,
            transport_factory=transport_factory,
            timer_factory=timer_factory,
            session_id_factory=session_id_factory,
        )

    # ===== State =====

    @property
    def state(self) -> StreamingState:
        """Current immutable snapshot."""
        return self.store.state

    @property
    def session_id(self) -> str:
        return self.connection.session_id

    @property
    def connection_status(self) -> str:
        return "connected" if self.state.is_connected else "disconnected"

    @property
    def can_start(self) -> bool:
        state = self.state
        return state.is_connected and not state.is_streaming

    @property
    def can_control(self) -> bool:
        state = self.state
        return state.is_connected and state.is_streaming

    @property
    def has_results(self) -> bool:
        return len(self.state.unique_plates) > 0

    @property
    def is_uploading(self) -> bool:
        return self.state.status == StreamingStatus.UPLOADING

    @property
    def is_initializing(self) -> bool:
        return self.state.status == StreamingStatus.INITIALIZING

    @property
    def is_completed(self) -> bool:
        return self.state.status == StreamingStatus.COMPLETED

    @property
    def has_error(self) -> bool:
        state = self.state
        return state.status == StreamingStatus.ERROR or bool(state.error)

    def add_state_listener(self, listener: Callable[[StreamingState], None]) -> Callable[[], None]:
        """Observe every new snapshot; returns a remover."""
        return self.store.add_listener(listener)

    def summary(self) -> PlateSummary:
        """Statistics over the current unique plates."""
        return PlateSummary.from_plates(self.state.unique_plates)

    # ===== Connection =====

    def connect(self) -> None:
        self.connection.connect()

    def disconnect(self, reason: str = "Manual disconnect") -> None:
        self.connection.disconnect(reason)

    def is_open(self) -> bool:
        return self.connection.connection_state == ConnectionState.OPEN

    def connection_lost(self) -> bool:
        """Closed with no retry pending (never connected, disconnected or gave up)."""
        return self.connection.connection_lost()

    # ===== Messaging =====

    def on_message(self, message_type: MessageTag, handler: MessageHandler) -> Callable[[], None]:
        """Subscribe a handler to a tag; returns the unsubscribe function."""
        return self.subscriptions.subscribe(message_type, handler)

    def send_message(self, message: Union[Envelope, Dict[str, Any]]) -> bool:
        return self.connection.send(message)

    # ===== Job Control =====

    def start_streaming(
        self,
        file: Any,
        options: Optional[StreamingOptions] = None,
    ) -> Dict[str, Any]:
        """
        Upload a source video and start the processing job.

        Args:
            file: Path or binary file object
            options: Processing options (config defaults when None)

        Returns:
            Upload acceptance response

        Raises:
            InvalidStateError: No open connection (state untouched)
            StreamingApiError: Upload failed (state records the error)
        """
        with self._lock:
            if not self.state.is_connected or not self.connection.session_id:
                raise InvalidStateError("Not connected: call connect() and wait for the connection to open")
            session_id = self.connection.session_id
            self.store.apply(upload_started, reason="upload")

        try:
            response = self.api.upload_video(
                session_id,
                file,
                options or self.config.streaming_options,
            )
        except Exception as e:
            message = getattr(e, 'message', None) or str(e) or DEFAULT_UPLOAD_ERROR
            with self._lock:
                self.store.apply(lambda s: upload_failed(s, message), reason="upload_failed")
            raise

        with self._lock:
            self.store.apply(upload_accepted, reason="upload_accepted")
        return response

    def pause_streaming(self) -> bool:
        return self.connection.send(Envelope.command(MessageType.PAUSE_PROCESSING))

    def resume_streaming(self) -> bool:
        return self.connection.send(Envelope.command(MessageType.RESUME_PROCESSING))

    def stop_streaming(self) -> bool:
        return self.connection.send(Envelope.command(MessageType.STOP_PROCESSING))

    def request_status(self) -> bool:
        return self.connection.send(Envelope.command(MessageType.GET_STATUS))

    def download_results(self, fmt: str = "json", dest_dir: Union[str, Path] = ".") -> Path:
        """
        Retrieve the session's result artifact.

        Raises:
            InvalidStateError: No session
            ValueError: Unknown format
            StreamingApiError: Retrieval failed
        """
        session_id = self.connection.session_id
        if not session_id:
            raise InvalidStateError("No active session to download results for")
        if fmt not in RESULT_FORMATS:
            raise ValueError(f"format must be one of {RESULT_FORMATS}, got {fmt!r}")
        return self.api.download_results(session_id, fmt=fmt, dest_dir=dest_dir)

    def clear_error(self) -> None:
        """Clear the error text; status is left as is."""
        with self._lock:
            self.store.apply(error_cleared, reason="clear_error")

    # ===== Lifecycle =====

    def close(self) -> None:
        """Disconnect and release the HTTP client."""
        self.disconnect("Client closed")
        self.subscriptions.clear()
        self.api.close()

    def __enter__(self) -> "StreamingClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
