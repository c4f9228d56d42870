"""
Connection Manager
==================

Bounded Context: Connection lifecycle + inbound message routing

Owns the physical transport, its lifecycle callbacks and the reconnection
policy, and routes every decoded inbound envelope to both the
SubscriptionRegistry and the SessionStateStore.

Message Flow:
    1. Transport delivers a text frame (reader thread)
    2. Codec decodes it to an Envelope (malformed frames logged and dropped)
    3. SubscriptionRegistry.dispatch(type, data)   ─┐ both always run,
    4. SessionStateStore.handle(envelope)          ─┘ each isolated

Close Handling:
    code 1000 → intentional, no retry
    other     → ReconnectionScheduler.schedule()
    a retry whose transport cannot be created is scheduled again

Threading:
    Every entry point (public methods, transport callbacks, timer firings)
    runs under the coordinator RLock, so transitions are sequential and a
    handler may call disconnect() from inside a message callback. The
    closing handshake in disconnect() runs after the lock is released.
"""

import random
import string
import threading
import time
from typing import Callable, Optional, Union

from .exceptions import EnvelopeDecodeError, TransportError
from .logging import StructuredLogger, LogEvent
from .reconnect import ReconnectionScheduler, TimerFactory, _daemon_timer
from .schemas import Envelope, decode, encode
from .store import SessionStateStore, closed, connected, retries_exhausted, transport_error
from .subscriptions import SubscriptionRegistry
from .transport import ConnectionState, NORMAL_CLOSURE, WebSocketTransport

TransportFactory = Callable[[str], WebSocketTransport]

CREATE_FAILED_MESSAGE = "Could not create the WebSocket connection"
TRANSPORT_ERROR_MESSAGE = "WebSocket connection error"

_BASE36 = string.digits + string.ascii_lowercase


def generate_session_id() -> str:
    """session_<epoch ms>_<9 random base36 chars>"""
    suffix = ''.join(random.choices(_BASE36, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class ConnectionManager:
    """
    Single-connection owner with automatic reconnection.

    The logical session id survives automatic reconnections and is cleared
    only by disconnect(); the store's session_id mirrors the open connection.

    Example:
        >>> manager = ConnectionManager(
        ...     url_for_session=config.session_url,
        ...     store=store,
        ...     subscriptions=registry,
        ...     logger=logger,
        ... )
        >>> manager.connect()
        >>> manager.send(Envelope.command(MessageType.GET_STATUS))
        >>> manager.disconnect()
    """

    def __init__(
        self,
        url_for_session: Callable[[str], str],
        store: SessionStateStore,
        subscriptions: SubscriptionRegistry,
        logger: StructuredLogger,
        reconnect_interval: float = 3.0,
        max_reconnect_attempts: int = 5,
        lock: Optional[threading.RLock] = None,
        transport_factory: TransportFactory = WebSocketTransport,
        timer_factory: TimerFactory = _daemon_timer,
        session_id_factory: Callable[[], str] = generate_session_id,
    ):
        """
        Initialize connection manager.

        Args:
            url_for_session: Maps a session id to the WebSocket URL
            store: Session state store fed by inbound messages
            subscriptions: Registry receiving every decoded envelope
            logger: Structured logger
            reconnect_interval: Fixed retry delay in seconds
            max_reconnect_attempts: Retries before giving up
            lock: Coordinator lock (one per coordinator)
            transport_factory: Builds a transport for a URL
            timer_factory: Builds retry timers
            session_id_factory: Generates logical session ids
        """
        self.url_for_session = url_for_session
        self.store = store
        self.subscriptions = subscriptions
        self.logger = logger
        self._lock = lock or threading.RLock()
        self._transport_factory = transport_factory
        self._session_id_factory = session_id_factory

        self._transport: Optional[WebSocketTransport] = None
        self._session_id = ""

        self.scheduler = ReconnectionScheduler(
            interval=reconnect_interval,
            max_attempts=max_reconnect_attempts,
            on_retry=self._reconnect,
            on_exhausted=self._on_retries_exhausted,
            logger=logger,
            lock=self._lock,
            timer_factory=timer_factory,
        )

    # ===== Public API =====

    @property
    def session_id(self) -> str:
        """Logical session id ("" when no session is active)."""
        return self._session_id

    @property
    def connection_state(self) -> ConnectionState:
        transport = self._transport
        return transport.state if transport is not None else ConnectionState.CLOSED

    def is_open(self) -> bool:
        return self.connection_state == ConnectionState.OPEN

    def connection_lost(self) -> bool:
        """
        True when there is no connection and none will be attempted.

        Read under the coordinator lock, so a close that is about to schedule
        a retry is never observed half-way.
        """
        with self._lock:
            return (
                self.connection_state == ConnectionState.CLOSED
                and not self.scheduler.pending
                and not self.store.state.is_connected
            )

    def connect(self) -> None:
        """
        Open a connection unless one is already open or opening.

        Never raises: creation failures are recorded in the store.
        """
        self._connect(retrying=False)

    def _reconnect(self) -> None:
        self._connect(retrying=True)

    def _connect(self, retrying: bool) -> None:
        with self._lock:
            state = self.connection_state
            if state in (ConnectionState.OPEN, ConnectionState.CONNECTING):
                self.logger.info(
                    event=LogEvent.WS_ALREADY_CONNECTED,
                    message=f"connect() ignored: connection is {state.value}",
                    metadata={'session_id': self._session_id}
                )
                return

            if not self._session_id:
                self._session_id = self._session_id_factory()

            url = self.url_for_session(self._session_id)
            self.logger.info(
                event=LogEvent.WS_CONNECTING,
                message=f"Connecting to {url}",
                metadata={'session_id': self._session_id, 'url': url, 'retry': retrying}
            )

            try:
                transport = self._transport_factory(url)
                transport.on_open = self._on_open
                transport.on_message = self._on_message
                transport.on_close = self._on_close
                transport.on_error = self._on_error
                self._transport = transport
                transport.open()
            except Exception as e:
                self._transport = None
                self.logger.error(
                    event=LogEvent.TRANSPORT_ERROR,
                    message=CREATE_FAILED_MESSAGE,
                    exc_info=e,
                    metadata={'url': url, 'retry': retrying}
                )
                self.store.apply(
                    lambda s: transport_error(s, CREATE_FAILED_MESSAGE),
                    reason="create_failed"
                )
                # A failed retry counts as another unintended close
                if retrying:
                    self.scheduler.schedule()

    def disconnect(self, reason: str = "Manual disconnect") -> None:
        """
        Intentional hard stop.

        Cancels the pending retry, resets the session state and then closes
        the connection with code 1000 outside the coordinator lock. The
        transport's own close event arrives later and is ignored.
        """
        with self._lock:
            self.scheduler.cancel()
            self.scheduler.reset()

            transport = self._transport
            self._transport = None
            session_id = self._session_id
            self._session_id = ""

            self.store.reset()

        if transport is not None:
            try:
                transport.close(NORMAL_CLOSURE, reason)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.TRANSPORT_ERROR,
                    message="Error during close",
                    exc_info=e,
                    metadata={'session_id': session_id}
                )

        self.logger.info(
            event=LogEvent.WS_DISCONNECTED,
            message="Disconnected",
            metadata={'session_id': session_id, 'reason': reason}
        )

    def send(self, envelope: Union[Envelope, dict]) -> bool:
        """
        Transmit an envelope.

        Returns:
            True if transmitted, False if not open or the transport failed
        """
        with self._lock:
            transport = self._transport
            if transport is None or transport.state != ConnectionState.OPEN:
                self.logger.warning(
                    event=LogEvent.MESSAGE_SEND_FAILED,
                    message="Cannot send: connection not open",
                    metadata={'state': self.connection_state.value}
                )
                return False

            try:
                text = encode(envelope)
                transport.send(text)
            except (TransportError, EnvelopeDecodeError, TypeError) as e:
                self.logger.error(
                    event=LogEvent.MESSAGE_SEND_FAILED,
                    message="Error sending message",
                    exc_info=e,
                    metadata={'session_id': self._session_id}
                )
                return False

            self.logger.info(
                event=LogEvent.MESSAGE_SENT,
                message="Message sent",
                metadata={'session_id': self._session_id, 'payload': text}
            )
            return True

    # ===== Transport Callbacks (reader thread) =====

    def _is_current(self, transport: WebSocketTransport, callback: str) -> bool:
        if transport is self._transport:
            return True
        self.logger.debug(
            event=LogEvent.WS_STALE_EVENT,
            message=f"Ignoring {callback} from a superseded transport",
            metadata={'url': getattr(transport, 'url', None)}
        )
        return False

    def _on_open(self, transport: WebSocketTransport) -> None:
        with self._lock:
            if not self._is_current(transport, "open"):
                return
            self.scheduler.cancel()
            self.scheduler.reset()
            session_id = self._session_id
            self.logger.info(
                event=LogEvent.WS_CONNECTED,
                message="Connection open",
                metadata={'session_id': session_id}
            )
            self.store.apply(lambda s: connected(s, session_id), reason="open")

    def _on_message(self, transport: WebSocketTransport, frame: Union[str, bytes]) -> None:
        with self._lock:
            if not self._is_current(transport, "message"):
                return

            try:
                envelope = decode(frame)
            except EnvelopeDecodeError as e:
                self.logger.error(
                    event=LogEvent.DECODE_ERROR,
                    message="Dropping malformed frame",
                    exc_info=e,
                    metadata={'frame': frame[:200] if isinstance(frame, str) else repr(frame[:200])}
                )
                return

            self.logger.debug(
                event=LogEvent.MESSAGE_RECEIVED,
                message=f"Received {envelope.type}",
                metadata={'type': envelope.type, 'session_id': self._session_id}
            )

            # Registry isolates each handler itself; guard the call anyway so
            # the store update below always runs
            try:
                self.subscriptions.dispatch(envelope.type, envelope.payload)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.HANDLER_ERROR,
                    message=f"Dispatch of {envelope.type} failed",
                    exc_info=e
                )

            # A handler may have called disconnect(); that reset must stand
            if transport is not self._transport:
                return

            try:
                self.store.handle(envelope)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.TRANSITION_ERROR,
                    message=f"State transition for {envelope.type} failed",
                    exc_info=e,
                    metadata={'type': envelope.type}
                )

    def _on_close(self, transport: WebSocketTransport, code: int, reason: str) -> None:
        with self._lock:
            if not self._is_current(transport, "close"):
                return
            self._transport = None

            intentional = code == NORMAL_CLOSURE
            self.logger.warning(
                event=LogEvent.WS_CLOSED,
                message=f"Connection closed: {code} {reason}".strip(),
                metadata={
                    'session_id': self._session_id,
                    'code': code,
                    'reason': reason,
                    'intentional': intentional,
                }
            )
            self.store.apply(closed, reason=f"close:{code}")

            if not intentional:
                self.scheduler.schedule()

    def _on_error(self, transport: WebSocketTransport, error: BaseException) -> None:
        with self._lock:
            if not self._is_current(transport, "error"):
                return
            self.logger.error(
                event=LogEvent.TRANSPORT_ERROR,
                message=TRANSPORT_ERROR_MESSAGE,
                exc_info=error,
                metadata={'session_id': self._session_id}
            )
            self.store.apply(lambda s: transport_error(s, TRANSPORT_ERROR_MESSAGE), reason="error")

    def _on_retries_exhausted(self, max_attempts: int) -> None:
        message = f"Could not reconnect after {max_attempts} attempts"
        self.store.apply(lambda s: retries_exhausted(s, message), reason="retries_exhausted")
