"""
WebSocket Transport
===================

Bounded Context: Physical connection

Callback-style wrapper around the `websockets` synchronous client, shaped
like paho-mqtt's client: assign on_open / on_message / on_close / on_error,
then call open(). Callbacks receive the transport as first argument.

Design:
- open() is non-blocking; the handshake and the receive loop run on a
  daemon reader thread
- Connect failures fire on_error then on_close(1006, reason)
- Every closure fires on_close(code, reason) exactly once, with the code
  received from the peer, or the code the caller asked for, or 1006
- send() raises TransportError instead of library exceptions

Threading:
    Callbacks run on the reader thread. Keep them fast; the
    ConnectionManager serializes them behind the coordinator lock.
"""

import threading
from enum import Enum
from typing import Callable, Optional, Union

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.sync.client import ClientConnection, connect

from .exceptions import TransportError

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


class ConnectionState(str, Enum):
    """Lifecycle of the physical connection."""
    CLOSED = "closed"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


def _noop(*args) -> None:
    pass


class WebSocketTransport:
    """
    One physical WebSocket connection attempt.

    A transport is single-use: once closed, create a new one.

    Attributes:
        url: ws:// or wss:// endpoint
        open_timeout: Handshake timeout in seconds
        close_timeout: Closing handshake timeout in seconds
    """

    def __init__(
        self,
        url: str,
        open_timeout: float = 10.0,
        close_timeout: float = 5.0,
    ):
        self.url = url
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout

        # Callbacks (assigned by owner before open())
        self.on_open: Callable[['WebSocketTransport'], None] = _noop
        self.on_message: Callable[['WebSocketTransport', Union[str, bytes]], None] = _noop
        self.on_close: Callable[['WebSocketTransport', int, str], None] = _noop
        self.on_error: Callable[['WebSocketTransport', BaseException], None] = _noop

        self._state = ConnectionState.CLOSED
        self._connection: Optional[ClientConnection] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._close_requested: Optional[int] = None
        self._close_reason = ""
        self._opened_once = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    def open(self) -> None:
        """Start the handshake on a background thread."""
        with self._lock:
            if self._opened_once:
                raise TransportError("Transport already used; create a new one")
            self._opened_once = True
            self._state = ConnectionState.CONNECTING

        self._thread = threading.Thread(
            target=self._run,
            name="platestream-ws-reader",
            daemon=True
        )
        self._thread.start()

    def send(self, text: str) -> None:
        """
        Transmit a text frame.

        Raises:
            TransportError: If not open or the connection fails mid-send
        """
        connection = self._connection
        if connection is None or self._state != ConnectionState.OPEN:
            raise TransportError(f"Cannot send: connection is {self._state.value}")
        try:
            connection.send(text)
        except (ConnectionClosed, OSError) as e:
            raise TransportError(f"Send failed: {e}") from e

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """
        Start the closing handshake. on_close fires from the reader thread.

        Safe to call in any state and more than once.
        """
        with self._lock:
            if self._close_requested is not None:
                return
            self._close_requested = code
            self._close_reason = reason
            connection = self._connection
            if self._state != ConnectionState.CLOSED:
                self._state = ConnectionState.CLOSING

        if connection is not None:
            try:
                connection.close(code=code, reason=reason)
            except (ConnectionClosed, OSError):
                # Already gone; the reader thread reports the closure
                pass

    def _run(self) -> None:
        code, reason = ABNORMAL_CLOSURE, ""
        entered = False
        try:
            with connect(
                self.url,
                open_timeout=self.open_timeout,
                close_timeout=self.close_timeout,
            ) as connection:
                entered = True
                code, reason = self._serve(connection)
        except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as e:
            if not entered and self._close_requested is not None:
                code, reason = self._close_requested, self._close_reason
            else:
                self.on_error(self, e)
                reason = reason or str(e)
        finally:
            with self._lock:
                self._state = ConnectionState.CLOSED
                self._connection = None

        self.on_close(self, code, reason)

    def _serve(self, connection: ClientConnection):
        """Receive loop of an open connection. Returns the (code, reason) it closed with."""
        with self._lock:
            self._connection = connection
            close_pending = self._close_requested is not None
            if not close_pending:
                self._state = ConnectionState.OPEN

        if close_pending:
            # close() was called while the handshake was in flight
            connection.close(code=self._close_requested, reason=self._close_reason)
            return self._close_requested, self._close_reason

        self.on_open(self)

        try:
            while True:
                message = connection.recv()
                self.on_message(self, message)
        except ConnectionClosed as e:
            if e.rcvd is not None:
                return e.rcvd.code, e.rcvd.reason
            if self._close_requested is not None:
                return self._close_requested, self._close_reason
            return ABNORMAL_CLOSURE, ""
        except OSError as e:
            self.on_error(self, e)
            return ABNORMAL_CLOSURE, str(e)
