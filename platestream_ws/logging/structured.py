"""
Structured JSON Logger
=====================

Bounded Context: Observability Infrastructure

This module provides a structured logger that outputs JSON logs and fans
every entry out to registered sinks.

Design:
- JSON output (compatible with log aggregators)
- Thread-safe (uses standard logging module, sink list guarded by a lock)
- Contextual metadata (session_id, message type, attempt, etc.)
- Type-safe events (LogEvent enum)
- Explicit sinks: consumers such as DebugConsole subscribe to entries
  instead of intercepting stdout

Example:
    >>> logger = StructuredLogger(component="streaming_client")
    >>> logger.info(
    ...     event=LogEvent.WS_CONNECTED,
    ...     message="Connection open",
    ...     metadata={'session_id': 'session_1729350000000_k3j2h1g0f'}
    ... )

Output:
    {
        "timestamp": "2026-10-19T15:30:45.123456+00:00",
        "level": "INFO",
        "component": "streaming_client",
        "category": "websocket",
        "event": "websocket.connected",
        "message": "Connection open",
        "metadata": {"session_id": "session_1729350000000_k3j2h1g0f"}
    }
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .events import LogEvent, event_category

LogSink = Callable[[Dict[str, Any]], None]

_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')


class StructuredLogger:
    """
    JSON structured logger for production observability.

    Wraps Python's logging module with structured metadata support and an
    injectable sink interface.

    Attributes:
        component: Component name (e.g., "streaming_client", "api")
        logger: Underlying Python logger instance

    Thread Safety:
        Thread-safe via Python's logging module; sinks are invoked on the
        thread that logged the entry.
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None
    ):
        """
        Initialize structured logger.

        Args:
            component: Component identifier (e.g., "streaming_client")
            level: Logging level (default: INFO)
            logger_name: Custom logger name (default: platestream.<component>)
        """
        self.component = component
        self.logger_name = logger_name or f"platestream.{component}"
        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(level)

        # Configure JSON formatter if not already configured
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

        self._sinks: List[LogSink] = []
        self._sinks_lock = threading.Lock()

    def add_sink(self, sink: LogSink) -> Callable[[], None]:
        """
        Register a consumer for every log entry.

        Args:
            sink: Callable receiving the entry dict

        Returns:
            Function that removes this sink
        """
        with self._sinks_lock:
            self._sinks.append(sink)

        def remove() -> None:
            with self._sinks_lock:
                self._sinks = [s for s in self._sinks if s is not sink]

        return remove

    def _log(
        self,
        level: str,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Internal log method with structured format.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR)
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
            exc_info: Exception for ERROR logs
        """
        log_entry: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level,
            'component': self.component,
            'category': event_category(event),
            'event': event.value,
            'message': message,
        }

        if metadata:
            log_entry['metadata'] = metadata

        if exc_info:
            log_entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info)
            }

        log_level = getattr(logging, level)
        if self.logger.isEnabledFor(log_level):
            self.logger.log(
                log_level,
                json.dumps(log_entry, default=str),
                exc_info=exc_info if level == 'ERROR' else None
            )

        self._emit(log_entry)

    def _emit(self, log_entry: Dict[str, Any]) -> None:
        with self._sinks_lock:
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                sink(log_entry)
            except Exception:
                # A broken sink must never take the caller down with it
                self.logger.debug("Log sink failed", exc_info=True)

    def log(
        self,
        level: str,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log at an explicit level name.

        Args:
            level: One of DEBUG, INFO, WARNING, ERROR
            event: Typed log event
            message: Human-readable message
            metadata: Additional context

        Raises:
            ValueError: If level is unknown
        """
        level = level.upper()
        if level not in _LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        self._log(level, event, message, metadata)

    def debug(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log DEBUG level message."""
        self._log('DEBUG', event, message, metadata)

    def info(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log INFO level message.

        Example:
            >>> logger.info(
            ...     event=LogEvent.UPLOAD_COMPLETED,
            ...     message="Upload accepted",
            ...     metadata={'session_id': session_id}
            ... )
        """
        self._log('INFO', event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log WARNING level message.

        Example:
            >>> logger.warning(
            ...     event=LogEvent.MESSAGE_SEND_FAILED,
            ...     message="Cannot send: connection not open"
            ... )
        """
        self._log('WARNING', event, message, metadata)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log ERROR level message.

        Example:
            >>> try:
            ...     handler(data)
            ... except Exception as e:
            ...     logger.error(
            ...         event=LogEvent.HANDLER_ERROR,
            ...         message="Handler failed",
            ...         exc_info=e,
            ...         metadata={'type': 'streaming_update'}
            ...     )
        """
        self._log('ERROR', event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        """
        Change logging level dynamically.

        Sinks keep receiving every entry regardless of level.
        """
        self.logger.setLevel(level)


class JSONFormatter(logging.Formatter):
    """
    Custom formatter that outputs logs as JSON.

    The message from StructuredLogger is already JSON; pass it through.
    """

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def create_logger(
    component: str,
    level: int = logging.INFO
) -> StructuredLogger:
    """
    Factory function to create configured StructuredLogger.

    Example:
        >>> logger = create_logger("streaming_client", level=logging.DEBUG)
    """
    return StructuredLogger(component=component, level=level)
