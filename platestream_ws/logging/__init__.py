"""
Structured Logging for platestream
==================================

Bounded Context: Observability

This module provides JSON-structured logging with pluggable sinks.

Design:
- JSON output (parseable by ELK, CloudWatch, Loki)
- Typed events (enums prevent typos)
- Contextual metadata (session_id, message type, attempt, etc.)
- Sinks: DebugConsole and other consumers subscribe explicitly

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function
    DebugConsole: Bounded in-memory sink

Example:
    >>> from platestream_ws.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="streaming_client")
    >>> logger.info(
    ...     event=LogEvent.MESSAGE_RECEIVED,
    ...     message="Received streaming_update",
    ...     metadata={'type': 'streaming_update'}
    ... )
"""

from .events import LogEvent, event_category
from .structured import StructuredLogger, create_logger
from .console import DebugConsole

__all__ = [
    'LogEvent',
    'event_category',
    'StructuredLogger',
    'create_logger',
    'DebugConsole',
]
