"""
Subscription Registry
=====================

Bounded Context: Message fan-out

Maps an envelope tag to an ordered list of independent consumer callbacks.

Design:
- Registration order is invocation order (per tag)
- subscribe() returns an unsubscribe function bound to the exact handler
  instance (identity, not equality)
- dispatch() iterates a snapshot, so handlers may subscribe/unsubscribe
  from inside a dispatch without corrupting it
- Each handler call is isolated: exceptions are logged, never propagated

Example:
    >>> registry = SubscriptionRegistry(logger)
    >>> unsubscribe = registry.subscribe(MessageType.STREAMING_UPDATE, on_update)
    >>> registry.dispatch("streaming_update", {"progress": {...}})
    1
    >>> unsubscribe()
"""

import threading
from typing import Any, Callable, Dict, List

from .logging import StructuredLogger, LogEvent
from .schemas import MessageTag, tag_value

MessageHandler = Callable[[Dict[str, Any]], None]


class SubscriptionRegistry:
    """
    Per-tag ordered handler lists.

    Thread Safety:
        The handler table is guarded by a lock; handlers run outside it.
    """

    def __init__(self, logger: StructuredLogger):
        self.logger = logger
        self._handlers: Dict[str, List[MessageHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, message_type: MessageTag, handler: MessageHandler) -> Callable[[], None]:
        """
        Append a handler for a tag.

        Args:
            message_type: MessageType member or any application tag
            handler: Called with the envelope's data dict

        Returns:
            Idempotent function removing exactly this handler instance
        """
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")

        key = tag_value(message_type)
        with self._lock:
            self._handlers.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(key)
                if not handlers:
                    return
                for index, registered in enumerate(handlers):
                    if registered is handler:
                        del handlers[index]
                        break
                if not handlers:
                    del self._handlers[key]

        return unsubscribe

    def dispatch(self, message_type: MessageTag, data: Dict[str, Any]) -> int:
        """
        Invoke every handler registered for a tag, in registration order.

        Returns:
            Number of handlers invoked (including ones that raised)
        """
        key = tag_value(message_type)
        with self._lock:
            snapshot = list(self._handlers.get(key, ()))

        for handler in snapshot:
            try:
                handler(data)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.HANDLER_ERROR,
                    message=f"Handler for {key} failed",
                    exc_info=e,
                    metadata={'type': key, 'handler': getattr(handler, '__qualname__', repr(handler))}
                )
        return len(snapshot)

    def handler_count(self, message_type: MessageTag) -> int:
        """Number of handlers currently registered for a tag."""
        with self._lock:
            return len(self._handlers.get(tag_value(message_type), ()))

    def clear(self) -> None:
        """Drop every registration."""
        with self._lock:
            self._handlers.clear()
