"""
Debug Console Sink
==================

Bounded Context: Observability (inspection)

In-memory, bounded buffer of structured log entries for interactive
inspection. It is a passive consumer: attach it to one or more
StructuredLogger instances and it records what they emit.

Example:
    >>> console = DebugConsole()
    >>> detach = console.attach(client.logger)
    >>> ...
    >>> for entry in console.entries(level="ERROR"):
    ...     print(entry['event'], entry['message'])
    >>> console.export_json(Path("streaming_debug.json"))
"""

import json
import threading
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

from .structured import StructuredLogger

DEFAULT_CAPACITY = 200


class DebugConsole:
    """
    Bounded ring buffer of log entries with pause, filter and export.

    Attributes:
        capacity: Maximum number of retained entries (oldest dropped first)
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self.capacity = capacity
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._paused = False

    def attach(self, logger: StructuredLogger) -> Callable[[], None]:
        """Subscribe to a logger; returns the detach function."""
        return logger.add_sink(self.record)

    def record(self, entry: Dict[str, Any]) -> None:
        """Sink entry point. Dropped while paused."""
        with self._lock:
            if self._paused:
                return
            self._entries.append(dict(entry))

    def pause(self) -> None:
        with self._lock:
            self._paused = True

    def resume(self) -> None:
        with self._lock:
            self._paused = False

    @property
    def is_paused(self) -> bool:
        return self._paused

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def entries(
        self,
        level: Optional[str] = None,
        category: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Snapshot of retained entries, oldest first.

        Args:
            level: Keep only this level (e.g. "ERROR")
            category: Keep only this category (e.g. "websocket")
        """
        with self._lock:
            snapshot = list(self._entries)
        if level is not None:
            snapshot = [e for e in snapshot if e.get('level') == level.upper()]
        if category is not None:
            snapshot = [e for e in snapshot if e.get('category') == category]
        return snapshot

    def export_json(self, path: Path) -> Path:
        """Write all retained entries to a JSON file and return its path."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.entries(), f, indent=2, default=str)
        return path
