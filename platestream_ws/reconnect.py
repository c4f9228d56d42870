"""
Reconnection Scheduler
======================

Bounded Context: Connection recovery policy

Fixed-interval retry (not exponential) up to a maximum attempt count.

Policy, on each unintended close:
    1. Cancel any pending timer (at most one pending at a time)
    2. Increment the attempt counter
    3. attempts <= max_attempts → call on_retry() after `interval` seconds
    4. attempts >  max_attempts → call on_exhausted(), no timer

reset() is called on every successful open, so a long-lived connection
forgives earlier failures.

Threading:
    Timers fire on their own threads (threading.Timer). The callback takes
    the coordinator lock and checks a generation counter, so a timer that
    was cancelled after it had already fired is a no-op.
"""

import threading
from typing import Callable, Optional

from .logging import StructuredLogger, LogEvent

TimerFactory = Callable[[float, Callable[[], None]], "threading.Timer"]


def _daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class ReconnectionScheduler:
    """
    Attempt counter plus a single pending retry timer.

    Attributes:
        interval: Seconds between an unintended close and the retry
        max_attempts: Retries allowed before giving up
    """

    def __init__(
        self,
        interval: float,
        max_attempts: int,
        on_retry: Callable[[], None],
        on_exhausted: Callable[[int], None],
        logger: StructuredLogger,
        lock: Optional[threading.RLock] = None,
        timer_factory: TimerFactory = _daemon_timer,
    ):
        """
        Initialize scheduler.

        Args:
            interval: Retry delay in seconds
            max_attempts: Maximum consecutive retries
            on_retry: Invoked (under lock) when a timer fires
            on_exhausted: Invoked (under lock) with max_attempts once retries run out
            logger: Structured logger
            lock: Coordinator lock shared with the ConnectionManager
            timer_factory: Builds a startable/cancellable timer (tests inject a fake)
        """
        if interval < 0:
            raise ValueError(f"interval must be >= 0, got {interval}")
        if max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {max_attempts}")

        self.interval = interval
        self.max_attempts = max_attempts
        self.logger = logger
        self._on_retry = on_retry
        self._on_exhausted = on_exhausted
        self._lock = lock or threading.RLock()
        self._timer_factory = timer_factory

        self._attempts = 0
        self._timer = None
        self._generation = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def pending(self) -> bool:
        """True while a retry timer is armed."""
        return self._timer is not None

    def schedule(self) -> bool:
        """
        Register one unintended close.

        Returns:
            True if a retry was scheduled, False if attempts are exhausted
        """
        with self._lock:
            self.cancel()
            self._attempts += 1

            if self._attempts > self.max_attempts:
                self.logger.error(
                    event=LogEvent.WS_RECONNECT_EXHAUSTED,
                    message="Maximum reconnection attempts reached",
                    metadata={'attempts': self._attempts - 1, 'max_attempts': self.max_attempts}
                )
                self._on_exhausted(self.max_attempts)
                return False

            generation = self._generation
            self._timer = self._timer_factory(self.interval, lambda: self._fire(generation))
            self._timer.start()
            self.logger.info(
                event=LogEvent.WS_RECONNECT_SCHEDULED,
                message=f"Reconnecting in {self.interval}s (attempt {self._attempts}/{self.max_attempts})",
                metadata={
                    'attempt': self._attempts,
                    'max_attempts': self.max_attempts,
                    'interval': self.interval,
                }
            )
            return True

    def cancel(self) -> None:
        """Disarm the pending timer, if any. Idempotent."""
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def reset(self) -> None:
        """Forget previous failures."""
        with self._lock:
            self._attempts = 0

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self.logger.info(
                event=LogEvent.WS_RECONNECTING,
                message=f"Reconnection attempt {self._attempts}/{self.max_attempts}",
                metadata={'attempt': self._attempts}
            )
            self._on_retry()
