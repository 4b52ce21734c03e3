"""Circuit breaker gating calls to a remote notification endpoint."""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Any, Callable


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Stops notifying an endpoint after repeated failures.

    After `failure_threshold` consecutive failures the breaker opens and
    :meth:`allow` refuses calls.  Once `recovery_timeout` seconds have passed
    it lets a single trial call through; the outcome of that call closes the
    breaker again or re-opens it for another full timeout.

    Every read and transition happens under one lock, so a handler may be
    driven from the drain thread and from worker threads at once.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    def __repr__(self) -> str:
        return f"CircuitBreaker({self.name!r}, state={self.state.value})"

    def _advance(self) -> None:
        # Caller holds the lock
        if (self._state == CircuitState.OPEN
                and self.clock() - self._opened_at >= self.recovery_timeout):
            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = False

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self.clock()
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._advance()
            return self._state

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    def allow(self) -> bool:
        """Whether a call may go out now; claims the trial slot when half-open."""
        with self._lock:
            self._advance()
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state == CircuitState.HALF_OPEN or self._failures >= self.failure_threshold:
                self._trip()

    def status(self) -> dict[str, Any]:
        with self._lock:
            self._advance()
            return {
                "name": self.name,
                "state": self._state.value,
                "failures": self._failures,
            }
