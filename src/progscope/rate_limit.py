"""Token bucket used to throttle handler rendering."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class TokenBucket:
    """Token bucket rate limiter.

    Allows `rate` renders per second with a burst capacity of `burst`.
    A `rate` of zero or less disables limiting entirely.
    """
    rate: float
    burst: int = 0
    clock: Callable[[], float] = time.monotonic
    _tokens: float = field(init=False, default=0.0)
    _last_refill: float = field(init=False, default=0.0)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock)

    def __post_init__(self) -> None:
        if self.burst <= 0:
            self.burst = max(1, int(self.rate))
        self._tokens = float(self.burst)
        self._last_refill = self.clock()

    @classmethod
    def from_interval(cls, min_interval: float, **kwargs) -> "TokenBucket":
        """One render every `min_interval` seconds (no limit if <= 0)."""
        rate = 1.0 / min_interval if min_interval > 0 else 0.0
        return cls(rate=rate, burst=1, **kwargs)

    @property
    def unlimited(self) -> bool:
        return self.rate <= 0

    def _refill(self) -> None:
        now = self.clock()
        elapsed = now - self._last_refill
        self._tokens = min(self.burst, self._tokens + elapsed * self.rate)
        self._last_refill = now

    def try_acquire(self) -> bool:
        """Try to acquire a token without waiting. Returns True if successful."""
        if self.unlimited:
            return True
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False
