"""
Token bucket rate limiter shared by all calls of one catalog library.

Callers block in ``acquire`` until their token is due. Each caller reserves
its token under the lock and sleeps outside it, so concurrent callers wait in
parallel while the overall request rate stays bounded.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Thread-safe token bucket with a fixed refill rate and burst size."""

    def __init__(
        self,
        rate_per_second: float,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "default",
    ):
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")

        self.rate_per_second = rate_per_second
        self.burst = burst
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(burst)
        self._last_refill = clock()

    @classmethod
    def per_minute(cls, requests_per_minute: float, burst: int = 1, **kwargs) -> "RateLimiter":
        return cls(requests_per_minute / 60.0, burst, **kwargs)

    def _refill(self, now: float):
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate_per_second)
            self._last_refill = now

    def reserve(self) -> float:
        """Take one token and return how long the caller must wait for it."""
        with self._lock:
            self._refill(self._clock())
            self._tokens -= 1.0
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate_per_second

    def acquire(self) -> float:
        """Block until a token is available. Returns the time waited."""
        delay = self.reserve()
        if delay > 0:
            logger.debug(f"Rate limiter '{self.name}' waiting {delay:.2f}s")
            self._sleep(delay)
        return delay

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        return None
