"""Sliding window rate limiter

Usage:
    limiter = RateLimiter(window_ms=60000, max_requests=30)
    if not limiter.check_rate_limit("service-control"):
        ...  # deny

State lives in memory only and is owned by whoever constructs the limiter
(normally the engine's SessionContext).
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class _Window:
    count: int
    reset_time: float


class RateLimiter:
    """Per-operation counter that resets once its window has passed"""

    def __init__(self, window_ms: int = 60000, max_requests: int = 30,
                 clock: Callable[[], float] = time.monotonic):
        self.window_ms = window_ms
        self.max_requests = max_requests
        self._clock = clock
        self._store: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check_rate_limit(self, operation: str) -> bool:
        """Record one invocation of `operation`; False means deny"""
        now = self._clock() * 1000.0

        with self._lock:
            window = self._store.get(operation)
            if window is None:
                self._store[operation] = _Window(count=1, reset_time=now + self.window_ms)
                return True

            if now >= window.reset_time:
                window.count = 1
                window.reset_time = now + self.window_ms
                return True

            if window.count >= self.max_requests:
                return False

            window.count += 1
            return True

    def remaining(self, operation: str) -> int:
        """Calls still allowed in the current window"""
        now = self._clock() * 1000.0
        with self._lock:
            window = self._store.get(operation)
            if window is None or now >= window.reset_time:
                return self.max_requests
            return max(0, self.max_requests - window.count)

    def reset(self, operation: Optional[str] = None) -> None:
        with self._lock:
            if operation is None:
                self._store.clear()
            else:
                self._store.pop(operation, None)
