"""Status cache - tweak id -> is-active, with one shared timestamp

Invalidation is coarse: the whole cache is either fresh or stale. Writing
any batch of results restamps every entry.
"""

import threading
import time
from typing import Callable, Dict, Optional


class StatusCache:

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._statuses: Dict[str, bool] = {}
        self._timestamp: Optional[float] = None
        self._lock = threading.RLock()

    def is_fresh(self) -> bool:
        with self._lock:
            if self._timestamp is None:
                return False
            return self._clock() - self._timestamp < self.ttl_seconds

    def get(self, tweak_id: str) -> Optional[bool]:
        """Cached status, or None if absent or the cache is stale"""
        with self._lock:
            if not self.is_fresh():
                return None
            return self._statuses.get(tweak_id)

    def update(self, statuses: Dict[str, bool]) -> None:
        """Merge fresh results and restamp the whole cache"""
        if not statuses:
            return
        with self._lock:
            if not self.is_fresh():
                self._statuses.clear()
            self._statuses.update(statuses)
            self._timestamp = self._clock()

    def set(self, tweak_id: str, active: bool) -> None:
        """Record the outcome of a toggle without touching the timestamp

        A stale cache stays stale; the value only becomes visible if a later
        update() restamps it.
        """
        with self._lock:
            self._statuses[tweak_id] = active

    def clear(self) -> None:
        with self._lock:
            self._statuses.clear()
            self._timestamp = None

    def __len__(self) -> int:
        return len(self._statuses)
