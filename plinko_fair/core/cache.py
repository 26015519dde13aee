"""
In-memory read-through cache with per-entry expiry.
Epoch payloads (lightning boards) live here for the rest of their window.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from plinko_fair.core.logger import get_logger

logger = get_logger("cache")


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float):
        if ttl <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def get_or_compute(self, key: str, ttl: float, compute: Callable[[], Any]) -> Any:
        """
        Return the cached value for ``key`` or compute, store and return it.
        Two callers racing on a miss may both compute; both get equal values
        because every payload cached here is a pure function of its key.
        """
        value = self.get(key)
        if value is not None:
            return value

        logger.debug(f"Cache miss for {key}")
        value = compute()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at, _ in self._entries.values() if expires_at > now)
