from __future__ import annotations

import hashlib
import threading
from datetime import timedelta
from typing import Any, Callable

from .time_utils import utc_now


def hash_key(prefix: str, value: str) -> str:
    return f"{prefix}:{hashlib.md5((value or '').encode('utf-8')).hexdigest()}"


class TTLCache:
    """Process-local get/set-with-TTL store.

    Entries are memoized pure results, so concurrent writers racing on the
    same key only cost a duplicate computation.
    """

    def __init__(self, clock: Callable = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[Any, Any]] = {}

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        expires_at = self._clock() + timedelta(seconds=max(0.0, float(ttl_seconds)))
        with self._lock:
            self._entries[key] = (value, expires_at)

    def remember(self, key: str, ttl_seconds: float, factory: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = factory()
        if value is not None:
            self.set(key, value, ttl_seconds)
        return value

    def forget(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
