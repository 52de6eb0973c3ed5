"""Process-wide cache for configuration the scheduling routes read on every request.

The application root owns a single ``SchedulingCache`` and hands it to routes
through dependency injection. Keys are ``(type, identifier)`` tuples so that
every entry of one type can be dropped at once.
"""

import logging
import time
from collections.abc import Callable, Hashable
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)

CacheKey = tuple[str, Hashable]

CLINIC_SETTINGS = "clinic_settings"
PRACTITIONER_AVAILABILITY = "practitioner_availability"


class SchedulingCache:
    def __init__(self, default_ttl: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[CacheKey, tuple[Any, float]] = {}
        self._listeners: list[Callable[[str, CacheKey | None], None]] = []
        self._lock = Lock()

    def get(self, key: CacheKey, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default

            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return default

            return value

    def set(self, key: CacheKey, value: Any, ttl: float | None = None) -> None:
        lifetime = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._clock() + lifetime)

    def invalidate(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)
        logger.debug("Cache invalidated %s", key)
        self._notify(key[0], key)

    def invalidate_type(self, kind: str) -> None:
        with self._lock:
            for key in [key for key in self._entries if key[0] == kind]:
                del self._entries[key]
        logger.debug("Cache invalidated every %s entry", kind)
        self._notify(kind, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def subscribe(self, listener: Callable[[str, CacheKey | None], None]) -> None:
        """Register ``listener(kind, key)``; ``key`` is None for whole-type invalidation."""
        self._listeners.append(listener)

    def _notify(self, kind: str, key: CacheKey | None) -> None:
        for listener in list(self._listeners):
            listener(kind, key)

    def __len__(self) -> int:
        return len(self._entries)
