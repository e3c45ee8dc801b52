"""In-process key/value cache with expiry and LRU eviction.

``Application.memory_cache()`` registers one ``MemoryCache`` as a
singleton; the session middleware stores session data in it, and
handlers may use it directly through ``ctx.services.get(MemoryCache)``.
"""

import threading
import time
from collections import OrderedDict
from typing import Any


class MemoryCache:
    """Thread-safe cache. Entries expire ``ttl`` seconds after their last write.

    ``maxsize`` bounds the number of entries; when full, the least recently
    used entry is evicted.
    """

    __slots__ = ("_clock", "_entries", "_lock", "default_ttl", "maxsize")

    def __init__(
        self,
        *,
        maxsize: int = 10_000,
        default_ttl: float = 20 * 60,
        clock: Any = time.monotonic,
    ) -> None:
        self.maxsize = maxsize
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return default
            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        expires_at = self._clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.maxsize:
                self._entries.popitem(last=False)
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key, _ABSENT) is not _ABSENT

    def __len__(self) -> int:
        return len(self._entries)


_ABSENT: Any = object()
