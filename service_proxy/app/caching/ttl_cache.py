"""
In-process TTL cache primitive.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


MISSING = object()


class TTLCache:
    """Per-key TTL cache held in a plain dict.

    Entries expire ``ttl`` seconds after they were written. There is no size
    bound and no locking: callers share one event loop, and every operation
    completes without awaiting.
    """

    def __init__(self, default_ttl: float = 60, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: Dict[Hashable, Tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, default: Any = MISSING) -> Any:
        """Return the live value for ``key`` or ``default`` when absent or expired."""
        entry = self._store.get(key)
        if entry is None:
            self.misses += 1
            return default

        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._store[key]
            self.misses += 1
            return default

        self.hits += 1
        return value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self.purge_expired()
        self._store[key] = (self._clock() + ttl, value)

    def delete(self, key: Hashable) -> bool:
        return self._store.pop(key, None) is not None

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._store.items() if now >= expires_at]
        for key in expired:
            del self._store[key]
        return len(expired)

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, key: Hashable) -> bool:
        entry = self._store.get(key)
        return entry is not None and self._clock() < entry[0]

    def __len__(self) -> int:
        return len(self._store)

    def stats(self) -> Dict[str, int]:
        return {"keys": len(self._store), "hits": self.hits, "misses": self.misses}
