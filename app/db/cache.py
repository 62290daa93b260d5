"""In-memory cache for list responses from the school API."""

import time
from typing import Any, Callable, Dict, Optional, Tuple

CacheKey = Tuple[str, str, Tuple[Tuple[str, str], ...]]


class ListCache:
    """TTL cache keyed by (path, token, query).

    Writes invalidate every entry whose path starts with the written
    resource prefix, for all callers.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, Any]] = {}

    @staticmethod
    def make_key(token: str, path: str, params: Optional[dict] = None) -> CacheKey:
        query = tuple(sorted(
            (str(k), str(v)) for k, v in (params or {}).items() if v is not None
        ))
        return (path, token, query)

    def get(self, key: CacheKey) -> Tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return False, None
        return True, value

    def set(self, key: CacheKey, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        now = self._clock()
        # Keys of rotated tokens are never read again
        self.prune(now)
        self._entries[key] = (now + self.ttl_seconds, value)

    def prune(self, now: Optional[float] = None) -> int:
        """Drop every expired entry."""
        now = self._clock() if now is None else now
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def invalidate(self, prefix: str) -> int:
        stale = [key for key in self._entries if key[0].startswith(prefix)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
