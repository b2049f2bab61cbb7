"""
TTL cache in front of a key store.

Transports look the same signal keys up many times per session; the cache
keeps found keys in memory for `ttl_seconds` so repeated lookups don't hit
the datastore. Misses are not cached. Writes go to the inner store first
and update the cache only once the write succeeded.

Key material keeps growing over a session, so the cache is bounded twice:
expired entries are swept at most once per TTL period, and `max_entries`
caps it, dropping the least recently used entry first.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Tuple

from nexusbot.auth.key_store import KeyData, KeyStore
from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)


class CachedKeyStore:
    def __init__(
        self,
        inner: KeyStore,
        ttl_seconds: float = 300.0,
        *,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._inner = inner
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Tuple[str, str], Tuple[Any, float]] = OrderedDict()
        self._next_sweep = clock() + ttl_seconds
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @property
    def inner(self) -> KeyStore:
        return self._inner

    def _lookup(self, key_type: str, key_id: str, now: float) -> Tuple[bool, Any]:
        entry = self._entries.get((key_type, key_id))
        if entry is None:
            return False, None
        value, expires_at = entry
        if expires_at <= now:
            del self._entries[(key_type, key_id)]
            return False, None
        self._entries.move_to_end((key_type, key_id))
        return True, value

    def _store(self, key_type: str, key_id: str, value: Any, expires_at: float) -> None:
        self._entries[(key_type, key_id)] = (value, expires_at)
        self._entries.move_to_end((key_type, key_id))
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            self.evictions += 1

    def _sweep(self, now: float) -> None:
        if now < self._next_sweep:
            return
        self._next_sweep = now + self._ttl

        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(
                "Expired cached keys swept",
                extra={"removed": len(expired), "remaining": len(self._entries)},
            )

    async def get(self, key_type: str, ids: Iterable[str]) -> Dict[str, Any]:
        now = self._clock()
        self._sweep(now)
        found: Dict[str, Any] = {}
        missing: List[str] = []

        for key_id in ids:
            cached, value = self._lookup(key_type, key_id, now)
            if cached:
                found[key_id] = value
            else:
                missing.append(key_id)

        self.hits += len(found)
        self.misses += len(missing)

        if missing:
            fetched = await self._inner.get(key_type, missing)
            expires_at = self._clock() + self._ttl
            for key_id, value in fetched.items():
                self._store(key_type, key_id, value, expires_at)
            found.update(fetched)

        return found

    async def set(self, data: KeyData) -> None:
        await self._inner.set(data)

        now = self._clock()
        self._sweep(now)
        expires_at = now + self._ttl
        for key_type, entries in data.items():
            for key_id, value in entries.items():
                if value is None:
                    self._entries.pop((key_type, key_id), None)
                else:
                    self._store(key_type, key_id, value, expires_at)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, int]:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }
