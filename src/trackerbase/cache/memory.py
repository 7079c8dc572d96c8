"""In-process TTL cache."""

import copy
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from trackerbase.cache.base import DEFAULT_TTL, PipelineCache, effective_ttl
from trackerbase.core.config import settings

SWEEP_INTERVAL_SECONDS = 60.0


class MemoryPipelineCache(PipelineCache):
    """
    Bounded LRU cache holding ``{value, expiresAt}`` entries.

    Values are deep-copied on the way in and out, so results handed to
    callers never share lists with the stored entry. Expired entries are
    dropped when read and by a sweep that runs on writes at most once per
    ``sweep_interval`` seconds. Past ``max_entries`` the least recently
    used entry is evicted.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        max_entries: int | None = None,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._clock = clock
        self._max_entries = max(1, max_entries or settings.pipeline_cache_max_entries)
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        self._entries: OrderedDict[str, dict[str, Any]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> dict[str, Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry["expiresAt"] <= self._clock():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return copy.deepcopy(entry["value"])

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: Any = DEFAULT_TTL) -> float:
        now = self._clock()
        if now >= self._next_sweep:
            self.sweep(now)
        expires_at = now + effective_ttl(ttl_seconds)
        self._entries[key] = {"value": copy.deepcopy(value), "expiresAt": expires_at}
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        return expires_at

    def sweep(self, now: float | None = None) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock() if now is None else now
        expired = [key for key, entry in self._entries.items() if entry["expiresAt"] <= now]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self._sweep_interval
        return len(expired)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()
