"""Cache interface for resolved dynamic option lists."""

from abc import ABC, abstractmethod
from typing import Any

DEFAULT_TTL = 300


def effective_ttl(ttl_seconds: Any) -> int:
    """TTL to store with; non-positive or non-numeric values fall back to the default."""
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, (int, float)):
        return DEFAULT_TTL
    if ttl_seconds != ttl_seconds or ttl_seconds <= 0:
        return DEFAULT_TTL
    return max(1, int(ttl_seconds))


class PipelineCache(ABC):
    """
    Key/value store for resolve results.

    Entries are replaced wholesale and expire after their TTL. Backends
    never raise for lookups; a failed read is a miss.
    """

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the cached result, or None when missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any], ttl_seconds: Any = DEFAULT_TTL) -> float:
        """
        Store a result.

        Returns:
            Expiry as a unix timestamp in seconds
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop one entry."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every entry."""

    async def close(self) -> None:
        """Release backend resources."""
