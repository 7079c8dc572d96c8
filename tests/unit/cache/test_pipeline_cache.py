"""Unit tests for the option list caches."""

from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest

from trackerbase.cache import DEFAULT_TTL, MemoryPipelineCache, RedisPipelineCache, effective_ttl


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestEffectiveTtl:
    """Test TTL normalization."""

    @pytest.mark.parametrize(
        "ttl,expected",
        [(60, 60), (0, DEFAULT_TTL), (-5, DEFAULT_TTL), (None, DEFAULT_TTL), ("x", DEFAULT_TTL), (True, DEFAULT_TTL), (2.7, 2)],
    )
    def test_values(self, ttl, expected):
        """Test valid TTLs pass and invalid ones fall back to the default."""
        assert effective_ttl(ttl) == expected


class TestMemoryPipelineCache:
    """Test MemoryPipelineCache."""

    @pytest.mark.asyncio
    async def test_set_and_get(self):
        """Test a stored value is returned before expiry."""
        clock = FakeClock()
        cache = MemoryPipelineCache(clock=clock)

        expires_at = await cache.set("k", {"options": []}, 60)

        assert expires_at == 1060.0
        assert await cache.get("k") == {"options": []}

    @pytest.mark.asyncio
    async def test_expiry(self):
        """Test entries expire exactly at their deadline."""
        clock = FakeClock()
        cache = MemoryPipelineCache(clock=clock)
        await cache.set("k", {"options": []}, 60)

        clock.now = 1060.0

        assert await cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_values_are_isolated(self):
        """Test callers cannot mutate stored entries through inputs or results."""
        cache = MemoryPipelineCache(clock=FakeClock())
        value = {"options": [{"label": "A"}], "warnings": []}
        await cache.set("k", value, 60)

        value["options"].append({"label": "B"})
        first = await cache.get("k")
        first["options"].clear()
        first["warnings"].append("changed")

        assert await cache.get("k") == {"options": [{"label": "A"}], "warnings": []}

    @pytest.mark.asyncio
    async def test_expired_entries_are_swept_on_write(self):
        """Test entries nobody reads again do not pile up."""
        clock = FakeClock()
        cache = MemoryPipelineCache(clock=clock, max_entries=5000)
        for i in range(1000):
            await cache.set(f"k{i}", {"options": []}, 1)

        clock.now += 10_000
        await cache.set("fresh", {"options": []}, 60)

        assert len(cache) == 1
        assert await cache.get("fresh") == {"options": []}

    @pytest.mark.asyncio
    async def test_sweep_waits_for_interval(self):
        """Test the write-time sweep runs at most once per interval."""
        clock = FakeClock()
        cache = MemoryPipelineCache(clock=clock, sweep_interval=60)
        await cache.set("a", {}, 1)

        clock.now += 5
        await cache.set("b", {}, 60)
        assert len(cache) == 2

        assert cache.sweep() == 1
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_lru_eviction(self):
        """Test the least recently used entry goes first past the bound."""
        cache = MemoryPipelineCache(clock=FakeClock(), max_entries=2)
        await cache.set("a", {"v": 1}, 60)
        await cache.set("b", {"v": 2}, 60)
        await cache.get("a")

        await cache.set("c", {"v": 3}, 60)

        assert len(cache) == 2
        assert await cache.get("b") is None
        assert await cache.get("a") == {"v": 1}
        assert await cache.get("c") == {"v": 3}

    @pytest.mark.asyncio
    async def test_delete_and_clear(self):
        """Test delete and clear."""
        cache = MemoryPipelineCache(clock=FakeClock())
        await cache.set("a", {}, 60)
        await cache.set("b", {}, 60)

        await cache.delete("a")
        assert await cache.get("a") is None
        assert await cache.get("b") == {}

        await cache.clear()
        assert len(cache) == 0


class TestRedisPipelineCache:
    """Test RedisPipelineCache against a mocked client."""

    @pytest.mark.asyncio
    async def test_get_hit(self):
        """Test a hit decodes the stored JSON."""
        client = MagicMock()
        client.get = AsyncMock(return_value=orjson.dumps({"options": [{"label": "A"}]}).decode())
        cache = RedisPipelineCache(client=client)

        assert await cache.get("fn") == {"options": [{"label": "A"}]}
        client.get.assert_awaited_once_with("dynopt:fn")

    @pytest.mark.asyncio
    async def test_get_miss(self):
        """Test a missing key is a miss."""
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        cache = RedisPipelineCache(client=client)

        assert await cache.get("fn") is None

    @pytest.mark.asyncio
    async def test_get_error_is_miss(self):
        """Test Redis errors are treated as misses."""
        client = MagicMock()
        client.get = AsyncMock(side_effect=ConnectionError("down"))
        cache = RedisPipelineCache(client=client)

        assert await cache.get("fn") is None

    @pytest.mark.asyncio
    async def test_set_uses_setex(self):
        """Test values are written with SETEX and the effective TTL."""
        client = MagicMock()
        client.setex = AsyncMock()
        cache = RedisPipelineCache(client=client)

        await cache.set("fn", {"options": []}, 0)

        client.setex.assert_awaited_once_with("dynopt:fn", DEFAULT_TTL, '{"options":[]}')

    @pytest.mark.asyncio
    async def test_set_error_still_returns_expiry(self):
        """Test a failed write logs and returns an expiry."""
        client = MagicMock()
        client.setex = AsyncMock(side_effect=ConnectionError("down"))
        cache = RedisPipelineCache(client=client)

        assert await cache.set("fn", {}, 30) > 0

    @pytest.mark.asyncio
    async def test_clear_deletes_prefixed_keys(self):
        """Test clear scans the prefix and deletes what it finds."""

        async def scan_iter(match):
            for key in ("dynopt:a", "dynopt:b"):
                yield key

        client = MagicMock()
        client.scan_iter = scan_iter
        client.delete = AsyncMock()
        cache = RedisPipelineCache(client=client)

        await cache.clear()

        client.delete.assert_awaited_once_with("dynopt:a", "dynopt:b")
