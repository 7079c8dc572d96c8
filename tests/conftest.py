"""
Pytest configuration and fixtures for TrackerBase tests.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from trackerbase.api.deps import get_pipeline_resolver, get_rate_limiter
from trackerbase.cache import MemoryPipelineCache
from trackerbase.calculation import clear_calculation_cache
from trackerbase.core.rate_limit import SlidingWindowRateLimiter
from trackerbase.main import app
from trackerbase.pipeline import PipelineResolver, clear_pipeline_cache
from trackerbase.validation import clear_validation_cache


@pytest.fixture(autouse=True)
def clear_plan_caches() -> None:
    """Start every test with empty compiled-plan caches."""
    clear_pipeline_cache()
    clear_calculation_cache()
    clear_validation_cache()


@pytest.fixture
def secret_resolver():
    """Secret lookup answering from a dict instead of the environment."""
    secrets = {"items": "s3cret"}

    async def resolve(secret_ref_id: str) -> str | None:
        return secrets.get(secret_ref_id)

    return resolve


@pytest.fixture
def resolver(secret_resolver) -> PipelineResolver:
    """Resolver with a private in-memory cache."""
    return PipelineResolver(MemoryPipelineCache(), secret_resolver=secret_resolver)


@pytest.fixture
def rate_limiter() -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(limit=3, window_seconds=60.0)


@pytest_asyncio.fixture
async def client(
    resolver: PipelineResolver,
    rate_limiter: SlidingWindowRateLimiter,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    app.dependency_overrides[get_pipeline_resolver] = lambda: resolver
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
