"""
FastAPI dependency injection functions.

Provides the process-wide pipeline cache, resolver and rate limiter.
"""

from typing import Annotated

from fastapi import Depends

from trackerbase.cache import MemoryPipelineCache, PipelineCache, RedisPipelineCache
from trackerbase.core.config import settings
from trackerbase.core.logging import get_logger
from trackerbase.core.rate_limit import SlidingWindowRateLimiter
from trackerbase.pipeline import PipelineResolver
from trackerbase.services import get_ai_extractor, resolve_env_secret

logger = get_logger(__name__)

_cache: PipelineCache | None = None
_resolver: PipelineResolver | None = None
_rate_limiter: SlidingWindowRateLimiter | None = None


def get_pipeline_cache() -> PipelineCache:
    """Shared result cache, backed by Redis or memory per settings."""
    global _cache
    if _cache is None:
        if settings.pipeline_cache_backend == "redis":
            _cache = RedisPipelineCache()
        else:
            _cache = MemoryPipelineCache()
        logger.info(f"Dynamic options cache backend: {settings.pipeline_cache_backend}")
    return _cache


def get_pipeline_resolver(
    cache: Annotated[PipelineCache, Depends(get_pipeline_cache)],
) -> PipelineResolver:
    """Shared resolver running remote nodes with env secrets and AI extraction."""
    global _resolver
    if _resolver is None:
        _resolver = PipelineResolver(
            cache,
            secret_resolver=resolve_env_secret,
            ai_extractor=get_ai_extractor(),
            allow_remote=True,
        )
    return _resolver


def get_rate_limiter() -> SlidingWindowRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter(settings.resolve_rate_limit_per_minute, 60.0)
    return _rate_limiter


async def close_dependencies() -> None:
    """Release shared resources on shutdown."""
    global _cache, _resolver, _rate_limiter
    if _cache is not None:
        await _cache.close()
    _cache = None
    _resolver = None
    _rate_limiter = None


# Type aliases for cleaner dependency injection
Resolver = Annotated[PipelineResolver, Depends(get_pipeline_resolver)]
RateLimiter = Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)]
