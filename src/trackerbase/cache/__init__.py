"""Cache layer for resolved dynamic option lists."""

from trackerbase.cache.base import DEFAULT_TTL, PipelineCache, effective_ttl
from trackerbase.cache.memory import MemoryPipelineCache
from trackerbase.cache.redis import RedisPipelineCache

__all__ = [
    "DEFAULT_TTL",
    "MemoryPipelineCache",
    "PipelineCache",
    "RedisPipelineCache",
    "effective_ttl",
]
