"""
Resolve dynamic option lists by function id, with TTL caching.

Built-in functions answer directly. Custom functions are looked up in the
context's ``dynamicOptions.functions``, executed and cached under a key
derived from the function id and version, the arguments and fingerprints
of the context and runtime. Concurrent resolves of the same key are
ordered by a request generation: only the latest started request writes
the cache.
"""

import hashlib
import itertools
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from trackerbase.cache.base import DEFAULT_TTL, PipelineCache, effective_ttl
from trackerbase.cache.memory import MemoryPipelineCache
from trackerbase.core.config import settings
from trackerbase.core.logging import get_logger
from trackerbase.pipeline.builtins import get_builtin_options, is_builtin
from trackerbase.pipeline.executor import AiExtractor, execute_function
from trackerbase.pipeline.paths import to_record
from trackerbase.pipeline.sources import SecretResolver
from trackerbase.schemas.common import stable_dumps

logger = get_logger(__name__)


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _dumps(value: Any) -> bytes:
    try:
        return stable_dumps(value)
    except TypeError:
        return repr(value).encode("utf-8")


def context_fingerprint(context: dict[str, Any]) -> dict[str, Any]:
    """The parts of a context that can change a pipeline's output."""
    return {
        "grids": [grid.get("id") for grid in context.get("grids") or [] if isinstance(grid, dict)],
        "fields": [
            f"{field.get('id')}:{field.get('dataType')}"
            for field in context.get("fields") or []
            if isinstance(field, dict)
        ],
        "layoutNodes": [
            f"{node.get('gridId')}.{node.get('fieldId')}"
            for node in context.get("layoutNodes") or []
            if isinstance(node, dict)
        ],
        "sections": [
            f"{section.get('id')}:{section.get('tabId')}"
            for section in context.get("sections") or []
            if isinstance(section, dict)
        ],
        "gridData": context.get("gridData") or {},
    }


def runtime_fingerprint(runtime: dict[str, Any] | None) -> dict[str, Any] | None:
    if not runtime:
        return None
    return {
        "currentGridId": runtime.get("currentGridId"),
        "currentFieldId": runtime.get("currentFieldId"),
        "rowIndex": runtime.get("rowIndex"),
        "currentRow": runtime.get("currentRow") or {},
    }


def build_cache_key(
    function_id: str,
    version: Any,
    args: dict[str, Any] | None,
    context: dict[str, Any],
) -> str:
    """Cache key of one resolve: ``<function id>:<version>:<sha256 of inputs>``."""
    digest = hashlib.sha256(
        _dumps([args or {}, context_fingerprint(context), runtime_fingerprint(to_record(context.get("runtime")))])
    ).hexdigest()
    return f"{function_id}:{version}:{digest}"


class PipelineResolver:
    """
    Resolves option lists for dynamic select fields.

    Args:
        cache: Result cache; an in-memory cache by default
        secret_resolver: Async secret lookup for ``secret_ref`` connectors
        ai_extractor: Async ``(prompt, input, max_rows)`` extractor
        http_client: Shared client for ``source.http_get``
        allow_remote: Whether HTTP and AI nodes may run
        default_ttl: TTL when neither the call nor the definition sets one
        max_options: Cap on returned options
    """

    def __init__(
        self,
        cache: PipelineCache | None = None,
        *,
        secret_resolver: SecretResolver | None = None,
        ai_extractor: AiExtractor | None = None,
        http_client: httpx.AsyncClient | None = None,
        allow_remote: bool = True,
        default_ttl: int | None = None,
        max_options: int | None = None,
    ) -> None:
        self.cache = cache if cache is not None else MemoryPipelineCache()
        self.secret_resolver = secret_resolver
        self.ai_extractor = ai_extractor
        self.http_client = http_client
        self.allow_remote = allow_remote
        self.default_ttl = default_ttl or settings.pipeline_cache_ttl_seconds or DEFAULT_TTL
        self.max_options = max_options if max_options is not None else settings.pipeline_max_options
        self._counter = itertools.count(1)
        self._generations: dict[str, int] = {}

    def _result(
        self,
        started: float,
        source: str,
        options: list[dict[str, Any]] | None = None,
        warnings: list[str] | None = None,
    ) -> dict[str, Any]:
        return {
            "options": options or [],
            "warnings": warnings or [],
            "meta": {
                "fromCache": False,
                "fetchedAt": _iso(started),
                "durationMs": int((time.time() - started) * 1000),
                "source": source,
            },
        }

    def _ttl(self, definition: dict[str, Any], override: int | None) -> int:
        if override:
            return override
        ttl = to_record(definition.get("cache")).get("ttlSeconds")
        return ttl if isinstance(ttl, int) and not isinstance(ttl, bool) and ttl > 0 else self.default_ttl

    async def resolve(
        self,
        function_id: str,
        context: dict[str, Any] | None = None,
        args: dict[str, Any] | None = None,
        runtime: dict[str, Any] | None = None,
        force_refresh: bool = False,
        cache_ttl_seconds_override: int | None = None,
    ) -> dict[str, Any]:
        """
        Resolve the options of one function.

        Args:
            function_id: Built-in id or key of ``dynamicOptions.functions``
            context: Pipeline context dict
            args: Call arguments
            runtime: Runtime values merged over ``context.runtime``
            force_refresh: Skip the cache read (the result is still written)
            cache_ttl_seconds_override: TTL for this write

        Returns:
            ``{options, warnings, meta}`` with meta ``fromCache``,
            ``fetchedAt``, ``durationMs``, ``source`` and, once written,
            ``expiresAt``
        """
        started = time.time()
        context = dict(context or {})
        if runtime:
            context["runtime"] = {**to_record(context.get("runtime")), **runtime}

        if not function_id or not isinstance(function_id, str):
            return self._result(started, "unknown", warnings=["Missing dynamic options function id"])

        if is_builtin(function_id):
            return self._result(started, "builtin", options=get_builtin_options(function_id, context))

        functions = to_record(to_record(context.get("dynamicOptions")).get("functions"))
        definition = functions.get(function_id)
        if not isinstance(definition, dict):
            return self._result(
                started, "unknown", warnings=[f'Dynamic options function "{function_id}" was not found']
            )

        key = build_cache_key(function_id, definition.get("version", 1), args, context)
        if not force_refresh:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.debug(f"Dynamic options cache hit for {function_id!r}")
                meta = {**cached.get("meta", {}), "fromCache": True, "durationMs": int((time.time() - started) * 1000)}
                return {**cached, "meta": meta}

        generation = next(self._counter)
        self._generations[key] = generation

        run = await execute_function(
            definition,
            context,
            args,
            allow_remote=self.allow_remote,
            secret_resolver=self.secret_resolver,
            ai_extractor=self.ai_extractor,
            http_client=self.http_client,
            max_options=self.max_options,
        )
        if run.requires_remote:
            self._release(key, generation)
            return self._result(
                started,
                "remote_custom",
                warnings=[f'Function "{function_id}" requires server execution'],
            )

        result = self._result(started, run.source, options=run.options, warnings=run.warnings)

        if not run.ok:
            logger.info(f"Not caching dynamic options for {function_id!r}: the run had failures")
            self._release(key, generation)
            return result

        if self._generations.get(key) != generation:
            logger.debug(f"Skipping cache write for {function_id!r}: a newer request is in flight")
            return result

        ttl = effective_ttl(self._ttl(definition, cache_ttl_seconds_override))
        result["meta"]["expiresAt"] = _iso(time.time() + ttl)
        await self.cache.set(key, result, ttl)
        self._release(key, generation)
        return result

    def _release(self, key: str, generation: int) -> None:
        if self._generations.get(key) == generation:
            del self._generations[key]

    async def invalidate(self) -> None:
        """Drop every cached result."""
        await self.cache.clear()
