"""Unit tests for the dynamic options resolver and built-in functions."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import orjson
import pytest

from trackerbase.cache.base import PipelineCache
from trackerbase.cache.memory import MemoryPipelineCache
from trackerbase.pipeline import PipelineResolver, build_cache_key, clear_pipeline_cache, get_builtin_options

COUNTRIES = [{"code": "US", "name": "United States"}, {"code": "CA", "name": "Canada"}]


def grid_function(**extra):
    return {
        "id": "countries",
        "name": "Countries",
        "engine": "dsl_v1",
        "source": {"kind": "grid_rows", "gridId": "countries"},
        "output": {"label": "name", "value": "code"},
        **extra,
    }


def ai_function():
    nodes = [
        {"id": "start", "kind": "control.start"},
        {"id": "ai", "kind": "ai.extract_options", "config": {"prompt": "Suggest"}},
        {"id": "out", "kind": "output.options", "config": {"mapping": {"label": "value", "value": "value"}}},
    ]
    edges = [{"id": "e1", "source": "start", "target": "ai"}, {"id": "e2", "source": "ai", "target": "out"}]
    return {"id": "suggest", "name": "Suggest", "engine": "graph_v1", "graph": {"nodes": nodes, "edges": edges}}


def make_context(*definitions):
    return {
        "grids": [{"id": "countries", "name": "Countries"}],
        "gridData": {"countries": COUNTRIES},
        "dynamicOptions": {"functions": {d["id"]: d for d in definitions}},
    }


def mock_cache():
    cache = AsyncMock(spec=PipelineCache)
    cache.get.return_value = None
    return cache


@pytest.fixture(autouse=True)
def fresh_plan_cache():
    clear_pipeline_cache()
    yield
    clear_pipeline_cache()


class TestResolve:
    """Tests for PipelineResolver.resolve."""

    @pytest.mark.asyncio
    async def test_builtin(self):
        """Test built-in functions answer directly without caching."""
        cache = mock_cache()
        resolver = PipelineResolver(cache)

        result = await resolver.resolve("all_grids", make_context())

        assert result["options"] == [{"value": "countries", "label": "Countries", "id": "countries"}]
        assert result["meta"]["source"] == "builtin"
        assert result["meta"]["fromCache"] is False
        cache.get.assert_not_awaited()
        cache.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_function_id(self):
        """Test an empty function id."""
        result = await PipelineResolver().resolve("", make_context())

        assert result["options"] == []
        assert result["warnings"] == ["Missing dynamic options function id"]
        assert result["meta"]["source"] == "unknown"

    @pytest.mark.asyncio
    async def test_function_not_found(self):
        """Test an id that is neither built-in nor defined."""
        result = await PipelineResolver().resolve("nope", make_context())

        assert result["warnings"] == ['Dynamic options function "nope" was not found']
        assert result["meta"]["source"] == "unknown"

    @pytest.mark.asyncio
    async def test_result_is_cached(self):
        """Test the second resolve is served from the cache."""
        resolver = PipelineResolver(MemoryPipelineCache())
        context = make_context(grid_function())

        first = await resolver.resolve("countries", context)
        second = await resolver.resolve("countries", context)

        assert [o["value"] for o in first["options"]] == ["US", "CA"]
        assert first["meta"]["fromCache"] is False
        assert first["meta"]["source"] == "local_custom"
        assert first["meta"]["expiresAt"].endswith("Z")
        assert second["meta"]["fromCache"] is True
        assert second["options"] == first["options"]

    @pytest.mark.asyncio
    async def test_force_refresh_skips_read(self):
        """Test force_refresh recomputes and rewrites the entry."""
        cache = mock_cache()
        cache.get.return_value = {"options": [], "warnings": [], "meta": {}}
        resolver = PipelineResolver(cache)

        result = await resolver.resolve("countries", make_context(grid_function()), force_refresh=True)

        assert len(result["options"]) == 2
        cache.get.assert_not_awaited()
        cache.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ttl_from_definition(self):
        """Test the definition TTL is used for the write."""
        cache = mock_cache()
        resolver = PipelineResolver(cache)

        await resolver.resolve("countries", make_context(grid_function(cache={"ttlSeconds": 60})))

        assert cache.set.await_args.args[2] == 60

    @pytest.mark.asyncio
    async def test_ttl_override(self):
        """Test a per-call TTL wins over the definition."""
        cache = mock_cache()
        resolver = PipelineResolver(cache)

        await resolver.resolve(
            "countries",
            make_context(grid_function(cache={"ttlSeconds": 60})),
            cache_ttl_seconds_override=5,
        )

        assert cache.set.await_args.args[2] == 5

    @pytest.mark.asyncio
    async def test_args_change_the_key(self):
        """Test different arguments are cached separately."""
        context = make_context(grid_function())

        assert build_cache_key("countries", 1, {"a": 1}, context) != build_cache_key("countries", 1, {"a": 2}, context)
        assert build_cache_key("countries", 1, {"a": 1}, context) == build_cache_key("countries", 1, {"a": 1}, context)
        assert build_cache_key("countries", 1, None, context).startswith("countries:1:")
        nan_key = build_cache_key("countries", 1, {"a": float("nan")}, context)
        assert nan_key != build_cache_key("countries", 1, {"a": None}, context)

    @pytest.mark.asyncio
    async def test_runtime_is_merged(self):
        """Test runtime values take part in the cache key."""
        cache = mock_cache()
        resolver = PipelineResolver(cache)
        context = make_context(grid_function())

        await resolver.resolve("countries", context, runtime={"rowIndex": 0})
        await resolver.resolve("countries", context, runtime={"rowIndex": 1})

        keys = [call.args[0] for call in cache.set.await_args_list]
        assert keys[0] != keys[1]

    @pytest.mark.asyncio
    async def test_requires_remote_not_cached(self):
        """Test server-only functions resolved where remote access is off."""
        cache = mock_cache()
        resolver = PipelineResolver(cache, allow_remote=False)

        result = await resolver.resolve("suggest", make_context(ai_function()))

        assert result["options"] == []
        assert result["warnings"] == ['Function "suggest" requires server execution']
        assert result["meta"]["source"] == "remote_custom"
        cache.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_latest_request_wins_cache(self):
        """Test a slow earlier request does not overwrite a newer result."""
        first_started = asyncio.Event()
        release_first = asyncio.Event()
        calls = 0

        async def extractor(prompt, source_input, max_rows):
            nonlocal calls
            calls += 1
            if calls == 1:
                first_started.set()
                await release_first.wait()
                return ["old"]
            return ["new"]

        resolver = PipelineResolver(MemoryPipelineCache(), ai_extractor=extractor)
        context = make_context(ai_function())

        slow = asyncio.create_task(resolver.resolve("suggest", context))
        await first_started.wait()
        fast = await resolver.resolve("suggest", context, force_refresh=True)
        release_first.set()
        stale = await slow

        assert [o["value"] for o in fast["options"]] == ["new"]
        assert [o["value"] for o in stale["options"]] == ["old"]
        assert "expiresAt" not in stale["meta"]

        cached = await resolver.resolve("suggest", context)
        assert cached["meta"]["fromCache"] is True
        assert [o["value"] for o in cached["options"]] == ["new"]

    @pytest.mark.asyncio
    async def test_failed_step_is_warning_not_error(self):
        """Test an extractor raising a plain exception yields a warning."""

        async def broken(prompt, source_input, max_rows):
            raise ValueError("model returned garbage")

        cache = mock_cache()
        resolver = PipelineResolver(cache, ai_extractor=broken)

        result = await resolver.resolve("suggest", make_context(ai_function()))

        assert result["options"] == []
        assert result["warnings"] == ['Node "ai" (ai.extract_options) failed: model returned garbage']
        cache.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_run_not_cached(self):
        """Test a connector outage is retried on the next resolve."""
        responses = iter(
            [
                httpx.Response(503),
                httpx.Response(200, content=orjson.dumps([{"id": 1, "title": "First"}])),
            ]
        )
        function = {
            "id": "items",
            "name": "Items",
            "engine": "dsl_v1",
            "source": {"kind": "http_get", "connectorId": "api", "path": "items"},
            "output": {"label": "title", "value": "id"},
        }
        connector = {
            "id": "api",
            "name": "API",
            "baseUrl": "https://api.example.com/",
            "auth": {"type": "secret_ref", "secretRefId": "items"},
        }
        context = {"dynamicOptions": {"functions": {"items": function}, "connectors": {"api": connector}}}

        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: next(responses))) as client:
            resolver = PipelineResolver(
                MemoryPipelineCache(),
                secret_resolver=AsyncMock(return_value="s3cret"),
                http_client=client,
            )
            failed = await resolver.resolve("items", context)
            recovered = await resolver.resolve("items", context)

        assert failed["options"] == []
        assert failed["warnings"] == ["HTTP source failed with status 503"]
        assert "expiresAt" not in failed["meta"]
        assert recovered["meta"]["fromCache"] is False
        assert [o["label"] for o in recovered["options"]] == ["First"]

    @pytest.mark.asyncio
    async def test_compile_errors_not_cached(self):
        """Test functions that do not compile are not cached."""
        cache = mock_cache()
        broken = grid_function(source={"kind": "grid_rows", "gridId": ""})

        result = await PipelineResolver(cache).resolve("countries", make_context(broken))

        assert result["options"] == []
        assert result["warnings"]
        cache.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mutating_result_leaves_cache_intact(self):
        """Test changing a returned result does not change later hits."""
        resolver = PipelineResolver(MemoryPipelineCache())
        context = make_context(grid_function())

        first = await resolver.resolve("countries", context)
        first["options"].clear()
        first["warnings"].append("changed")
        second = await resolver.resolve("countries", context)
        second["options"][0]["label"] = "changed"
        third = await resolver.resolve("countries", context)

        assert third["meta"]["fromCache"] is True
        assert [o["label"] for o in third["options"]] == ["United States", "Canada"]
        assert third["warnings"] == []

    @pytest.mark.asyncio
    async def test_invalidate(self):
        """Test invalidate clears the cache."""
        cache = mock_cache()

        await PipelineResolver(cache).invalidate()

        cache.clear.assert_awaited_once()


class TestBuiltins:
    """Tests for built-in option functions."""

    CONTEXT = {
        "grids": [
            {"id": "main", "name": "Main", "sectionId": "s1"},
            {"id": "shared", "name": "Lookups", "sectionId": "s2"},
        ],
        "sections": [{"id": "s1", "tabId": "tab1"}, {"id": "s2", "tabId": "shared_tab"}],
        "fields": [
            {"id": "name", "dataType": "string", "ui": {"label": "Name"}},
            {"id": "secret", "dataType": "string", "config": {"isHidden": True}},
            {"id": "code", "dataType": "string"},
        ],
        "layoutNodes": [
            {"gridId": "main", "fieldId": "name"},
            {"gridId": "main", "fieldId": "secret"},
            {"gridId": "shared", "fieldId": "code"},
        ],
    }

    def test_all_field_paths(self):
        """Test hidden fields and the shared tab are excluded."""
        options = get_builtin_options("all_field_paths", self.CONTEXT)

        assert options == [{"value": "main.name", "label": "Main → Name", "id": "main.name"}]

    def test_all_field_paths_including_shared(self):
        """Test the shared tab is included on request."""
        options = get_builtin_options("all_field_paths_including_shared", self.CONTEXT)

        assert [o["value"] for o in options] == ["main.name", "shared.code"]
        assert options[1]["label"] == "Lookups → code"

    def test_field_paths_need_layout(self):
        """Test no layout means no field paths."""
        assert get_builtin_options("all_field_paths", {"fields": self.CONTEXT["fields"]}) == []

    def test_static_lists(self):
        """Test operators, actions and rule values."""
        assert "eq" in [o["value"] for o in get_builtin_options("all_operators", {})]
        assert [o["value"] for o in get_builtin_options("all_actions", {})] == ["isHidden", "isRequired", "isDisabled"]
        assert get_builtin_options("all_rule_set_values", {}) == [
            {"value": "true", "label": "True", "id": "true"},
            {"value": "false", "label": "False", "id": "false"},
        ]

    def test_unknown_builtin(self):
        """Test unknown ids give no options."""
        assert get_builtin_options("nope", {}) == []
