"""
Execute compiled dynamic option pipelines.

Nodes run in topological order through a handler table keyed by node kind.
Each handler receives the value produced by the node's single incoming
edge. A failing node adds a warning and yields no rows; a failure in the
output node aborts the run with no options.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from trackerbase.core.config import settings
from trackerbase.core.exceptions import PipelineRuntimeError
from trackerbase.core.logging import get_logger
from trackerbase.pipeline.builtins import get_builtin_options, is_builtin
from trackerbase.pipeline.compiler import CompiledNode, CompiledPipeline, compile_pipeline
from trackerbase.pipeline.dsl import dsl_to_graph
from trackerbase.pipeline.kinds import OUTPUT
from trackerbase.pipeline.paths import get_by_path, normalize_rows, to_record
from trackerbase.pipeline.sources import SecretResolver, current_context, fetch_http_get, grid_rows, layout_rows
from trackerbase.pipeline.transforms import (
    apply_filter,
    apply_flatten_path,
    apply_limit,
    apply_map_fields,
    apply_sort,
    apply_unique,
    map_rows_to_options,
)
from trackerbase.schemas.pipeline import DslFunctionDefinition, FunctionDefinition

logger = get_logger(__name__)

OptionSource = Literal["builtin", "local_custom", "remote_custom", "unknown"]

# (prompt, input, max_rows) -> rows
AiExtractor = Callable[[str, Any, int], Awaitable[list[Any]]]

DEFAULT_AI_MAX_ROWS = 500

_definition_adapter = TypeAdapter(FunctionDefinition)


@dataclass
class PipelineRunResult:
    options: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    source: OptionSource = "local_custom"
    requires_remote: bool = False
    # False when the definition, the compile or a node failed
    ok: bool = True


@dataclass
class PipelineRun:
    """Inputs and collaborators of one execution."""

    context: dict[str, Any]
    args: dict[str, Any]
    connectors: dict[str, Any] | None = None
    secret_resolver: SecretResolver | None = None
    ai_extractor: AiExtractor | None = None
    http_client: httpx.AsyncClient | None = None
    warnings: list[str] = field(default_factory=list)
    failed: bool = False


NodeHandler = Callable[[CompiledNode, Any, PipelineRun], Awaitable[Any]]

# Registry of node handlers by kind
NODE_HANDLERS: dict[str, NodeHandler] = {}


def register_handler(kind: str) -> Callable[[NodeHandler], NodeHandler]:
    """Decorator to register the handler of a node kind."""

    def decorator(func: NodeHandler) -> NodeHandler:
        NODE_HANDLERS[kind] = func
        return func

    return decorator


@register_handler("control.start")
async def _start(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return {"args": run.args, "runtime": to_record(run.context.get("runtime"))}


@register_handler("source.grid_rows")
async def _grid_rows(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return grid_rows(run.context, node.config.grid_id)


@register_handler("source.current_context")
async def _current_context(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    config = node.config
    return current_context(
        run.context,
        include_row_values=config.include_row_values,
        include_field_metadata=config.include_field_metadata,
        include_layout_metadata=config.include_layout_metadata,
    )


@register_handler("source.layout_fields")
async def _layout_fields(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return layout_rows(run.context, node.config.include_hidden, node.config.exclude_shared_tab)


@register_handler("source.builtin_ref")
async def _builtin_ref(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    function_id = node.config.function_id
    if not is_builtin(function_id):
        raise PipelineRuntimeError(f'Built-in function "{function_id}" does not exist', node_id=node.id)
    return normalize_rows(get_builtin_options(function_id, run.context))


@register_handler("source.http_get")
async def _http_get(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return await fetch_http_get(
        node.config,
        run.context,
        run.args,
        connectors=run.connectors,
        secret_resolver=run.secret_resolver,
        client=run.http_client,
    )


@register_handler("transform.filter")
async def _filter(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return apply_filter(normalize_rows(value), node.config, run.args, run.context)


@register_handler("transform.map_fields")
async def _map_fields(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return apply_map_fields(normalize_rows(value), node.config.mappings, run.args, run.context)


@register_handler("transform.unique")
async def _unique(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return apply_unique(normalize_rows(value), node.config.by)


@register_handler("transform.sort")
async def _sort(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return apply_sort(normalize_rows(value), node.config.by, node.config.direction, node.config.value_type)


@register_handler("transform.limit")
async def _limit(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return apply_limit(normalize_rows(value), node.config.count)


@register_handler("transform.flatten_path")
async def _flatten_path(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return apply_flatten_path(value, node.config.path)


@register_handler("ai.extract_options")
async def _ai_extract(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    if run.ai_extractor is None:
        raise PipelineRuntimeError("AI extractor is not configured for ai.extract_options node", node_id=node.id)
    config = node.config
    source_input = get_by_path(value, config.input_path) if config.input_path else value
    rows = await run.ai_extractor(config.prompt, source_input, config.max_rows or DEFAULT_AI_MAX_ROWS)
    return normalize_rows(rows)


@register_handler(OUTPUT)
async def _output(node: CompiledNode, value: Any, run: PipelineRun) -> Any:
    return map_rows_to_options(normalize_rows(value), node.config.mapping, run.args, run.context)


def _plan_source(plan: CompiledPipeline) -> OptionSource:
    if plan.requires_remote:
        return "remote_custom"
    if plan.uses_builtin:
        return "builtin"
    return "local_custom"


async def execute_pipeline(
    plan: CompiledPipeline,
    context: dict[str, Any],
    args: dict[str, Any] | None = None,
    *,
    allow_remote: bool = False,
    connectors: dict[str, Any] | None = None,
    secret_resolver: SecretResolver | None = None,
    ai_extractor: AiExtractor | None = None,
    http_client: httpx.AsyncClient | None = None,
    max_options: int | None = None,
) -> PipelineRunResult:
    """
    Run a compiled pipeline.

    Args:
        plan: Compiled pipeline
        context: Pipeline context dict
        args: Resolve call arguments
        allow_remote: Whether HTTP and AI nodes may run here; plans needing
            them return no options and ``requires_remote`` otherwise
        connectors: Connector definitions overriding the context's
        secret_resolver: Async secret lookup for ``secret_ref`` connectors
        ai_extractor: Async ``(prompt, input, max_rows)`` extractor
        http_client: Shared HTTP client for ``source.http_get``
        max_options: Cap on returned options (default from settings)

    Returns:
        PipelineRunResult
    """
    source = _plan_source(plan)
    if plan.requires_remote and not allow_remote:
        return PipelineRunResult(source=source, requires_remote=True)

    run = PipelineRun(
        context=context or {},
        args=args or {},
        connectors=connectors,
        secret_resolver=secret_resolver,
        ai_extractor=ai_extractor,
        http_client=http_client,
    )
    limit = max_options if max_options is not None else settings.pipeline_max_options
    values: dict[str, Any] = {}
    started = time.perf_counter()

    for node_id in plan.execution_order:
        node = plan.nodes[node_id]
        incoming = plan.incoming.get(node_id, [])
        value = values.get(incoming[0].source) if incoming else None
        try:
            values[node_id] = await NODE_HANDLERS[node.kind](node, value, run)
        except Exception as e:
            if isinstance(e, PipelineRuntimeError):
                message = e.message
                logger.warning(f"Pipeline {plan.function_id!r} node {node_id!r} failed: {message}")
            else:
                message = f'Node "{node_id}" ({node.kind}) failed: {e}'
                logger.exception(f"Pipeline {plan.function_id!r} node {node_id!r} raised {type(e).__name__}")
            if node.kind == OUTPUT:
                return PipelineRunResult(options=[], warnings=[*run.warnings, message], source=source, ok=False)
            run.warnings.append(message)
            run.failed = True
            values[node_id] = []

    options = [
        option
        for option in values.get(plan.return_node_id) or []
        if isinstance(option, dict) and isinstance(option.get("label"), str)
    ]
    logger.debug(
        f"Pipeline {plan.function_id!r} produced {len(options)} option(s) "
        f"in {(time.perf_counter() - started) * 1000:.1f}ms"
    )
    return PipelineRunResult(options=options[:limit], warnings=run.warnings, source=source, ok=not run.failed)


def parse_function_definition(definition: Any) -> tuple[Any, list[str]]:
    """
    Validate a stored function definition.

    Returns:
        Tuple of (definition model or None, warnings)
    """
    try:
        return _definition_adapter.validate_python(definition), []
    except PydanticValidationError as e:
        messages = []
        for error in e.errors():
            location = ".".join(str(part) for part in error.get("loc", ()))
            prefix = f"Invalid function definition: {location}" if location else "Invalid function definition"
            messages.append(f"{prefix}: {error.get('msg')}")
        return None, messages


async def execute_function(
    definition: Any,
    context: dict[str, Any],
    args: dict[str, Any] | None = None,
    **options: Any,
) -> PipelineRunResult:
    """
    Validate, compile and run a function definition (graph or DSL).

    ``options`` are passed to :func:`execute_pipeline`. Connector ids for the
    compile check come from the context and the ``connectors`` option.
    """
    parsed, warnings = parse_function_definition(definition)
    if parsed is None:
        return PipelineRunResult(warnings=warnings, ok=False)

    if parsed.enabled is False:
        return PipelineRunResult(warnings=[f'Function "{parsed.id}" is disabled'], ok=False)

    graph = dsl_to_graph(parsed) if isinstance(parsed, DslFunctionDefinition) else parsed.graph
    connector_ids = sorted(
        {
            *to_record(to_record((context or {}).get("dynamicOptions")).get("connectors")),
            *(options.get("connectors") or {}),
        }
    )
    compiled = compile_pipeline(graph, connector_ids, function_id=f"{parsed.id}@{parsed.version}")
    if not compiled.ok:
        return PipelineRunResult(warnings=[issue.message for issue in compiled.errors], ok=False)

    return await execute_pipeline(compiled.plan, context, args, **options)
