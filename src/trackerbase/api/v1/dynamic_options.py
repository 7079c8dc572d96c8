"""
Dynamic option endpoints.

Compile function definitions for authoring feedback and resolve option
lists for dynamic select fields.
"""

from fastapi import APIRouter

from trackerbase.api.deps import RateLimiter, Resolver
from trackerbase.core.logging import get_logger
from trackerbase.pipeline import compile_pipeline, dsl_to_graph, parse_function_definition
from trackerbase.schemas.common import CompileIssue
from trackerbase.schemas.pipeline import (
    DslFunctionDefinition,
    PipelineCompileRequest,
    PipelineCompileResponse,
    ResolveRequest,
    ResolveResult,
)

logger = get_logger(__name__)

router = APIRouter()


@router.post("/compile", response_model=PipelineCompileResponse)
async def compile_function(request: PipelineCompileRequest) -> PipelineCompileResponse:
    """
    Check a function definition without running it.

    Definition and graph problems are returned as ``errors`` with a 200
    status so the editor can attach them to nodes and edges.
    """
    definition, warnings = parse_function_definition(request.definition)
    if definition is None:
        return PipelineCompileResponse(ok=False, errors=[CompileIssue(message=message) for message in warnings])

    graph = dsl_to_graph(definition) if isinstance(definition, DslFunctionDefinition) else definition.graph
    result = compile_pipeline(graph, request.connector_ids, function_id=f"{definition.id}@{definition.version}")
    if not result.ok:
        return PipelineCompileResponse(ok=False, errors=result.errors)

    plan = result.plan
    return PipelineCompileResponse(
        ok=True,
        execution_order=plan.execution_order,
        requires_remote=plan.requires_remote,
        uses_runtime_row=plan.uses_runtime_row,
    )


@router.post("/resolve", response_model=ResolveResult)
async def resolve_options(
    request: ResolveRequest,
    resolver: Resolver,
    rate_limiter: RateLimiter,
) -> dict:
    """
    Resolve the options of one dynamic options function.

    Raises:
        RateLimitError: 429 when the function was resolved too often
            within the last minute
    """
    rate_limiter.hit(request.function_id or "unknown")
    runtime = request.runtime.to_camel_dict() if request.runtime else None
    return await resolver.resolve(
        request.function_id,
        request.context.model_dump(by_alias=True),
        request.args,
        runtime=runtime,
        force_refresh=request.force_refresh,
        cache_ttl_seconds_override=request.cache_ttl_seconds_override,
    )
