"""Dynamic option pipelines.

A pipeline is a small DAG of typed nodes (sources, transforms, AI
extraction) ending in an ``output.options`` node that maps rows to
``{label, value, id}`` options. Graphs are compiled once into plans and
executed per request; :class:`PipelineResolver` adds lookup by function id
and TTL caching.
"""

from trackerbase.pipeline.builtins import (
    BUILTIN_FUNCTIONS,
    get_builtin_options,
    is_builtin,
    list_builtin_ids,
    register_builtin,
)
from trackerbase.pipeline.compiler import (
    CompiledPipeline,
    PipelineCompileResult,
    clear_pipeline_cache,
    compile_pipeline,
)
from trackerbase.pipeline.dsl import dsl_to_graph
from trackerbase.pipeline.executor import (
    NODE_HANDLERS,
    PipelineRunResult,
    execute_function,
    execute_pipeline,
    parse_function_definition,
)
from trackerbase.pipeline.kinds import NODE_KINDS, SERVER_ONLY_KINDS, list_node_kinds
from trackerbase.pipeline.paths import get_by_path, to_stable_key
from trackerbase.pipeline.resolver import PipelineResolver, build_cache_key

__all__ = [
    "BUILTIN_FUNCTIONS",
    "NODE_HANDLERS",
    "NODE_KINDS",
    "SERVER_ONLY_KINDS",
    "CompiledPipeline",
    "PipelineCompileResult",
    "PipelineResolver",
    "PipelineRunResult",
    "build_cache_key",
    "clear_pipeline_cache",
    "compile_pipeline",
    "dsl_to_graph",
    "execute_function",
    "execute_pipeline",
    "get_builtin_options",
    "get_by_path",
    "is_builtin",
    "list_builtin_ids",
    "list_node_kinds",
    "parse_function_definition",
    "register_builtin",
    "to_stable_key",
]
