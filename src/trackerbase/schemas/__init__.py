"""Pydantic schemas for rule objects, pipeline graphs and API payloads."""

from trackerbase.schemas.common import CamelModel, CompileIssue
from trackerbase.schemas.pipeline import (
    Connector,
    FunctionDefinition,
    PipelineContext,
    PipelineGraph,
    PipelineRuntime,
    ResolveResult,
)

__all__ = [
    "CamelModel",
    "CompileIssue",
    "Connector",
    "FunctionDefinition",
    "PipelineContext",
    "PipelineGraph",
    "PipelineRuntime",
    "ResolveResult",
]
