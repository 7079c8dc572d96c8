"""Schemas for expression graphs and expression endpoints."""

from typing import Any, Literal

from pydantic import Field

from trackerbase.schemas.common import CamelModel, CompileIssue, NonEmptyStr


class ExprGraphNode(CamelModel):
    """Node of the visual expression editor."""

    id: NonEmptyStr
    type: Literal["field", "const", "op", "result"]
    data: dict[str, Any] = Field(default_factory=dict)


class ExprGraphEdge(CamelModel):
    id: str | None = None
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None


class ExprCompileRequest(CamelModel):
    nodes: list[ExprGraphNode] = Field(default_factory=list)
    edges: list[ExprGraphEdge] = Field(default_factory=list)


class ExprCompileResponse(CamelModel):
    ok: bool
    expr: dict[str, Any] | None = None
    errors: list[CompileIssue] = Field(default_factory=list)


class ExprParseRequest(CamelModel):
    text: str = Field(..., max_length=10_000)


class ExprParseResponse(CamelModel):
    expr: dict[str, Any]
    field_refs: list[str] = Field(default_factory=list)


class ExprEvaluateRequest(CamelModel):
    expr: dict[str, Any]
    row_values: dict[str, Any] = Field(default_factory=dict)


class ExprEvaluateResponse(CamelModel):
    value: Any = None
