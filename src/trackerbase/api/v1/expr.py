"""
Expression API endpoints.

Compile editor graphs to expressions, parse expression text and evaluate
expressions against row values.
"""

from fastapi import APIRouter

from trackerbase.expr import collect_field_refs, compile_expr_from_graph, evaluate_expr, parse_expr
from trackerbase.schemas.common import json_safe
from trackerbase.schemas.expr import (
    ExprCompileRequest,
    ExprCompileResponse,
    ExprEvaluateRequest,
    ExprEvaluateResponse,
    ExprParseRequest,
    ExprParseResponse,
)

router = APIRouter()


@router.post("/compile", response_model=ExprCompileResponse)
async def compile_graph(request: ExprCompileRequest) -> ExprCompileResponse:
    """
    Compile an expression editor graph.

    Problems are returned as ``errors`` with a 200 status.
    """
    result = compile_expr_from_graph(
        [node.model_dump(by_alias=True) for node in request.nodes],
        [edge.model_dump(by_alias=True) for edge in request.edges],
    )
    return ExprCompileResponse(ok=result.ok, expr=result.expr, errors=result.errors)


@router.post("/parse", response_model=ExprParseResponse)
async def parse_text(request: ExprParseRequest) -> ExprParseResponse:
    """
    Parse expression text.

    Raises:
        ExprSyntaxError: 400 when the text is not a valid expression
    """
    expr = parse_expr(request.text)
    return ExprParseResponse(expr=expr, field_refs=sorted(collect_field_refs(expr)))


@router.post("/evaluate", response_model=ExprEvaluateResponse)
async def evaluate(request: ExprEvaluateRequest) -> ExprEvaluateResponse:
    """Evaluate an expression; NaN results are returned as null."""
    return ExprEvaluateResponse(value=json_safe(evaluate_expr(request.expr, request.row_values)))
