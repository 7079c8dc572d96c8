"""Expression engine for TrackerBase.

Expressions are JSON-compatible ExprNode dicts. They can be authored as
text (``parse_expr``), as a visual node graph (``compile_expr_from_graph``)
or directly, and are evaluated against row values with ``evaluate_expr``.
"""

from trackerbase.expr.evaluator import ExprEvaluator, evaluate_expr
from trackerbase.expr.graph import ExprCompileResult, compile_expr_from_graph, expr_to_graph
from trackerbase.expr.nodes import ExprNode, collect_field_refs, is_expr_node, normalize_op
from trackerbase.expr.operators import EXPR_OPS, register_expr_op
from trackerbase.expr.parser import ExprParser, format_expr, parse_expr

__all__ = [
    "EXPR_OPS",
    "ExprCompileResult",
    "ExprEvaluator",
    "ExprNode",
    "ExprParser",
    "collect_field_refs",
    "compile_expr_from_graph",
    "evaluate_expr",
    "expr_to_graph",
    "format_expr",
    "is_expr_node",
    "normalize_op",
    "parse_expr",
    "register_expr_op",
]
