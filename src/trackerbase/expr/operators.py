"""Registry of expression operators beyond the arithmetic/comparison core.

Operators receive the node, the row values and an ``evaluate`` callback
for sub-expressions::

    @register_expr_op("concat")
    def op_concat(node, row_values, evaluate):
        return "".join(str(evaluate(arg)) for arg in node.get("args", []))
"""

import re
from typing import Any, Callable

from trackerbase.expr.coerce import is_truthy
from trackerbase.expr.nodes import ExprNode, is_expr_node, variadic_operands

EvaluateFn = Callable[[ExprNode], Any]
ExprOperator = Callable[[ExprNode, dict[str, Any], EvaluateFn], Any]

# Registry of extension operators
EXPR_OPS: dict[str, ExprOperator] = {}

_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


def register_expr_op(name: str) -> Callable[[ExprOperator], ExprOperator]:
    """Decorator to register an expression operator."""

    def decorator(func: ExprOperator) -> ExprOperator:
        EXPR_OPS[name] = func
        return func

    return decorator


def get_expr_op(name: str) -> ExprOperator | None:
    return EXPR_OPS.get(name)


# =============================================================================
# Logical operators
# =============================================================================


@register_expr_op("and")
def op_and(node: ExprNode, row_values: dict[str, Any], evaluate: EvaluateFn) -> bool:
    """True when every operand is truthy; empty operand list is False."""
    args = variadic_operands(node)
    if not args:
        return False
    return all(is_truthy(evaluate(arg)) for arg in args)


@register_expr_op("or")
def op_or(node: ExprNode, row_values: dict[str, Any], evaluate: EvaluateFn) -> bool:
    args = variadic_operands(node)
    if not args:
        return False
    return any(is_truthy(evaluate(arg)) for arg in args)


@register_expr_op("not")
def op_not(node: ExprNode, row_values: dict[str, Any], evaluate: EvaluateFn) -> bool | None:
    arg = node.get("arg")
    if not is_expr_node(arg):
        return None
    return not is_truthy(evaluate(arg))


@register_expr_op("if")
def op_if(node: ExprNode, row_values: dict[str, Any], evaluate: EvaluateFn) -> Any:
    """Evaluate ``then`` or ``else`` depending on ``cond``; only one branch runs."""
    cond, then, otherwise = node.get("cond"), node.get("then"), node.get("else")
    if not (is_expr_node(cond) and is_expr_node(then) and is_expr_node(otherwise)):
        return None
    return evaluate(then) if is_truthy(evaluate(cond)) else evaluate(otherwise)


# =============================================================================
# Text operators
# =============================================================================


@register_expr_op("regex")
def op_regex(node: ExprNode, row_values: dict[str, Any], evaluate: EvaluateFn) -> bool:
    """Search ``value`` for ``pattern``. Invalid patterns never match."""
    target, pattern = node.get("value"), node.get("pattern")
    if not is_expr_node(target) or not isinstance(pattern, str):
        return False
    value = evaluate(target)
    text = "" if value is None else str(value)
    flags = 0
    for char in str(node.get("flags") or ""):
        flags |= _REGEX_FLAGS.get(char, 0)
    try:
        return re.search(pattern, text, flags) is not None
    except re.error:
        return False
