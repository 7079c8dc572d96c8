"""ExprNode helpers.

Expressions are plain dicts tagged by ``op``::

    {"op": "field", "fieldId": "price"}
    {"op": "const", "value": 10}
    {"op": "add", "args": [...]}            # also mul, and, or
    {"op": "sub", "left": ..., "right": ...} # also div and comparisons
    {"op": "not", "arg": ...}
    {"op": "if", "cond": ..., "then": ..., "else": ...}
    {"op": "regex", "value": ..., "pattern": "^a", "flags": "i"}
"""

from typing import Any

ExprNode = dict[str, Any]

OP_ALIASES: dict[str, str] = {
    "=": "eq",
    "==": "eq",
    "===": "eq",
    "!=": "neq",
    "!==": "neq",
    ">": "gt",
    ">=": "gte",
    "<": "lt",
    "<=": "lte",
}

VARIADIC_OPS = frozenset({"add", "mul", "and", "or"})
BINARY_OPS = frozenset({"sub", "div", "eq", "neq", "gt", "gte", "lt", "lte"})
COMPARISON_OPS = frozenset({"eq", "neq", "gt", "gte", "lt", "lte"})


def normalize_op(op: str) -> str:
    """Map operator aliases such as ``==`` or ``>=`` to their canonical name."""
    return OP_ALIASES.get(op, op)


def is_expr_node(value: Any) -> bool:
    """Check if value looks like an ExprNode."""
    return isinstance(value, dict) and isinstance(value.get("op"), str)


def field_ref(field_id: str) -> ExprNode:
    return {"op": "field", "fieldId": field_id}


def const(value: Any) -> ExprNode:
    return {"op": "const", "value": value}


def variadic_operands(node: ExprNode) -> list[ExprNode] | None:
    """Operands of an n-ary node, accepting the binary ``left``/``right`` form too."""
    args = node.get("args")
    if isinstance(args, list):
        return [arg for arg in args if is_expr_node(arg)]
    left, right = node.get("left"), node.get("right")
    if is_expr_node(left) and is_expr_node(right):
        return [left, right]
    return None


def binary_operands(node: ExprNode) -> tuple[ExprNode, ExprNode] | None:
    """Operands of a binary node, accepting a two-element ``args`` list too."""
    left, right = node.get("left"), node.get("right")
    if is_expr_node(left) and is_expr_node(right):
        return left, right
    args = node.get("args")
    if isinstance(args, list) and len(args) >= 2 and is_expr_node(args[0]) and is_expr_node(args[1]):
        return args[0], args[1]
    return None


def child_nodes(node: ExprNode) -> list[ExprNode]:
    """All direct sub-expressions of a node, in evaluation order."""
    children: list[ExprNode] = []
    args = node.get("args")
    if isinstance(args, list):
        children.extend(item for item in args if is_expr_node(item))
    for key in ("left", "right", "arg", "cond", "then", "else", "value"):
        value = node.get(key)
        if is_expr_node(value):
            children.append(value)
    return children


def collect_field_refs(expr: Any, out: set[str] | None = None) -> set[str]:
    """
    Collect every ``fieldId`` referenced by an expression.

    Args:
        expr: Expression tree (malformed input yields an empty set)
        out: Optional set to add references to

    Returns:
        Set of referenced field ids, as written (``price`` or ``grid.price``)
    """
    refs = out if out is not None else set()
    stack = [expr]
    while stack:
        node = stack.pop()
        if not is_expr_node(node):
            continue
        if node["op"] == "field":
            field_id = node.get("fieldId")
            if isinstance(field_id, str) and field_id:
                refs.add(field_id)
            continue
        if node["op"] == "const":
            continue
        stack.extend(child_nodes(node))
    return refs
