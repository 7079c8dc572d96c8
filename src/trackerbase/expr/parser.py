"""Parser and formatter for the textual expression syntax.

``parse_expr("{price} * {qty} + 1")`` produces the same ExprNode dicts the
visual editor compiles to, so text and graph authoring are interchangeable.
"""

import math
import re
from typing import Any

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError

from trackerbase.core.exceptions import ExprSyntaxError
from trackerbase.expr.grammar import EXPR_GRAMMAR
from trackerbase.expr.nodes import ExprNode, collect_field_refs, const, is_expr_node, normalize_op
from trackerbase.expr.nodes import field_ref as field_node


def _unquote(token: Any) -> str:
    return re.sub(r"\\([\\\"'])", r"\1", str(token)[1:-1])


class ExprTransformer(Transformer):
    """Transform the Lark parse tree into ExprNode dicts."""

    @v_args(inline=True)
    def number(self, token):
        text = str(token)
        return const(int(text) if text.isdigit() else float(text))

    @v_args(inline=True)
    def string(self, token):
        return const(_unquote(token))

    def true(self, _):
        return const(True)

    def false(self, _):
        return const(False)

    def null(self, _):
        return const(None)

    def infinity(self, _):
        return const(math.inf)

    def nan(self, _):
        return const(math.nan)

    @v_args(inline=True)
    def field_ref(self, token):
        return field_node(str(token)[1:-1].strip())

    # Arithmetic: chains of the same operator collapse into one n-ary node
    @v_args(inline=True)
    def add(self, left, right):
        return self._variadic("add", left, right)

    @v_args(inline=True)
    def mul(self, left, right):
        return self._variadic("mul", left, right)

    @v_args(inline=True)
    def sub(self, left, right):
        return {"op": "sub", "left": left, "right": right}

    @v_args(inline=True)
    def div(self, left, right):
        return {"op": "div", "left": left, "right": right}

    @v_args(inline=True)
    def neg(self, operand):
        value = operand.get("value") if operand["op"] == "const" else None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return const(-value)
        return {"op": "sub", "left": const(0), "right": operand}

    # Comparison
    @v_args(inline=True)
    def eq(self, left, right):
        return {"op": "eq", "left": left, "right": right}

    @v_args(inline=True)
    def neq(self, left, right):
        return {"op": "neq", "left": left, "right": right}

    @v_args(inline=True)
    def gt(self, left, right):
        return {"op": "gt", "left": left, "right": right}

    @v_args(inline=True)
    def gte(self, left, right):
        return {"op": "gte", "left": left, "right": right}

    @v_args(inline=True)
    def lt(self, left, right):
        return {"op": "lt", "left": left, "right": right}

    @v_args(inline=True)
    def lte(self, left, right):
        return {"op": "lte", "left": left, "right": right}

    # Logical
    @v_args(inline=True)
    def and_op(self, left, right):
        return self._variadic("and", left, right)

    @v_args(inline=True)
    def or_op(self, left, right):
        return self._variadic("or", left, right)

    @v_args(inline=True)
    def not_op(self, operand):
        return {"op": "not", "arg": operand}

    @v_args(inline=True)
    def if_op(self, cond, then, otherwise):
        return {"op": "if", "cond": cond, "then": then, "else": otherwise}

    @v_args(inline=True)
    def regex_op(self, value, pattern, flags=None):
        node: ExprNode = {"op": "regex", "value": value, "pattern": _unquote(pattern)}
        if flags is not None:
            node["flags"] = _unquote(flags)
        return node

    @staticmethod
    def _variadic(op: str, left: ExprNode, right: ExprNode) -> ExprNode:
        if left["op"] == op and isinstance(left.get("args"), list):
            return {"op": op, "args": [*left["args"], right]}
        return {"op": op, "args": [left, right]}


class ExprParser:
    """
    Parser for the textual expression syntax.
    """

    def __init__(self) -> None:
        self._parser = Lark(
            EXPR_GRAMMAR,
            parser="lalr",
            transformer=ExprTransformer(),
            maybe_placeholders=True,
        )

    def parse(self, text: str) -> ExprNode:
        """
        Parse expression text into an ExprNode.

        Raises:
            ExprSyntaxError: If the text is not a valid expression
        """
        try:
            return self._parser.parse(text)
        except LarkError as e:
            raise ExprSyntaxError(text, str(e).splitlines()[0] if str(e) else type(e).__name__) from e

    def validate(self, text: str) -> tuple[bool, str | None]:
        """
        Validate expression syntax.

        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            self.parse(text)
            return True, None
        except ExprSyntaxError as e:
            return False, e.message

    def get_field_references(self, text: str) -> list[str]:
        """Sorted field ids referenced by the expression text."""
        return sorted(collect_field_refs(self.parse(text)))


_parser: ExprParser | None = None


def parse_expr(text: str) -> ExprNode:
    """Parse expression text with a shared parser instance."""
    global _parser
    if _parser is None:
        _parser = ExprParser()
    return _parser.parse(text)


# =============================================================================
# Formatting
# =============================================================================

_INFIX = {
    "or": ("or", 1),
    "and": ("and", 2),
    "eq": ("=", 4),
    "neq": ("!=", 4),
    "gt": (">", 4),
    "gte": (">=", 4),
    "lt": ("<", 4),
    "lte": ("<=", 4),
    "add": ("+", 5),
    "sub": ("-", 5),
    "mul": ("*", 6),
    "div": ("/", 6),
}


def _format_const(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return "NaN"
        if isinstance(value, float) and math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return repr(value)
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def format_expr(expr: Any, parent_precedence: int = 0) -> str:
    """
    Render an ExprNode as expression text that ``parse_expr`` reads back.

    Args:
        expr: Expression tree
        parent_precedence: Binding strength of the enclosing operator

    Returns:
        Expression text
    """
    if not is_expr_node(expr):
        return "null"
    op = normalize_op(expr["op"])

    if op == "const":
        return _format_const(expr.get("value"))
    if op == "field":
        return "{" + str(expr.get("fieldId", "")) + "}"
    if op == "not":
        text = f"not {format_expr(expr.get('arg'), 3)}"
        return f"({text})" if parent_precedence > 3 else text
    if op == "if":
        parts = [format_expr(expr.get(key)) for key in ("cond", "then", "else")]
        return f"if({', '.join(parts)})"
    if op == "regex":
        parts = [format_expr(expr.get("value")), _format_const(str(expr.get("pattern", "")))]
        if expr.get("flags"):
            parts.append(_format_const(str(expr["flags"])))
        return f"regex({', '.join(parts)})"
    if op not in _INFIX:
        return "null"

    symbol, precedence = _INFIX[op]
    if isinstance(expr.get("args"), list):
        operands = [arg for arg in expr["args"] if is_expr_node(arg)]
    else:
        operands = [expr.get("left"), expr.get("right")]
    # Right operands bind one level tighter; comparisons do not chain at all
    rendered = [
        format_expr(operand, precedence if index == 0 and precedence != 4 else precedence + 1)
        for index, operand in enumerate(operands)
    ]
    text = f" {symbol} ".join(rendered)
    return f"({text})" if parent_precedence > precedence else text
