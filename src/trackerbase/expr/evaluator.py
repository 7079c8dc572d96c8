"""Expression evaluator.

Evaluates ExprNode trees against a mapping of row values. Evaluation never
raises on malformed input: arithmetic on non-numeric operands yields NaN and
unknown operators yield None.
"""

from typing import Any, Callable

from trackerbase.expr.coerce import NAN, compare_order, is_nan, to_number, values_equal
from trackerbase.expr.nodes import ExprNode, binary_operands, is_expr_node, normalize_op, variadic_operands
from trackerbase.expr.operators import get_expr_op


class ExprEvaluator:
    """
    Evaluates expression trees.

    Core operators are dispatched through a lookup table; anything else is
    looked up in the extension operator registry.
    """

    def __init__(self) -> None:
        self._dispatch: dict[str, Callable[[ExprNode, dict[str, Any]], Any]] = {
            "const": self._const,
            "field": self._field,
            "add": self._add,
            "mul": self._mul,
            "sub": self._subtract,
            "div": self._divide,
            "eq": self._equal,
            "neq": self._not_equal,
            "gt": self._greater_than,
            "gte": self._greater_equal,
            "lt": self._less_than,
            "lte": self._less_equal,
        }

    def evaluate(self, expr: Any, row_values: dict[str, Any] | None = None) -> Any:
        """
        Evaluate an expression.

        Args:
            expr: Expression tree
            row_values: Field values keyed by field id; dotted
                ``grid.field`` keys are looked up as-is

        Returns:
            Evaluation result, NaN for failed arithmetic, None for unknown ops
        """
        return self._eval(expr, row_values or {})

    def _eval(self, node: Any, row_values: dict[str, Any]) -> Any:
        if not is_expr_node(node):
            return None

        custom = get_expr_op(node["op"])
        if custom is not None:
            return custom(node, row_values, lambda child: self._eval(child, row_values))

        handler = self._dispatch.get(normalize_op(node["op"]))
        if handler is None:
            return None
        return handler(node, row_values)

    # -------------------------------------------------------------------------
    # Leaves
    # -------------------------------------------------------------------------

    def _const(self, node: ExprNode, row_values: dict[str, Any]) -> Any:
        return node.get("value")

    def _field(self, node: ExprNode, row_values: dict[str, Any]) -> Any:
        field_id = node.get("fieldId")
        if not isinstance(field_id, str):
            return None
        return row_values.get(field_id)

    # -------------------------------------------------------------------------
    # Arithmetic
    # -------------------------------------------------------------------------

    def _numbers(self, operands: list[ExprNode], row_values: dict[str, Any]) -> list[int | float]:
        return [to_number(self._eval(arg, row_values)) for arg in operands]

    def _add(self, node: ExprNode, row_values: dict[str, Any]) -> int | float:
        operands = variadic_operands(node)
        if not operands:
            return NAN
        return sum(self._numbers(operands, row_values))

    def _mul(self, node: ExprNode, row_values: dict[str, Any]) -> int | float:
        operands = variadic_operands(node)
        if not operands:
            return NAN
        product: int | float = 1
        for number in self._numbers(operands, row_values):
            product *= number
        return product

    def _subtract(self, node: ExprNode, row_values: dict[str, Any]) -> int | float:
        pair = binary_operands(node)
        if pair is None:
            return NAN
        left, right = self._numbers(list(pair), row_values)
        return left - right

    def _divide(self, node: ExprNode, row_values: dict[str, Any]) -> int | float:
        pair = binary_operands(node)
        if pair is None:
            return NAN
        left, right = self._numbers(list(pair), row_values)
        if right == 0 or is_nan(right):
            return NAN
        return left / right

    # -------------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------------

    def _operand_values(self, node: ExprNode, row_values: dict[str, Any]) -> tuple[Any, Any] | None:
        pair = binary_operands(node)
        if pair is None:
            return None
        return self._eval(pair[0], row_values), self._eval(pair[1], row_values)

    def _equal(self, node: ExprNode, row_values: dict[str, Any]) -> bool | None:
        values = self._operand_values(node, row_values)
        if values is None:
            return None
        return values_equal(*values)

    def _not_equal(self, node: ExprNode, row_values: dict[str, Any]) -> bool | None:
        values = self._operand_values(node, row_values)
        if values is None:
            return None
        return not values_equal(*values)

    def _ordered(self, node: ExprNode, row_values: dict[str, Any], accept: Callable[[int], bool]) -> bool:
        values = self._operand_values(node, row_values)
        if values is None:
            return False
        order = compare_order(*values)
        return order is not None and accept(order)

    def _greater_than(self, node: ExprNode, row_values: dict[str, Any]) -> bool:
        return self._ordered(node, row_values, lambda order: order > 0)

    def _greater_equal(self, node: ExprNode, row_values: dict[str, Any]) -> bool:
        return self._ordered(node, row_values, lambda order: order >= 0)

    def _less_than(self, node: ExprNode, row_values: dict[str, Any]) -> bool:
        return self._ordered(node, row_values, lambda order: order < 0)

    def _less_equal(self, node: ExprNode, row_values: dict[str, Any]) -> bool:
        return self._ordered(node, row_values, lambda order: order <= 0)


_default_evaluator = ExprEvaluator()


def evaluate_expr(expr: Any, row_values: dict[str, Any] | None = None) -> Any:
    """Evaluate an expression with the shared evaluator."""
    return _default_evaluator.evaluate(expr, row_values)
