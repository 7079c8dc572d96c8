"""Comparison operators shared by depends-on rules and pipeline filters."""

import math
from typing import Any, Callable

from trackerbase.expr.coerce import parse_number_text, to_text

OPERATORS = (
    "eq",
    "neq",
    "gt",
    "gte",
    "lt",
    "lte",
    "in",
    "not_in",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "is_empty",
    "not_empty",
)

OPERATOR_ALIASES = {
    "=": "eq",
    "==": "eq",
    "!=": "neq",
    "!==": "neq",
    ">": "gt",
    ">=": "gte",
    "<": "lt",
    "<=": "lte",
}

Comparator = Callable[[Any], bool]


def normalize_operator(op: str | None) -> str:
    """Canonical operator name; a missing operator means ``eq``."""
    if not op:
        return "eq"
    return OPERATOR_ALIASES.get(op, op)


def is_empty_value(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, list) and not value)


def _finite_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        number = parse_number_text(value)
        if number is None:
            return None
        return float(number) if math.isfinite(number) else None
    return None


def _loose_equal(left: Any, right: Any) -> bool:
    return (type(left) is type(right) and left == right) or to_text(left) == to_text(right)


def compare_values(source_value: Any, operator: str | None, expected: Any) -> bool:
    """
    Evaluate ``source_value <operator> expected``.

    Numeric operators need finite numbers on both sides. ``eq`` matches on
    equality or equal string forms (None reads as empty); ``neq`` holds only
    when both differ. ``in``/``not_in`` wrap a scalar ``expected`` in a list.
    Unknown operators behave like ``eq``.
    """
    op = normalize_operator(operator)

    if op == "is_empty":
        return is_empty_value(source_value)
    if op == "not_empty":
        return not is_empty_value(source_value)

    if op in ("contains", "not_contains"):
        if isinstance(source_value, list):
            found = expected in source_value
        elif isinstance(source_value, str):
            found = to_text(expected) in source_value
        else:
            found = False
        return found if op == "contains" else not found

    if op in ("starts_with", "ends_with"):
        source = to_text(source_value)
        prefix = to_text(expected)
        return source.startswith(prefix) if op == "starts_with" else source.endswith(prefix)

    if op in ("in", "not_in"):
        candidates = expected if isinstance(expected, list) else [expected]
        found = any(_loose_equal(item, source_value) for item in candidates)
        return found if op == "in" else not found

    if op in ("gt", "gte", "lt", "lte"):
        left, right = _finite_number(source_value), _finite_number(expected)
        if left is None or right is None:
            return False
        if op == "gt":
            return left > right
        if op == "gte":
            return left >= right
        if op == "lt":
            return left < right
        return left <= right

    if op == "neq":
        return not (type(source_value) is type(expected) and source_value == expected) and (
            to_text(source_value) != to_text(expected)
        )

    return _loose_equal(source_value, expected)


def compile_compare(operator: str | None, expected: Any) -> Comparator:
    """Bind operator and expected value into a one-argument predicate."""
    op = normalize_operator(operator)

    def compare(source_value: Any) -> bool:
        return compare_values(source_value, op, expected)

    return compare
