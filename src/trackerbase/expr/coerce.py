"""Value coercion shared by the expression operators."""

import math
import re
from decimal import Decimal
from typing import Any

NAN = float("nan")

# Decimal literals and signed Infinity; no underscores, hex or "nan"/"inf" spellings
_NUMBER_RE = re.compile(
    r"[+-]?(?:(?P<int>\d+)"
    r"|\d+\.\d*(?:[eE][+-]?\d+)?"
    r"|\.\d+(?:[eE][+-]?\d+)?"
    r"|\d+[eE][+-]?\d+"
    r"|Infinity)"
)


def parse_number_text(text: str) -> int | float | None:
    """Parse a numeric string; None when it is not a number literal."""
    match = _NUMBER_RE.fullmatch(text.strip())
    if match is None:
        return None
    if match.group("int") is not None:
        return int(match.group(0))
    return float(match.group(0))


def is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def to_number(value: Any) -> int | float:
    """
    Coerce a value to a number for arithmetic.

    ``None`` and blank strings count as 0; numeric strings are parsed;
    booleans and anything else become NaN.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return NAN
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        number = parse_number_text(text)
        return NAN if number is None else number
    return NAN


def to_comparable_number(value: Any) -> int | float | None:
    """Strict numeric view used by comparisons: no blanks, no booleans, no NaN."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    number = to_number(value)
    if is_nan(number):
        return None
    return number


def is_truthy(value: Any) -> bool:
    if is_nan(value):
        return False
    return bool(value)


def values_equal(left: Any, right: Any) -> bool:
    """
    Equality used by ``eq``/``neq``.

    Numbers (and numeric strings) compare numerically, booleans compare
    as booleans, ``None`` only equals ``None``, anything else compares by
    string form.
    """
    if left is None or right is None:
        return left is None and right is None
    if is_nan(left) or is_nan(right):
        return False
    if isinstance(left, bool) or isinstance(right, bool):
        if isinstance(left, bool) and isinstance(right, bool):
            return left == right
        return _bool_text(left) == _bool_text(right)
    left_num = to_comparable_number(left)
    right_num = to_comparable_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return str(left) == str(right)


def compare_order(left: Any, right: Any) -> int | None:
    """
    Three-way compare for ordering operators.

    Returns -1/0/1, or None when the values are not comparable.
    """
    left_num = to_comparable_number(left)
    right_num = to_comparable_number(right)
    if left_num is not None and right_num is not None:
        return (left_num > right_num) - (left_num < right_num)
    if isinstance(left, str) and isinstance(right, str):
        return (left > right) - (left < right)
    return None


def _bool_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip().lower()


def to_text(value: Any) -> str:
    """
    String form used when values are matched or displayed as text.

    ``None`` is empty, booleans are lowercase and integral floats drop
    their fraction so that ``1.0`` and ``"1"`` read the same.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if value.is_integer():
            return str(int(value))
    return str(value)
