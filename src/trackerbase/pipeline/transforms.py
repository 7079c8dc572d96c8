"""Row transforms and option mapping shared by graph and DSL pipelines."""

import functools
import math
from typing import Any

from trackerbase.depends_on.compare import compare_values
from trackerbase.expr.coerce import is_truthy, to_number
from trackerbase.expr.evaluator import evaluate_expr
from trackerbase.expr.nodes import is_expr_node
from trackerbase.pipeline.paths import (
    get_by_path,
    last_path_segment,
    normalize_rows,
    to_plain_string,
    to_stable_key,
)
from trackerbase.schemas.pipeline import (
    ArgSelector,
    ConstSelector,
    ContextSelector,
    FilterConfig,
    FilterPredicate,
    OutputMapping,
)

Rows = list[dict[str, Any]]


def read_selector(selector: Any, row: dict[str, Any], args: dict[str, Any], context: dict[str, Any]) -> Any:
    """
    Resolve a value selector.

    A string is a path into the row; ``{const}``, ``{fromArg}`` and
    ``{fromContext}`` read a literal, a call argument or a context path.
    """
    if isinstance(selector, str):
        return get_by_path(row, selector)
    if isinstance(selector, ConstSelector):
        return selector.const
    if isinstance(selector, ArgSelector):
        return args.get(selector.from_arg)
    if isinstance(selector, ContextSelector):
        return get_by_path(context, selector.from_context)
    return None


def _expected_value(predicate: FilterPredicate, args: dict[str, Any], context: dict[str, Any]) -> Any:
    if predicate.value_from_arg:
        return args.get(predicate.value_from_arg)
    if predicate.value_from_context:
        return get_by_path(context, predicate.value_from_context)
    return predicate.value


def apply_filter(rows: Rows, config: FilterConfig, args: dict[str, Any], context: dict[str, Any]) -> Rows:
    """
    Keep rows passing the filter.

    An ``expr`` is evaluated against each row and takes precedence over
    predicates. Predicates combine with ``and`` (default) or ``or``; no
    predicates keeps every row.
    """
    if is_expr_node(config.expr):
        return [row for row in rows if is_truthy(evaluate_expr(config.expr, row))]

    if not config.predicates:
        return list(rows)

    combine = any if config.mode == "or" else all
    kept = []
    for row in rows:
        results = (
            compare_values(get_by_path(row, predicate.field), predicate.op, _expected_value(predicate, args, context))
            for predicate in config.predicates
        )
        if combine(results):
            kept.append(row)
    return kept


def apply_map_fields(
    rows: Rows, mappings: dict[str, Any], args: dict[str, Any], context: dict[str, Any]
) -> Rows:
    """Add or overwrite keys on each row from selectors."""
    mapped_rows = []
    for row in rows:
        mapped = dict(row)
        for key, selector in mappings.items():
            mapped[key] = read_selector(selector, row, args, context)
        mapped_rows.append(mapped)
    return mapped_rows


def apply_unique(rows: Rows, by: str) -> Rows:
    """Drop rows whose ``by`` value was already seen; the first occurrence wins."""
    seen: set[str] = set()
    unique = []
    for row in rows:
        key = to_stable_key(get_by_path(row, by))
        if key in seen:
            continue
        seen.add(key)
        unique.append(row)
    return unique


def _sort_number(value: Any) -> float:
    return float(to_number(value))


def apply_sort(rows: Rows, by: str, direction: str = "asc", value_type: str = "string") -> Rows:
    """
    Stable sort by the value at ``by``.

    Number sorting treats missing values as 0 and puts unparsable values
    first (last when descending). String sorting compares text forms.
    """
    sign = -1 if direction == "desc" else 1

    if value_type == "number":

        def compare(a: dict[str, Any], b: dict[str, Any]) -> int:
            left, right = _sort_number(get_by_path(a, by)), _sort_number(get_by_path(b, by))
            if math.isnan(left) and math.isnan(right):
                return 0
            if math.isnan(left):
                return -sign
            if math.isnan(right):
                return sign
            return sign * ((left > right) - (left < right))

        return sorted(rows, key=functools.cmp_to_key(compare))

    return sorted(
        rows,
        key=lambda row: to_plain_string(get_by_path(row, by)).casefold(),
        reverse=direction == "desc",
    )


def apply_limit(rows: Rows, count: int) -> Rows:
    return rows[: max(0, count)]


def apply_flatten_path(value: Any, path: str) -> Rows:
    """
    Flatten a nested list into rows.

    For a list input, each row whose ``path`` holds a list is expanded into
    one row per child (dict children merge into the parent, scalars are
    stored under the last path segment); other rows pass through. For any
    other input, the list at ``path`` becomes the rows.
    """
    if isinstance(value, list):
        flattened: Rows = []
        key = last_path_segment(path)
        for item in normalize_rows(value):
            children = get_by_path(item, path)
            if not isinstance(children, list):
                flattened.append(item)
                continue
            for child in children:
                flattened.append({**item, **child} if isinstance(child, dict) else {**item, key: child})
        return flattened

    return normalize_rows(get_by_path(value, path))


def map_rows_to_options(
    rows: Rows, mapping: OutputMapping, args: dict[str, Any], context: dict[str, Any]
) -> list[dict[str, Any]]:
    """
    Build ``{label, value, id, ...extra}`` options.

    Rows without a label or value are skipped. The id defaults to the text
    form of the value.
    """
    options = []
    for row in rows:
        label = read_selector(mapping.label, row, args, context)
        value = read_selector(mapping.value, row, args, context)
        if label is None or value is None:
            continue

        option: dict[str, Any] = {"label": to_plain_string(label), "value": value}
        if mapping.id is not None:
            option_id = read_selector(mapping.id, row, args, context)
            if option_id is not None:
                option["id"] = to_plain_string(option_id)
        else:
            option["id"] = to_plain_string(value)

        for key, selector in (mapping.extra or {}).items():
            option[key] = read_selector(selector, row, args, context)
        options.append(option)
    return options
