"""Dotted-path access and value normalization for pipeline data."""

from typing import Any

import orjson

from trackerbase.expr.coerce import to_text


def get_by_path(value: Any, path: str | None) -> Any:
    """
    Read ``path`` (``a.b.0.c``) out of nested dicts and lists.

    An empty path returns ``value`` itself; anything that does not resolve
    returns None. List segments must be in-range integer indexes.
    """
    if not path:
        return value
    current = value
    for segment in (part for part in path.split(".") if part):
        if current is None:
            return None
        if isinstance(current, list):
            if not segment.isdigit() or int(segment) >= len(current):
                return None
            current = current[int(segment)]
            continue
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
    return current


def to_plain_string(value: Any) -> str:
    return to_text(value)


def to_stable_key(value: Any) -> str:
    """String key for deduplication; structured values serialize to sorted JSON."""
    if value is None:
        return ""
    if isinstance(value, (str, int, float, bool)):
        return to_text(value)
    try:
        return orjson.dumps(value, option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS).decode("utf-8")
    except TypeError:
        return str(value)


def is_record(value: Any) -> bool:
    return isinstance(value, dict)


def to_record(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def normalize_rows(value: Any) -> list[dict[str, Any]]:
    """Rows from an arbitrary value: non-lists are empty, non-dict items become ``{value: item}``."""
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, dict) else {"value": item} for item in value]


def last_path_segment(path: str) -> str:
    parts = [part for part in path.split(".") if part]
    return parts[-1] if parts else "value"
