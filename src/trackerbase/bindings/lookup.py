"""Binding lookup and option row matching."""

from typing import Any

from trackerbase.bindings.grid_data import GridData
from trackerbase.bindings.paths import build_field_path, normalize_options_grid_id, parse_path
from trackerbase.core.logging import get_logger
from trackerbase.expr.coerce import to_text

logger = get_logger(__name__)

OPTION_INDEX_PREFIX = "opt-"


def get_binding_for_field(
    grid_id: str,
    field_id: str,
    bindings: dict[str, dict[str, Any]] | None,
    context_id: str | None = None,
) -> dict[str, Any] | None:
    """
    Find the binding attached to a select field.

    Bindings are keyed by ``grid.field``; the legacy ``context.grid.field``
    key is tried when ``context_id`` is given and the plain key is absent.
    """
    if not bindings:
        return None
    entry = bindings.get(build_field_path(grid_id, field_id))
    if entry is None and context_id:
        entry = bindings.get(f"{context_id}.{grid_id}.{field_id}")
    return entry


def has_binding(grid_id: str, field_id: str, bindings: dict[str, dict[str, Any]] | None) -> bool:
    return get_binding_for_field(grid_id, field_id, bindings) is not None


def _mappings(binding: dict[str, Any]) -> list[dict[str, Any]]:
    mappings = binding.get("fieldMappings")
    if not isinstance(mappings, list):
        return []
    return [mapping for mapping in mappings if isinstance(mapping, dict)]


def get_value_field_id(binding: dict[str, Any], select_path: str) -> str | None:
    """
    Field of the options grid whose value the select stores.

    Resolution order: the mapping whose ``to`` is the select path, then the
    legacy ``valueField``, then the label field.
    """
    for mapping in _mappings(binding):
        if mapping.get("to") == select_path:
            return parse_path(mapping.get("from")).field_id
    if binding.get("valueField"):
        return parse_path(binding["valueField"]).field_id
    return parse_path(binding.get("labelField")).field_id


def _matches(row_value: Any, selected: Any) -> bool:
    if row_value is None:
        return False
    if type(row_value) is type(selected) and row_value == selected:
        return True
    return to_text(row_value) == to_text(selected)


def _option_index(selected: Any, row_count: int) -> int | None:
    text = to_text(selected)
    if not text.startswith(OPTION_INDEX_PREFIX):
        return None
    try:
        index = int(text[len(OPTION_INDEX_PREFIX):])
    except ValueError:
        return None
    return index if 0 <= index < row_count else None


def find_option_row(
    grid_data: GridData,
    binding: dict[str, Any],
    selected_value: Any,
    select_path: str,
) -> dict[str, Any] | None:
    """
    Find the options-grid row for a selected value.

    Rows are matched on the value field, then on the row ``id``, then on the
    label field, then by the ``opt-N`` positional id issued for rows without
    an ``id``. Values match when they are equal or share a string form.

    Returns:
        The matching row, or None
    """
    if selected_value is None or selected_value == "":
        return None

    grid_id = normalize_options_grid_id(binding.get("optionsGrid"))
    if not grid_id:
        logger.debug(f"Binding for {select_path!r} has no options grid")
        return None

    rows = [row for row in (grid_data.get(grid_id) or []) if isinstance(row, dict)]
    value_field_id = get_value_field_id(binding, select_path)
    label_field_id = parse_path(binding.get("labelField")).field_id

    for key in (value_field_id, "id", label_field_id):
        if not key:
            continue
        for row in rows:
            if _matches(row.get(key), selected_value):
                return row

    index = _option_index(selected_value, len(rows))
    if index is not None:
        return rows[index]

    logger.debug(f"No option row in {grid_id!r} matches {selected_value!r} for {select_path!r}")
    return None
