"""Options and seed rows derived from bindings."""

from typing import Any

from trackerbase.bindings.grid_data import GridData
from trackerbase.bindings.lookup import OPTION_INDEX_PREFIX, get_value_field_id
from trackerbase.bindings.paths import normalize_options_grid_id, parse_path
from trackerbase.expr.coerce import to_text


def get_full_option_rows(binding: dict[str, Any], grid_data: GridData) -> list[dict[str, Any]]:
    grid_id = normalize_options_grid_id(binding.get("optionsGrid"))
    if not grid_id:
        return []
    return list(grid_data.get(grid_id) or [])


def resolve_options_from_binding(
    binding: dict[str, Any],
    grid_data: GridData,
    select_path: str,
) -> list[dict[str, Any]]:
    """
    Build select options from the rows of a binding's options grid.

    Rows without an ``id`` get the positional id ``opt-N``.

    Returns:
        ``[{"id", "label", "value"}]`` in row order
    """
    label_field_id = parse_path(binding.get("labelField")).field_id
    value_field_id = get_value_field_id(binding, select_path)
    if not label_field_id or not value_field_id:
        return []

    options = []
    for index, row in enumerate(get_full_option_rows(binding, grid_data)):
        if not isinstance(row, dict):
            continue
        row_id = row.get("id")
        options.append(
            {
                "id": to_text(row_id) if row_id is not None else f"{OPTION_INDEX_PREFIX}{index}",
                "label": to_text(row.get(label_field_id)),
                "value": row.get(value_field_id),
            }
        )
    return options


def build_new_option_row(
    binding: dict[str, Any],
    select_path: str,
    label: str,
    value: Any = None,
) -> tuple[str, dict[str, Any]]:
    """
    Row to append to the options grid when a user types a new option.

    The value defaults to the label.

    Returns:
        Tuple of (options_grid_id, new_row); the row is empty when the
        binding cannot be resolved
    """
    grid_id = normalize_options_grid_id(binding.get("optionsGrid")) or ""
    label_field_id = parse_path(binding.get("labelField")).field_id
    value_field_id = get_value_field_id(binding, select_path)
    if not grid_id or not label_field_id or not value_field_id:
        return grid_id, {}
    return grid_id, {label_field_id: label, value_field_id: label if value is None else value}


def get_initial_grid_data_from_bindings(bindings: dict[str, dict[str, Any]] | None) -> GridData:
    """
    Empty row lists for every options grid a binding reads from.

    Only bindings with a label field and an explicit value mapping count.
    """
    result: GridData = {}
    for select_path, entry in (bindings or {}).items():
        if not isinstance(entry, dict):
            continue
        grid_id = normalize_options_grid_id(entry.get("optionsGrid"))
        label_field_id = parse_path(entry.get("labelField")).field_id
        value_mapping = next(
            (
                mapping
                for mapping in entry.get("fieldMappings") or []
                if isinstance(mapping, dict) and mapping.get("to") == select_path
            ),
            None,
        )
        value_field_id = parse_path(value_mapping.get("from")).field_id if value_mapping else None
        if grid_id and label_field_id and value_field_id:
            result.setdefault(grid_id, [])
    return result
