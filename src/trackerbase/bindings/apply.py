"""Compute field updates propagated by a binding."""

from dataclasses import dataclass
from typing import Any

from trackerbase.bindings.grid_data import GridData
from trackerbase.bindings.lookup import find_option_row
from trackerbase.bindings.paths import parse_path
from trackerbase.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BindingUpdate:
    """One value to write into a target field path."""

    target_path: str
    value: Any


def apply_bindings(
    binding: dict[str, Any],
    option_row: dict[str, Any],
    select_path: str,
) -> list[BindingUpdate]:
    """
    Turn a matched option row into field updates.

    Each mapping whose source field exists in the row yields an update for
    its target path; mappings with unresolvable paths are dropped. When no
    mapping targets the select field itself, the row's label is written to
    the select field so the stored selection shows its label.

    Args:
        binding: Binding entry (``optionsGrid``, ``labelField``, ``fieldMappings``)
        option_row: Row of the options grid that was selected
        select_path: Path of the select field that changed

    Returns:
        Updates in mapping order
    """
    updates: list[BindingUpdate] = []
    targets_select = False

    for mapping in binding.get("fieldMappings") or []:
        if not isinstance(mapping, dict):
            continue
        target = mapping.get("to")
        source_field_id = parse_path(mapping.get("from")).field_id
        target_grid_id, target_field_id = parse_path(target)
        if not source_field_id or not target_grid_id or not target_field_id:
            logger.debug(f"Dropping binding mapping with invalid path: {mapping!r}")
            continue
        if target == select_path:
            # The select already holds this value
            targets_select = True
            continue
        if source_field_id not in option_row:
            logger.debug(f"Source field {source_field_id!r} not in option row for {select_path!r}")
            continue
        updates.append(BindingUpdate(target_path=target, value=option_row[source_field_id]))

    if not targets_select:
        label_field_id = parse_path(binding.get("labelField")).field_id
        if label_field_id and label_field_id in option_row:
            updates.append(BindingUpdate(target_path=select_path, value=option_row[label_field_id]))

    return updates


def resolve_binding_updates(
    binding: dict[str, Any] | None,
    grid_data: GridData,
    selected_value: Any,
    select_path: str,
) -> tuple[dict[str, Any] | None, list[BindingUpdate]]:
    """
    Find the option row for a selection and compute its updates.

    Returns:
        Tuple of (option_row, updates); no match yields ``(None, [])``
    """
    if not binding:
        return None, []
    option_row = find_option_row(grid_data, binding, selected_value, select_path)
    if option_row is None:
        return None, []
    return option_row, apply_bindings(binding, option_row, select_path)
