"""Binding resolution: propagate values from a selected option row."""

from trackerbase.bindings.apply import BindingUpdate, apply_bindings, resolve_binding_updates
from trackerbase.bindings.grid_data import GridData, get_value_by_path, set_value_by_path
from trackerbase.bindings.lookup import (
    find_option_row,
    get_binding_for_field,
    get_value_field_id,
    has_binding,
)
from trackerbase.bindings.options import (
    build_new_option_row,
    get_full_option_rows,
    get_initial_grid_data_from_bindings,
    resolve_options_from_binding,
)
from trackerbase.bindings.paths import (
    ParsedPath,
    build_field_path,
    normalize_options_grid_id,
    parse_path,
)

__all__ = [
    "BindingUpdate",
    "GridData",
    "ParsedPath",
    "apply_bindings",
    "build_field_path",
    "build_new_option_row",
    "find_option_row",
    "get_binding_for_field",
    "get_full_option_rows",
    "get_initial_grid_data_from_bindings",
    "get_value_by_path",
    "get_value_field_id",
    "has_binding",
    "normalize_options_grid_id",
    "parse_path",
    "resolve_binding_updates",
    "resolve_options_from_binding",
    "set_value_by_path",
]
