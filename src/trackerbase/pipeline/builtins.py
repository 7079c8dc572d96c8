"""Built-in dynamic option functions.

These run synchronously against the context and are never cached.
"""

from typing import Any, Callable

from trackerbase.depends_on.compare import OPERATORS
from trackerbase.pipeline.sources import layout_rows

# Type alias for built-in option functions
BuiltinFunction = Callable[[dict[str, Any]], list[dict[str, Any]]]

# Registry of built-in option functions
BUILTIN_FUNCTIONS: dict[str, BuiltinFunction] = {}


def register_builtin(function_id: str) -> Callable[[BuiltinFunction], BuiltinFunction]:
    """Decorator to register a built-in option function."""

    def decorator(func: BuiltinFunction) -> BuiltinFunction:
        BUILTIN_FUNCTIONS[function_id] = func
        return func

    return decorator


def is_builtin(function_id: str) -> bool:
    return function_id in BUILTIN_FUNCTIONS


def list_builtin_ids() -> list[str]:
    return list(BUILTIN_FUNCTIONS)


def get_builtin_options(function_id: str, context: dict[str, Any]) -> list[dict[str, Any]]:
    """Options of a built-in function; unknown ids give an empty list."""
    func = BUILTIN_FUNCTIONS.get(function_id)
    if func is None:
        return []
    return func(context or {})


def _option(value: str, label: str | None = None) -> dict[str, Any]:
    return {"value": value, "label": label if label is not None else value, "id": value}


def _field_path_options(context: dict[str, Any], exclude_shared_tab: bool) -> list[dict[str, Any]]:
    if not context.get("layoutNodes"):
        return []
    options = []
    for row in layout_rows(context, include_hidden=False, exclude_shared_tab=exclude_shared_tab):
        grid_label = row["gridName"] or row["gridId"]
        field_label = row["fieldLabel"] or row["fieldId"]
        options.append(_option(row["path"], f"{grid_label} → {field_label}"))
    return options


@register_builtin("all_grids")
def all_grids(context: dict[str, Any]) -> list[dict[str, Any]]:
    """Every grid, labelled by name."""
    return [
        _option(grid["id"], grid.get("name") or grid["id"])
        for grid in context.get("grids") or []
        if isinstance(grid, dict) and grid.get("id")
    ]


@register_builtin("all_field_paths")
def all_field_paths(context: dict[str, Any]) -> list[dict[str, Any]]:
    """Visible ``grid.field`` paths placed in the layout, outside the shared tab."""
    return _field_path_options(context, exclude_shared_tab=True)


@register_builtin("all_field_paths_including_shared")
def all_field_paths_including_shared(context: dict[str, Any]) -> list[dict[str, Any]]:
    """Visible ``grid.field`` paths placed in the layout, the shared tab included."""
    return _field_path_options(context, exclude_shared_tab=False)


@register_builtin("all_operators")
def all_operators(context: dict[str, Any]) -> list[dict[str, Any]]:
    return [_option(op) for op in OPERATORS]


@register_builtin("all_actions")
def all_actions(context: dict[str, Any]) -> list[dict[str, Any]]:
    return [_option(action) for action in ("isHidden", "isRequired", "isDisabled")]


@register_builtin("all_rule_set_values")
def all_rule_set_values(context: dict[str, Any]) -> list[dict[str, Any]]:
    return [_option("true", "True"), _option("false", "False")]
