"""Conditional field overrides (hide, require, disable, force a value)."""

from trackerbase.depends_on.compare import (
    OPERATORS,
    compare_values,
    compile_compare,
    is_empty_value,
    normalize_operator,
)
from trackerbase.depends_on.index import (
    DependsOnIndex,
    IndexedRule,
    build_depends_on_index,
    filter_depends_on_rules_for_grid,
    get_rules_for_grid,
    get_rules_for_source,
)
from trackerbase.depends_on.overrides import apply_field_overrides
from trackerbase.depends_on.resolve import normalize_action, resolve_depends_on_overrides

__all__ = [
    "OPERATORS",
    "DependsOnIndex",
    "IndexedRule",
    "apply_field_overrides",
    "build_depends_on_index",
    "compare_values",
    "compile_compare",
    "filter_depends_on_rules_for_grid",
    "get_rules_for_grid",
    "get_rules_for_source",
    "is_empty_value",
    "normalize_action",
    "normalize_operator",
    "resolve_depends_on_overrides",
]
