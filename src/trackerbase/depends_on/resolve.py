"""
Resolve depends-on rules into per-field override patches.

A rule reads one source field, compares it against the rule's value and,
on a match, sets one flag (or a forced value) on each of its targets.
Decisions are kept per field and per key: a higher ``priority`` wins and
ties go to the later rule.
"""

import math
import re
from dataclasses import dataclass
from typing import Any

from trackerbase.bindings.grid_data import GridData, get_value_by_path
from trackerbase.core.logging import get_logger
from trackerbase.depends_on.index import index_rule

logger = get_logger(__name__)

FLAG_ACTIONS = ("isHidden", "isRequired", "isDisabled")
SET_VALUE = "setValue"

_ACTION_ALIASES = {
    "hide": "isHidden",
    "hidden": "isHidden",
    "ishidden": "isHidden",
    "require": "isRequired",
    "required": "isRequired",
    "isrequired": "isRequired",
    "disable": "isDisabled",
    "disabled": "isDisabled",
    "isdisabled": "isDisabled",
    "set": SET_VALUE,
    "setvalue": SET_VALUE,
}


@dataclass
class _Decision:
    value: Any
    priority: float
    order: int


def normalize_action(action: Any) -> str | None:
    """
    Canonical action name.

    Returns:
        One of ``isHidden``, ``isRequired``, ``isDisabled``, ``setValue``;
        None when the action is not recognized
    """
    if not isinstance(action, str):
        return None
    if action in FLAG_ACTIONS or action == SET_VALUE:
        return action
    return _ACTION_ALIASES.get(re.sub(r"[^a-z]", "", action.lower()))


def _rule_priority(rule: dict[str, Any]) -> float:
    priority = rule.get("priority")
    if isinstance(priority, bool) or not isinstance(priority, (int, float)) or math.isnan(priority):
        return 0
    return priority


def resolve_depends_on_overrides(
    rules: list[dict[str, Any]] | None,
    grid_data: GridData,
    entity_id: str,
    row_index: int,
    row: dict[str, Any] | None = None,
    only_use_row_data_for_source: bool = False,
) -> dict[str, dict[str, Any]]:
    """
    Compute the override patch of every field in one row of a grid.

    Args:
        rules: Depends-on rules (any grid; rules without targets here are ignored)
        grid_data: Rows of every grid keyed by grid id
        entity_id: Grid whose fields are resolved
        row_index: Row being resolved
        row: Pending values of that row; preferred over ``grid_data`` for
            same-grid sources that it holds
        only_use_row_data_for_source: Read same-grid sources from ``row`` only

    Returns:
        Mapping of field id to patch with only the decided keys
        (``isHidden``, ``isRequired``, ``isDisabled``, ``value``)
    """
    row_data = row or {}
    decisions: dict[str, dict[str, _Decision]] = {}
    show_rule_targets: set[str] = set()

    for order, raw_rule in enumerate(rules or []):
        indexed = index_rule(raw_rule, order)
        if indexed is None:
            continue
        rule = indexed.rule

        same_grid = indexed.source.grid_id == entity_id
        if same_grid and (only_use_row_data_for_source or indexed.source.field_id in row_data):
            source_value = row_data.get(indexed.source.field_id)
        else:
            source_path = f"{indexed.source.grid_id}.{indexed.source.field_id}"
            source_value = get_value_by_path(grid_data, source_path, row_index if same_grid else 0)

        matched = indexed.compare(source_value)
        set_value = rule.get("set", True)
        if set_value is None:
            set_value = True
        priority = _rule_priority(rule)

        action = normalize_action(rule.get("action"))
        if action is None:
            logger.debug(f"Ignoring depends-on rule with unknown action: {rule.get('action')!r}")
            continue

        for target in indexed.targets:
            if target.grid_id != entity_id:
                continue
            field_id = target.field_id
            field_decisions = decisions.setdefault(field_id, {})
            if action == "isHidden" and set_value is False:
                show_rule_targets.add(field_id)
            if not matched:
                continue

            current = field_decisions.get(action)
            if current is None or priority > current.priority or (
                priority == current.priority and order >= current.order
            ):
                value = rule.get("set") if action == SET_VALUE else bool(set_value)
                field_decisions[action] = _Decision(value=value, priority=priority, order=order)

    for field_id in show_rule_targets:
        field_decisions = decisions.setdefault(field_id, {})
        if "isHidden" not in field_decisions:
            field_decisions["isHidden"] = _Decision(value=True, priority=-math.inf, order=-1)

    overrides: dict[str, dict[str, Any]] = {}
    for field_id, field_decisions in decisions.items():
        patch = {key: field_decisions[key].value for key in FLAG_ACTIONS if key in field_decisions}
        if SET_VALUE in field_decisions:
            patch["value"] = field_decisions[SET_VALUE].value
        if patch:
            overrides[field_id] = patch
    return overrides
