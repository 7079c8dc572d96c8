"""
Calculation compiler and executor.

Calculation rules are keyed by target path (``grid.field``) and hold an
expression. A grid's rules compile into a plan: the dependency graph of its
targets, a topological order and the targets skipped because they lie on
a cycle. Executing a plan against a row recomputes only the targets
affected by the changed fields.
"""

import math
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

from trackerbase.bindings.paths import parse_path
from trackerbase.calculation.dependencies import CalculationDependencyGraph
from trackerbase.core.logging import get_logger
from trackerbase.expr.evaluator import evaluate_expr
from trackerbase.expr.nodes import ExprNode, collect_field_refs, is_expr_node
from trackerbase.schemas.common import stable_dumps

logger = get_logger(__name__)

PLAN_CACHE_MAX_SIZE = 100


@dataclass
class CalculationPlan:
    """Compiled calculations of one grid."""

    entity_id: str
    rules: dict[str, ExprNode]
    graph: CalculationDependencyGraph
    order: list[str] = field(default_factory=list)
    skipped_cyclic_targets: list[str] = field(default_factory=list)
    external_refs: set[str] = field(default_factory=set)


@dataclass
class CalculationResult:
    """Outcome of recalculating one row."""

    row: dict[str, Any]
    updated_field_ids: list[str] = field(default_factory=list)
    skipped_cyclic_targets: list[str] = field(default_factory=list)


_plan_cache: OrderedDict[bytes, CalculationPlan] = OrderedDict()


def normalize_ref(ref: str, entity_id: str) -> str | None:
    """
    Map an expression field ref to a field id of this grid.

    Bare refs belong to this grid; ``grid.field`` refs belong to this grid
    only when the grid matches.

    Returns:
        The field id, or None for refs into other grids
    """
    if not isinstance(ref, str) or not ref.strip():
        return None
    if "." not in ref:
        return ref
    grid_id, field_id = parse_path(ref)
    if not grid_id or not field_id or grid_id != entity_id:
        return None
    return field_id


def _target_rules(entity_id: str, rules: dict[str, Any] | None) -> dict[str, ExprNode]:
    targets: dict[str, ExprNode] = {}
    for path, rule in (rules or {}).items():
        if not isinstance(rule, dict) or not is_expr_node(rule.get("expr")):
            continue
        grid_id, field_id = parse_path(path)
        if grid_id != entity_id or not field_id:
            continue
        targets[field_id] = rule["expr"]
    return targets


def _build_plan(entity_id: str, rules: dict[str, Any] | None) -> CalculationPlan:
    targets = _target_rules(entity_id, rules)
    graph = CalculationDependencyGraph()
    external_refs: set[str] = set()

    for target, expr in targets.items():
        reads: set[str] = set()
        for ref in collect_field_refs(expr):
            field_id = normalize_ref(ref, entity_id)
            if field_id is None:
                external_refs.add(ref)
                reads.add(ref)
            else:
                reads.add(field_id)
        graph.add_target(target, reads)
    graph.finalize()

    cyclic = graph.find_cyclic_targets()
    skipped = [target for target in graph.targets if target in cyclic]
    if skipped:
        logger.debug(f"Calculations of {entity_id!r} skip cyclic targets: {skipped}")

    return CalculationPlan(
        entity_id=entity_id,
        rules=targets,
        graph=graph,
        order=graph.get_evaluation_order(exclude=cyclic),
        skipped_cyclic_targets=skipped,
        external_refs=external_refs,
    )


def compile_calculation_plan(entity_id: str, rules: dict[str, Any] | None) -> CalculationPlan:
    """
    Compile the calculation rules of one grid.

    Plans are memoized in a bounded LRU keyed by grid id and the serialized
    rules; callers must treat returned plans as read-only.

    Args:
        entity_id: Grid id whose targets are compiled
        rules: Calculation rules keyed by target path

    Returns:
        CalculationPlan
    """
    try:
        key = stable_dumps([entity_id, rules])
    except TypeError:
        return _build_plan(entity_id, rules)

    plan = _plan_cache.get(key)
    if plan is not None:
        _plan_cache.move_to_end(key)
        return plan

    plan = _build_plan(entity_id, rules)
    _plan_cache[key] = plan
    while len(_plan_cache) > PLAN_CACHE_MAX_SIZE:
        _plan_cache.popitem(last=False)
    return plan


def clear_calculation_cache() -> None:
    _plan_cache.clear()


def _same_value(old: Any, new: Any) -> bool:
    if old is new:
        return True
    if isinstance(old, float) and isinstance(new, float) and math.isnan(old) and math.isnan(new):
        return True
    return type(old) is type(new) and old == new


def _normalize_changed(changed_field_ids: list[str], entity_id: str) -> list[str]:
    normalized: list[str] = []
    for field_id in changed_field_ids:
        local = normalize_ref(field_id, entity_id)
        normalized.append(local if local is not None else field_id)
    return normalized


def execute_calculation_plan(
    plan: CalculationPlan,
    row: dict[str, Any],
    changed_field_ids: list[str] | None = None,
    external_values: dict[str, Any] | None = None,
) -> CalculationResult:
    """
    Recompute the targets affected by a change.

    Args:
        plan: Compiled plan
        row: Current row values (never mutated)
        changed_field_ids: Changed field ids or paths; None or empty
            recomputes every target
        external_values: Values of cross-grid refs keyed by ``grid.field``

    Returns:
        CalculationResult; ``row`` is the input object itself when nothing
        changed
    """
    if not plan.rules:
        return CalculationResult(row=row)

    if changed_field_ids:
        affected = plan.graph.get_affected_targets(_normalize_changed(changed_field_ids, plan.entity_id))
    else:
        affected = set(plan.rules)
    if not affected:
        return CalculationResult(row=row)

    next_row = dict(row)
    row_values: dict[str, Any] = dict(external_values or {})
    row_values.update(next_row)
    for field_id, value in next_row.items():
        row_values[f"{plan.entity_id}.{field_id}"] = value

    updated: list[str] = []
    for target in plan.order:
        if target not in affected:
            continue
        value = evaluate_expr(plan.rules[target], row_values)
        if _same_value(next_row.get(target), value):
            continue
        next_row[target] = value
        row_values[target] = value
        row_values[f"{plan.entity_id}.{target}"] = value
        updated.append(target)

    return CalculationResult(
        row=next_row if updated else row,
        updated_field_ids=updated,
        skipped_cyclic_targets=[target for target in plan.skipped_cyclic_targets if target in affected],
    )


def apply_calculations_for_row(
    entity_id: str,
    row: dict[str, Any],
    rules: dict[str, Any] | None,
    changed_field_ids: list[str] | None = None,
    external_values: dict[str, Any] | None = None,
) -> CalculationResult:
    """Compile (memoized) and execute in one call."""
    plan = compile_calculation_plan(entity_id, rules)
    return execute_calculation_plan(plan, row, changed_field_ids, external_values)


def validate_calculation_rules(rules: dict[str, Any] | None) -> list[dict[str, str]]:
    """
    Authoring-time problems with a set of calculation rules.

    Returns:
        List of ``{"path", "message"}`` entries, empty when all rules are usable
    """
    problems: list[dict[str, str]] = []
    grids: list[str] = []
    for path, rule in (rules or {}).items():
        grid_id, field_id = parse_path(path)
        if not grid_id or not field_id:
            problems.append({"path": str(path), "message": "Calculation target must be a grid.field path"})
            continue
        if not isinstance(rule, dict) or not is_expr_node(rule.get("expr")):
            problems.append({"path": path, "message": "Calculation rule has no expression"})
            continue
        if grid_id not in grids:
            grids.append(grid_id)

    for grid_id in grids:
        plan = compile_calculation_plan(grid_id, rules)
        for target in plan.skipped_cyclic_targets:
            problems.append({"path": f"{grid_id}.{target}", "message": "Calculation is part of a dependency cycle"})
    return problems
