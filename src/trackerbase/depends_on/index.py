"""Lookup indexes over depends-on rules."""

from dataclasses import dataclass, field
from typing import Any

from trackerbase.bindings.paths import ParsedPath, parse_path
from trackerbase.depends_on.compare import Comparator, compile_compare


@dataclass(frozen=True)
class IndexedRule:
    """A depends-on rule with its paths parsed and its comparison compiled."""

    rule: dict[str, Any]
    order: int
    source: ParsedPath
    targets: tuple[ParsedPath, ...]
    compare: Comparator


@dataclass
class DependsOnIndex:
    by_source: dict[str, list[IndexedRule]] = field(default_factory=dict)
    by_target: dict[str, list[IndexedRule]] = field(default_factory=dict)
    by_entity: dict[str, list[IndexedRule]] = field(default_factory=dict)


def index_rule(rule: Any, order: int) -> IndexedRule | None:
    if not isinstance(rule, dict):
        return None
    source = parse_path(rule.get("source"))
    if not source.grid_id or not source.field_id:
        return None
    targets = tuple(
        parsed
        for parsed in (parse_path(target) for target in rule.get("targets") or [])
        if parsed.grid_id and parsed.field_id
    )
    if not targets:
        return None
    return IndexedRule(
        rule=rule,
        order=order,
        source=source,
        targets=targets,
        compare=compile_compare(rule.get("operator"), rule.get("value")),
    )


def build_depends_on_index(rules: list[dict[str, Any]] | None) -> DependsOnIndex:
    """
    Index rules by source path, target path and target grid.

    Rules without a valid source or without any valid target are left out.
    A rule targeting several fields of one grid appears once in that grid's
    list.
    """
    index = DependsOnIndex()
    for order, rule in enumerate(rules or []):
        indexed = index_rule(rule, order)
        if indexed is None:
            continue
        source_path = f"{indexed.source.grid_id}.{indexed.source.field_id}"
        index.by_source.setdefault(source_path, []).append(indexed)

        grids: set[str] = set()
        for target in indexed.targets:
            index.by_target.setdefault(f"{target.grid_id}.{target.field_id}", []).append(indexed)
            if target.grid_id not in grids:
                grids.add(target.grid_id)
                index.by_entity.setdefault(target.grid_id, []).append(indexed)
    return index


def get_rules_for_grid(index: DependsOnIndex, grid_id: str) -> list[dict[str, Any]]:
    return [indexed.rule for indexed in index.by_entity.get(grid_id, [])]


def get_rules_for_source(index: DependsOnIndex, source_path: str) -> list[dict[str, Any]]:
    return [indexed.rule for indexed in index.by_source.get(source_path, [])]


def filter_depends_on_rules_for_grid(rules: list[dict[str, Any]] | None, grid_id: str) -> list[dict[str, Any]]:
    """Rules with at least one target in ``grid_id``, in their original order."""
    return get_rules_for_grid(build_depends_on_index(rules), grid_id)
