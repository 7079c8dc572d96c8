"""Unit tests for calculation compile and execute."""

import math

import pytest

from trackerbase.calculation import (
    CalculationDependencyGraph,
    apply_calculations_for_row,
    clear_calculation_cache,
    compile_calculation_plan,
    execute_calculation_plan,
    validate_calculation_rules,
)


def field(field_id):
    return {"op": "field", "fieldId": field_id}


def const(value):
    return {"op": "const", "value": value}


def plus_one(field_id):
    return {"expr": {"op": "add", "args": [field(field_id), const(1)]}}


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_calculation_cache()
    yield
    clear_calculation_cache()


class TestCompileCalculationPlan:
    """Tests for compile_calculation_plan."""

    def test_cycle_is_skipped(self):
        """Test a two-target cycle skips both and orders nothing."""
        plan = compile_calculation_plan("g", {"g.a": plus_one("b"), "g.b": plus_one("a")})
        assert set(plan.skipped_cyclic_targets) == {"a", "b"}
        assert plan.order == []

    def test_self_reference_is_cyclic(self):
        """Test a target reading itself is cyclic."""
        plan = compile_calculation_plan("g", {"g.a": plus_one("a")})
        assert plan.skipped_cyclic_targets == ["a"]

    def test_topological_order(self):
        """Test dependencies come first regardless of declaration order."""
        rules = {
            "g.grand": {"expr": {"op": "mul", "args": [field("total"), const(1.2)]}},
            "g.total": {"expr": {"op": "mul", "args": [field("price"), field("qty")]}},
        }
        plan = compile_calculation_plan("g", rules)
        assert plan.order == ["total", "grand"]

    def test_ties_follow_declaration_order(self):
        """Test independent targets keep declaration order."""
        rules = {"g.c": plus_one("x"), "g.a": plus_one("y"), "g.b": plus_one("z")}
        assert compile_calculation_plan("g", rules).order == ["c", "a", "b"]

    def test_other_grid_rules_ignored(self):
        """Test rules for other grids are not part of the plan."""
        rules = {"g.a": plus_one("x"), "other.b": plus_one("y")}
        plan = compile_calculation_plan("g", rules)
        assert list(plan.rules) == ["a"]

    def test_cross_grid_refs_are_external(self):
        """Test refs into other grids are inputs, not edges."""
        rules = {"g.a": {"expr": {"op": "add", "args": [field("rates.tax"), field("g.b")]}}}
        plan = compile_calculation_plan("g", rules)
        assert plan.external_refs == {"rates.tax"}
        assert plan.graph.get_dependents("b") == {"a"}

    def test_dependents_of_cycle_still_run(self):
        """Test a target reading a cyclic target is ordered."""
        rules = {"g.a": plus_one("b"), "g.b": plus_one("a"), "g.c": plus_one("a")}
        plan = compile_calculation_plan("g", rules)
        assert plan.order == ["c"]
        assert set(plan.skipped_cyclic_targets) == {"a", "b"}

    def test_memoized(self):
        """Test identical rules return the cached plan."""
        rules = {"g.a": plus_one("x")}
        assert compile_calculation_plan("g", rules) is compile_calculation_plan("g", dict(rules))

    def test_nan_and_none_constants_compile_separately(self):
        """Test NaN constants do not share a memoized plan with None."""
        none_plan = compile_calculation_plan("g", {"g.a": {"expr": const(None)}})
        nan_plan = compile_calculation_plan("g", {"g.a": {"expr": const(math.nan)}})

        assert nan_plan is not none_plan
        assert compile_calculation_plan("g", {"g.a": {"expr": const(math.nan)}}) is nan_plan
        assert compile_calculation_plan("g", {"g.a": {"expr": const(math.inf)}}) is not nan_plan

    def test_malformed_rules_ignored(self):
        """Test rules without an expression are dropped."""
        plan = compile_calculation_plan("g", {"g.a": {"expr": "nope"}, "g.b": None, "bad": plus_one("x")})
        assert plan.rules == {}


class TestExecuteCalculationPlan:
    """Tests for execute_calculation_plan."""

    RULES = {"inv.total": {"expr": {"op": "mul", "args": [field("price"), field("qty")]}}}

    def test_incremental_recompute(self):
        """Test changing qty recomputes total."""
        row = {"price": 10, "qty": 3, "total": 20}
        result = apply_calculations_for_row("inv", row, self.RULES, ["qty"])
        assert result.row["total"] == 30
        assert result.updated_field_ids == ["total"]
        assert row["total"] == 20

    def test_unrelated_change_is_noop(self):
        """Test changing an unrelated field returns the same row."""
        row = {"price": 10, "qty": 3, "total": 20, "note": "x"}
        result = apply_calculations_for_row("inv", row, self.RULES, ["note"])
        assert result.row is row
        assert result.updated_field_ids == []

    def test_unchanged_value_not_written(self):
        """Test identical results are not reported."""
        row = {"price": 10, "qty": 3, "total": 30}
        result = apply_calculations_for_row("inv", row, self.RULES)
        assert result.row is row
        assert result.updated_field_ids == []

    def test_nan_to_nan_not_written(self):
        """Test NaN replacing NaN is not an update."""
        rules = {"g.r": {"expr": {"op": "div", "left": field("a"), "right": const(0)}}}
        row = {"a": 1, "r": math.nan}
        result = apply_calculations_for_row("g", row, rules)
        assert result.updated_field_ids == []

    def test_chain_updates_in_order(self):
        """Test a change flows through dependent targets."""
        rules = {
            "g.grand": {"expr": {"op": "add", "args": [field("total"), field("shipping")]}},
            "g.total": {"expr": {"op": "mul", "args": [field("price"), field("qty")]}},
        }
        row = {"price": 5, "qty": 2, "shipping": 1, "total": 0, "grand": 0}
        result = apply_calculations_for_row("g", row, rules, ["g.qty"])
        assert result.updated_field_ids == ["total", "grand"]
        assert result.row["grand"] == 11

    def test_external_values(self):
        """Test cross-grid refs read external values."""
        rules = {"order.tax": {"expr": {"op": "mul", "args": [field("amount"), field("rates.vat")]}}}
        plan = compile_calculation_plan("order", rules)
        result = execute_calculation_plan(plan, {"amount": 100}, ["rates.vat"], {"rates.vat": 0.25})
        assert result.row["tax"] == 25
        assert result.updated_field_ids == ["tax"]

    def test_cyclic_targets_reported(self):
        """Test cyclic targets keep their value and are reported."""
        rules = {"g.a": plus_one("b"), "g.b": plus_one("a")}
        row = {"a": 1, "b": 2}
        result = apply_calculations_for_row("g", row, rules)
        assert result.row is row
        assert set(result.skipped_cyclic_targets) == {"a", "b"}

    def test_grid_prefixed_refs(self):
        """Test own-grid refs written as grid.field evaluate."""
        rules = {"g.double": {"expr": {"op": "mul", "args": [field("g.n"), const(2)]}}}
        result = apply_calculations_for_row("g", {"n": 4}, rules, ["n"])
        assert result.row["double"] == 8


class TestDependencyGraph:
    """Tests for CalculationDependencyGraph."""

    def test_affected_targets_transitive(self):
        """Test BFS reaches indirect dependents."""
        graph = CalculationDependencyGraph()
        graph.add_target("b", {"a"})
        graph.add_target("c", {"b"})
        graph.finalize()
        assert graph.get_affected_targets(["a"]) == {"b", "c"}

    def test_finds_every_cycle_member(self):
        """Test members reached through finished nodes are still cyclic."""
        graph = CalculationDependencyGraph()
        graph.add_target("v", {"w", "u"})
        graph.add_target("w", {"v"})
        graph.add_target("u", {"w"})
        graph.add_target("x", {"v"})
        graph.finalize()
        assert graph.find_cyclic_targets() == {"u", "v", "w"}


class TestValidateCalculationRules:
    """Tests for validate_calculation_rules."""

    def test_reports_problems(self):
        """Test invalid paths, missing expressions and cycles."""
        rules = {"bad": plus_one("x"), "g.empty": {}, "g.a": plus_one("b"), "g.b": plus_one("a")}
        problems = validate_calculation_rules(rules)
        paths = {p["path"] for p in problems}
        assert paths == {"bad", "g.empty", "g.a", "g.b"}

    def test_clean_rules(self):
        """Test usable rules produce no problems."""
        assert validate_calculation_rules({"g.a": plus_one("x")}) == []
