"""Calculated fields: dependency-ordered, incremental recomputation."""

from trackerbase.calculation.dependencies import CalculationDependencyGraph
from trackerbase.calculation.plan import (
    CalculationPlan,
    CalculationResult,
    apply_calculations_for_row,
    clear_calculation_cache,
    compile_calculation_plan,
    execute_calculation_plan,
    validate_calculation_rules,
)

__all__ = [
    "CalculationDependencyGraph",
    "CalculationPlan",
    "CalculationResult",
    "apply_calculations_for_row",
    "clear_calculation_cache",
    "compile_calculation_plan",
    "execute_calculation_plan",
    "validate_calculation_rules",
]
