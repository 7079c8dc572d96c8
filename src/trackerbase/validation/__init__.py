"""Field validation."""

from trackerbase.validation.evaluator import (
    ValidationPlan,
    clear_validation_cache,
    compile_validation_plan,
    validate_field,
    validate_with_plan,
)

__all__ = [
    "ValidationPlan",
    "clear_validation_cache",
    "compile_validation_plan",
    "validate_field",
    "validate_with_plan",
]
