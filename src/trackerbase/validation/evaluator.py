"""
Field validation evaluator.

Validates one cell value against the field's config constraints and its
declarative rules. Rules run in order and the first failure wins:

1. Config constraints (isRequired, min, max, minLength, maxLength)
2. Custom rules in declaration order
3. The field type's own check (e.g. numeric parsing for number fields)

Compiled plans are cached in a bounded LRU keyed by field id, type,
config and rules.
"""

import math
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

from trackerbase.expr.coerce import is_truthy
from trackerbase.expr.evaluator import evaluate_expr
from trackerbase.fields import BaseFieldTypeHandler, get_field_handler
from trackerbase.schemas.common import stable_dumps

PLAN_CACHE_LIMIT = 2000

_CONFIG_RULE_KEYS = ("min", "max", "minLength", "maxLength")


@dataclass(frozen=True)
class ValidationPlan:
    """Config constraints and custom rules merged into one ordered list."""

    field_id: str
    field_type: str
    config: dict[str, Any] | None
    rules: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    handler: type[BaseFieldTypeHandler] | None = None

    @property
    def has_any_rule_input(self) -> bool:
        return bool(self.config) or bool(self.rules)

    @property
    def is_string_type(self) -> bool:
        return bool(self.handler and self.handler.is_string_like)


_plan_cache: OrderedDict[bytes, ValidationPlan] = OrderedDict()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_bound(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def default_message(rule: dict[str, Any]) -> str:
    """Message used when a failing rule carries none of its own."""
    rule_type = rule.get("type")
    bound = _format_bound(rule.get("value"))
    if rule_type == "required":
        return "Required"
    if rule_type == "min":
        return f"Must be at least {bound}"
    if rule_type == "max":
        return f"Must be at most {bound}"
    if rule_type == "minLength":
        return f"At least {bound} characters"
    if rule_type == "maxLength":
        return f"At most {bound} characters"
    return "Invalid value"


def config_rules(config: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Rules implied by the field config, in evaluation order."""
    if not config:
        return []
    rules: list[dict[str, Any]] = []
    if config.get("isRequired") is True:
        rules.append({"type": "required"})
    for key in _CONFIG_RULE_KEYS:
        if _is_number(config.get(key)):
            rules.append({"type": key, "value": config[key]})
    return rules


def compile_validation_plan(
    field_id: str,
    field_type: str,
    config: dict[str, Any] | None = None,
    rules: list[dict[str, Any]] | None = None,
) -> ValidationPlan:
    """
    Merge config constraints and custom rules into a plan.

    Non-dict rules are dropped.
    """
    custom = [rule for rule in (rules or []) if isinstance(rule, dict)]
    return ValidationPlan(
        field_id=field_id,
        field_type=field_type,
        config=config if isinstance(config, dict) else None,
        rules=tuple(config_rules(config if isinstance(config, dict) else None) + custom),
        handler=get_field_handler(field_type),
    )


def _cached_plan(
    field_id: str,
    field_type: str,
    config: dict[str, Any] | None,
    rules: list[dict[str, Any]] | None,
) -> ValidationPlan:
    try:
        key = stable_dumps([field_id, field_type, config, rules])
    except TypeError:
        return compile_validation_plan(field_id, field_type, config, rules)

    plan = _plan_cache.get(key)
    if plan is not None:
        _plan_cache.move_to_end(key)
        return plan

    plan = compile_validation_plan(field_id, field_type, config, rules)
    _plan_cache[key] = plan
    while len(_plan_cache) > PLAN_CACHE_LIMIT:
        _plan_cache.popitem(last=False)
    return plan


def clear_validation_cache() -> None:
    """Drop all cached plans."""
    _plan_cache.clear()


def _check_expr_rule(rule: dict[str, Any], row_values: dict[str, Any]) -> str | None:
    fallback = rule.get("message") or "Invalid value"
    result = evaluate_expr(rule.get("expr"), row_values)
    if isinstance(result, bool):
        return None if result else fallback
    if isinstance(result, str):
        return result or fallback
    if result is None:
        return fallback
    return None if is_truthy(result) else fallback


def validate_with_plan(
    plan: ValidationPlan,
    value: Any,
    row_values: dict[str, Any] | None = None,
) -> str | None:
    """
    Validate a value with a compiled plan.

    Args:
        plan: Compiled validation plan
        value: Cell value
        row_values: Other values of the row, for expression rules

    Returns:
        The first error message, or None when the value is valid
    """
    if not plan.has_any_rule_input:
        return None
    config = plan.config or {}
    if config.get("isHidden") or config.get("isDisabled"):
        return None

    handler = plan.handler or BaseFieldTypeHandler
    empty = handler.is_empty(value)

    for rule in plan.rules:
        rule_type = rule.get("type")
        message = rule.get("message")

        if rule_type == "required":
            if BaseFieldTypeHandler.is_empty(value):
                return message or default_message(rule)
            continue

        if rule_type in ("min", "max"):
            bound = rule.get("value")
            if empty or not _is_number(bound):
                continue
            number = handler.parse_number(value)
            if math.isnan(number):
                return message or "Enter a valid number"
            if rule_type == "min" and number < bound:
                return message or default_message(rule)
            if rule_type == "max" and number > bound:
                return message or default_message(rule)
            continue

        if rule_type in ("minLength", "maxLength"):
            bound = rule.get("value")
            if not plan.is_string_type or not _is_number(bound):
                continue
            length = handler.text_length(value)
            if rule_type == "minLength" and length < bound:
                return message or default_message(rule)
            if rule_type == "maxLength" and length > bound:
                return message or default_message(rule)
            continue

        if rule_type == "expr":
            merged = dict(row_values or {})
            if plan.field_id:
                merged[plan.field_id] = value
            error = _check_expr_rule(rule, merged)
            if error:
                return error

    if plan.handler is not None:
        return plan.handler.check(value, plan.config)
    return None


def validate_field(
    value: Any,
    field_type: str,
    config: dict[str, Any] | None = None,
    rules: list[dict[str, Any]] | None = None,
    row_values: dict[str, Any] | None = None,
    field_id: str = "",
) -> str | None:
    """
    Validate a field value.

    Args:
        value: Cell value
        field_type: Field data type
        config: Field configuration (isRequired, min, max, ...)
        rules: Declarative validation rules
        row_values: Row values for cross-field expression rules
        field_id: Field id, bound to ``value`` for expression rules

    Returns:
        Error message, or None when valid

    Example:
        >>> validate_field("", "string", {"isRequired": True})
        'Required'
    """
    plan = _cached_plan(field_id, field_type, config, rules)
    return validate_with_plan(plan, value, row_values)
