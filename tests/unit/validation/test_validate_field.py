"""Unit tests for the field validation evaluator."""

import math

import pytest

from trackerbase.validation import compile_validation_plan, validate_field, validate_with_plan


def x_equals(value):
    expr = {"op": "eq", "left": {"op": "field", "fieldId": "x"}, "right": {"op": "const", "value": value}}
    return [{"type": "expr", "expr": expr}]


class TestRequired:
    """Tests for required checks."""

    @pytest.mark.parametrize("value", [None, "", []])
    def test_required_empty(self, value):
        """Test every empty form yields Required."""
        assert validate_field(value, "string", {"isRequired": True}) == "Required"

    def test_required_with_value(self):
        """Test a present value passes."""
        assert validate_field("x", "string", {"isRequired": True}) is None

    def test_zero_is_a_value(self):
        """Test 0 satisfies required."""
        assert validate_field(0, "number", {"isRequired": True}) is None

    def test_custom_message(self):
        """Test rule messages override defaults."""
        rules = [{"type": "required", "message": "Name is needed"}]
        assert validate_field("", "string", None, rules) == "Name is needed"


class TestBounds:
    """Tests for min/max rules."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (4, "Must be at least 5"),
            (5, None),
            (10, None),
            (11, "Must be at most 10"),
            ("7", None),
        ],
    )
    def test_inclusive_bounds(self, value, expected):
        """Test min/max are inclusive."""
        assert validate_field(value, "number", {"min": 5, "max": 10}) == expected

    def test_bounds_skip_empty(self):
        """Test empty values are not range checked."""
        assert validate_field("", "number", {"min": 5}) is None

    def test_unparsable_value(self):
        """Test non-numeric values fail min/max."""
        assert validate_field("abc", "number", {"min": 5}) == "Enter a valid number"

    def test_number_type_check_without_rules(self):
        """Test number fields reject text even without bounds."""
        assert validate_field("abc", "currency", {"isRequired": True}) == "Enter a valid number"

    def test_float_bound_message(self):
        """Test integral float bounds render without decimals."""
        assert validate_field(1, "number", None, [{"type": "min", "value": 2.0}]) == "Must be at least 2"


class TestLengths:
    """Tests for minLength/maxLength rules."""

    def test_min_length(self):
        """Test minLength on a string field."""
        assert validate_field("ab", "string", {"minLength": 3}) == "At least 3 characters"

    def test_max_length(self):
        """Test maxLength on a text field."""
        assert validate_field("abcdef", "text", {"maxLength": 5}) == "At most 5 characters"

    def test_lengths_ignored_for_non_string_types(self):
        """Test length rules do not apply to numbers."""
        assert validate_field(123456, "number", {"maxLength": 2}) is None


class TestExprRules:
    """Tests for expression rules."""

    def test_false_result_fails(self):
        """Test a False expression uses the rule message."""
        rules = [
            {
                "type": "expr",
                "expr": {"op": "gte", "left": {"op": "field", "fieldId": "end"}, "right": {"op": "field", "fieldId": "start"}},
                "message": "End must not precede start",
            }
        ]
        assert validate_field(3, "number", None, rules, {"start": 5}, "end") == "End must not precede start"
        assert validate_field(7, "number", None, rules, {"start": 5}, "end") is None

    def test_string_result_is_message(self):
        """Test a non-empty string result is the error message."""
        rules = [{"type": "expr", "expr": {"op": "const", "value": "Custom failure"}}]
        assert validate_field("x", "string", None, rules) == "Custom failure"

    def test_nan_constant_not_confused_with_none(self):
        """Test a NaN constant rule is not served the plan of a None constant rule."""
        assert validate_field(None, "string", None, x_equals(None), {"x": None}, "x") is None
        assert validate_field(None, "string", None, x_equals(math.nan), {"x": None}, "x") == "Invalid value"

    def test_missing_expression_fails(self):
        """Test an expr rule without expression falls back to Invalid value."""
        assert validate_field("x", "string", None, [{"type": "expr"}]) == "Invalid value"


class TestOrderingAndSkips:
    """Tests for rule ordering and skipped fields."""

    def test_config_rules_run_first(self):
        """Test config constraints win over custom rules."""
        rules = [{"type": "expr", "expr": {"op": "const", "value": False}, "message": "custom"}]
        assert validate_field("", "string", {"isRequired": True}, rules) == "Required"

    @pytest.mark.parametrize("flag", ["isHidden", "isDisabled"])
    def test_hidden_or_disabled_never_validated(self, flag):
        """Test hidden and disabled fields skip validation."""
        assert validate_field("", "string", {"isRequired": True, flag: True}) is None

    def test_no_rules(self):
        """Test no config and no rules is always valid."""
        assert validate_field("anything", "number") is None

    def test_malformed_rules_never_raise(self):
        """Test garbage rules are tolerated."""
        rules = ["nope", {"type": "min", "value": "five"}, {"type": "unknown"}]
        assert validate_field(1, "number", None, rules) is None

    def test_compiled_plan_reuse(self):
        """Test a compiled plan validates many values."""
        plan = compile_validation_plan("qty", "number", {"min": 1})
        assert validate_with_plan(plan, 0) == "Must be at least 1"
        assert validate_with_plan(plan, 3) is None
