"""Unit tests for the textual expression syntax."""

import math

import pytest

from trackerbase.core.exceptions import ExprSyntaxError
from trackerbase.expr import ExprParser, evaluate_expr, format_expr, parse_expr


class TestExprParser:
    """Tests for parse_expr."""

    def test_field_arithmetic(self):
        """Test a price * qty + 1 expression."""
        expr = parse_expr("{price} * {qty} + 1")
        assert expr == {
            "op": "add",
            "args": [
                {
                    "op": "mul",
                    "args": [{"op": "field", "fieldId": "price"}, {"op": "field", "fieldId": "qty"}],
                },
                {"op": "const", "value": 1},
            ],
        }

    def test_chained_add_is_flat(self):
        """Test a + b + c becomes one n-ary node."""
        expr = parse_expr("{a} + {b} + {c}")
        assert expr["op"] == "add"
        assert len(expr["args"]) == 3

    def test_precedence_and_parens(self):
        """Test parentheses override precedence."""
        assert evaluate_expr(parse_expr("2 + 3 * 4")) == 14
        assert evaluate_expr(parse_expr("(2 + 3) * 4")) == 20

    def test_negative_literal(self):
        """Test unary minus folds into numeric constants."""
        assert parse_expr("-5") == {"op": "const", "value": -5}

    def test_literals(self):
        """Test strings, booleans and null."""
        assert parse_expr('"hi"') == {"op": "const", "value": "hi"}
        assert parse_expr("TRUE") == {"op": "const", "value": True}
        assert parse_expr("null") == {"op": "const", "value": None}

    def test_logical_and_calls(self):
        """Test and/or/not, if() and regex()."""
        expr = parse_expr('if({qty} >= 10 and not {vip}, "bulk", "single")')
        assert evaluate_expr(expr, {"qty": 12, "vip": False}) == "bulk"
        assert evaluate_expr(expr, {"qty": 12, "vip": True}) == "single"

        regex = parse_expr('regex({code}, "^ab", "i")')
        assert regex["pattern"] == "^ab"
        assert regex["flags"] == "i"
        assert evaluate_expr(regex, {"code": "ABC"}) is True

    def test_grid_qualified_reference(self):
        """Test grid.field references are kept verbatim."""
        parser = ExprParser()
        assert parser.get_field_references("{order.total} - {discount}") == ["discount", "order.total"]

    def test_syntax_error(self):
        """Test invalid text raises ExprSyntaxError."""
        with pytest.raises(ExprSyntaxError) as exc_info:
            parse_expr("{a} +")
        assert exc_info.value.code == "EXPR_SYNTAX_ERROR"

    def test_validate(self):
        """Test validate reports success and failure."""
        parser = ExprParser()
        assert parser.validate("1 + 1") == (True, None)
        valid, error = parser.validate("1 +* 1")
        assert valid is False
        assert error


class TestFormatExpr:
    """Tests for format_expr."""

    @pytest.mark.parametrize(
        "text",
        [
            "{price} * {qty} + 1",
            "{a} - ({b} - {c})",
            "({a} + {b}) * {c}",
            '{status} = "open" or {priority} > 2',
            'if({a} > 1, "x", "y")',
            "not {done}",
        ],
    )
    def test_format_parses_back(self, text):
        """Test formatted text parses to the same tree."""
        expr = parse_expr(text)
        assert parse_expr(format_expr(expr)) == expr

    @pytest.mark.parametrize("value", [math.inf, -math.inf])
    def test_infinite_constants_round_trip(self, value):
        """Test infinities format to literals that parse back unchanged."""
        expr = {"op": "gt", "left": {"op": "field", "fieldId": "x"}, "right": {"op": "const", "value": value}}
        assert parse_expr(format_expr(expr)) == expr

    def test_nan_constant_round_trips(self):
        """Test NaN formats as a literal and parses back as a constant."""
        parsed = parse_expr(format_expr({"op": "const", "value": math.nan}))
        assert parsed["op"] == "const"
        assert math.isnan(parsed["value"])
