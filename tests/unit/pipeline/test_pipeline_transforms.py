"""Unit tests for pipeline row transforms and path helpers."""

from trackerbase.pipeline.paths import get_by_path, normalize_rows, to_stable_key
from trackerbase.pipeline.transforms import (
    apply_filter,
    apply_flatten_path,
    apply_limit,
    apply_map_fields,
    apply_sort,
    apply_unique,
    map_rows_to_options,
    read_selector,
)
from trackerbase.schemas.pipeline import FilterConfig, MapFieldsConfig, OutputMapping

ROWS = [
    {"code": "US", "name": "United States", "pop": 331},
    {"code": "CA", "name": "Canada", "pop": 38},
    {"code": "MX", "name": "Mexico", "pop": "126"},
]


class TestPaths:
    """Tests for dotted path helpers."""

    def test_get_by_path(self):
        """Test dict and list traversal."""
        data = {"a": {"items": [{"b": 1}, {"b": 2}]}}
        assert get_by_path(data, "a.items.1.b") == 2
        assert get_by_path(data, "a.items.5.b") is None
        assert get_by_path(data, "a.missing.b") is None
        assert get_by_path(data, "") is data

    def test_normalize_rows(self):
        """Test scalars are wrapped and non-lists give no rows."""
        assert normalize_rows(["a", {"b": 1}]) == [{"value": "a"}, {"b": 1}]
        assert normalize_rows({"a": 1}) == []

    def test_stable_key(self):
        """Test key ordering does not change the key."""
        assert to_stable_key({"a": 1, "b": 2}) == to_stable_key({"b": 2, "a": 1})
        assert to_stable_key(None) == ""
        assert to_stable_key(5) == "5"


class TestFilter:
    """Tests for transform.filter."""

    def test_and_predicates(self):
        """Test predicates combine with and by default."""
        config = FilterConfig.model_validate(
            {"predicates": [{"field": "pop", "op": "gt", "value": 50}, {"field": "code", "op": "neq", "value": "US"}]}
        )
        assert [r["code"] for r in apply_filter(ROWS, config, {}, {})] == ["MX"]

    def test_or_predicates(self):
        """Test or mode."""
        config = FilterConfig.model_validate(
            {"mode": "or", "predicates": [{"field": "code", "value": "US"}, {"field": "code", "value": "CA"}]}
        )
        assert [r["code"] for r in apply_filter(ROWS, config, {}, {})] == ["US", "CA"]

    def test_value_from_arg(self):
        """Test expected values read from call arguments."""
        config = FilterConfig.model_validate({"predicates": [{"field": "code", "valueFromArg": "country"}]})
        assert apply_filter(ROWS, config, {"country": "CA"}, {}) == [ROWS[1]]

    def test_expr_filter(self):
        """Test an expression filter is evaluated per row."""
        expr = {"op": "lt", "args": [{"op": "field", "fieldId": "pop"}, {"op": "const", "value": 100}]}
        config = FilterConfig.model_validate({"expr": expr})
        assert apply_filter(ROWS, config, {}, {}) == [ROWS[1]]

    def test_no_predicates_keeps_rows(self):
        """Test an empty filter keeps every row."""
        assert apply_filter(ROWS, FilterConfig(), {}, {}) == ROWS


class TestRowTransforms:
    """Tests for map/unique/sort/limit/flatten."""

    def test_map_fields(self):
        """Test selectors of every kind."""
        config = MapFieldsConfig.model_validate(
            {
                "mappings": {
                    "label": "name",
                    "kind": {"const": "country"},
                    "who": {"fromArg": "user"},
                    "grid": {"fromContext": "runtime.currentGridId"},
                }
            }
        )
        mapped = apply_map_fields(ROWS[:1], config.mappings, {"user": "ana"}, {"runtime": {"currentGridId": "form"}})
        assert mapped == [{**ROWS[0], "label": "United States", "kind": "country", "who": "ana", "grid": "form"}]

    def test_unique(self):
        """Test the first occurrence wins."""
        rows = [{"k": "a", "n": 1}, {"k": "b", "n": 2}, {"k": "a", "n": 3}]
        assert apply_unique(rows, "k") == rows[:2]

    def test_sort_string(self):
        """Test string sorting in both directions."""
        assert [r["code"] for r in apply_sort(ROWS, "name")] == ["CA", "MX", "US"]
        assert [r["code"] for r in apply_sort(ROWS, "name", "desc")] == ["US", "MX", "CA"]

    def test_sort_number(self):
        """Test numeric sorting parses numeric strings."""
        assert [r["code"] for r in apply_sort(ROWS, "pop", value_type="number")] == ["CA", "MX", "US"]

    def test_sort_number_unparsable_first(self):
        """Test unparsable numbers sort first ascending and last descending."""
        rows = [{"v": 2}, {"v": "x"}, {"v": 1}]
        assert [r["v"] for r in apply_sort(rows, "v", value_type="number")] == ["x", 1, 2]
        assert [r["v"] for r in apply_sort(rows, "v", "desc", "number")] == [2, 1, "x"]

    def test_limit(self):
        """Test limit keeps the first rows."""
        assert apply_limit(ROWS, 2) == ROWS[:2]

    def test_flatten_rows(self):
        """Test list children are expanded into their parent row."""
        rows = [{"g": "a", "items": [{"x": 1}, 2]}, {"g": "b"}]
        assert apply_flatten_path(rows, "items") == [
            {"g": "a", "items": [{"x": 1}, 2], "x": 1},
            {"g": "a", "items": 2},
            {"g": "b"},
        ]

    def test_flatten_object(self):
        """Test the list at a path of an object becomes rows."""
        assert apply_flatten_path({"data": {"items": ["a", {"b": 1}]}}, "data.items") == [{"value": "a"}, {"b": 1}]
        assert apply_flatten_path({"data": 5}, "data") == []

    def test_flatten_empty_path(self):
        """Test an empty path turns a JSON array into rows."""
        assert apply_flatten_path([1, {"a": 2}], "") == [{"value": 1}, {"a": 2}]


class TestOptionMapping:
    """Tests for output mapping."""

    def test_map_rows_to_options(self):
        """Test label/value/id mapping with extras."""
        mapping = OutputMapping.model_validate({"label": "name", "value": "code", "extra": {"population": "pop"}})
        options = map_rows_to_options(ROWS[:1], mapping, {}, {})
        assert options == [{"label": "United States", "value": "US", "id": "US", "population": 331}]

    def test_rows_without_label_or_value_skipped(self):
        """Test incomplete rows are dropped."""
        mapping = OutputMapping.model_validate({"label": "name", "value": "code"})
        assert map_rows_to_options([{"name": "x"}, {"code": "y"}], mapping, {}, {}) == []

    def test_explicit_id_and_text_label(self):
        """Test explicit ids and non-string labels."""
        mapping = OutputMapping.model_validate({"label": "pop", "value": "code", "id": {"const": 7}})
        assert map_rows_to_options(ROWS[:1], mapping, {}, {}) == [{"label": "331", "value": "US", "id": "7"}]

    def test_read_unknown_selector(self):
        """Test unsupported selectors read as None."""
        assert read_selector(42, {}, {}, {}) is None
