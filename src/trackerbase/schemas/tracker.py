"""Schemas for tracker fields, grids and the rules attached to them."""

from typing import Any, Literal

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from trackerbase.schemas.common import CamelModel, NonEmptyStr

FieldDataType = Literal[
    "string",
    "number",
    "date",
    "boolean",
    "text",
    "options",
    "multiselect",
    "dynamic_select",
    "dynamic_multiselect",
    "link",
    "currency",
    "percentage",
]


class FieldConfig(CamelModel):
    """Per-field configuration. Unknown keys are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    is_required: bool | None = None
    is_hidden: bool | None = None
    is_disabled: bool | None = None
    min: float | None = None
    max: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    default_value: Any = None


class FieldUi(CamelModel):
    """Display metadata for a field."""

    label: str | None = None
    placeholder: str | None = None


class FieldDef(CamelModel):
    """A typed field definition."""

    id: NonEmptyStr
    data_type: str = Field(default="string", description="Field data type")
    config: dict[str, Any] | None = None
    ui: FieldUi | None = None


class GridDef(CamelModel):
    """An entity/grid: a named collection of field placements."""

    id: NonEmptyStr
    name: str | None = None
    section_id: str | None = None


class LayoutNode(CamelModel):
    """Placement of a field inside a grid."""

    grid_id: NonEmptyStr
    field_id: NonEmptyStr


class SectionDef(CamelModel):
    """A section groups grids under a tab."""

    id: NonEmptyStr
    tab_id: str | None = None


class ValidationRule(CamelModel):
    """Declarative per-field validation rule."""

    type: Literal["required", "min", "max", "minLength", "maxLength", "expr"]
    value: Any = None
    expr: dict[str, Any] | None = None
    message: str | None = None


class CalculationRule(CamelModel):
    """Expression computing a target field."""

    expr: dict[str, Any]


class FieldMapping(CamelModel):
    """Copy an option-grid field into a field of the select's grid."""

    from_: str = Field(..., alias="from")
    to: str


class Binding(CamelModel):
    """Lookup binding attached to a select field path."""

    options_grid: NonEmptyStr
    label_field: NonEmptyStr
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    value_field: str | None = Field(None, description="Legacy explicit value field")


class DependsOnRule(CamelModel):
    """Conditional rule producing field overrides."""

    source: NonEmptyStr
    operator: str = "eq"
    value: Any = None
    action: str
    set: Any = None
    priority: int = 0
    targets: list[str] = Field(default_factory=list)


# =============================================================================
# Engine requests/responses
# =============================================================================


class ValidateFieldRequest(CamelModel):
    field_id: str = ""
    field_type: str = "string"
    value: Any = None
    config: dict[str, Any] | None = None
    rules: list[ValidationRule] = Field(default_factory=list)
    row_values: dict[str, Any] = Field(default_factory=dict)


class ValidateFieldResponse(CamelModel):
    error: str | None = None


class CalculationRequest(CamelModel):
    grid_id: NonEmptyStr
    row: dict[str, Any] = Field(default_factory=dict)
    calculations: dict[str, CalculationRule] = Field(default_factory=dict)
    changed_field_ids: list[str] | None = None
    external_values: dict[str, Any] = Field(default_factory=dict)


class CalculationResponse(CamelModel):
    row: dict[str, Any]
    updated_field_ids: list[str] = Field(default_factory=list)
    skipped_cyclic_targets: list[str] = Field(default_factory=list)


class BindingApplyRequest(CamelModel):
    select_path: NonEmptyStr
    selected_value: Any = None
    bindings: dict[str, Binding] = Field(default_factory=dict)
    grid_data: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    context_id: str | None = None


class BindingUpdateSchema(CamelModel):
    target_path: str
    value: Any = None


class BindingApplyResponse(CamelModel):
    updates: list[BindingUpdateSchema] = Field(default_factory=list)
    option_row: dict[str, Any] | None = None


class DependsOnRequest(CamelModel):
    grid_id: NonEmptyStr
    rules: list[DependsOnRule] = Field(default_factory=list)
    grid_data: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    row_index: int = 0
    row: dict[str, Any] | None = None


class DependsOnResponse(CamelModel):
    """Patches keyed by target path; only decided keys are present."""

    overrides: dict[str, dict[str, Any]] = Field(default_factory=dict)
