"""
Tracker rule endpoints.

Field validation, calculated fields, select bindings and depends-on
overrides for one row at a time.
"""

from fastapi import APIRouter

from trackerbase.bindings import get_binding_for_field, parse_path, resolve_binding_updates
from trackerbase.calculation import apply_calculations_for_row
from trackerbase.depends_on import resolve_depends_on_overrides
from trackerbase.schemas.common import json_safe
from trackerbase.schemas.tracker import (
    BindingApplyRequest,
    BindingApplyResponse,
    BindingUpdateSchema,
    CalculationRequest,
    CalculationResponse,
    DependsOnRequest,
    DependsOnResponse,
    ValidateFieldRequest,
    ValidateFieldResponse,
)
from trackerbase.validation import validate_field

router = APIRouter()


@router.post("/validate", response_model=ValidateFieldResponse)
async def validate(request: ValidateFieldRequest) -> ValidateFieldResponse:
    """Validate one field value; ``error`` is null when valid."""
    error = validate_field(
        request.value,
        request.field_type,
        request.config,
        [rule.to_camel_dict() for rule in request.rules],
        request.row_values,
        field_id=request.field_id,
    )
    return ValidateFieldResponse(error=error)


@router.post("/calculate", response_model=CalculationResponse)
async def calculate(request: CalculationRequest) -> CalculationResponse:
    """Recompute the calculated fields of a row affected by a change."""
    result = apply_calculations_for_row(
        request.grid_id,
        request.row,
        {path: rule.to_camel_dict() for path, rule in request.calculations.items()},
        request.changed_field_ids,
        request.external_values,
    )
    return CalculationResponse(
        row=json_safe(result.row),
        updated_field_ids=result.updated_field_ids,
        skipped_cyclic_targets=result.skipped_cyclic_targets,
    )


@router.post("/bindings/apply", response_model=BindingApplyResponse)
async def apply_select_bindings(request: BindingApplyRequest) -> BindingApplyResponse:
    """Field updates implied by selecting an option in a bound select field."""
    grid_id, field_id = parse_path(request.select_path)
    bindings = {path: binding.to_camel_dict() for path, binding in request.bindings.items()}
    binding = get_binding_for_field(grid_id or "", field_id or "", bindings, request.context_id)
    option_row, updates = resolve_binding_updates(
        binding, request.grid_data, request.selected_value, request.select_path
    )
    return BindingApplyResponse(
        updates=[BindingUpdateSchema(target_path=u.target_path, value=u.value) for u in updates],
        option_row=option_row,
    )


@router.post("/depends-on/resolve", response_model=DependsOnResponse)
async def resolve_overrides(request: DependsOnRequest) -> DependsOnResponse:
    """Override patch of every field targeted by rules of one grid row."""
    overrides = resolve_depends_on_overrides(
        [rule.to_camel_dict() for rule in request.rules],
        request.grid_data,
        request.grid_id,
        request.row_index,
        request.row,
    )
    return DependsOnResponse(overrides=overrides)
