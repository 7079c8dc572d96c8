"""Read and write single cells of grid data by field path."""

from typing import Any

from trackerbase.bindings.paths import parse_path
from trackerbase.core.logging import get_logger

logger = get_logger(__name__)

GridData = dict[str, list[dict[str, Any]]]


def get_value_by_path(grid_data: GridData, path: str, row_index: int) -> Any:
    """
    Read one cell.

    Returns:
        The cell value, or None when the path or row does not resolve
    """
    grid_id, field_id = parse_path(path)
    if not grid_id or not field_id:
        return None
    rows = grid_data.get(grid_id) if isinstance(grid_data, dict) else None
    if not isinstance(rows, list) or not 0 <= row_index < len(rows):
        return None
    row = rows[row_index]
    return row.get(field_id) if isinstance(row, dict) else None


def set_value_by_path(grid_data: GridData, path: str, row_index: int, value: Any) -> GridData:
    """
    Return a copy of ``grid_data`` with one cell replaced.

    Only the touched grid list and row are copied. Invalid paths and out of
    range rows return the original object unchanged.
    """
    grid_id, field_id = parse_path(path)
    if not grid_id or not field_id:
        logger.debug(f"Cannot set value, invalid path: {path!r}")
        return grid_data

    rows = grid_data.get(grid_id) or []
    if not 0 <= row_index < len(rows):
        logger.debug(f"Cannot set value, invalid row index {row_index} for grid {grid_id!r}")
        return grid_data

    new_rows = list(rows)
    new_rows[row_index] = {**new_rows[row_index], field_id: value}
    return {**grid_data, grid_id: new_rows}
