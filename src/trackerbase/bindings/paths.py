"""Field path helpers.

A path addresses one field in one grid: ``"gridId.fieldId"``. A bare
``"gridId"`` addresses the grid itself, and the legacy three-part form
``"tabId.gridId.fieldId"`` is still accepted on read.
"""

from typing import NamedTuple

from trackerbase.core.logging import get_logger

logger = get_logger(__name__)


class ParsedPath(NamedTuple):
    grid_id: str | None
    field_id: str | None


_INVALID = ParsedPath(None, None)


def parse_path(path: str | None) -> ParsedPath:
    """
    Split a field path into grid and field ids.

    Args:
        path: ``grid.field``, ``grid`` or legacy ``tab.grid.field``

    Returns:
        ParsedPath; both parts are None for invalid input
    """
    if not path or not isinstance(path, str):
        return _INVALID

    parts = path.split(".")
    if len(parts) == 2:
        return ParsedPath(parts[0], parts[1])
    if len(parts) == 1:
        return ParsedPath(parts[0], None)
    if len(parts) == 3:
        return ParsedPath(parts[1], parts[2])

    logger.debug(f"Invalid field path format: {path!r}")
    return _INVALID


def build_field_path(grid_id: str, field_id: str) -> str:
    return f"{grid_id}.{field_id}"


def normalize_options_grid_id(options_grid: str | None) -> str | None:
    """Options grids may be written as ``tab.grid``; only the last segment counts."""
    if not options_grid or not isinstance(options_grid, str):
        return None
    return options_grid.rsplit(".", 1)[-1] or None
