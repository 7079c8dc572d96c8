"""
Source nodes: rows and objects a pipeline starts from.

The pipeline context is the camelCase dict the authoring surface sends:
``grids``, ``fields``, ``layoutNodes``, ``sections``, ``gridData``,
``dynamicOptions`` and ``runtime``.
"""

import re
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urljoin, urlsplit

import httpx
import orjson
from pydantic import ValidationError as PydanticValidationError

from trackerbase.core.config import settings
from trackerbase.core.exceptions import ConnectorError
from trackerbase.core.logging import get_logger
from trackerbase.pipeline.paths import get_by_path, normalize_rows, to_plain_string, to_record
from trackerbase.schemas.pipeline import Connector, HttpGetConfig

logger = get_logger(__name__)

SHARED_TAB_ID = "shared_tab"

SecretResolver = Callable[[str], Awaitable[str | None]]

_TEMPLATE_RE = re.compile(r"\{\{\s*(arg|context)\.([^\s{}]+)\s*\}\}")


def _field_is_hidden(field: dict[str, Any]) -> bool:
    return to_record(field.get("config")).get("isHidden") is True


def _field_label(field: dict[str, Any]) -> Any:
    return to_record(field.get("ui")).get("label")


def grid_rows(context: dict[str, Any], grid_id: str) -> list[dict[str, Any]]:
    return normalize_rows(to_record(context.get("gridData")).get(grid_id) or [])


def layout_rows(
    context: dict[str, Any], include_hidden: bool = False, exclude_shared_tab: bool = True
) -> list[dict[str, Any]]:
    """
    One row per field placed in the layout.

    Without layout nodes, falls back to one row per field definition.
    """
    grids = {grid.get("id"): grid for grid in context.get("grids") or [] if isinstance(grid, dict)}
    fields = {field.get("id"): field for field in context.get("fields") or [] if isinstance(field, dict)}
    sections = {section.get("id"): section for section in context.get("sections") or [] if isinstance(section, dict)}

    rows: list[dict[str, Any]] = []
    layout_nodes = context.get("layoutNodes") or []
    if layout_nodes:
        for node in layout_nodes:
            if not isinstance(node, dict):
                continue
            grid = grids.get(node.get("gridId"))
            field = fields.get(node.get("fieldId"))
            if grid is None or field is None:
                continue
            section = sections.get(grid.get("sectionId")) or {}
            hidden = _field_is_hidden(field)
            if hidden and not include_hidden:
                continue
            if exclude_shared_tab and section.get("tabId") == SHARED_TAB_ID:
                continue
            rows.append(
                {
                    "gridId": grid["id"],
                    "gridName": grid.get("name"),
                    "sectionId": section.get("id"),
                    "tabId": section.get("tabId"),
                    "fieldId": field["id"],
                    "fieldLabel": _field_label(field),
                    "dataType": field.get("dataType"),
                    "path": f"{grid['id']}.{field['id']}",
                    "isHidden": hidden,
                }
            )
        return rows

    for field in fields.values():
        hidden = _field_is_hidden(field)
        if hidden and not include_hidden:
            continue
        rows.append(
            {
                "fieldId": field["id"],
                "fieldLabel": _field_label(field),
                "dataType": field.get("dataType"),
                "isHidden": hidden,
            }
        )
    return rows


def current_context(
    context: dict[str, Any],
    include_row_values: bool = True,
    include_field_metadata: bool = True,
    include_layout_metadata: bool = True,
) -> dict[str, Any]:
    """Object describing where the options are requested from."""
    runtime = to_record(context.get("runtime"))
    result: dict[str, Any] = {
        "gridId": runtime.get("currentGridId"),
        "fieldId": runtime.get("currentFieldId"),
        "rowIndex": runtime.get("rowIndex"),
    }
    if include_row_values:
        result["row"] = to_record(runtime.get("currentRow"))
    if include_field_metadata:
        result["fields"] = [
            {
                "id": field.get("id"),
                "label": _field_label(field),
                "dataType": field.get("dataType"),
                "config": to_record(field.get("config")),
            }
            for field in context.get("fields") or []
            if isinstance(field, dict)
        ]
    if include_layout_metadata:
        result["layout"] = [
            {"gridId": node.get("gridId"), "fieldId": node.get("fieldId")}
            for node in context.get("layoutNodes") or []
            if isinstance(node, dict)
        ]
    return result


def interpolate_template(value: str, args: dict[str, Any], context: dict[str, Any]) -> str:
    """Replace ``{{arg.name}}`` and ``{{context.path}}`` placeholders with text."""

    def replace(match: re.Match) -> str:
        namespace, path = match.group(1), match.group(2)
        if namespace == "arg":
            return to_plain_string(args.get(path))
        return to_plain_string(get_by_path(context, path))

    return _TEMPLATE_RE.sub(replace, value)


def find_connector(connector_id: str, context: dict[str, Any], connectors: dict[str, Any] | None = None) -> Connector:
    """
    Look up and validate a connector definition.

    Explicit ``connectors`` override those stored in the context.

    Raises:
        ConnectorError: When the connector is missing or invalid
    """
    merged = {**to_record(to_record(context.get("dynamicOptions")).get("connectors")), **(connectors or {})}
    raw = merged.get(connector_id)
    if raw is None:
        raise ConnectorError(f'Connector "{connector_id}" not found', connector_id=connector_id)
    if isinstance(raw, Connector):
        return raw
    try:
        return Connector.model_validate(raw)
    except PydanticValidationError as e:
        raise ConnectorError(
            f'Connector "{connector_id}" is invalid: {e.error_count()} error(s)', connector_id=connector_id
        )


async def fetch_http_get(
    config: HttpGetConfig,
    context: dict[str, Any],
    args: dict[str, Any],
    *,
    connectors: dict[str, Any] | None = None,
    secret_resolver: SecretResolver | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
    max_response_bytes: int | None = None,
) -> Any:
    """
    Call a connector endpoint and return its parsed JSON.

    The URL is the connector base URL joined with ``config.path``; query
    values and headers may use templates. ``secret_ref`` connectors send
    ``Authorization: Bearer <secret>`` unless an Authorization header is
    already set.

    Args:
        config: Node config
        context: Pipeline context (for templates and stored connectors)
        args: Resolve call arguments (for templates)
        connectors: Extra connector definitions by id
        secret_resolver: Async lookup of secret values by secret ref id
        client: Shared HTTP client; a short-lived one is created otherwise
        timeout: Request timeout in seconds
        max_response_bytes: Largest accepted body

    Returns:
        The JSON payload, narrowed by ``responsePath`` when set

    Raises:
        ConnectorError: On missing connector, host not allowed, missing
            secret, transport failure, non-2xx status, oversized or
            non-JSON body
    """
    connector = find_connector(config.connector_id, context, connectors)
    timeout = timeout if timeout is not None else settings.pipeline_http_timeout_seconds
    max_bytes = max_response_bytes if max_response_bytes is not None else settings.pipeline_max_response_bytes

    url = urljoin(connector.base_url, config.path or "")
    host = urlsplit(url).netloc
    if connector.allow_hosts and host not in connector.allow_hosts:
        raise ConnectorError(
            f'Host "{host}" is not allowlisted for connector "{connector.id}"', connector_id=connector.id
        )

    params = {key: interpolate_template(value, args, context) for key, value in config.query.items()}
    headers = dict(connector.default_headers)
    for key, value in config.headers.items():
        headers[key] = interpolate_template(value, args, context)

    if connector.auth.type == "secret_ref":
        if secret_resolver is None:
            raise ConnectorError(
                "Missing secret resolver for connector auth type secret_ref", connector_id=connector.id
            )
        secret = await secret_resolver(connector.auth.secret_ref_id)
        if not secret:
            raise ConnectorError(f'Secret "{connector.auth.secret_ref_id}" not found', connector_id=connector.id)
        if not any(key.lower() == "authorization" for key in headers):
            headers["Authorization"] = f"Bearer {secret}"

    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.get(url, params=params, headers=headers, timeout=timeout)
        else:
            response = await client.get(url, params=params, headers=headers, timeout=timeout)
    except httpx.TimeoutException:
        raise ConnectorError(f"HTTP source timed out after {timeout}s", connector_id=connector.id)
    except httpx.HTTPError as e:
        raise ConnectorError(f"HTTP source request failed: {e}", connector_id=connector.id)

    if not response.is_success:
        raise ConnectorError(f"HTTP source failed with status {response.status_code}", connector_id=connector.id)
    if len(response.content) > max_bytes:
        raise ConnectorError("HTTP response exceeded max size", connector_id=connector.id)

    try:
        payload = orjson.loads(response.content)
    except orjson.JSONDecodeError:
        raise ConnectorError("HTTP response is not valid JSON", connector_id=connector.id)

    logger.debug(f"HTTP source {connector.id} returned {len(response.content)} bytes from {host}")
    return get_by_path(payload, config.response_path) if config.response_path else payload
