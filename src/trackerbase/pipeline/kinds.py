"""Node kinds of dynamic option pipelines and their port types."""

from typing import Literal, NamedTuple

from pydantic import BaseModel

from trackerbase.schemas.pipeline import (
    AiExtractConfig,
    BuiltinRefConfig,
    CurrentContextConfig,
    FilterConfig,
    FlattenPathConfig,
    GridRowsConfig,
    HttpGetConfig,
    LayoutFieldsConfig,
    LimitConfig,
    MapFieldsConfig,
    OutputOptionsConfig,
    SortConfig,
    StartConfig,
    UniqueConfig,
)

PortType = Literal["object", "rows", "options", "any"]

START = "control.start"
OUTPUT = "output.options"
HTTP_GET = "source.http_get"
AI_EXTRACT = "ai.extract_options"
CURRENT_CONTEXT = "source.current_context"
BUILTIN_REF = "source.builtin_ref"


class NodeKind(NamedTuple):
    """Config model and port types of one node kind."""

    config_model: type[BaseModel]
    input_type: PortType | None
    output_type: PortType


NODE_KINDS: dict[str, NodeKind] = {
    START: NodeKind(StartConfig, None, "object"),
    "source.grid_rows": NodeKind(GridRowsConfig, "object", "rows"),
    CURRENT_CONTEXT: NodeKind(CurrentContextConfig, "object", "object"),
    "source.layout_fields": NodeKind(LayoutFieldsConfig, "object", "rows"),
    HTTP_GET: NodeKind(HttpGetConfig, "object", "object"),
    BUILTIN_REF: NodeKind(BuiltinRefConfig, "object", "rows"),
    "transform.filter": NodeKind(FilterConfig, "rows", "rows"),
    "transform.map_fields": NodeKind(MapFieldsConfig, "rows", "rows"),
    "transform.unique": NodeKind(UniqueConfig, "rows", "rows"),
    "transform.sort": NodeKind(SortConfig, "rows", "rows"),
    "transform.limit": NodeKind(LimitConfig, "rows", "rows"),
    "transform.flatten_path": NodeKind(FlattenPathConfig, "any", "rows"),
    AI_EXTRACT: NodeKind(AiExtractConfig, "any", "rows"),
    OUTPUT: NodeKind(OutputOptionsConfig, "rows", "options"),
}

# Kinds that reach outside the process and only run where remote execution is allowed
SERVER_ONLY_KINDS = frozenset({HTTP_GET, AI_EXTRACT})


def list_node_kinds() -> list[str]:
    return list(NODE_KINDS)
