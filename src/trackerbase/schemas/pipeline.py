"""Schemas for dynamic option pipelines: graphs, node configs, connectors and results."""

from typing import Annotated, Any, Literal, Union

from pydantic import Field, PositiveInt, field_validator

from trackerbase.schemas.common import CamelModel, CompileIssue, NonEmptyStr, StrictCamelModel
from trackerbase.schemas.tracker import FieldDef, GridDef, LayoutNode, SectionDef

FilterOp = Literal[
    "eq",
    "neq",
    "gt",
    "gte",
    "lt",
    "lte",
    "in",
    "not_in",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "is_empty",
    "not_empty",
]

# =============================================================================
# Value selectors
# =============================================================================


class ConstSelector(StrictCamelModel):
    """Literal value."""

    const: Any


class ArgSelector(StrictCamelModel):
    """Value taken from the resolve call's arguments."""

    from_arg: NonEmptyStr


class ContextSelector(StrictCamelModel):
    """Value read from the pipeline context by dotted path."""

    from_context: NonEmptyStr


# A bare string is a dotted path into the current row.
ValueSelector = Union[str, ConstSelector, ArgSelector, ContextSelector]


class OutputMapping(StrictCamelModel):
    """Maps a row to an option."""

    label: ValueSelector
    value: ValueSelector
    id: ValueSelector | None = None
    extra: dict[str, ValueSelector] | None = None


# =============================================================================
# Node configs
# =============================================================================


class StartConfig(StrictCamelModel):
    """control.start takes no configuration."""


class GridRowsConfig(StrictCamelModel):
    grid_id: NonEmptyStr


class CurrentContextConfig(StrictCamelModel):
    include_row_values: bool = True
    include_field_metadata: bool = True
    include_layout_metadata: bool = True


class LayoutFieldsConfig(StrictCamelModel):
    include_hidden: bool = False
    exclude_shared_tab: bool = True


class HttpGetConfig(StrictCamelModel):
    connector_id: NonEmptyStr
    path: str = ""
    query: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    response_path: str | None = None


class FilterPredicate(StrictCamelModel):
    field: NonEmptyStr
    op: FilterOp = "eq"
    value: Any = None
    value_from_arg: NonEmptyStr | None = None
    value_from_context: NonEmptyStr | None = None


class FilterConfig(StrictCamelModel):
    mode: Literal["and", "or"] = "and"
    predicates: list[FilterPredicate] = Field(default_factory=list)
    expr: dict[str, Any] | None = None


class MapFieldsConfig(StrictCamelModel):
    mappings: dict[str, ValueSelector]


class UniqueConfig(StrictCamelModel):
    by: NonEmptyStr


class SortConfig(StrictCamelModel):
    by: NonEmptyStr
    direction: Literal["asc", "desc"] = "asc"
    value_type: Literal["string", "number"] = "string"


class BuiltinRefConfig(StrictCamelModel):
    function_id: NonEmptyStr


class LimitConfig(StrictCamelModel):
    count: PositiveInt


class FlattenPathConfig(StrictCamelModel):
    # An empty path flattens the input value itself
    path: str = ""


class AiExtractConfig(StrictCamelModel):
    prompt: NonEmptyStr
    input_path: str | None = None
    max_rows: PositiveInt | None = None


class OutputOptionsConfig(StrictCamelModel):
    mapping: OutputMapping


# =============================================================================
# Graph
# =============================================================================


class NodePosition(CamelModel):
    x: float = 0
    y: float = 0


class PipelineNode(CamelModel):
    """Graph node as authored. ``config`` is validated per kind at compile time."""

    id: NonEmptyStr
    kind: str
    config: dict[str, Any] | None = None
    position: NodePosition | None = None


class PipelineEdge(CamelModel):
    """Directed connection between two nodes."""

    id: str | None = None
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None


class PipelineGraph(CamelModel):
    """Authoring representation of a pipeline."""

    nodes: list[PipelineNode] = Field(default_factory=list)
    edges: list[PipelineEdge] = Field(default_factory=list)
    entry_node_id: str = ""
    return_node_id: str = ""


# =============================================================================
# Function definitions
# =============================================================================


class FunctionCacheConfig(StrictCamelModel):
    ttl_seconds: PositiveInt | None = None
    strategy: Literal["ttl"] | None = None


class FunctionDefinitionBase(CamelModel):
    """Fields shared by every dynamic option function."""

    id: NonEmptyStr
    name: NonEmptyStr
    description: str | None = None
    version: int = Field(default=1, ge=1)
    cache: FunctionCacheConfig | None = None
    enabled: bool | None = None


class GraphFunctionDefinition(FunctionDefinitionBase):
    """Function authored as a node graph."""

    engine: Literal["graph_v1"]
    graph: PipelineGraph


class BuiltinRefSource(BuiltinRefConfig):
    kind: Literal["builtin_ref"]


class GridRowsSource(GridRowsConfig):
    kind: Literal["grid_rows"]


class LayoutFieldsSource(LayoutFieldsConfig):
    kind: Literal["layout_fields"]


class HttpGetSource(HttpGetConfig):
    kind: Literal["http_get"]


DslSource = Annotated[
    Union[BuiltinRefSource, GridRowsSource, LayoutFieldsSource, HttpGetSource],
    Field(discriminator="kind"),
]


class FilterTransform(FilterConfig):
    kind: Literal["filter"]


class MapFieldsTransform(MapFieldsConfig):
    kind: Literal["map_fields"]


class UniqueTransform(UniqueConfig):
    kind: Literal["unique"]


class SortTransform(SortConfig):
    kind: Literal["sort"]


class LimitTransform(LimitConfig):
    kind: Literal["limit"]


class FlattenPathTransform(FlattenPathConfig):
    kind: Literal["flatten_path"]


DslTransform = Annotated[
    Union[
        FilterTransform,
        MapFieldsTransform,
        UniqueTransform,
        SortTransform,
        LimitTransform,
        FlattenPathTransform,
    ],
    Field(discriminator="kind"),
]


class DslFunctionDefinition(FunctionDefinitionBase):
    """Function authored as source + transforms + output."""

    engine: Literal["dsl_v1"]
    source: DslSource
    transforms: list[DslTransform] = Field(default_factory=list)
    output: OutputMapping


FunctionDefinition = Annotated[
    Union[GraphFunctionDefinition, DslFunctionDefinition],
    Field(discriminator="engine"),
]


# =============================================================================
# Connectors
# =============================================================================


class NoAuth(StrictCamelModel):
    type: Literal["none"] = "none"


class SecretRefAuth(StrictCamelModel):
    type: Literal["secret_ref"]
    secret_ref_id: NonEmptyStr


class Connector(CamelModel):
    """REST endpoint a source.http_get node may call."""

    id: NonEmptyStr
    name: NonEmptyStr
    type: Literal["rest"] = "rest"
    base_url: NonEmptyStr
    auth: Annotated[Union[NoAuth, SecretRefAuth], Field(discriminator="type")] = Field(
        default_factory=NoAuth
    )
    default_headers: dict[str, str] = Field(default_factory=dict)
    allow_hosts: list[str] = Field(default_factory=list)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Connectors only speak HTTP(S)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("baseUrl must be an http(s) URL")
        return v


# =============================================================================
# Execution context
# =============================================================================


class DynamicOptionsDefinitions(CamelModel):
    """Function and connector definitions stored with a tracker.

    Entries stay as plain data and are parsed one at a time, so a single
    malformed definition does not block the others.
    """

    functions: dict[str, dict[str, Any]] = Field(default_factory=dict)
    connectors: dict[str, dict[str, Any]] = Field(default_factory=dict)


class PipelineRuntime(CamelModel):
    """Where the option list is being requested from."""

    current_grid_id: str | None = None
    current_field_id: str | None = None
    row_index: int | None = None
    current_row: dict[str, Any] | None = None


class PipelineContext(CamelModel):
    """Schema and data snapshot a pipeline runs against."""

    grids: list[GridDef] = Field(default_factory=list)
    fields: list[FieldDef] = Field(default_factory=list)
    layout_nodes: list[LayoutNode] = Field(default_factory=list)
    sections: list[SectionDef] = Field(default_factory=list)
    grid_data: dict[str, list[Any]] = Field(default_factory=dict)
    dynamic_options: DynamicOptionsDefinitions | None = None
    runtime: PipelineRuntime | None = None


# =============================================================================
# Results and requests
# =============================================================================

OptionSource = Literal["builtin", "local_custom", "remote_custom", "unknown"]


class ResolveMeta(CamelModel):
    from_cache: bool = False
    fetched_at: str
    duration_ms: int = 0
    source: OptionSource = "unknown"
    expires_at: str | None = None


class ResolveResult(CamelModel):
    """Options produced for one resolve call."""

    options: list[dict[str, Any]] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    meta: ResolveMeta


class ResolveRequest(CamelModel):
    function_id: str
    context: PipelineContext = Field(default_factory=PipelineContext)
    runtime: PipelineRuntime | None = None
    args: dict[str, Any] = Field(default_factory=dict)
    force_refresh: bool = False
    cache_ttl_seconds_override: PositiveInt | None = None


class PipelineCompileRequest(CamelModel):
    definition: dict[str, Any]
    connector_ids: list[str] | None = None


class PipelineCompileResponse(CamelModel):
    ok: bool
    errors: list[CompileIssue] = Field(default_factory=list)
    execution_order: list[str] = Field(default_factory=list)
    requires_remote: bool = False
    uses_runtime_row: bool = False
