"""
Compile a dynamic option pipeline graph into an execution plan.

Compilation collects every problem it can find instead of stopping at the
first one. A graph compiles only when it has one start and one output
node, each node has a valid config for its kind, each non-start node has
exactly one incoming edge of a matching port type, the graph is acyclic
and every node lies on a path from the start to the output.
"""

from collections import OrderedDict, defaultdict, deque
from dataclasses import dataclass, field
from typing import Any

import orjson
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from trackerbase.core.logging import get_logger
from trackerbase.pipeline.kinds import BUILTIN_REF, CURRENT_CONTEXT, NODE_KINDS, OUTPUT, SERVER_ONLY_KINDS, START
from trackerbase.schemas.common import CompileIssue
from trackerbase.schemas.pipeline import PipelineGraph

logger = get_logger(__name__)

PLAN_CACHE_LIMIT = 1000


@dataclass(frozen=True)
class CompiledNode:
    id: str
    kind: str
    config: BaseModel


@dataclass(frozen=True)
class CompiledEdge:
    id: str
    source: str
    target: str


@dataclass
class CompiledPipeline:
    """Execution plan of a compiled pipeline. Treat as read-only."""

    function_id: str
    execution_order: list[str]
    nodes: dict[str, CompiledNode]
    incoming: dict[str, list[CompiledEdge]]
    outgoing: dict[str, list[CompiledEdge]]
    entry_node_id: str
    return_node_id: str
    requires_remote: bool = False
    uses_runtime_row: bool = False
    uses_builtin: bool = False


@dataclass
class PipelineCompileResult:
    ok: bool
    plan: CompiledPipeline | None = None
    errors: list[CompileIssue] = field(default_factory=list)


_plan_cache: OrderedDict[bytes, CompiledPipeline] = OrderedDict()


def _edge_id(edge: Any) -> str:
    return edge.id or f"{edge.source}->{edge.target}"


def _format_config_error(kind: str, error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    if location:
        return f"{kind}: {location}: {error.get('msg')}"
    return f"{kind}: {error.get('msg')}"


class _PipelineCompiler:
    """Single-use compiler for one graph."""

    def __init__(self, graph: PipelineGraph, function_id: str, connector_ids: list[str] | None) -> None:
        self.graph = graph
        self.function_id = function_id
        self.connector_ids = set(connector_ids) if connector_ids is not None else None
        self.issues: list[CompileIssue] = []
        self.nodes: dict[str, CompiledNode] = {}
        self.kinds: dict[str, str] = {}
        self.incoming: dict[str, list[CompiledEdge]] = defaultdict(list)
        self.outgoing: dict[str, list[CompiledEdge]] = defaultdict(list)

    def issue(self, message: str, node_id: str | None = None, edge_id: str | None = None) -> None:
        self.issues.append(CompileIssue(message=message, node_id=node_id, edge_id=edge_id))

    def compile(self) -> PipelineCompileResult:
        self._collect_nodes()
        self._collect_edges()
        entry_id = self._resolve_terminal(START, self.graph.entry_node_id, "entryNodeId")
        return_id = self._resolve_terminal(OUTPUT, self.graph.return_node_id, "returnNodeId")
        self._check_connectors()
        self._check_incoming()
        order = self._topological_order()
        if entry_id and return_id:
            self._check_reachability(entry_id, return_id)

        if self.issues:
            return PipelineCompileResult(ok=False, errors=self.issues)

        kinds = {node.kind for node in self.nodes.values()}
        plan = CompiledPipeline(
            function_id=self.function_id,
            execution_order=order,
            nodes=self.nodes,
            incoming=dict(self.incoming),
            outgoing=dict(self.outgoing),
            entry_node_id=entry_id,
            return_node_id=return_id,
            requires_remote=bool(kinds & SERVER_ONLY_KINDS),
            uses_runtime_row=CURRENT_CONTEXT in kinds,
            uses_builtin=BUILTIN_REF in kinds,
        )
        return PipelineCompileResult(ok=True, plan=plan)

    def _collect_nodes(self) -> None:
        for node in self.graph.nodes:
            if node.id in self.kinds:
                self.issue(f'Duplicate node id "{node.id}"', node_id=node.id)
                continue
            self.kinds[node.id] = node.kind
            kind_def = NODE_KINDS.get(node.kind)
            if kind_def is None:
                self.issue(f'Unknown node kind "{node.kind}"', node_id=node.id)
                continue
            try:
                config = kind_def.config_model.model_validate(node.config or {})
            except PydanticValidationError as e:
                for error in e.errors():
                    self.issue(_format_config_error(node.kind, error), node_id=node.id)
                continue
            self.nodes[node.id] = CompiledNode(id=node.id, kind=node.kind, config=config)

    def _collect_edges(self) -> None:
        seen: set[str] = set()
        for edge in self.graph.edges:
            edge_id = _edge_id(edge)
            if edge_id in seen:
                self.issue(f'Duplicate edge id "{edge_id}"', edge_id=edge_id)
                continue
            seen.add(edge_id)
            if edge.source not in self.kinds or edge.target not in self.kinds:
                self.issue(f'Edge "{edge_id}" references a missing node', edge_id=edge_id)
                continue
            compiled = CompiledEdge(id=edge_id, source=edge.source, target=edge.target)
            self.outgoing[edge.source].append(compiled)
            self.incoming[edge.target].append(compiled)

    def _resolve_terminal(self, kind: str, declared_id: str, label: str) -> str:
        """Check the start/output node; an undeclared id defaults to the single node of that kind."""
        candidates = [node_id for node_id, node_kind in self.kinds.items() if node_kind == kind]
        if len(candidates) != 1:
            self.issue(f"Graph must contain exactly one {kind} node")

        node_id = declared_id or (candidates[0] if len(candidates) == 1 else "")
        if not node_id:
            return ""
        if node_id not in self.kinds:
            self.issue(f'{label} "{node_id}" does not exist')
            return ""
        if self.kinds[node_id] != kind:
            self.issue(f"{label} must reference a {kind} node", node_id=node_id)
            return ""
        return node_id

    def _check_connectors(self) -> None:
        if self.connector_ids is None:
            return
        for node in self.nodes.values():
            if node.kind == "source.http_get" and node.config.connector_id not in self.connector_ids:
                self.issue(
                    f'source.http_get references missing connector "{node.config.connector_id}"',
                    node_id=node.id,
                )

    def _check_incoming(self) -> None:
        for node_id, kind in self.kinds.items():
            kind_def = NODE_KINDS.get(kind)
            if kind_def is None:
                continue
            incoming = self.incoming.get(node_id, [])

            if kind_def.input_type is None:
                if incoming:
                    self.issue(f"{kind} should not have incoming edges", node_id=node_id)
                continue
            if not incoming:
                self.issue(f"{kind} requires an incoming connection", node_id=node_id)
                continue
            if len(incoming) > 1:
                self.issue(f"{kind} accepts only one incoming connection", node_id=node_id)

            for edge in incoming:
                source_kind = NODE_KINDS.get(self.kinds[edge.source])
                if source_kind is None:
                    continue
                if kind_def.input_type != "any" and source_kind.output_type != kind_def.input_type:
                    self.issue(
                        f"Type mismatch: {self.kinds[edge.source]} ({source_kind.output_type}) "
                        f"-> {kind} ({kind_def.input_type})",
                        node_id=node_id,
                        edge_id=edge.id,
                    )

    def _topological_order(self) -> list[str]:
        """Kahn's algorithm over every node; nodes left over sit on or behind a cycle."""
        in_degree = {node_id: len(self.incoming.get(node_id, [])) for node_id in self.kinds}
        queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)

        order: list[str] = []
        while queue:
            node_id = queue.popleft()
            order.append(node_id)
            for edge in self.outgoing.get(node_id, []):
                in_degree[edge.target] -= 1
                if in_degree[edge.target] == 0:
                    queue.append(edge.target)

        if len(order) != len(self.kinds):
            for node_id in self.kinds:
                if node_id not in order:
                    self.issue("Graph contains a cycle", node_id=node_id)
        return order

    def _reach(self, start: str, edges: dict[str, list[CompiledEdge]], forward: bool) -> set[str]:
        reached = {start}
        stack = [start]
        while stack:
            for edge in edges.get(stack.pop(), []):
                nxt = edge.target if forward else edge.source
                if nxt not in reached:
                    reached.add(nxt)
                    stack.append(nxt)
        return reached

    def _check_reachability(self, entry_id: str, return_id: str) -> None:
        from_entry = self._reach(entry_id, self.outgoing, forward=True)
        to_return = self._reach(return_id, self.incoming, forward=False)
        if return_id not in from_entry:
            self.issue("Return node is not reachable from entry node", node_id=return_id)
        for node_id in self.kinds:
            if node_id not in from_entry:
                self.issue("Node is not reachable from the entry node", node_id=node_id)
            elif node_id not in to_return:
                self.issue("Node does not lead to the return node", node_id=node_id)


def _signature(graph: Any, function_id: str, connector_ids: list[str] | None) -> bytes | None:
    payload = graph.model_dump(by_alias=True) if isinstance(graph, PipelineGraph) else graph
    connectors = sorted(connector_ids) if connector_ids is not None else None
    try:
        return orjson.dumps(
            [function_id, payload, connectors],
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
        )
    except TypeError:
        return None


def compile_pipeline(
    graph: PipelineGraph | dict[str, Any],
    connector_ids: list[str] | None = None,
    function_id: str = "",
) -> PipelineCompileResult:
    """
    Compile a pipeline graph.

    Successful plans are memoized by a signature of the function id, the
    graph and the known connector ids.

    Args:
        graph: Graph with ``nodes``, ``edges``, ``entryNodeId`` and ``returnNodeId``
        connector_ids: Known connector ids; None skips the connector check
        function_id: Id of the function the graph belongs to

    Returns:
        PipelineCompileResult with the plan when ``ok``, issues otherwise
    """
    signature = _signature(graph, function_id, connector_ids)
    if signature is not None:
        cached = _plan_cache.get(signature)
        if cached is not None:
            _plan_cache.move_to_end(signature)
            return PipelineCompileResult(ok=True, plan=cached)

    try:
        parsed = graph if isinstance(graph, PipelineGraph) else PipelineGraph.model_validate(graph)
    except PydanticValidationError as e:
        errors = [CompileIssue(message=_format_config_error("graph", error)) for error in e.errors()]
        return PipelineCompileResult(ok=False, errors=errors)

    result = _PipelineCompiler(parsed, function_id, connector_ids).compile()
    if result.ok and signature is not None:
        _plan_cache[signature] = result.plan
        while len(_plan_cache) > PLAN_CACHE_LIMIT:
            _plan_cache.popitem(last=False)
    elif not result.ok:
        logger.debug(f"Pipeline {function_id!r} failed to compile with {len(result.errors)} issue(s)")
    return result


def clear_pipeline_cache() -> None:
    _plan_cache.clear()
