"""Conversion between ExprNode trees and the visual expression graph.

The editor graph has four node types:

- ``field`` nodes (``data.fieldId``) and ``const`` nodes (``data.value``) are leaves
- ``op`` nodes (``data.op``) take exactly one edge into each of the ``a`` and ``b`` inputs
- a single ``result`` node takes exactly one edge into its ``in`` input

Compilation walks backwards from the result node and either produces a
complete tree or a list of issues; it never returns a partial expression.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from trackerbase.core.exceptions import ExprGraphError
from trackerbase.core.logging import get_logger
from trackerbase.expr.coerce import NAN, to_comparable_number
from trackerbase.expr.nodes import ExprNode, binary_operands, is_expr_node, normalize_op
from trackerbase.schemas.common import CompileIssue

logger = get_logger(__name__)

RESULT_HANDLE = "in"
INPUT_HANDLES = ("a", "b")
GRAPH_OPS = frozenset({"add", "mul", "sub", "div", "eq", "neq", "gt", "gte", "lt", "lte"})
COLUMN_WIDTH = 240
ROW_HEIGHT = 120


@dataclass
class ExprCompileResult:
    """Tagged compile result: ``expr`` when ok, ``errors`` otherwise."""

    ok: bool
    expr: ExprNode | None = None
    errors: list[CompileIssue] = field(default_factory=list)


def parse_const_value(data: dict[str, Any]) -> tuple[bool, Any]:
    """
    Read the value of a const node.

    Text typed into the editor is interpreted: ``true``/``false``/``null``
    and numbers become typed values, other text stays a string. Values
    marked ``literal`` are used as-is.

    Returns:
        Tuple of (has_value, value)
    """
    value = data.get("value")
    if data.get("literal"):
        return True, value
    if value is None:
        return False, None
    if not isinstance(value, str):
        return True, value
    text = value.strip()
    if not text:
        return False, None
    if text == "true":
        return True, True
    if text == "false":
        return True, False
    if text == "null":
        return True, None
    number = to_comparable_number(text)
    if number is not None:
        return True, number
    return True, value


def _node_key(value: Any) -> str | None:
    # Node ids are compared as strings on both nodes and edge endpoints
    return None if value is None else str(value)


class _GraphCompiler:
    """Single-use compiler for one graph."""

    def __init__(self, nodes: list[dict[str, Any]], edges: list[dict[str, Any]]) -> None:
        self.nodes = {_node_key(node.get("id")): node for node in nodes}
        self.incoming: dict[str, dict[str, list[dict[str, Any]]]] = defaultdict(lambda: defaultdict(list))
        self.issues: list[CompileIssue] = []
        self.visiting: set[str] = set()

        for edge in edges:
            source, target = _node_key(edge.get("source")), _node_key(edge.get("target"))
            edge = {**edge, "id": _node_key(edge.get("id")), "source": source, "target": target}
            if source not in self.nodes or target not in self.nodes:
                self.issues.append(
                    CompileIssue(message="Edge references a missing node.", edge_id=edge.get("id"))
                )
                continue
            handle = edge.get("targetHandle") or edge.get("target_handle") or ""
            self.incoming[target][handle].append(edge)

    def _single_source(self, node_id: str, handle: str, label: str) -> str | None:
        edges = self.incoming[node_id][handle]
        if not edges:
            self.issues.append(CompileIssue(message=f"{label} is not connected.", node_id=node_id))
            return None
        if len(edges) > 1:
            self.issues.append(
                CompileIssue(
                    message=f"{label} has more than one connection.",
                    node_id=node_id,
                    edge_id=edges[1].get("id"),
                )
            )
            return None
        return edges[0]["source"]

    def compile(self) -> ExprCompileResult:
        results = [node_id for node_id, node in self.nodes.items() if node.get("type") == "result"]
        if not results:
            return ExprCompileResult(ok=False, errors=[CompileIssue(message="Result node is missing.")])
        if len(results) > 1:
            return ExprCompileResult(
                ok=False,
                errors=[
                    CompileIssue(message="Graph must contain exactly one Result node.", node_id=node_id)
                    for node_id in results[1:]
                ],
            )

        result_id = results[0]
        edges = self.incoming[result_id][RESULT_HANDLE]
        if len(edges) != 1:
            self.issues.append(
                CompileIssue(message="Connect one node to the Result input.", node_id=result_id)
            )
            return ExprCompileResult(ok=False, errors=self.issues)

        expr = self._build(edges[0]["source"])
        if expr is None or self.issues:
            if not self.issues:
                self.issues.append(CompileIssue(message="Graph is missing required inputs or has a cycle."))
            return ExprCompileResult(ok=False, errors=self.issues)
        return ExprCompileResult(ok=True, expr=expr)

    def _build(self, node_id: str) -> ExprNode | None:
        if node_id in self.visiting:
            self.issues.append(CompileIssue(message="Expression graph contains a cycle.", node_id=node_id))
            return None

        node = self.nodes[node_id]
        node_type = node.get("type")
        data = node.get("data") or {}

        if node_type == "field":
            field_id = data.get("fieldId")
            if not field_id:
                self.issues.append(CompileIssue(message="Field node has no field selected.", node_id=node_id))
                return None
            return {"op": "field", "fieldId": field_id}

        if node_type == "const":
            has_value, value = parse_const_value(data)
            if not has_value:
                self.issues.append(CompileIssue(message="Constant node has no value.", node_id=node_id))
                return None
            return {"op": "const", "value": value}

        if node_type != "op":
            self.issues.append(
                CompileIssue(message=f"Node of type '{node_type}' cannot be used as an input.", node_id=node_id)
            )
            return None

        op = normalize_op(str(data.get("op") or ""))
        if op not in GRAPH_OPS:
            self.issues.append(CompileIssue(message="Operator node has no valid operator.", node_id=node_id))
            return None

        self.visiting.add(node_id)
        sources = [
            self._single_source(node_id, handle, f"Operator input '{handle}'") for handle in INPUT_HANDLES
        ]
        operands = [self._build(source) if source is not None else None for source in sources]
        self.visiting.discard(node_id)

        left, right = operands
        if left is None or right is None:
            return None
        if op in ("add", "mul"):
            return {"op": op, "args": [left, right]}
        return {"op": op, "left": left, "right": right}


def compile_expr_from_graph(nodes: list[dict[str, Any]], edges: list[dict[str, Any]]) -> ExprCompileResult:
    """
    Compile an editor graph into an expression tree.

    Args:
        nodes: Graph nodes (``id``, ``type``, ``data``)
        edges: Graph edges (``source``, ``target``, ``targetHandle``)

    Returns:
        ExprCompileResult with the expression or the issues found
    """
    result = _GraphCompiler(nodes, edges).compile()
    if not result.ok:
        logger.debug(f"Expression graph rejected with {len(result.errors)} issue(s)")
    return result


def _right_fold(op: str, args: list[ExprNode]) -> ExprNode:
    """Turn an n-ary add/mul into nested binary pairs: a+b+c -> a+(b+c)."""
    if len(args) <= 2:
        return {"op": op, "args": args}
    return {"op": op, "args": [args[0], _right_fold(op, args[1:])]}


def expr_to_graph(expr: ExprNode) -> dict[str, list[dict[str, Any]]]:
    """
    Lay out an expression tree as an editor graph.

    N-ary ``add``/``mul`` nodes are right-folded into binary operator nodes.

    Raises:
        ExprGraphError: If the tree uses an operator the editor cannot show
    """
    nodes: list[dict[str, Any]] = []
    edges: list[dict[str, Any]] = []
    depth_by_id: dict[str, int] = {}
    counter = {"id": 0, "row": 0}

    def next_id() -> str:
        counter["id"] += 1
        return f"expr_node_{counter['id']}"

    def add_node(node_type: str, data: dict[str, Any], depth: int) -> str:
        node_id = next_id()
        depth_by_id[node_id] = depth
        nodes.append(
            {
                "id": node_id,
                "type": node_type,
                "data": data,
                "position": {"x": 0, "y": counter["row"] * ROW_HEIGHT},
            }
        )
        counter["row"] += 1
        return node_id

    def connect(source: str, target: str, handle: str) -> None:
        edges.append({"id": f"{source}-{target}-{handle}", "source": source, "target": target, "targetHandle": handle})

    def build(node: ExprNode, depth: int) -> str:
        if not is_expr_node(node):
            raise ExprGraphError(str(node))
        op = normalize_op(node["op"])

        if op == "field":
            return add_node("field", {"fieldId": node.get("fieldId")}, depth)
        if op == "const":
            return add_node("const", {"value": node.get("value"), "literal": True}, depth)
        if op not in GRAPH_OPS:
            raise ExprGraphError(op)

        if op in ("add", "mul"):
            args = [arg for arg in node.get("args") or [] if is_expr_node(arg)]
            if not args:
                return add_node("const", {"value": NAN, "literal": True}, depth)
            if len(args) == 1:
                args.append({"op": "const", "value": 0 if op == "add" else 1})
            folded = _right_fold(op, args)
            left, right = folded["args"]
        else:
            pair = binary_operands(node)
            if pair is None:
                raise ExprGraphError(op)
            left, right = pair

        node_id = add_node("op", {"op": op}, depth)
        connect(build(left, depth + 1), node_id, INPUT_HANDLES[0])
        connect(build(right, depth + 1), node_id, INPUT_HANDLES[1])
        return node_id

    root_id = build(expr, 1)
    max_depth = max(depth_by_id.values())
    result_id = next_id()
    root_y = next(node["position"]["y"] for node in nodes if node["id"] == root_id)
    nodes.append(
        {
            "id": result_id,
            "type": "result",
            "data": {},
            "position": {"x": max_depth * COLUMN_WIDTH, "y": root_y},
        }
    )
    connect(root_id, result_id, RESULT_HANDLE)

    # Leaves on the left, result on the right
    for node in nodes:
        if node["id"] != result_id:
            node["position"]["x"] = (max_depth - depth_by_id[node["id"]]) * COLUMN_WIDTH

    return {"nodes": nodes, "edges": edges}
