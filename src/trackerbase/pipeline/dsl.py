"""Convert ``dsl_v1`` function definitions into pipeline graphs.

A DSL definition is a source, a list of transforms and an output mapping.
It becomes a linear graph ``start -> source -> transforms... -> output`` so
both authoring styles run through the same compiler and executor.
"""

from typing import Any

from trackerbase.schemas.pipeline import DslFunctionDefinition, PipelineEdge, PipelineGraph, PipelineNode

START_NODE_ID = "start"
SOURCE_NODE_ID = "source"
OUTPUT_NODE_ID = "output"

_SOURCE_KINDS = {
    "builtin_ref": "source.builtin_ref",
    "grid_rows": "source.grid_rows",
    "layout_fields": "source.layout_fields",
    "http_get": "source.http_get",
}


def _config(model: Any) -> dict[str, Any]:
    return model.model_dump(by_alias=True, exclude={"kind"})


def dsl_to_graph(definition: DslFunctionDefinition) -> PipelineGraph:
    """
    Build the linear graph of a DSL definition.

    An ``http_get`` source returns an object; a ``flatten_path`` step with an
    empty path turns its JSON array into rows.
    """
    nodes = [PipelineNode(id=START_NODE_ID, kind="control.start")]
    nodes.append(
        PipelineNode(
            id=SOURCE_NODE_ID,
            kind=_SOURCE_KINDS[definition.source.kind],
            config=_config(definition.source),
        )
    )
    if definition.source.kind == "http_get":
        nodes.append(PipelineNode(id="source_rows", kind="transform.flatten_path", config={"path": ""}))

    for index, transform in enumerate(definition.transforms, start=1):
        nodes.append(PipelineNode(id=f"t{index}", kind=f"transform.{transform.kind}", config=_config(transform)))

    nodes.append(
        PipelineNode(
            id=OUTPUT_NODE_ID,
            kind="output.options",
            config={"mapping": definition.output.model_dump(by_alias=True)},
        )
    )

    edges = [
        PipelineEdge(id=f"{source.id}->{target.id}", source=source.id, target=target.id)
        for source, target in zip(nodes, nodes[1:])
    ]
    return PipelineGraph(
        nodes=nodes,
        edges=edges,
        entry_node_id=START_NODE_ID,
        return_node_id=OUTPUT_NODE_ID,
    )
