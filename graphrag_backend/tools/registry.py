"""
Tool registration.

Every graph tool is declared once here with its public id, a description an
agent can read, the pydantic model validating its input and the toolkit
method that runs it.  The HTTP layer and any other dispatcher go through
:func:`invoke_tool`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import ValidationError

from .graph_rag import GraphRagToolkit, get_toolkit
from .langfuse_tracing import traced_tool
from .schemas import (
    CreateGraphInput,
    EditGraphInput,
    ExportImportGraphInput,
    InspectGraphInput,
    LoadGraphFileInput,
    PruneGraphInput,
    QueryGraphInput,
    SaveGraphFileInput,
    ToolInput,
    TraceGraphQueryInput,
    VisualizeGraphInput,
)


class UnknownToolError(KeyError):
    pass


class ToolInputError(ValueError):
    """The payload did not validate against the tool's input model."""

    def __init__(self, tool_id: str, errors: List[Dict[str, Any]]) -> None:
        super().__init__(f"Invalid input for tool '{tool_id}'")
        self.tool_id = tool_id
        self.errors = errors


@dataclass(frozen=True)
class ToolSpec:
    id: str
    description: str
    input_model: Type[ToolInput]
    method: str

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(by_alias=True),
        }


TOOLS: List[ToolSpec] = [
    ToolSpec(
        "create-graph",
        "Creates graph relationships between documents for improved retrieval",
        CreateGraphInput,
        "create_graph",
    ),
    ToolSpec(
        "query-graph",
        "Retrieves documents using graph-based relationships for improved context",
        QueryGraphInput,
        "query_graph",
    ),
    ToolSpec(
        "visualize-graph",
        "Exports the current graph structure for visualization (nodes, edges, weights)",
        VisualizeGraphInput,
        "visualize_graph",
    ),
    ToolSpec(
        "inspect-graph",
        "Inspects metadata, content, and connections for specific node(s)",
        InspectGraphInput,
        "inspect_graph",
    ),
    ToolSpec(
        "edit-graph",
        "Adds/removes nodes/edges or updates weights in the graph",
        EditGraphInput,
        "edit_graph",
    ),
    ToolSpec(
        "prune-graph",
        "Prunes or optimizes the graph (removes orphans, merges duplicates, drops weak edges)",
        PruneGraphInput,
        "prune_graph",
    ),
    ToolSpec(
        "export-import-graph",
        "Exports or imports the graph as JSON, CSV or GraphML",
        ExportImportGraphInput,
        "export_import_graph",
    ),
    ToolSpec(
        "trace-graph-query",
        "Exposes detailed traces of retrieval, hops, and scoring for a query",
        TraceGraphQueryInput,
        "trace_graph_query",
    ),
    ToolSpec(
        "load-graph-file",
        "Loads a graph from a CSV, DOT, GEXF, GraphML or JSON file",
        LoadGraphFileInput,
        "load_graph_file",
    ),
    ToolSpec(
        "save-graph-file",
        "Saves the graph to a CSV, DOT, GEXF, GraphML or JSON file",
        SaveGraphFileInput,
        "save_graph_file",
    ),
]

_TOOLS_BY_ID: Dict[str, ToolSpec] = {t.id: t for t in TOOLS}


def list_tools() -> List[Dict[str, Any]]:
    return [t.describe() for t in TOOLS]


def get_tool(tool_id: str) -> ToolSpec:
    try:
        return _TOOLS_BY_ID[tool_id]
    except KeyError:
        raise UnknownToolError(tool_id)


def invoke_tool(
    tool_id: str,
    payload: Optional[Mapping[str, Any]] = None,
    *,
    toolkit: Optional[GraphRagToolkit] = None,
) -> Dict[str, Any]:
    """Validate ``payload`` and run the tool.

    Raises:
        UnknownToolError: No tool with this id.
        ToolInputError: The payload failed validation.
    """
    spec = get_tool(tool_id)
    try:
        parsed = spec.input_model.model_validate(dict(payload or {}))
    except ValidationError as e:
        raise ToolInputError(tool_id, e.errors(include_url=False))

    handler = getattr(toolkit or get_toolkit(), spec.method)
    return traced_tool(spec.id)(handler)(**parsed.model_dump())


__all__ = [
    "TOOLS",
    "ToolInputError",
    "ToolSpec",
    "UnknownToolError",
    "get_tool",
    "invoke_tool",
    "list_tools",
]
