# This package aggregates the graph tool functions used by the agent layer and
# the HTTP dispatcher.
#
# Each function takes plain arguments and returns a JSON-friendly dict, so it
# can be passed to LangGraph or another orchestration framework as a "tool".
# The functions share one GraphRagToolkit (graph store, vector store and
# embeddings) for the lifetime of the process; build a GraphRagToolkit
# directly to get an isolated set of collaborators.

from .graph_rag import (
    GraphRagToolkit,
    create_graph,
    edit_graph,
    export_import_graph,
    get_toolkit,
    graph_stats,
    inspect_graph,
    load_graph_file,
    prune_graph,
    query_graph,
    save_graph_file,
    set_toolkit,
    trace_graph_query,
    visualize_graph,
)
from .registry import TOOLS, invoke_tool, list_tools

__all__ = [
    "GraphRagToolkit",
    "TOOLS",
    "create_graph",
    "edit_graph",
    "export_import_graph",
    "get_toolkit",
    "graph_stats",
    "inspect_graph",
    "invoke_tool",
    "list_tools",
    "load_graph_file",
    "prune_graph",
    "query_graph",
    "save_graph_file",
    "set_toolkit",
    "trace_graph_query",
    "visualize_graph",
]
