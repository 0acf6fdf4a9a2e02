from __future__ import annotations

from ..tools.graph_rag import graph_stats
from ..tools.langfuse_tracing import end_span, start_span

from .types import AgentState
from .ui import a2ui_text


def graph_stats_agent(state: AgentState) -> AgentState:
    """Report the size of the namespace graph."""
    _span = start_span(name="agent:graph_stats_agent", input={"state": state}, metadata={"kind": "agent"})
    stats = graph_stats(state.get("namespace") or None)
    if stats["nodeCount"] == 0:
        msg = f"Namespace '{stats['namespace']}' has no indexed documents yet."
    else:
        msg = (
            f"Namespace '{stats['namespace']}' holds {stats['nodeCount']} nodes and "
            f"{stats['edgeCount']} directed edges; {stats['orphanCount']} node(s) have no connections."
        )
    out = {"output": msg, "a2ui": a2ui_text("Graph statistics", msg)}
    end_span(_span, output=out)
    return out
