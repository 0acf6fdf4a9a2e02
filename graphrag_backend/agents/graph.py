from __future__ import annotations

from langgraph.graph import END, START, StateGraph

from .graph_rag_agent import graph_rag_agent
from .graph_stats_agent import graph_stats_agent
from .routing import route, supervisor
from .types import AgentState


def get_agent_graph() -> "StateGraph[AgentState]":
    """Construct and return a compiled StateGraph for the agent workflow."""
    graph_builder: StateGraph[AgentState] = StateGraph(AgentState)

    graph_builder.add_node("supervisor", supervisor)
    graph_builder.add_node("graph_rag_agent", graph_rag_agent)
    graph_builder.add_node("graph_stats_agent", graph_stats_agent)

    graph_builder.add_edge(START, "supervisor")
    graph_builder.add_conditional_edges(
        "supervisor",
        route,
        {
            "graph_rag_agent": "graph_rag_agent",
            "graph_stats_agent": "graph_stats_agent",
        },
    )

    graph_builder.add_edge("graph_rag_agent", END)
    graph_builder.add_edge("graph_stats_agent", END)

    return graph_builder.compile()


_compiled_agent_graph = get_agent_graph()
