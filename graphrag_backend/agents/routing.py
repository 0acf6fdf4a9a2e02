from __future__ import annotations

import logging
from typing import Literal

from ..tools.langfuse_tracing import end_span, start_span
from ..tools.llm import agent_llm, ask_agent

from .types import AgentState

logger = logging.getLogger("graphrag_backend.agents.routing")

Route = Literal["graph_rag_agent", "graph_stats_agent"]
_ROUTES = ("graph_rag_agent", "graph_stats_agent")


def supervisor(state: AgentState) -> AgentState:
    """Supervisor node: pass-through state."""
    return {}


def route(state: AgentState) -> Route:
    """Determine which worker agent should handle the current request."""
    user_text = state.get("input", "")

    route_span = start_span(
        name="agent:route",
        input={"input": user_text},
        metadata={"kind": "routing"},
    )

    if agent_llm("supervisor") is not None:
        router_prompt = (
            "Choose the single best specialist agent for the user's request. "
            "Return ONLY one of these exact tokens: graph_rag_agent, graph_stats_agent.\n\n"
            "Routing guidance:\n"
            "- graph_stats_agent: questions about the size or shape of the indexed graph itself "
            "(how many nodes, edges, orphans)\n"
            "- graph_rag_agent: everything else, i.e. questions answered from the indexed documents\n\n"
            f"User message: {user_text}"
        )
        try:
            decision = ask_agent("supervisor", router_prompt)
            token = (decision or "").strip().split()[0].strip().lower()
            if token in _ROUTES:
                end_span(route_span, output={"decision": token, "mode": "llm"})
                return token  # type: ignore[return-value]
        except Exception:
            logger.warning("LLM routing failed; falling back to keyword routing")

    text = user_text.lower()
    stats_keywords = ["how many nodes", "how many edges", "node count", "edge count", "orphan", "graph stats", "statistics"]

    if any(k in text for k in stats_keywords):
        end_span(route_span, output={"decision": "graph_stats_agent", "mode": "keyword"})
        return "graph_stats_agent"

    end_span(route_span, output={"decision": "graph_rag_agent", "mode": "default"})
    return "graph_rag_agent"
