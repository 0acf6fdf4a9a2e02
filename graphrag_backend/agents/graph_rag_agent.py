from __future__ import annotations

import logging

from ..tools.graph_rag import query_graph
from ..tools.langfuse_tracing import end_span, start_span
from ..tools.llm import agent_llm, ask_agent

from .types import AgentState
from .ui import a2ui_passages, fmt_score

logger = logging.getLogger("graphrag_backend.agents.graph_rag")


def graph_rag_agent(state: AgentState) -> AgentState:
    """Answer a question from passages retrieved through the document graph."""
    _span = start_span(name="agent:graph_rag_agent", input={"state": state}, metadata={"kind": "agent"})
    query = state.get("input", "")
    result = query_graph(query, namespace=state.get("namespace") or None)
    documents = result["documents"]

    if not documents:
        msg = "No indexed passages matched the question."
        out = {"output": msg, "documents": [], "a2ui": a2ui_passages("Graph RAG", msg, [])}
        end_span(_span, output=out)
        return out

    lines = []
    for idx, doc in enumerate(documents, start=1):
        node_id = (doc.get("metadata") or {}).get("id", "")
        lines.append(
            f"{idx}. [{node_id}] (score {fmt_score(doc['score'])}, hops {doc['hopDistance']}) "
            f"{doc['content']}"
        )
    passages = "\n".join(lines)

    if agent_llm("graph_rag_agent") is not None:
        prompt = (
            "Use the following passages, ranked by relevance, to answer the question. "
            "Cite passages by their bracketed id.\n\n"
            f"{passages}\n\n"
            f"Question: {query}\n\nAnswer in a concise and direct manner."
        )
        try:
            answer = ask_agent("graph_rag_agent", prompt)
            out = {"output": answer, "documents": documents, "a2ui": a2ui_passages("Graph RAG", answer, documents)}
            end_span(_span, output=out)
            return out
        except Exception:
            logger.warning("LLM answer failed; returning the ranked passages")

    # Without a model, return the ranked passages themselves
    out = {"output": passages, "documents": documents, "a2ui": a2ui_passages("Graph RAG", passages, documents)}
    end_span(_span, output=out)
    return out
