"""Build and expose the LangGraph workflow over the graph tools.

A supervisor node routes each message to one worker:
- ``graph_rag_agent`` answers questions from passages retrieved through the
  document graph (LLM-phrased when a model is configured)
- ``graph_stats_agent`` reports the size of the namespace graph

Public API:
- ``AgentState``
- ``get_agent_graph``
- ``_compiled_agent_graph``
"""

from .types import AgentState
from .graph import get_agent_graph, _compiled_agent_graph

__all__ = [
    "AgentState",
    "get_agent_graph",
    "_compiled_agent_graph",
]
