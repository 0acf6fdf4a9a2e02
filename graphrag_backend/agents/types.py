from __future__ import annotations

from typing import Any, Dict, List, TypedDict


class AgentState(TypedDict, total=False):
    """Schema for the graph’s state."""

    input: str
    namespace: str
    output: str
    # Passages retrieved by the graph_rag_agent
    documents: List[Dict[str, Any]]
    # Optional structured UI payload ("a2ui"-style schema)
    a2ui: Dict[str, Any]
