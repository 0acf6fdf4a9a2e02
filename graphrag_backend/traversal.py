"""
Graph-augmented retrieval.

A query first goes to the vector store for its nearest neighbours.  Those
hits seed a breadth-first walk over the namespace graph: each hop multiplies
the parent's score by the edge weight, so relevance decays with distance.
Walks stop expanding at ``max_hops``.

By default a node keeps the score and hop distance of the path that reached
it first (BFS order).  With ``best_score_wins`` a later path with a higher
score replaces the earlier one and the node is expanded again.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

from .graph_store import DEFAULT_NAMESPACE, Graph, GraphStore
from .vector_store import SearchHit, VectorStore

logger = logging.getLogger("graphrag_backend.traversal")

# Adjacency keys that never leave the engine in query results.
_INTERNAL_KEYS = ("connections", "connectionWeights", "connection_weights")


@dataclass
class RetrievedNode:
    id: str
    content: str
    metadata: Dict[str, Any]
    score: float
    hop_distance: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "metadata": dict(self.metadata),
            "score": self.score,
            "hopDistance": self.hop_distance,
        }


@dataclass
class TraversalStep:
    """One node visit, in the order the walk made it."""

    node_id: str
    parent_id: Optional[str]
    hop_distance: int
    score: float
    edge_weight: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "parentId": self.parent_id,
            "hopDistance": self.hop_distance,
            "score": self.score,
            "edgeWeight": self.edge_weight,
        }


@dataclass
class QueryTrace:
    documents: List[RetrievedNode] = field(default_factory=list)
    steps: List[TraversalStep] = field(default_factory=list)
    seed_count: int = 0


def _public_metadata(metadata: Dict[str, Any], node_id: str) -> Dict[str, Any]:
    out = {k: v for k, v in metadata.items() if k not in _INTERNAL_KEYS}
    out.setdefault("id", node_id)
    return out


def traverse(
    graph: Graph,
    seeds: Sequence[SearchHit],
    *,
    max_hops: int = 2,
    default_edge_weight: float = 0.5,
    best_score_wins: bool = False,
) -> QueryTrace:
    """Expand ``seeds`` over ``graph`` and rank everything reached.

    Seeds without an id, or whose node is no longer in ``graph``, are ignored;
    a repeated seed id keeps its first hit.
    Neighbours missing from ``graph.nodes`` are skipped.  Results are sorted by
    descending score; ties keep visit order.
    """
    visited: Dict[str, RetrievedNode] = {}
    steps: List[TraversalStep] = []
    queue: Deque[Tuple[str, int]] = deque()

    for hit in seeds:
        if not hit.id or hit.id in visited or hit.id not in graph.nodes:
            continue
        score = hit.score if hit.score is not None else 1.0
        visited[hit.id] = RetrievedNode(
            id=hit.id,
            content=hit.content,
            metadata=_public_metadata(hit.metadata or {}, hit.id),
            score=score,
            hop_distance=0,
        )
        steps.append(TraversalStep(hit.id, None, 0, score, None))
        queue.append((hit.id, 0))
    seed_count = len(visited)

    while queue:
        node_id, hop = queue.popleft()
        if hop >= max_hops:
            continue
        node = graph.nodes.get(node_id)
        if node is None:
            continue
        current = visited[node_id]
        # A node re-queued under best_score_wins may have been improved since.
        if current.hop_distance != hop:
            continue

        for neighbour_id in node.connections:
            neighbour = graph.nodes.get(neighbour_id)
            if neighbour is None:
                continue
            weight = node.connection_weights.get(neighbour_id)
            if weight is None:
                weight = default_edge_weight
            score = current.score * weight

            known = visited.get(neighbour_id)
            if known is not None:
                if not best_score_wins or score <= known.score:
                    continue
                known.score = score
                known.hop_distance = hop + 1
            else:
                visited[neighbour_id] = RetrievedNode(
                    id=neighbour_id,
                    content=neighbour.content,
                    metadata=_public_metadata(neighbour.metadata, neighbour_id),
                    score=score,
                    hop_distance=hop + 1,
                )
            steps.append(TraversalStep(neighbour_id, node_id, hop + 1, score, weight))
            queue.append((neighbour_id, hop + 1))

    ranked = sorted(visited.values(), key=lambda r: r.score, reverse=True)
    return QueryTrace(documents=ranked, steps=steps, seed_count=seed_count)


class GraphRetriever:
    """Vector search followed by bounded graph expansion."""

    def __init__(
        self,
        store: GraphStore,
        vector_store: VectorStore,
        *,
        default_edge_weight: float = 0.5,
        best_score_wins: bool = False,
    ) -> None:
        self.store = store
        self.vector_store = vector_store
        self.default_edge_weight = default_edge_weight
        self.best_score_wins = best_score_wins

    def explain(
        self,
        text: str,
        *,
        top_k: int = 3,
        min_score: float = 0.6,
        namespace: str = DEFAULT_NAMESPACE,
        max_hops: int = 2,
    ) -> QueryTrace:
        """Run a query and return the results together with every visit made.

        Returns an empty trace when the namespace has no graph yet.  Errors
        from the vector store propagate.
        """
        if self.store.get(namespace) is None:
            logger.info(f"No graph for namespace '{namespace}'; nothing indexed yet")
            return QueryTrace()

        seeds = self.vector_store.search(
            text, top_k=top_k, min_score=min_score, namespace=namespace
        )

        with self.store.lock(namespace):
            graph = self.store.get(namespace)
            if graph is None:
                return QueryTrace()
            trace = traverse(
                graph,
                seeds,
                max_hops=max_hops,
                default_edge_weight=self.default_edge_weight,
                best_score_wins=self.best_score_wins,
            )
        logger.info(
            f"Query in '{namespace}': {trace.seed_count} seed(s), "
            f"{len(trace.documents)} result(s)"
        )
        return trace

    def query(
        self,
        text: str,
        *,
        top_k: int = 3,
        min_score: float = 0.6,
        namespace: str = DEFAULT_NAMESPACE,
        max_hops: int = 2,
    ) -> List[RetrievedNode]:
        """Ranked results for ``text``; any retrieval failure yields ``[]``."""
        try:
            return self.explain(
                text,
                top_k=top_k,
                min_score=min_score,
                namespace=namespace,
                max_hops=max_hops,
            ).documents
        except Exception:
            logger.exception(f"Graph query failed in namespace '{namespace}'")
            return []


__all__ = [
    "GraphRetriever",
    "QueryTrace",
    "RetrievedNode",
    "TraversalStep",
    "traverse",
]
