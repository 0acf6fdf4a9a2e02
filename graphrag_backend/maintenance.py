"""
Lifecycle maintenance passes over a namespace graph.

Each pass holds the namespace lock for its whole run and returns how many
nodes or edges it removed.
"""

from __future__ import annotations

import logging
from typing import Dict

from .errors import InvalidInputError, NotFoundError
from .graph_store import DEFAULT_NAMESPACE, Edge, Graph, GraphStore, Node

logger = logging.getLogger("graphrag_backend.maintenance")


def _require_graph(store: GraphStore, namespace: str) -> Graph:
    graph = store.get(namespace)
    if graph is None:
        raise NotFoundError(f"No graph in namespace '{namespace}'")
    return graph


def prune_orphans(store: GraphStore, namespace: str = DEFAULT_NAMESPACE) -> int:
    """Remove every node whose ``connections`` list is empty.

    Orphans are selected once, before anything is removed.  Edges pointing
    at an orphan go with it.
    """
    with store.lock(namespace):
        graph = _require_graph(store, namespace)
        orphans = [nid for nid, node in graph.nodes.items() if not node.connections]
        for nid in orphans:
            store.remove_node(nid, namespace)
    logger.info(f"Pruned {len(orphans)} orphan node(s) from '{namespace}'")
    return len(orphans)


def merge_duplicates(store: GraphStore, namespace: str = DEFAULT_NAMESPACE) -> int:
    """Fold nodes with identical content into the first one seen.

    The surviving node keeps its own content, metadata and weights and gains
    the connections of its duplicates.  Edges that touched a duplicate are
    re-pointed at the survivor.
    """
    merged = 0
    with store.lock(namespace):
        graph = _require_graph(store, namespace)
        first_by_content: Dict[str, Node] = {}
        for node_id in list(graph.nodes):
            node = graph.nodes[node_id]
            keeper = first_by_content.get(node.content)
            if keeper is None:
                first_by_content[node.content] = node
                continue
            _fold(graph, keeper, node)
            merged += 1
    logger.info(f"Merged {merged} duplicate node(s) in '{namespace}'")
    return merged


def _fold(graph: Graph, keeper: Node, duplicate: Node) -> None:
    for neighbour in duplicate.connections:
        if neighbour == keeper.id or neighbour in keeper.connection_weights:
            continue
        edge = Edge(keeper.id, neighbour, duplicate.connection_weights[neighbour])
        keeper.link(neighbour, edge.weight)
        graph.edges[edge.key] = edge

    for other in graph.nodes.values():
        if other.id in (keeper.id, duplicate.id) or duplicate.id not in other.connection_weights:
            continue
        if keeper.id not in other.connection_weights:
            edge = Edge(other.id, keeper.id, other.connection_weights[duplicate.id])
            other.link(keeper.id, edge.weight)
            graph.edges[edge.key] = edge

    # Drop the duplicate with its incident edges and every reference to it.
    del graph.nodes[duplicate.id]
    for eid in [
        eid for eid, e in graph.edges.items() if duplicate.id in (e.from_id, e.to_id)
    ]:
        del graph.edges[eid]
    for other in graph.nodes.values():
        if duplicate.id in other.connection_weights:
            other.unlink(duplicate.id)


def remove_low_score_edges(
    store: GraphStore,
    threshold: float = 0.2,
    namespace: str = DEFAULT_NAMESPACE,
) -> int:
    """Delete every edge with ``weight < threshold`` and scrub it from adjacency."""
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise InvalidInputError(f"Threshold must be a number, got {threshold!r}")
    with store.lock(namespace):
        graph = _require_graph(store, namespace)
        weak = [e for e in graph.edges.values() if e.weight < threshold]
        for edge in weak:
            store.remove_edge(edge.from_id, edge.to_id, namespace)
    logger.info(f"Removed {len(weak)} edge(s) below {threshold} from '{namespace}'")
    return len(weak)


__all__ = ["merge_duplicates", "prune_orphans", "remove_low_score_edges"]
