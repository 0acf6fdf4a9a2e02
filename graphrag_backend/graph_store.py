"""
In-memory graph store partitioned by namespace.

Each namespace holds a :class:`Graph` made of :class:`Node` records (content,
metadata and an adjacency list with per-neighbour weights) and :class:`Edge`
records keyed by ``"<from>-><to>"``.  The :class:`GraphStore` owns every
mutation and keeps the two views consistent:

- every id in a node's ``connections`` has an entry in its
  ``connection_weights`` and vice versa, and a node never lists itself;
- every edge endpoint references an existing node;
- removing a node removes its incident edges and scrubs it from the
  adjacency of every other node.

Graphs live for the lifetime of the process.  A namespace's graph is created
lazily on the first write and can be replaced wholesale by an import.  Each
namespace has its own re-entrant lock; callers that perform several steps on
one namespace (traversal, maintenance passes) hold it via :meth:`GraphStore.lock`.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .errors import (
    DuplicateEdgeError,
    DuplicateNodeError,
    InvalidEdgeError,
    InvalidNodeError,
    NotFoundError,
)

logger = logging.getLogger("graphrag_backend.graph_store")

DEFAULT_NAMESPACE = "default"


def edge_key(from_id: str, to_id: str) -> str:
    return f"{from_id}->{to_id}"


def _check_weight(weight: Any, error_cls: type = InvalidEdgeError) -> float:
    if isinstance(weight, bool) or not isinstance(weight, (int, float)):
        raise error_cls(f"Weight must be a number, got {weight!r}")
    value = float(weight)
    if not 0.0 <= value <= 1.0:
        raise error_cls(f"Weight must be within [0, 1], got {value}")
    return value


@dataclass
class Node:
    """A document (or chunk) and its outgoing connections."""

    id: str
    content: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    connections: List[str] = field(default_factory=list)
    connection_weights: Dict[str, float] = field(default_factory=dict)

    def link(self, neighbour_id: str, weight: float) -> None:
        if neighbour_id not in self.connection_weights:
            self.connections.append(neighbour_id)
        self.connection_weights[neighbour_id] = weight

    def unlink(self, neighbour_id: str) -> None:
        if neighbour_id in self.connection_weights:
            del self.connection_weights[neighbour_id]
        self.connections = [c for c in self.connections if c != neighbour_id]

    def copy(self) -> "Node":
        return Node(
            id=self.id,
            content=self.content,
            metadata=dict(self.metadata),
            connections=list(self.connections),
            connection_weights=dict(self.connection_weights),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "connections": list(self.connections),
            "connectionWeights": dict(self.connection_weights),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Node":
        """Build a node from its wire form, validating the adjacency invariant.

        Raises:
            InvalidNodeError: If the id is missing/blank or the adjacency is
                inconsistent.
        """
        if not isinstance(data, Mapping):
            raise InvalidNodeError("Node must be an object")
        node_id = data.get("id")
        if not isinstance(node_id, str) or not node_id.strip():
            raise InvalidNodeError("Missing or invalid node id")

        content = data.get("content") or ""
        if not isinstance(content, str):
            raise InvalidNodeError(f"Node {node_id} content must be a string")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise InvalidNodeError(f"Node {node_id} metadata must be an object")

        connections_raw = data.get("connections")
        if connections_raw is None:
            connections_raw = []
        if not isinstance(connections_raw, (list, tuple)):
            raise InvalidNodeError(f"Node {node_id} connections must be a list of node ids")
        connections = list(connections_raw)
        weights_raw = data.get("connectionWeights")
        if weights_raw is None:
            weights_raw = data.get("connection_weights") or {}
        if not isinstance(weights_raw, Mapping):
            raise InvalidNodeError(f"Node {node_id} connectionWeights must be an object")

        weights: Dict[str, float] = {}
        for neighbour, weight in weights_raw.items():
            weights[str(neighbour)] = _check_weight(weight, InvalidNodeError)

        if any(not isinstance(c, str) or not c for c in connections):
            raise InvalidNodeError(f"Node {node_id} has an invalid connection id")
        if len(set(connections)) != len(connections):
            raise InvalidNodeError(f"Node {node_id} lists a connection twice")
        if set(connections) != set(weights):
            raise InvalidNodeError(
                f"Node {node_id} connections and connectionWeights do not match"
            )
        if node_id in weights:
            raise InvalidNodeError(f"Node {node_id} cannot connect to itself")

        return cls(
            id=node_id,
            content=content,
            metadata=dict(metadata),
            connections=connections,
            connection_weights=weights,
        )


@dataclass
class Edge:
    """A directed, weighted edge between two nodes."""

    from_id: str
    to_id: str
    weight: float = 1.0

    @property
    def key(self) -> str:
        return edge_key(self.from_id, self.to_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_id, "to": self.to_id, "weight": self.weight}


@dataclass
class Graph:
    """Nodes and edges of a single namespace."""

    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: Dict[str, Edge] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": {nid: n.to_dict() for nid, n in self.nodes.items()},
            "edges": {eid: e.to_dict() for eid, e in self.edges.items()},
        }


class GraphStore:
    """Process-wide registry of namespace graphs.

    Pass an instance to whatever needs the graphs instead of reaching for a
    module global; tests create a fresh store each time.
    """

    def __init__(self) -> None:
        self._graphs: Dict[str, Graph] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    # -- namespaces -------------------------------------------------------

    def _lock_for(self, namespace: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(namespace)
            if lock is None:
                lock = threading.RLock()
                self._locks[namespace] = lock
            return lock

    @contextmanager
    def lock(self, namespace: str = DEFAULT_NAMESPACE) -> Iterator[None]:
        """Hold the namespace lock for a multi-step operation."""
        lock = self._lock_for(namespace)
        with lock:
            yield

    def namespaces(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._graphs)

    def get(self, namespace: str = DEFAULT_NAMESPACE) -> Optional[Graph]:
        """Return the namespace graph, or ``None`` if nothing was written yet."""
        return self._graphs.get(namespace)

    def ensure(self, namespace: str = DEFAULT_NAMESPACE) -> Graph:
        with self._registry_lock:
            graph = self._graphs.get(namespace)
            if graph is None:
                graph = Graph()
                self._graphs[namespace] = graph
                logger.info(f"Created graph for namespace '{namespace}'")
            return graph

    def replace(self, graph: Graph, namespace: str = DEFAULT_NAMESPACE) -> None:
        """Swap the namespace graph for ``graph`` (import semantics)."""
        with self.lock(namespace):
            with self._registry_lock:
                self._graphs[namespace] = graph
        logger.info(
            f"Replaced graph for namespace '{namespace}' "
            f"({len(graph.nodes)} nodes, {len(graph.edges)} edges)"
        )

    # -- nodes ------------------------------------------------------------

    def add_node(self, node: Node, namespace: str = DEFAULT_NAMESPACE) -> Node:
        """Insert a node.

        Outgoing connections listed on the node are materialised as edge
        records, so they must point at nodes that already exist.

        Raises:
            InvalidNodeError: Missing/blank id or inconsistent adjacency.
            DuplicateNodeError: A node with this id exists.
            NotFoundError: A listed connection points at an unknown node.
        """
        if not isinstance(node.id, str) or not node.id.strip():
            raise InvalidNodeError("Missing or invalid node id")
        # Re-run the wire validation so dataclass-built nodes get the same checks.
        node = Node.from_dict(node.to_dict())

        with self.lock(namespace):
            graph = self.ensure(namespace)
            if node.id in graph.nodes:
                raise DuplicateNodeError(f"Node {node.id} already exists")
            missing = [c for c in node.connections if c not in graph.nodes]
            if missing:
                raise NotFoundError(
                    f"Node {node.id} connects to unknown node(s): {', '.join(missing)}"
                )
            graph.nodes[node.id] = node
            for neighbour in node.connections:
                edge = Edge(node.id, neighbour, node.connection_weights[neighbour])
                graph.edges[edge.key] = edge
        logger.info(f"Node {node.id} added to '{namespace}'")
        return node

    def remove_node(self, node_id: str, namespace: str = DEFAULT_NAMESPACE) -> None:
        """Remove a node, its incident edges and every reference to it."""
        with self.lock(namespace):
            graph = self.get(namespace)
            if graph is None or node_id not in graph.nodes:
                raise NotFoundError(f"Node {node_id} does not exist")
            self._detach(graph, node_id)
        logger.info(f"Node {node_id} and its edges removed from '{namespace}'")

    @staticmethod
    def _detach(graph: Graph, node_id: str) -> None:
        del graph.nodes[node_id]
        for eid in [eid for eid, e in graph.edges.items() if node_id in (e.from_id, e.to_id)]:
            del graph.edges[eid]
        for other in graph.nodes.values():
            if node_id in other.connection_weights or node_id in other.connections:
                other.unlink(node_id)

    def get_nodes(
        self, node_ids: Iterable[str], namespace: str = DEFAULT_NAMESPACE
    ) -> List[Node]:
        """Return copies of the requested nodes, silently skipping unknown ids."""
        with self.lock(namespace):
            graph = self.get(namespace)
            if graph is None:
                return []
            return [graph.nodes[nid].copy() for nid in node_ids if nid in graph.nodes]

    # -- edges ------------------------------------------------------------

    def _edge_graph(self, namespace: str, from_id: Any, to_id: Any) -> Graph:
        """Return the namespace graph once both endpoints are known to exist."""
        if (
            not isinstance(from_id, str)
            or not isinstance(to_id, str)
            or not from_id.strip()
            or not to_id.strip()
        ):
            raise InvalidEdgeError("Missing or invalid edge endpoints")
        if from_id == to_id:
            raise InvalidEdgeError(f"Node {from_id} cannot connect to itself")
        graph = self.get(namespace)
        if graph is None or from_id not in graph.nodes or to_id not in graph.nodes:
            raise NotFoundError(f"Both nodes must exist to add an edge: {from_id}, {to_id}")
        return graph

    def add_edge(
        self,
        from_id: str,
        to_id: str,
        weight: float = 1.0,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> Edge:
        """Add a single directed edge and update ``from_id``'s adjacency."""
        weight = _check_weight(weight)
        with self.lock(namespace):
            graph = self._edge_graph(namespace, from_id, to_id)
            key = edge_key(from_id, to_id)
            if key in graph.edges:
                raise DuplicateEdgeError(f"Edge {key} already exists")
            edge = Edge(from_id, to_id, weight)
            graph.edges[key] = edge
            graph.nodes[from_id].link(to_id, weight)
        logger.info(f"Edge {key} added to '{namespace}' (weight={weight})")
        return edge

    def set_edge(
        self,
        from_id: str,
        to_id: str,
        weight: float,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> Edge:
        """Add the edge, or overwrite its weight when it already exists."""
        weight = _check_weight(weight)
        with self.lock(namespace):
            graph = self._edge_graph(namespace, from_id, to_id)
            edge = Edge(from_id, to_id, weight)
            graph.edges[edge.key] = edge
            graph.nodes[from_id].link(to_id, weight)
            return edge

    def remove_edge(
        self, from_id: str, to_id: str, namespace: str = DEFAULT_NAMESPACE
    ) -> None:
        key = edge_key(from_id, to_id)
        with self.lock(namespace):
            graph = self.get(namespace)
            if graph is None or key not in graph.edges:
                raise NotFoundError(f"Edge {key} does not exist")
            del graph.edges[key]
            source = graph.nodes.get(from_id)
            if source is not None:
                source.unlink(to_id)
        logger.info(f"Edge {key} removed from '{namespace}'")

    def update_weight(
        self,
        from_id: str,
        to_id: str,
        weight: float,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> Edge:
        weight = _check_weight(weight)
        key = edge_key(from_id, to_id)
        with self.lock(namespace):
            graph = self.get(namespace)
            if graph is None or key not in graph.edges:
                raise NotFoundError(f"Edge {key} does not exist")
            edge = graph.edges[key]
            edge.weight = weight
            source = graph.nodes.get(from_id)
            if source is not None:
                source.link(to_id, weight)
        logger.info(f"Edge {key} weight updated to {weight} in '{namespace}'")
        return edge

    # -- bulk -------------------------------------------------------------

    def persist(self, nodes: Iterable[Node], namespace: str = DEFAULT_NAMESPACE) -> Graph:
        """Merge a batch of nodes (with their adjacency) into the namespace.

        Existing nodes keep their edges but take the new content and metadata.
        Every adjacency entry becomes a directed edge, added or re-weighted.
        Connections to ids that are neither in the batch nor in the graph are
        dropped.
        """
        batch = [Node.from_dict(n.to_dict()) for n in nodes]
        with self.lock(namespace):
            graph = self.ensure(namespace)
            for node in batch:
                existing = graph.nodes.get(node.id)
                if existing is None:
                    graph.nodes[node.id] = Node(
                        id=node.id, content=node.content, metadata=dict(node.metadata)
                    )
                else:
                    existing.content = node.content
                    existing.metadata = dict(node.metadata)
            for node in batch:
                for neighbour in node.connections:
                    if neighbour not in graph.nodes:
                        logger.warning(
                            f"Dropping connection {node.id}->{neighbour}: unknown node"
                        )
                        continue
                    self.set_edge(
                        node.id, neighbour, node.connection_weights[neighbour], namespace
                    )
            return graph


__all__ = [
    "DEFAULT_NAMESPACE",
    "Edge",
    "Graph",
    "GraphStore",
    "Node",
    "edge_key",
]
