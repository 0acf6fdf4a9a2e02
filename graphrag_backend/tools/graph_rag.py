"""
Graph-based retrieval augmented generation (GraphRAG) tools.

:class:`GraphRagToolkit` bundles a graph store, a vector store and an
embedding model and exposes every graph operation as a tool method that
takes plain arguments and returns a JSON-friendly dict.  Validation and
lookup failures come back as ``{"success": False, "message": ...}`` rather
than exceptions so a calling agent can react to them; query failures degrade
to an empty result set.

The module-level functions at the bottom wrap one shared toolkit so they can be
handed to LangGraph or any other orchestrator as standalone tools; its graphs
persist across calls for the lifetime of the process.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..config import GraphRagSettings, get_graph_rag_settings
from ..embeddings import get_embeddings
from ..errors import GraphRagError, InvalidEdgeError, InvalidInputError, InvalidNodeError
from ..graph_store import Graph, GraphStore, Node
from ..maintenance import merge_duplicates, prune_orphans, remove_low_score_edges
from ..relationships import build_relationships
from ..serialization import (
    EXPORT_FORMATS,
    RENDER_FORMATS,
    export_graph,
    import_graph,
    load_graph_file as _load_graph_file,
    save_graph_file as _save_graph_file,
)
from ..traversal import GraphRetriever
from ..vector_store import InMemoryVectorStore, VectorRecord, VectorStore
from .langfuse_tracing import traced_tool

logger = logging.getLogger("graphrag_backend.tools.graph_rag")


def _failure(message: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "message": message, **extra}


def _edge_endpoints(edge: Any) -> tuple[Any, Any]:
    """Read ``from``/``to`` from an edge mapping or an ``EdgeRef``-like object."""
    if edge is None:
        return None, None
    if isinstance(edge, Mapping):
        from_id = edge.get("from", edge.get("from_id"))
        to_id = edge.get("to", edge.get("to_id"))
        return from_id, to_id
    return getattr(edge, "from_id", None), getattr(edge, "to_id", None)


class GraphRagToolkit:
    """The graph tools bound to one set of collaborators."""

    def __init__(
        self,
        *,
        store: Optional[GraphStore] = None,
        vector_store: Optional[VectorStore] = None,
        embeddings: Optional[Any] = None,
        settings: Optional[GraphRagSettings] = None,
    ) -> None:
        self.settings = settings or get_graph_rag_settings()
        self.store = store or GraphStore()
        self.embeddings = embeddings or get_embeddings(self.settings)
        self.vector_store = vector_store or InMemoryVectorStore(self.embeddings)
        self.retriever = GraphRetriever(
            self.store,
            self.vector_store,
            default_edge_weight=self.settings.default_edge_weight,
            best_score_wins=self.settings.best_score_wins,
        )

    def _ns(self, namespace: Optional[str]) -> str:
        return namespace or self.settings.default_namespace

    def _unindex(self, node_ids: Iterable[str], namespace: str) -> None:
        """Best-effort removal of vector records for nodes that left the graph."""
        node_ids = list(node_ids)
        if not node_ids:
            return
        try:
            self.vector_store.delete(node_ids, namespace=namespace)
        except Exception:
            logger.exception(f"Removing {len(node_ids)} record(s) from '{namespace}' failed")

    def _replace(self, graph: Graph, namespace: str) -> None:
        """Swap in an imported graph and re-index it (best effort).

        Records of the previous graph that the new one does not re-index are
        deleted so they stop seeding queries.
        """
        with self.store.lock(namespace):
            previous = self.store.get(namespace)
            old_ids = set(previous.nodes) if previous is not None else set()
            self.store.replace(graph, namespace)
        records = [
            VectorRecord(id=n.id, content=n.content, metadata={**n.metadata, "id": n.id})
            for n in graph.nodes.values()
            if n.content
        ]
        self._unindex(old_ids - {r.id for r in records}, namespace)
        if not records:
            return
        try:
            self.vector_store.upsert(records, namespace=namespace)
        except Exception:
            logger.exception(f"Indexing imported nodes in '{namespace}' failed")

    # -- create / query ---------------------------------------------------

    def create_graph(
        self,
        documents: Sequence[Any],
        namespace: Optional[str] = None,
        similarity_threshold: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Connect documents by similarity, store the graph and index the documents.

        Returns:
            ``{"success", "graphId", "nodeCount", "edgeCount"}`` where
            ``edgeCount`` counts connected document pairs.
        """
        ns = self._ns(namespace)
        threshold = (
            self.settings.similarity_threshold
            if similarity_threshold is None
            else similarity_threshold
        )
        try:
            if len(documents) > self.settings.max_batch_size:
                raise InvalidInputError(
                    f"Batch of {len(documents)} documents exceeds the limit of "
                    f"{self.settings.max_batch_size}"
                )
            prepared = []
            for doc in documents:
                if isinstance(doc, Mapping) and doc.get("metadata") is None:
                    doc = {**doc, "metadata": {}}
                prepared.append(doc)

            graph_docs = build_relationships(prepared, self.embeddings, threshold)
            # Index first: a failed upsert must leave the graph untouched.
            self.vector_store.upsert(
                [
                    VectorRecord(
                        id=d.id, content=d.content, metadata=dict(d.metadata), vector=d.embedding
                    )
                    for d in graph_docs
                ],
                namespace=ns,
            )
            self.store.persist([d.to_node() for d in graph_docs], ns)
        except GraphRagError as e:
            logger.warning(f"create-graph failed in '{ns}': {e}")
            return {"success": False, "nodeCount": 0, "edgeCount": 0, "error": str(e)}
        except Exception as e:
            logger.exception(f"create-graph failed in '{ns}'")
            return {"success": False, "nodeCount": 0, "edgeCount": 0, "error": str(e)}

        edge_count = sum(len(d.connections) for d in graph_docs) // 2
        graph_id = f"graph-{ns}-{int(time.time() * 1000)}"
        logger.info(
            f"create-graph '{graph_id}': {len(graph_docs)} nodes, {edge_count} edges"
        )
        return {
            "success": True,
            "graphId": graph_id,
            "nodeCount": len(graph_docs),
            "edgeCount": edge_count,
        }

    def _query_args(
        self,
        initial_document_count: Optional[int],
        max_hop_count: Optional[int],
        min_similarity: Optional[float],
    ) -> Dict[str, Any]:
        s = self.settings
        return {
            "top_k": s.initial_document_count if initial_document_count is None else initial_document_count,
            "max_hops": s.max_hop_count if max_hop_count is None else max_hop_count,
            "min_score": s.min_similarity if min_similarity is None else min_similarity,
        }

    def query_graph(
        self,
        query: str,
        namespace: Optional[str] = None,
        initial_document_count: Optional[int] = None,
        max_hop_count: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Vector search plus graph expansion; failures give an empty result."""
        ns = self._ns(namespace)
        results = self.retriever.query(
            query,
            namespace=ns,
            **self._query_args(initial_document_count, max_hop_count, min_similarity),
        )
        documents = [r.to_dict() for r in results]
        return {"documents": documents, "count": len(documents)}

    def trace_graph_query(
        self,
        query: str,
        namespace: Optional[str] = None,
        initial_document_count: Optional[int] = None,
        max_hop_count: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Like :meth:`query_graph`, plus every hop the traversal made."""
        ns = self._ns(namespace)
        try:
            trace = self.retriever.explain(
                query,
                namespace=ns,
                **self._query_args(initial_document_count, max_hop_count, min_similarity),
            )
        except Exception:
            logger.exception(f"trace-graph-query failed in '{ns}'")
            return {"documents": [], "count": 0, "steps": [], "seedCount": 0}
        documents = [r.to_dict() for r in trace.documents]
        return {
            "documents": documents,
            "count": len(documents),
            "steps": [s.to_dict() for s in trace.steps],
            "seedCount": trace.seed_count,
        }

    # -- inspection ---------------------------------------------------------

    def visualize_graph(
        self, namespace: Optional[str] = None, format: str = "json"
    ) -> Dict[str, Any]:
        ns = self._ns(namespace)
        if format not in RENDER_FORMATS:
            return _failure(f"Unknown visualization format '{format}'")
        with self.store.lock(ns):
            graph = self.store.get(ns)
            if graph is None:
                return {"nodes": [], "edges": [], "format": format}
            out: Dict[str, Any] = {
                "nodes": [n.to_dict() for n in graph.nodes.values()],
                "edges": [e.to_dict() for e in graph.edges.values()],
                "format": format,
            }
            if format != "json":
                out["data"] = export_graph(graph, format)
        return out

    def inspect_graph(
        self, node_ids: Sequence[str], namespace: Optional[str] = None
    ) -> Dict[str, Any]:
        nodes = self.store.get_nodes(node_ids, self._ns(namespace))
        return {"nodes": [n.to_dict() for n in nodes]}

    # -- mutation -----------------------------------------------------------

    def edit_graph(
        self,
        action: str,
        node: Optional[Mapping[str, Any]] = None,
        edge: Any = None,
        weight: Optional[float] = None,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Add/remove a node or edge, or change an edge weight."""
        ns = self._ns(namespace)
        try:
            if action == "addNode":
                if not isinstance(node, Mapping):
                    raise InvalidNodeError("Missing or invalid node id")
                added = self.store.add_node(Node.from_dict(node), ns)
                msg = f"Node {added.id} added."
            elif action == "removeNode":
                node_id = node.get("id") if isinstance(node, Mapping) else None
                if not isinstance(node_id, str) or not node_id.strip():
                    raise InvalidNodeError("Missing or invalid node id")
                self.store.remove_node(node_id, ns)
                self._unindex([node_id], ns)
                msg = f"Node {node_id} and its edges removed."
            elif action in ("addEdge", "removeEdge", "updateWeight"):
                from_id, to_id = _edge_endpoints(edge)
                if (
                    not isinstance(from_id, str)
                    or not isinstance(to_id, str)
                    or not from_id.strip()
                    or not to_id.strip()
                ):
                    raise InvalidEdgeError("Missing or invalid edge endpoints")
                if action == "addEdge":
                    added_edge = self.store.add_edge(
                        from_id, to_id, 1.0 if weight is None else weight, ns
                    )
                    msg = f"Edge {added_edge.key} added."
                elif action == "removeEdge":
                    self.store.remove_edge(from_id, to_id, ns)
                    msg = f"Edge {from_id}->{to_id} removed."
                else:
                    if weight is None:
                        raise InvalidEdgeError("Missing or invalid edge weight")
                    self.store.update_weight(from_id, to_id, weight, ns)
                    msg = f"Edge {from_id}->{to_id} weight updated."
            else:
                return _failure("Unknown action")
        except GraphRagError as e:
            logger.warning(f"edit-graph {action} failed in '{ns}': {e}")
            return _failure(str(e))
        return {"success": True, "message": msg}

    def prune_graph(
        self,
        mode: str,
        threshold: Optional[float] = None,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        ns = self._ns(namespace)
        try:
            with self.store.lock(ns):
                graph = self.store.get(ns)
                if graph is None:
                    return _failure("No graph in namespace")
                before = set(graph.nodes)
                if mode == "pruneOrphans":
                    pruned = prune_orphans(self.store, ns)
                elif mode == "mergeDuplicates":
                    pruned = merge_duplicates(self.store, ns)
                elif mode == "removeLowScoreEdges":
                    cutoff = self.settings.low_score_edge_threshold if threshold is None else threshold
                    pruned = remove_low_score_edges(self.store, cutoff, ns)
                else:
                    return _failure("Unknown prune mode")
                removed = before - set(graph.nodes)
        except GraphRagError as e:
            logger.warning(f"prune-graph {mode} failed in '{ns}': {e}")
            return _failure(str(e))
        self._unindex(removed, ns)
        return {"success": True, "pruned": pruned}

    # -- export / import ----------------------------------------------------

    def export_import_graph(
        self,
        direction: str,
        format: str = "json",
        data: Any = None,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        ns = self._ns(namespace)
        if format not in EXPORT_FORMATS:
            return _failure(f"Unknown {direction} format")

        if direction == "export":
            with self.store.lock(ns):
                graph = self.store.get(ns)
                if graph is None:
                    return _failure("No graph to export")
                return {"success": True, "format": format, "data": export_graph(graph, format)}

        if direction == "import":
            if data is None:
                return _failure("No data to import")
            try:
                graph = import_graph(data, format)
            except GraphRagError as e:
                logger.warning(f"Import into '{ns}' failed: {e}")
                return _failure(str(e))
            self._replace(graph, ns)
            return {"success": True, "nodeCount": len(graph.nodes), "edgeCount": len(graph.edges)}

        return _failure("Unknown direction")

    def load_graph_file(
        self,
        file_path: str,
        format: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Replace the namespace graph with the contents of a graph file."""
        ns = self._ns(namespace)
        try:
            graph = _load_graph_file(file_path, self.settings.loader_dir, format)
        except GraphRagError as e:
            logger.warning(f"Loading {file_path} failed: {e}")
            return _failure(str(e))
        self._replace(graph, ns)
        return {"success": True, "nodeCount": len(graph.nodes), "edgeCount": len(graph.edges)}

    def save_graph_file(
        self,
        file_path: str,
        format: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        ns = self._ns(namespace)
        try:
            with self.store.lock(ns):
                graph = self.store.get(ns)
                if graph is None:
                    return _failure("No graph to export")
                path = _save_graph_file(graph, file_path, self.settings.loader_dir, format)
        except GraphRagError as e:
            logger.warning(f"Saving {file_path} failed: {e}")
            return _failure(str(e))
        except OSError as e:
            logger.exception(f"Saving {file_path} failed")
            return _failure(f"Could not write {file_path}: {e}")
        return {"success": True, "path": path}

    # -- summaries ----------------------------------------------------------

    def graph_stats(self, namespace: Optional[str] = None) -> Dict[str, Any]:
        ns = self._ns(namespace)
        with self.store.lock(ns):
            graph = self.store.get(ns)
            if graph is None:
                return {"namespace": ns, "nodeCount": 0, "edgeCount": 0, "orphanCount": 0}
            return {
                "namespace": ns,
                "nodeCount": len(graph.nodes),
                "edgeCount": len(graph.edges),
                "orphanCount": sum(1 for n in graph.nodes.values() if not n.connections),
            }


# Shared toolkit across calls
_toolkit: Optional[GraphRagToolkit] = None


def get_toolkit() -> GraphRagToolkit:
    global _toolkit
    if _toolkit is None:
        _toolkit = GraphRagToolkit()
    return _toolkit


def set_toolkit(toolkit: Optional[GraphRagToolkit]) -> None:
    """Swap the shared toolkit (``None`` resets it to a lazily built default)."""
    global _toolkit
    _toolkit = toolkit


@traced_tool("graph.create")
def create_graph(
    documents: List[Dict[str, Any]],
    namespace: Optional[str] = None,
    similarity_threshold: Optional[float] = None,
) -> Dict[str, Any]:
    """Create graph relationships between documents for improved retrieval."""
    return get_toolkit().create_graph(documents, namespace, similarity_threshold)


@traced_tool("graph.query")
def query_graph(
    query: str,
    namespace: Optional[str] = None,
    initial_document_count: Optional[int] = None,
    max_hop_count: Optional[int] = None,
    min_similarity: Optional[float] = None,
) -> Dict[str, Any]:
    """Retrieve documents using graph relationships for improved context."""
    return get_toolkit().query_graph(
        query, namespace, initial_document_count, max_hop_count, min_similarity
    )


@traced_tool("graph.trace_query")
def trace_graph_query(
    query: str,
    namespace: Optional[str] = None,
    initial_document_count: Optional[int] = None,
    max_hop_count: Optional[int] = None,
    min_similarity: Optional[float] = None,
) -> Dict[str, Any]:
    return get_toolkit().trace_graph_query(
        query, namespace, initial_document_count, max_hop_count, min_similarity
    )


@traced_tool("graph.visualize")
def visualize_graph(namespace: Optional[str] = None, format: str = "json") -> Dict[str, Any]:
    return get_toolkit().visualize_graph(namespace, format)


@traced_tool("graph.inspect")
def inspect_graph(node_ids: List[str], namespace: Optional[str] = None) -> Dict[str, Any]:
    return get_toolkit().inspect_graph(node_ids, namespace)


@traced_tool("graph.edit")
def edit_graph(
    action: str,
    node: Optional[Dict[str, Any]] = None,
    edge: Optional[Dict[str, str]] = None,
    weight: Optional[float] = None,
    namespace: Optional[str] = None,
) -> Dict[str, Any]:
    return get_toolkit().edit_graph(action, node, edge, weight, namespace)


@traced_tool("graph.prune")
def prune_graph(
    mode: str, threshold: Optional[float] = None, namespace: Optional[str] = None
) -> Dict[str, Any]:
    return get_toolkit().prune_graph(mode, threshold, namespace)


@traced_tool("graph.export_import")
def export_import_graph(
    direction: str,
    format: str = "json",
    data: Any = None,
    namespace: Optional[str] = None,
) -> Dict[str, Any]:
    return get_toolkit().export_import_graph(direction, format, data, namespace)


@traced_tool("graph.load_file")
def load_graph_file(
    file_path: str, format: Optional[str] = None, namespace: Optional[str] = None
) -> Dict[str, Any]:
    return get_toolkit().load_graph_file(file_path, format, namespace)


@traced_tool("graph.save_file")
def save_graph_file(
    file_path: str, format: Optional[str] = None, namespace: Optional[str] = None
) -> Dict[str, Any]:
    return get_toolkit().save_graph_file(file_path, format, namespace)


@traced_tool("graph.stats")
def graph_stats(namespace: Optional[str] = None) -> Dict[str, Any]:
    return get_toolkit().graph_stats(namespace)


__all__ = [
    "GraphRagToolkit",
    "create_graph",
    "edit_graph",
    "export_import_graph",
    "get_toolkit",
    "graph_stats",
    "inspect_graph",
    "load_graph_file",
    "prune_graph",
    "query_graph",
    "save_graph_file",
    "set_toolkit",
    "trace_graph_query",
    "visualize_graph",
]
