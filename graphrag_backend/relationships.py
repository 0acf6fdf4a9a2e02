"""
Relationship builder.

Turns a batch of documents into graph documents: each one gets a stable id,
an embedding, and bidirectional connections to every other document in the
batch whose cosine similarity reaches the threshold.  Nothing is written to a
:class:`~graphrag_backend.graph_store.GraphStore` here; the caller decides
whether to persist the result.

The pairwise comparison is O(n²) in the batch size, so callers bound the
batch (see ``max_batch_size`` in the configuration).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import InvalidDocumentError, InvalidInputError, UpstreamFailureError
from .graph_store import Node
from .similarity import cosine_similarity

logger = logging.getLogger("graphrag_backend.relationships")


@dataclass
class GraphDocument:
    """A document enriched with its id, embedding and adjacency."""

    id: str
    content: str
    metadata: Dict[str, Any]
    connections: List[str] = field(default_factory=list)
    connection_weights: Dict[str, float] = field(default_factory=dict)
    embedding: Optional[List[float]] = None

    def connect(self, other_id: str, weight: float) -> None:
        self.connections.append(other_id)
        self.connection_weights[other_id] = weight

    def to_node(self) -> Node:
        return Node(
            id=self.id,
            content=self.content,
            metadata=dict(self.metadata),
            connections=list(self.connections),
            connection_weights=dict(self.connection_weights),
        )


def _field(doc: Any, name: str) -> Any:
    if isinstance(doc, Mapping):
        return doc.get(name)
    return getattr(doc, name, None)


def _document_id(metadata: Mapping[str, Any]) -> str:
    raw = metadata.get("id")
    if raw is not None and str(raw).strip():
        return str(raw)
    return f"node-{uuid.uuid4().hex}"


def build_relationships(
    documents: Sequence[Any],
    embeddings: Any,
    threshold: float = 0.7,
) -> List[GraphDocument]:
    """Connect documents whose embeddings are similar enough.

    Args:
        documents: Mappings or objects exposing ``content`` (str) and
            ``metadata`` (mapping).  ``metadata["id"]`` is reused as the node
            id when present.
        embeddings: Anything with ``embed_documents(texts) -> vectors``.
        threshold: Minimum cosine similarity, in ``[0, 1]``, for an edge.

    Returns:
        One :class:`GraphDocument` per input, in input order.  For every pair
        with ``similarity >= threshold`` both documents list each other with
        ``weight == similarity``.

    Raises:
        InvalidDocumentError: A document lacks string content or mapping
            metadata, or reuses an id already taken in the batch.
        InvalidInputError: The threshold is outside ``[0, 1]``.
        UpstreamFailureError: The embedding provider failed or returned the
            wrong number of vectors.
        DimensionMismatchError: Two embeddings differ in length.
    """
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise InvalidInputError(f"Similarity threshold must be a number, got {threshold!r}")
    if not 0.0 <= threshold <= 1.0:
        raise InvalidInputError(f"Similarity threshold must be within [0, 1], got {threshold}")

    graph_docs: List[GraphDocument] = []
    seen_ids: set[str] = set()
    for idx, doc in enumerate(documents):
        if doc is None:
            raise InvalidDocumentError(idx, "document is missing")
        content = _field(doc, "content")
        metadata = _field(doc, "metadata")
        if not isinstance(content, str):
            raise InvalidDocumentError(idx, "content must be a string")
        if not isinstance(metadata, Mapping):
            raise InvalidDocumentError(idx, "metadata must be an object")

        doc_id = _document_id(metadata)
        if doc_id in seen_ids:
            raise InvalidDocumentError(idx, f"duplicate id '{doc_id}' in batch")
        seen_ids.add(doc_id)

        graph_docs.append(
            GraphDocument(
                id=doc_id,
                content=content,
                metadata={**metadata, "id": doc_id},
            )
        )

    if not graph_docs:
        return []

    try:
        vectors = embeddings.embed_documents([d.content for d in graph_docs])
    except Exception as e:
        raise UpstreamFailureError(f"Embedding provider failed: {e}", e) from e
    if len(vectors) != len(graph_docs):
        raise UpstreamFailureError(
            f"Embedding provider returned {len(vectors)} vectors for {len(graph_docs)} documents"
        )
    for doc, vector in zip(graph_docs, vectors):
        doc.embedding = list(vector)

    edge_count = 0
    for i in range(len(graph_docs)):
        for j in range(i + 1, len(graph_docs)):
            a, b = graph_docs[i], graph_docs[j]
            similarity = cosine_similarity(a.embedding, b.embedding)
            if similarity >= threshold:
                a.connect(b.id, similarity)
                b.connect(a.id, similarity)
                edge_count += 1

    logger.info(
        f"Built relationships for {len(graph_docs)} documents: "
        f"{edge_count} connection(s) at threshold {threshold}"
    )
    return graph_docs


__all__ = ["GraphDocument", "build_relationships"]
