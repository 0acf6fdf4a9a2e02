"""
Vector store capability interface and an in-memory implementation.

The retrieval path only ever talks to :class:`VectorStore`; any backing store
(an SQL vector extension, Pinecone, ...) is plugged in by implementing the
same four methods.  :class:`InMemoryVectorStore` keeps records per namespace
and ranks them with scikit‑learn's cosine similarity.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as _pairwise_cosine

from .errors import UpstreamFailureError

logger = logging.getLogger("graphrag_backend.vector_store")


@dataclass
class VectorRecord:
    """A document stored in a vector store."""

    id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    vector: Optional[List[float]] = None


@dataclass
class SearchHit:
    """A search result: the stored document plus its relevance score."""

    id: str
    content: str
    metadata: Dict[str, Any]
    score: float


class VectorStore(ABC):
    """Operations the graph engine needs from a vector store."""

    @abstractmethod
    def upsert(self, records: Sequence[VectorRecord], *, namespace: str) -> None:
        """Insert or replace records by id."""

    @abstractmethod
    def search(
        self,
        query: str,
        *,
        top_k: int,
        min_score: float,
        namespace: str,
    ) -> List[SearchHit]:
        """Return at most ``top_k`` hits scoring at least ``min_score``, best first."""

    @abstractmethod
    def get_by_id(self, record_id: str, *, namespace: str) -> Optional[VectorRecord]:
        """Return a stored record or ``None``."""

    @abstractmethod
    def delete(self, record_ids: Iterable[str], *, namespace: str) -> int:
        """Remove records by id, ignoring unknown ids; return how many were removed."""


class InMemoryVectorStore(VectorStore):
    """Namespace-partitioned vector store held in process memory."""

    def __init__(self, embeddings: Any) -> None:
        self.embeddings = embeddings
        self._records: Dict[str, Dict[str, VectorRecord]] = {}
        self._lock = threading.Lock()

    def _embed(self, texts: List[str]) -> List[List[float]]:
        try:
            return self.embeddings.embed_documents(texts)
        except Exception as e:
            raise UpstreamFailureError(f"Embedding provider failed: {e}", e) from e

    def upsert(self, records: Sequence[VectorRecord], *, namespace: str) -> None:
        pending = [r for r in records if r.vector is None]
        if pending:
            vectors = self._embed([r.content for r in pending])
            for record, vector in zip(pending, vectors):
                record.vector = list(vector)
        with self._lock:
            bucket = self._records.setdefault(namespace, {})
            for record in records:
                bucket[record.id] = VectorRecord(
                    id=record.id,
                    content=record.content,
                    metadata=dict(record.metadata),
                    vector=list(record.vector or []),
                )
        logger.info(f"Upserted {len(records)} record(s) into namespace '{namespace}'")

    def search(
        self,
        query: str,
        *,
        top_k: int,
        min_score: float,
        namespace: str,
    ) -> List[SearchHit]:
        with self._lock:
            records = list(self._records.get(namespace, {}).values())
        if not records or top_k <= 0:
            return []

        try:
            query_vector = self.embeddings.embed_query(query)
        except Exception as e:
            raise UpstreamFailureError(f"Embedding provider failed: {e}", e) from e

        matrix = np.asarray([r.vector for r in records], dtype=float)
        sims = _pairwise_cosine(np.asarray([query_vector], dtype=float), matrix).flatten()

        order = np.argsort(-sims, kind="stable")
        hits: List[SearchHit] = []
        for idx in order:
            score = float(sims[idx])
            if score < min_score:
                break
            record = records[idx]
            hits.append(
                SearchHit(
                    id=record.id,
                    content=record.content,
                    metadata=dict(record.metadata),
                    score=score,
                )
            )
            if len(hits) >= top_k:
                break
        return hits

    def get_by_id(self, record_id: str, *, namespace: str) -> Optional[VectorRecord]:
        with self._lock:
            return self._records.get(namespace, {}).get(record_id)

    def delete(self, record_ids: Iterable[str], *, namespace: str) -> int:
        with self._lock:
            bucket = self._records.get(namespace, {})
            removed = [rid for rid in set(record_ids) if bucket.pop(rid, None) is not None]
        if removed:
            logger.info(f"Deleted {len(removed)} record(s) from namespace '{namespace}'")
        return len(removed)

    def count(self, namespace: str) -> int:
        with self._lock:
            return len(self._records.get(namespace, {}))


__all__ = ["InMemoryVectorStore", "SearchHit", "VectorRecord", "VectorStore"]
