from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pytest

from graphrag_backend.config import GraphRagSettings
from graphrag_backend.graph_store import GraphStore
from graphrag_backend.tools.graph_rag import GraphRagToolkit, set_toolkit
from graphrag_backend.vector_store import (
    InMemoryVectorStore,
    SearchHit,
    VectorRecord,
    VectorStore,
)

# cos(cats, dogs) == 0.8, stock is orthogonal to both.
ANIMAL_VECTORS: Dict[str, List[float]] = {
    "cats are mammals": [1.0, 0.0, 0.0],
    "dogs are mammals": [0.8, 0.6, 0.0],
    "stock market rallied": [0.0, 0.0, 1.0],
}


class FakeEmbeddings:
    """Embeddings looked up by exact content; unknown texts get ``default``."""

    def __init__(self, vectors: Dict[str, List[float]], default: Optional[List[float]] = None) -> None:
        self.vectors = vectors
        self.default = default
        self.calls: List[List[str]] = []

    def _vector(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        if self.default is not None:
            return list(self.default)
        raise KeyError(text)

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> List[float]:
        return self._vector(text)


class FailingEmbeddings:
    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        raise RuntimeError("embedding service unavailable")

    def embed_query(self, text: str) -> List[float]:
        raise RuntimeError("embedding service unavailable")


class FakeVectorStore(VectorStore):
    """Returns preset hits regardless of the query text."""

    def __init__(
        self,
        hits: Optional[Sequence[SearchHit]] = None,
        error: Optional[Exception] = None,
        upsert_error: Optional[Exception] = None,
    ) -> None:
        self.hits = list(hits or [])
        self.error = error
        self.upsert_error = upsert_error
        self.records: Dict[str, VectorRecord] = {}
        self.searches: List[dict] = []

    def upsert(self, records: Sequence[VectorRecord], *, namespace: str) -> None:
        if self.upsert_error is not None:
            raise self.upsert_error
        for r in records:
            self.records[r.id] = r

    def search(self, query: str, *, top_k: int, min_score: float, namespace: str) -> List[SearchHit]:
        self.searches.append({"query": query, "top_k": top_k, "min_score": min_score, "namespace": namespace})
        if self.error is not None:
            raise self.error
        return [h for h in self.hits if h.score >= min_score][:top_k]

    def get_by_id(self, record_id: str, *, namespace: str) -> Optional[VectorRecord]:
        return self.records.get(record_id)

    def delete(self, record_ids, *, namespace: str) -> int:
        return sum(self.records.pop(rid, None) is not None for rid in set(record_ids))


def hit(node_id: str, score: float, content: str = "") -> SearchHit:
    return SearchHit(id=node_id, content=content or node_id, metadata={"id": node_id}, score=score)


@pytest.fixture(autouse=True)
def _no_external_services(monkeypatch):
    """Keep tracing and LLM calls disabled regardless of the developer's env."""
    for var in (
        "LANGFUSE_PUBLIC_KEY",
        "LANGFUSE_SECRET_KEY",
        "LANGFUSE_HOST",
        "OPENAI_API_KEY",
        "AZURE_OPENAI_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def store() -> GraphStore:
    return GraphStore()


@pytest.fixture
def embeddings() -> FakeEmbeddings:
    return FakeEmbeddings(ANIMAL_VECTORS, default=[0.0, 0.0, 0.0])


@pytest.fixture
def settings(tmp_path) -> GraphRagSettings:
    return GraphRagSettings(loader_dir=str(tmp_path))


@pytest.fixture
def toolkit(store, embeddings, settings) -> GraphRagToolkit:
    return GraphRagToolkit(
        store=store,
        vector_store=InMemoryVectorStore(embeddings),
        embeddings=embeddings,
        settings=settings,
    )


@pytest.fixture
def shared_toolkit(toolkit):
    """Install ``toolkit`` behind the module-level tool functions."""
    set_toolkit(toolkit)
    yield toolkit
    set_toolkit(None)


@pytest.fixture
def animal_docs() -> List[dict]:
    return [{"content": text, "metadata": {}} for text in ANIMAL_VECTORS]
