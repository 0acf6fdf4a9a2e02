import pytest

from graphrag_backend.embeddings import HashingEmbeddings
from graphrag_backend.errors import UpstreamFailureError
from graphrag_backend.vector_store import InMemoryVectorStore, VectorRecord

from conftest import ANIMAL_VECTORS, FailingEmbeddings, FakeEmbeddings


@pytest.fixture
def vector_store(embeddings):
    vs = InMemoryVectorStore(embeddings)
    vs.upsert(
        [VectorRecord(id=text.split()[0], content=text, metadata={"id": text.split()[0]}) for text in ANIMAL_VECTORS],
        namespace="docs",
    )
    return vs


def test_search_ranks_and_filters(vector_store):
    hits = vector_store.search("cats are mammals", top_k=3, min_score=0.5, namespace="docs")
    assert [h.id for h in hits] == ["cats", "dogs"]
    assert hits[0].score == pytest.approx(1.0)
    assert hits[1].score == pytest.approx(0.8)


def test_top_k_limits(vector_store):
    hits = vector_store.search("cats are mammals", top_k=1, min_score=0.0, namespace="docs")
    assert [h.id for h in hits] == ["cats"]


def test_namespaces_are_separate(vector_store):
    assert vector_store.search("cats are mammals", top_k=3, min_score=0.0, namespace="other") == []
    assert vector_store.count("docs") == 3


def test_upsert_replaces_by_id(vector_store):
    vector_store.upsert(
        [VectorRecord(id="cats", content="stock market rallied", metadata={})], namespace="docs"
    )
    assert vector_store.count("docs") == 3
    assert vector_store.get_by_id("cats", namespace="docs").content == "stock market rallied"
    assert vector_store.get_by_id("nope", namespace="docs") is None


def test_delete_removes_only_known_ids(vector_store):
    assert vector_store.delete(["cats", "ghost", "cats"], namespace="docs") == 1
    assert vector_store.get_by_id("cats", namespace="docs") is None
    assert vector_store.count("docs") == 2
    assert vector_store.delete(["dogs"], namespace="other") == 0
    hits = vector_store.search("cats are mammals", top_k=3, min_score=0.5, namespace="docs")
    assert [h.id for h in hits] == ["dogs"]


def test_precomputed_vectors_skip_embedding():
    emb = FakeEmbeddings({})
    vs = InMemoryVectorStore(emb)
    vs.upsert([VectorRecord(id="a", content="a", vector=[1.0, 0.0])], namespace="n")
    assert emb.calls == []


def test_embedding_failure_is_wrapped():
    vs = InMemoryVectorStore(FailingEmbeddings())
    with pytest.raises(UpstreamFailureError):
        vs.upsert([VectorRecord(id="a", content="a")], namespace="n")


def test_hashing_embeddings_are_deterministic_and_normalised():
    emb = HashingEmbeddings(n_features=64)
    [v1, v2] = emb.embed_documents(["graph based retrieval", "graph based retrieval"])
    assert v1 == v2
    assert len(v1) == 64
    assert sum(x * x for x in v1) == pytest.approx(1.0)
    assert min(v1) >= 0.0
    assert emb.embed_query("graph based retrieval") == v1
