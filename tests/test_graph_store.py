import threading

import pytest

from graphrag_backend.errors import (
    DuplicateEdgeError,
    DuplicateNodeError,
    InvalidEdgeError,
    InvalidNodeError,
    NotFoundError,
)
from graphrag_backend.graph_store import Node


def _nodes(store, *ids, namespace="default"):
    for nid in ids:
        store.add_node(Node(id=nid, content=f"content {nid}"), namespace)


def test_graph_created_lazily(store):
    assert store.get("docs") is None
    _nodes(store, "a", namespace="docs")
    assert store.namespaces() == ["docs"]
    assert list(store.get("docs").nodes) == ["a"]


def test_add_then_remove_node_leaves_no_trace(store):
    _nodes(store, "a", "b")
    store.add_edge("a", "b", 0.4)
    store.add_edge("b", "a", 0.4)

    store.remove_node("b")

    graph = store.get()
    assert list(graph.nodes) == ["a"]
    assert graph.edges == {}
    assert graph.nodes["a"].connections == []
    assert graph.nodes["a"].connection_weights == {}


def test_add_node_errors(store):
    _nodes(store, "a")
    with pytest.raises(DuplicateNodeError):
        store.add_node(Node(id="a"))
    with pytest.raises(InvalidNodeError):
        store.add_node(Node(id=""))
    with pytest.raises(InvalidNodeError):
        store.add_node(Node(id="c", connections=["a"], connection_weights={}))
    with pytest.raises(NotFoundError):
        store.add_node(Node(id="c", connections=["ghost"], connection_weights={"ghost": 0.5}))


def test_add_node_with_connections_creates_edges(store):
    _nodes(store, "a")
    store.add_node(Node(id="b", connections=["a"], connection_weights={"a": 0.3}))
    assert store.get().edges["b->a"].weight == 0.3


def test_remove_missing_node(store):
    with pytest.raises(NotFoundError):
        store.remove_node("nope")


def test_add_edge_is_single_direction(store):
    _nodes(store, "a", "b")
    edge = store.add_edge("a", "b")

    graph = store.get()
    assert edge.weight == 1.0
    assert list(graph.edges) == ["a->b"]
    assert graph.nodes["a"].connections == ["b"]
    assert graph.nodes["b"].connections == []


def test_add_edge_errors(store):
    _nodes(store, "a", "b")
    with pytest.raises(InvalidEdgeError):
        store.add_edge("", "b")
    with pytest.raises(InvalidEdgeError):
        store.add_edge("a", "a")
    with pytest.raises(InvalidEdgeError):
        store.add_edge("a", "b", 1.5)
    with pytest.raises(NotFoundError):
        store.add_edge("a", "ghost")
    store.add_edge("a", "b")
    with pytest.raises(DuplicateEdgeError):
        store.add_edge("a", "b")


def test_remove_edge_scrubs_adjacency(store):
    _nodes(store, "a", "b")
    store.add_edge("a", "b", 0.6)
    store.remove_edge("a", "b")

    graph = store.get()
    assert graph.edges == {}
    assert "b" not in graph.nodes["a"].connection_weights
    with pytest.raises(NotFoundError):
        store.remove_edge("a", "b")


def test_update_weight(store):
    _nodes(store, "a", "b")
    store.add_edge("a", "b", 0.6)
    store.update_weight("a", "b", 0.25)

    graph = store.get()
    assert graph.edges["a->b"].weight == 0.25
    assert graph.nodes["a"].connection_weights["b"] == 0.25
    with pytest.raises(NotFoundError):
        store.update_weight("b", "a", 0.5)


def test_namespaces_are_isolated(store):
    _nodes(store, "a", namespace="one")
    _nodes(store, "a", namespace="two")
    store.remove_node("a", "one")
    assert "a" in store.get("two").nodes


def test_get_nodes_returns_copies(store):
    _nodes(store, "a")
    [copy] = store.get_nodes(["a", "missing"])
    copy.content = "changed"
    assert store.get().nodes["a"].content == "content a"


def test_persist_merges_and_reweights(store):
    store.persist(
        [
            Node(id="a", content="first", connections=["b"], connection_weights={"b": 0.7}),
            Node(id="b", content="second", connections=["a"], connection_weights={"a": 0.7}),
        ]
    )
    store.persist(
        [Node(id="a", content="first v2", connections=["b", "ghost"], connection_weights={"b": 0.9, "ghost": 0.8})]
    )

    graph = store.get()
    assert graph.nodes["a"].content == "first v2"
    assert graph.edges["a->b"].weight == 0.9
    assert graph.edges["b->a"].weight == 0.7
    assert "a->ghost" not in graph.edges
    assert graph.nodes["a"].connections == ["b"]


def test_node_from_dict_validates_adjacency():
    with pytest.raises(InvalidNodeError):
        Node.from_dict({"id": "a", "connections": ["b"], "connectionWeights": {}})
    with pytest.raises(InvalidNodeError):
        Node.from_dict({"id": "a", "connections": ["a"], "connectionWeights": {"a": 0.5}})
    with pytest.raises(InvalidNodeError):
        Node.from_dict({"id": "a", "connections": ["b"], "connectionWeights": {"b": 2}})
    for bad in (5, True, "b", {"b": 0.5}):
        with pytest.raises(InvalidNodeError):
            Node.from_dict({"id": "a", "connections": bad})
    assert Node.from_dict({"id": "a", "connections": None}).connections == []
    node = Node.from_dict({"id": "a", "content": "x", "connections": ["b"], "connectionWeights": {"b": 0.5}})
    assert node.to_dict()["connectionWeights"] == {"b": 0.5}


def test_concurrent_edits_keep_graph_consistent(store):
    _nodes(store, *[f"n{i}" for i in range(20)])

    def link(i):
        for j in range(20):
            if i == j:
                continue
            try:
                store.set_edge(f"n{i}", f"n{j}", 0.5)
            except NotFoundError:
                pass

    def drop(i):
        store.remove_node(f"n{i}")

    threads = [threading.Thread(target=link, args=(i,)) for i in range(10)]
    threads += [threading.Thread(target=drop, args=(i,)) for i in range(10, 20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    graph = store.get()
    for edge in graph.edges.values():
        assert edge.from_id in graph.nodes and edge.to_id in graph.nodes
    for node in graph.nodes.values():
        assert set(node.connections) == set(node.connection_weights)
        assert all(c in graph.nodes for c in node.connections)
