import json

import pytest

from graphrag_backend.errors import InvalidInputError, SerializationError
from graphrag_backend.graph_store import Node
from graphrag_backend.serialization import (
    export_csv,
    export_graph,
    export_graphml,
    export_json,
    import_csv,
    import_graph,
    import_graphml,
    import_json,
    load_graph_file,
    parse_dot,
    parse_gexf,
    render_dot,
    render_gexf,
    resolve_graph_file,
    save_graph_file,
)


@pytest.fixture
def graph(store):
    store.add_node(Node(id="a", content="alpha", metadata={"topic": "greek"}))
    store.add_node(Node(id="b", content="beta"))
    store.add_node(Node(id="c", content="gamma"))
    store.add_edge("a", "b", 0.75)
    store.add_edge("b", "a", 0.75)
    store.add_edge("b", "c", 0.3)
    return store.get()


def _edge_set(g):
    return {(e.from_id, e.to_id, e.weight) for e in g.edges.values()}


def test_json_round_trip(graph):
    restored = import_json(export_json(graph))
    assert restored.to_dict() == graph.to_dict()


def test_json_shape(graph):
    data = json.loads(export_json(graph))
    assert set(data) == {"nodes", "edges"}
    assert data["nodes"]["a"]["connectionWeights"] == {"b": 0.75}
    assert data["edges"]["b->c"] == {"from": "b", "to": "c", "weight": 0.3}


def test_json_import_accepts_decoded_objects_and_arrays():
    g = import_json(
        {
            "nodes": [{"id": "a", "content": "x"}, {"id": "b", "content": "y"}],
            "edges": [{"source": "a", "target": "b", "weight": 0.5}],
        }
    )
    assert sorted(g.nodes) == ["a", "b"]
    assert _edge_set(g) == {("a", "b", 0.5)}
    assert g.nodes["a"].connection_weights == {"b": 0.5}
    assert g.nodes["b"].connections == []


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        "[]",
        {"nodes": {"a": {"id": "a"}}, "edges": {"a->z": {"from": "a", "to": "z", "weight": 0.5}}},
        {"nodes": {"a": {"id": "a"}, "b": {"id": "b"}}, "edges": {"x": {"from": "a", "to": "b", "weight": 3}}},
        {"nodes": {"a": {"id": "a", "connections": ["z"], "connectionWeights": {"z": 0.5}}}, "edges": {}},
        {"nodes": {"a": {"content": "no id"}}, "edges": {}},
        {"nodes": {"a": {"id": "a"}}, "edges": {"a->a": {"from": "a", "to": "a", "weight": 0.5}}},
    ],
)
def test_json_import_rejects_malformed(payload):
    with pytest.raises(SerializationError):
        import_json(payload)


_LINKED = {
    "a": {"id": "a", "connections": ["b"], "connectionWeights": {"b": 0.5}},
    "b": {"id": "b"},
    "c": {"id": "c"},
}


@pytest.mark.parametrize(
    "edges",
    [
        {},
        {"a->b": {"from": "a", "to": "b", "weight": 0.5}, "b->c": {"from": "b", "to": "c", "weight": 0.5}},
        {"a->b": {"from": "a", "to": "b", "weight": 0.9}},
    ],
    ids=["edge-missing", "adjacency-missing", "weight-differs"],
)
def test_json_import_requires_edges_to_match_adjacency(edges):
    with pytest.raises(SerializationError):
        import_json({"nodes": _LINKED, "edges": edges})


def test_json_import_accepts_matching_adjacency():
    g = import_json({"nodes": _LINKED, "edges": {"a->b": {"from": "a", "to": "b", "weight": 0.5}}})
    assert _edge_set(g) == {("a", "b", 0.5)}
    assert g.nodes["a"].connections == ["b"]


def test_csv_round_trip_is_lossy(graph):
    text = export_csv(graph)
    assert text.splitlines()[0] == "a,b,0.75"

    restored = import_csv(text)
    assert _edge_set(restored) == _edge_set(graph)
    assert sorted(restored.nodes) == ["a", "b", "c"]
    assert restored.nodes["a"].content == ""
    assert restored.nodes["a"].metadata == {}


def test_csv_header_and_default_weight():
    g = import_csv("from,to,weight\na,b\nb,c,0.2\n")
    assert _edge_set(g) == {("a", "b", 1.0), ("b", "c", 0.2)}
    assert g.nodes["a"].connection_weights == {"b": 1.0}


@pytest.mark.parametrize("text", ["a\n", "a,b,heavy\n", "a,a,0.5\n", "a,b,1.5\n"])
def test_csv_rejects_malformed(text):
    with pytest.raises(SerializationError):
        import_csv(text)


def test_graphml_round_trip(graph):
    text = export_graphml(graph)
    assert text.startswith('<?xml version="1.0"?><graphml>')
    restored = import_graphml(text)
    assert sorted(restored.nodes) == ["a", "b", "c"]
    assert _edge_set(restored) == _edge_set(graph)


def test_graphml_with_namespace_and_missing_weight():
    text = (
        '<graphml xmlns="http://graphml.graphdrawing.org/xmlns">'
        '<graph edgedefault="directed"><node id="x"/><node id="y"/>'
        '<edge source="x" target="y"/></graph></graphml>'
    )
    assert _edge_set(import_graphml(text)) == {("x", "y", 1.0)}


def test_graphml_rejects_garbage():
    with pytest.raises(SerializationError):
        import_graphml("<graphml><graph>")
    with pytest.raises(SerializationError):
        import_graphml("")


def test_dot_render_and_parse(graph):
    text = render_dot(graph)
    assert text.startswith("digraph G {")
    assert '"b" -> "c" [weight=0.3];' in text
    restored = parse_dot(text)
    assert _edge_set(restored) == _edge_set(graph)
    assert sorted(restored.nodes) == ["a", "b", "c"]


def test_dot_parse_unquoted_ids():
    g = parse_dot("digraph { x -> y [weight=0.4]; z; }")
    assert _edge_set(g) == {("x", "y", 0.4)}
    assert sorted(g.nodes) == ["x", "y", "z"]


def test_gexf_render_and_parse(graph):
    text = render_gexf(graph)
    assert 'version="1.2"' in text
    restored = parse_gexf(text)
    assert _edge_set(restored) == _edge_set(graph)


def test_unknown_format(graph):
    with pytest.raises(InvalidInputError):
        export_graph(graph, "yaml")
    with pytest.raises(InvalidInputError):
        import_graph("", "yaml")


def test_file_paths_are_confined(tmp_path):
    allowed = tmp_path / "graphs"
    allowed.mkdir()
    assert resolve_graph_file("g.json", str(allowed), "json") == str((allowed / "g.json").resolve())
    with pytest.raises(InvalidInputError):
        resolve_graph_file("../escape.json", str(allowed), "json")
    with pytest.raises(InvalidInputError):
        resolve_graph_file(str(tmp_path / "outside.json"), str(allowed), "json")
    with pytest.raises(InvalidInputError):
        resolve_graph_file("g.csv", str(allowed), "json")
    with pytest.raises(InvalidInputError):
        resolve_graph_file("g.txt", str(allowed), "txt")


@pytest.mark.parametrize("fmt", ["csv", "dot", "gexf", "graphml", "json"])
def test_save_then_load(graph, tmp_path, fmt):
    path = save_graph_file(graph, f"nested/graph.{fmt}", str(tmp_path))
    loaded = load_graph_file(f"nested/graph.{fmt}", str(tmp_path))
    assert _edge_set(loaded) == _edge_set(graph)
    assert path.endswith(f"graph.{fmt}")


def test_load_missing_or_empty_file(tmp_path):
    with pytest.raises(SerializationError):
        load_graph_file("missing.json", str(tmp_path))
    (tmp_path / "empty.csv").write_text("  \n")
    with pytest.raises(SerializationError):
        load_graph_file("empty.csv", str(tmp_path))
