"""
Graph export, import and file loaders.

Formats:

- ``json``: full fidelity, ``{"nodes": {id: node}, "edges": {edgeId: edge}}``.
- ``csv``: edge list ``from,to,weight``; node content and metadata are lost.
- ``graphml``: minimal GraphML, nodes and edges with a ``weight`` attribute.
- ``dot`` / ``gexf``: rendering for visualisation tools, also readable by
  the file loader.

Every parser raises :class:`~graphrag_backend.errors.SerializationError` on
malformed input and returns a fresh :class:`Graph`; callers swap it into the
store wholesale.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import os
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import GraphRagError, InvalidInputError, SerializationError
from .graph_store import Edge, Graph, Node

logger = logging.getLogger("graphrag_backend.serialization")

EXPORT_FORMATS = ("json", "csv", "graphml")
RENDER_FORMATS = ("json", "dot", "gexf")
FILE_FORMATS = ("csv", "dot", "gexf", "graphml", "json")


# -- building graphs from edge lists -----------------------------------------


def _graph_from_edges(
    node_ids: Iterable[str], edges: Iterable[Tuple[str, str, float]]
) -> Graph:
    graph = Graph()
    for nid in node_ids:
        if nid not in graph.nodes:
            graph.nodes[nid] = Node(id=nid)
    for from_id, to_id, weight in edges:
        if not from_id or not to_id:
            raise SerializationError("Edge with an empty endpoint")
        if from_id == to_id:
            raise SerializationError(f"Self-loop on node {from_id}")
        if not 0.0 <= weight <= 1.0:
            raise SerializationError(f"Edge {from_id}->{to_id} weight {weight} outside [0, 1]")
        for nid in (from_id, to_id):
            if nid not in graph.nodes:
                graph.nodes[nid] = Node(id=nid)
        edge = Edge(from_id, to_id, weight)
        graph.edges[edge.key] = edge
        graph.nodes[from_id].link(to_id, weight)
    return graph


def _parse_weight(raw: Optional[str], where: str) -> float:
    if raw is None or not str(raw).strip():
        return 1.0
    try:
        return float(raw)
    except ValueError:
        raise SerializationError(f"Invalid weight {raw!r} in {where}")


# -- JSON ----------------------------------------------------------------------


def export_json(graph: Graph) -> str:
    return json.dumps(graph.to_dict())


def import_json(data: Any) -> Graph:
    """Parse the JSON export format (a string or an already-decoded object)."""
    if isinstance(data, (str, bytes)):
        try:
            obj = json.loads(data)
        except ValueError as e:
            raise SerializationError(f"Invalid JSON: {e}")
    else:
        obj = data
    if not isinstance(obj, dict):
        raise SerializationError("Invalid JSON: expected an object with nodes and edges")

    raw_nodes = obj.get("nodes") or {}
    raw_edges = obj.get("edges") or {}
    # Loader files may use arrays instead of id-keyed objects.
    if isinstance(raw_nodes, list):
        raw_nodes = {str(n.get("id")): n for n in raw_nodes if isinstance(n, dict)}
    if isinstance(raw_edges, list):
        raw_edges = {str(i): e for i, e in enumerate(raw_edges)}
    if not isinstance(raw_nodes, dict) or not isinstance(raw_edges, dict):
        raise SerializationError("Invalid JSON: nodes and edges must be objects or arrays")

    graph = Graph()
    try:
        for node_data in raw_nodes.values():
            node = Node.from_dict(node_data)
            graph.nodes[node.id] = node
    except GraphRagError as e:
        raise SerializationError(f"Invalid node: {e}")

    for edge_data in raw_edges.values():
        if not isinstance(edge_data, dict):
            raise SerializationError("Invalid edge: expected an object")
        from_id = edge_data.get("from", edge_data.get("source"))
        to_id = edge_data.get("to", edge_data.get("target"))
        if not isinstance(from_id, str) or not isinstance(to_id, str):
            raise SerializationError("Invalid edge: missing endpoints")
        if from_id not in graph.nodes or to_id not in graph.nodes:
            raise SerializationError(f"Edge {from_id}->{to_id} references an unknown node")
        weight = edge_data.get("weight", 1.0)
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise SerializationError(f"Edge {from_id}->{to_id} has a non-numeric weight")
        if from_id == to_id:
            raise SerializationError(f"Self-loop on node {from_id}")
        if not 0.0 <= weight <= 1.0:
            raise SerializationError(f"Edge {from_id}->{to_id} weight {weight} outside [0, 1]")
        edge = Edge(from_id, to_id, float(weight))
        graph.edges[edge.key] = edge

    # Adjacency listed on nodes must point at real nodes.
    for node in graph.nodes.values():
        for neighbour in node.connections:
            if neighbour not in graph.nodes:
                raise SerializationError(
                    f"Node {node.id} connects to unknown node {neighbour}"
                )
    _reconcile_adjacency(graph)
    return graph


def _reconcile_adjacency(graph: Graph) -> None:
    """Make node adjacency and edge records describe the same edges.

    Payloads that carry no adjacency at all (edge-list style loader files)
    get it rebuilt from the edges; otherwise both views must agree exactly.
    """
    if not any(n.connections for n in graph.nodes.values()):
        for edge in graph.edges.values():
            graph.nodes[edge.from_id].link(edge.to_id, edge.weight)
        return

    listed = {
        (node.id, neighbour): node.connection_weights[neighbour]
        for node in graph.nodes.values()
        for neighbour in node.connections
    }
    stored = {(e.from_id, e.to_id): e.weight for e in graph.edges.values()}
    for from_id, to_id in sorted(set(listed) ^ set(stored)):
        where = "edge record" if (from_id, to_id) in listed else "node connections"
        raise SerializationError(f"Edge {from_id}->{to_id} is missing from the {where}")
    for pair, weight in listed.items():
        if stored[pair] != weight:
            raise SerializationError(
                f"Edge {pair[0]}->{pair[1]} weight {stored[pair]} differs from the "
                f"node's connectionWeights ({weight})"
            )


# -- CSV -----------------------------------------------------------------------


def export_csv(graph: Graph) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    for edge in graph.edges.values():
        writer.writerow([edge.from_id, edge.to_id, edge.weight])
    return buf.getvalue().rstrip("\n")


def import_csv(data: str) -> Graph:
    """Parse a ``from,to[,weight]`` edge list; a header row is skipped."""
    if not isinstance(data, str):
        raise SerializationError("CSV data must be a string")
    edges: List[Tuple[str, str, float]] = []
    for lineno, row in enumerate(csv.reader(io.StringIO(data)), start=1):
        if not row or all(not cell.strip() for cell in row):
            continue
        cells = [cell.strip() for cell in row]
        if lineno == 1 and [c.lower() for c in cells[:2]] in (["from", "to"], ["source", "target"]):
            continue
        if len(cells) < 2:
            raise SerializationError(f"Malformed CSV line {lineno}: {','.join(row)}")
        weight = _parse_weight(cells[2] if len(cells) > 2 else None, f"CSV line {lineno}")
        edges.append((cells[0], cells[1], weight))
    return _graph_from_edges([], edges)


# -- XML helpers ---------------------------------------------------------------


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse_xml(data: str, label: str) -> ET.Element:
    if not isinstance(data, str) or not data.strip():
        raise SerializationError(f"{label} data is empty")
    try:
        return ET.fromstring(data)
    except ET.ParseError as e:
        raise SerializationError(f"Invalid {label}: {e}")


def _xml_graph(root: ET.Element, label: str) -> Graph:
    node_ids: List[str] = []
    edges: List[Tuple[str, str, float]] = []
    for el in root.iter():
        tag = _local(el.tag)
        if tag == "node":
            nid = el.get("id")
            if not nid:
                raise SerializationError(f"{label} node without id")
            node_ids.append(nid)
        elif tag == "edge":
            source, target = el.get("source"), el.get("target")
            if not source or not target:
                raise SerializationError(f"{label} edge without source/target")
            edges.append((source, target, _parse_weight(el.get("weight"), label)))
    return _graph_from_edges(node_ids, edges)


# -- GraphML -------------------------------------------------------------------


def export_graphml(graph: Graph) -> str:
    root = ET.Element("graphml")
    g = ET.SubElement(root, "graph", id="G", edgedefault="directed")
    for node in graph.nodes.values():
        ET.SubElement(g, "node", id=node.id)
    for edge in graph.edges.values():
        ET.SubElement(
            g, "edge", source=edge.from_id, target=edge.to_id, weight=repr(edge.weight)
        )
    return '<?xml version="1.0"?>' + ET.tostring(root, encoding="unicode")


def import_graphml(data: str) -> Graph:
    return _xml_graph(_parse_xml(data, "GraphML"), "GraphML")


# -- DOT / GEXF rendering ------------------------------------------------------


def _dot_id(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_dot(graph: Graph) -> str:
    lines = ["digraph G {"]
    for node in graph.nodes.values():
        lines.append(f"  {_dot_id(node.id)};")
    for edge in graph.edges.values():
        lines.append(
            f"  {_dot_id(edge.from_id)} -> {_dot_id(edge.to_id)} [weight={edge.weight!r}];"
        )
    lines.append("}")
    return "\n".join(lines)


_DOT_EDGE = re.compile(
    r'("(?:[^"\\]|\\.)*"|[\w.]+)\s*->\s*("(?:[^"\\]|\\.)*"|[\w.]+)'
    r'(?:\s*\[[^\]]*?weight\s*=\s*"?([0-9.eE+-]+)"?[^\]]*\])?'
)
_DOT_NODE = re.compile(r'^\s*("(?:[^"\\]|\\.)*"|\w+)\s*(?:\[[^\]]*\])?\s*;?\s*$')


def _dot_unquote(token: str) -> str:
    if token.startswith('"') and token.endswith('"'):
        return token[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return token


def parse_dot(data: str) -> Graph:
    """Read ``a -> b [weight=0.4]`` edges and bare node statements."""
    if not isinstance(data, str) or not data.strip():
        raise SerializationError("DOT data is empty")
    body_start, body_end = data.find("{"), data.rfind("}")
    if body_start == -1 or body_end <= body_start:
        raise SerializationError("Invalid DOT: missing graph body")
    body = data[body_start + 1 : body_end]

    edges: List[Tuple[str, str, float]] = []
    node_ids: List[str] = []
    for statement in re.split(r"[;\n]", body):
        if not statement.strip():
            continue
        match = _DOT_EDGE.search(statement)
        if match:
            edges.append(
                (
                    _dot_unquote(match.group(1)),
                    _dot_unquote(match.group(2)),
                    _parse_weight(match.group(3), "DOT"),
                )
            )
            continue
        node_match = _DOT_NODE.match(statement)
        if node_match and node_match.group(1) not in ("graph", "node", "edge"):
            node_ids.append(_dot_unquote(node_match.group(1)))
    return _graph_from_edges(node_ids, edges)


def render_gexf(graph: Graph) -> str:
    root = ET.Element(
        "gexf", xmlns="http://www.gexf.net/1.2draft", version="1.2"
    )
    g = ET.SubElement(root, "graph", mode="static", defaultedgetype="directed")
    nodes_el = ET.SubElement(g, "nodes")
    for node in graph.nodes.values():
        label = node.content[:80] if node.content else node.id
        ET.SubElement(nodes_el, "node", id=node.id, label=label)
    edges_el = ET.SubElement(g, "edges")
    for idx, edge in enumerate(graph.edges.values()):
        ET.SubElement(
            edges_el,
            "edge",
            id=str(idx),
            source=edge.from_id,
            target=edge.to_id,
            weight=repr(edge.weight),
        )
    return '<?xml version="1.0" encoding="UTF-8"?>' + ET.tostring(root, encoding="unicode")


def parse_gexf(data: str) -> Graph:
    return _xml_graph(_parse_xml(data, "GEXF"), "GEXF")


# -- dispatch ------------------------------------------------------------------


def export_graph(graph: Graph, fmt: str) -> str:
    if fmt == "json":
        return export_json(graph)
    if fmt == "csv":
        return export_csv(graph)
    if fmt == "graphml":
        return export_graphml(graph)
    if fmt == "dot":
        return render_dot(graph)
    if fmt == "gexf":
        return render_gexf(graph)
    raise InvalidInputError(f"Unknown export format '{fmt}'")


def import_graph(data: Any, fmt: str) -> Graph:
    if fmt == "json":
        return import_json(data)
    if fmt == "csv":
        return import_csv(data)
    if fmt == "graphml":
        return import_graphml(data)
    if fmt == "dot":
        return parse_dot(data)
    if fmt == "gexf":
        return parse_gexf(data)
    raise InvalidInputError(f"Unknown import format '{fmt}'")


# -- files ---------------------------------------------------------------------


def resolve_graph_file(file_path: str, allowed_dir: str, fmt: str) -> str:
    """Return the absolute path of ``file_path`` if it may be read or written.

    The path must resolve inside ``allowed_dir`` (symlinks and ``..`` are
    resolved first) and carry the extension of ``fmt``.

    Raises:
        InvalidInputError: If the format is unknown or the path is not allowed.
    """
    if fmt not in FILE_FORMATS:
        raise InvalidInputError(
            f"File format must be one of: {', '.join(FILE_FORMATS)}"
        )
    base = os.path.realpath(allowed_dir)
    candidate = file_path if os.path.isabs(file_path) else os.path.join(base, file_path)
    abs_path = os.path.realpath(candidate)
    if os.path.commonpath([base, abs_path]) != base:
        raise InvalidInputError(f"File must be in {base}")
    ext = os.path.splitext(abs_path)[1].lower()
    if ext != f".{fmt}":
        raise InvalidInputError(f"File extension must be .{fmt} for this format")
    return abs_path


def load_graph_file(file_path: str, allowed_dir: str, fmt: Optional[str] = None) -> Graph:
    """Read a graph file; the format defaults to the file extension."""
    fmt = fmt or os.path.splitext(file_path)[1].lstrip(".").lower()
    abs_path = resolve_graph_file(file_path, allowed_dir, fmt)
    try:
        with open(abs_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise SerializationError(f"Could not read {abs_path}: {e}")
    if not content.strip():
        raise SerializationError(f"{fmt.upper()} file is empty")
    graph = import_graph(content, fmt)
    logger.info(
        f"Loaded {fmt} graph from {abs_path} "
        f"({len(graph.nodes)} nodes, {len(graph.edges)} edges)"
    )
    return graph


def save_graph_file(
    graph: Graph, file_path: str, allowed_dir: str, fmt: Optional[str] = None
) -> str:
    """Write ``graph`` to a file inside ``allowed_dir`` and return its path."""
    fmt = fmt or os.path.splitext(file_path)[1].lstrip(".").lower()
    abs_path = resolve_graph_file(file_path, allowed_dir, fmt)
    os.makedirs(os.path.dirname(abs_path), exist_ok=True)
    with open(abs_path, "w", encoding="utf-8") as f:
        f.write(export_graph(graph, fmt))
    logger.info(f"Saved {fmt} graph to {abs_path}")
    return abs_path


__all__ = [
    "EXPORT_FORMATS",
    "FILE_FORMATS",
    "RENDER_FORMATS",
    "export_csv",
    "export_graph",
    "export_graphml",
    "export_json",
    "import_csv",
    "import_graph",
    "import_graphml",
    "import_json",
    "load_graph_file",
    "parse_dot",
    "parse_gexf",
    "render_dot",
    "render_gexf",
    "resolve_graph_file",
    "save_graph_file",
]
