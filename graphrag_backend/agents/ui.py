from __future__ import annotations

from typing import Any, Dict, List, Optional


def a2ui_text(title: str, text: str, *, sources: Optional[list[str]] = None) -> Dict[str, Any]:
    children: list[Dict[str, Any]] = [
        {"type": "heading", "level": 2, "text": title},
        {"type": "text", "text": text},
    ]
    if sources:
        children.append(
            {
                "type": "links",
                "items": [{"text": href, "href": href} for href in sources if href],
            }
        )
    return {
        "schema": "a2ui",
        "version": "0.1",
        "render": {"type": "container", "children": children},
    }


def a2ui_passages(title: str, text: str, documents: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Answer text followed by a table of the ranked passages behind it."""
    rows = [
        {
            "id": (doc.get("metadata") or {}).get("id", ""),
            "score": fmt_score(doc.get("score")),
            "hops": doc.get("hopDistance", 0),
            "content": (doc.get("content") or "")[:160],
        }
        for doc in documents
    ]
    children: list[Dict[str, Any]] = [
        {"type": "heading", "level": 2, "text": title},
        {"type": "text", "text": text},
    ]
    if rows:
        children.append(
            {
                "type": "table",
                "columns": [
                    {"key": "id", "label": "Node"},
                    {"key": "score", "label": "Score"},
                    {"key": "hops", "label": "Hops"},
                    {"key": "content", "label": "Passage"},
                ],
                "rows": rows,
            }
        )
    return {
        "schema": "a2ui",
        "version": "0.1",
        "render": {"type": "container", "children": children},
    }


def fmt_score(x: Any) -> str:
    if x is None:
        return ""
    try:
        return f"{float(x):.3f}"
    except (TypeError, ValueError):
        return str(x)
