"""Tiny local smoke test for the FastAPI app.

Runs without starting Uvicorn: it imports the app and calls endpoints via
FastAPI's TestClient.

Usage:
  /path/to/.venv/bin/python graphrag_backend/smoke_test.py
"""

import os
import sys

from fastapi.testclient import TestClient


# Allow running as `python graphrag_backend/smoke_test.py` from the repo root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from graphrag_backend.main import app  # noqa: E402


def main() -> None:
    client = TestClient(app)

    r = client.get("/")
    assert r.status_code == 200, r.text

    r = client.get("/tools")
    assert r.status_code == 200, r.text
    assert len(r.json()["tools"]) == 10

    docs = [
        {"content": "Cats are small domesticated felines."},
        {"content": "Domesticated felines such as cats are small pets."},
        {"content": "Stock markets fell sharply on Tuesday."},
    ]
    r = client.post("/tools/create-graph", json={"documents": docs, "namespace": "smoke"})
    assert r.status_code == 200, r.text
    assert r.json()["success"] is True and r.json()["nodeCount"] == 3, r.text

    r = client.post("/tools/query-graph", json={"query": "small cats", "namespace": "smoke", "minSimilarity": 0.0})
    assert r.status_code == 200, r.text
    assert r.json()["count"] >= 1, r.text

    r = client.post("/tools/query-graph", json={"namespace": "smoke"})
    assert r.status_code == 422, r.text

    r = client.post("/tools/no-such-tool", json={})
    assert r.status_code == 404, r.text

    # SSE endpoint: we just ensure we at least get a response and some bytes.
    r = client.get("/stream", params={"message": "what are cats?", "namespace": "smoke"})
    assert r.status_code == 200, r.text
    assert "data:" in r.text or r.text.strip() != "", "Expected SSE response body"

    print("smoke_test.py: PASS")


if __name__ == "__main__":
    main()
