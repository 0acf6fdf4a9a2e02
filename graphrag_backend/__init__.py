"""Graph-based retrieval engine exposed as agent tools."""

from .main import app  # Re-export FastAPI application for uvicorn

__all__ = ["app"]
