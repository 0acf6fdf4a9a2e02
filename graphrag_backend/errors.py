"""
Exception hierarchy for the GraphRAG engine.

The domain modules raise these; the tool layer in ``graphrag_backend.tools``
turns them into structured ``{"success": False, "message": ...}`` results so a
calling agent can react to them programmatically.
"""

from __future__ import annotations

from typing import Optional


class GraphRagError(Exception):
    """Base class for every error raised by the graph engine."""


class InvalidInputError(GraphRagError):
    """Malformed document, node, edge or parameter."""


class InvalidDocumentError(InvalidInputError):
    """A document handed to the relationship builder is malformed."""

    def __init__(self, index: int, reason: str) -> None:
        super().__init__(f"Invalid document at index {index}: {reason}")
        self.index = index
        self.reason = reason


class InvalidNodeError(InvalidInputError):
    pass


class InvalidEdgeError(InvalidInputError):
    pass


class DimensionMismatchError(InvalidInputError):
    """Two vectors compared for similarity have different lengths."""

    def __init__(self, len_a: int, len_b: int) -> None:
        super().__init__(f"Vectors must have the same dimensions ({len_a} != {len_b})")
        self.len_a = len_a
        self.len_b = len_b


class NotFoundError(GraphRagError):
    pass


class DuplicateNodeError(GraphRagError):
    pass


class DuplicateEdgeError(GraphRagError):
    pass


class SerializationError(GraphRagError):
    """An import payload or graph file could not be parsed."""


class UpstreamFailureError(GraphRagError):
    """The embedding provider or the vector store raised."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


__all__ = [
    "GraphRagError",
    "InvalidInputError",
    "InvalidDocumentError",
    "InvalidNodeError",
    "InvalidEdgeError",
    "DimensionMismatchError",
    "NotFoundError",
    "DuplicateNodeError",
    "DuplicateEdgeError",
    "SerializationError",
    "UpstreamFailureError",
]
