"""
Cosine similarity between embedding vectors.

A single pure function used by the relationship builder when it compares every
pair of documents in a batch.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .errors import DimensionMismatchError


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Return the cosine similarity of two equal-length vectors.

    Args:
        vec_a: First vector.
        vec_b: Second vector.

    Returns:
        ``dot(a, b) / (|a| * |b|)`` clipped to ``[-1, 1]``, or ``0.0`` when
        either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    a = np.asarray(vec_a, dtype=float).ravel()
    b = np.asarray(vec_b, dtype=float).ravel()
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatchError(a.shape[0], b.shape[0])

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    # Rounding can push identical vectors a hair above 1.
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


__all__ = ["cosine_similarity"]
