"""
Vector helpers for embedding comparison.

Cosine similarity here never raises and never returns NaN: degenerate
inputs (zero vectors, mismatched dimensions) score 0.0.
"""

from typing import Optional, Sequence

import numpy as np


def cosine_similarity(vec_a: Optional[Sequence[float]], vec_b: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity between two vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        dot / (|a| * |b|), or 0.0 if either vector is missing or zero,
        or the dimensions differ
    """
    if vec_a is None or vec_b is None:
        return 0.0

    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    if a.ndim != 1 or a.shape != b.shape:
        return 0.0

    magnitude = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if magnitude == 0:
        return 0.0

    return float(np.dot(a, b) / magnitude)


def compute_centroid(vectors: Sequence[Sequence[float]]) -> Optional[np.ndarray]:
    """
    Elementwise mean of a set of vectors.

    Not normalised: cosine similarity against it is scale-free anyway.

    Args:
        vectors: Array-like of shape (n, dim)

    Returns:
        Centroid of shape (dim,), or None for an empty input
    """
    if len(vectors) == 0:
        return None

    return np.mean(np.asarray(vectors, dtype=np.float64), axis=0)


def adjacent_distances(vectors: Sequence[Sequence[float]]) -> list:
    """1 - cosine similarity between each consecutive pair of vectors."""
    return [
        1 - cosine_similarity(vectors[i], vectors[i + 1]) for i in range(len(vectors) - 1)
    ]
