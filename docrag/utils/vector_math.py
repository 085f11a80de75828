"""Vector helpers shared by the chunk model and the in-memory vector store.

Retrieval distances in docrag are Euclidean (L2) distances, ``0.0`` for
identical vectors and larger for less similar ones.  For unit-length
embeddings ``L2 = sqrt(2 * (1 - cosine_similarity))``, so a threshold of
``0.7`` admits chunks whose cosine similarity exceeds ``0.755``.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def l2_norm(vector: Sequence[float]) -> float:
    """Return the Euclidean length of *vector* (``0.0`` for an empty vector)."""
    if len(vector) == 0:
        return 0.0
    return float(np.linalg.norm(np.asarray(vector, dtype=np.float64)))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of *a* and *b*.

    Empty vectors, vectors of different lengths and zero-norm vectors
    all score ``0.0`` instead of raising or producing NaN.
    """
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the L2 distance between *a* and *b*.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"dimension mismatch: {len(a)} != {len(b)}")
    return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))


def euclidean_distances(matrix: np.ndarray, query: Sequence[float]) -> np.ndarray:
    """Return the L2 distance of every row of *matrix* to *query*."""
    q = np.asarray(query, dtype=np.float64)
    return np.linalg.norm(matrix - q, axis=1)


def zero_vector(dimension: int) -> list[float]:
    """Return the all-zero placeholder vector used for degraded chunks."""
    return [0.0] * dimension


def is_zero_vector(vector: Sequence[float]) -> bool:
    return not np.any(np.asarray(vector, dtype=np.float64))
