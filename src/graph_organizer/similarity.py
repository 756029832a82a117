"""Vector similarity helpers."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as pairwise_cosine

from graph_organizer.errors import DimensionMismatch

Vector = Sequence[float] | np.ndarray


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine similarity of two embeddings, in [-1, 1].

    A zero vector has no direction, so any comparison involving one is 0.0.

    Raises:
        DimensionMismatch: If the vectors have different lengths
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise DimensionMismatch(len(va), len(vb))

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Rounding can push identical vectors a hair past 1
    return max(-1.0, min(1.0, similarity))


def stack_embeddings(vectors: Sequence[Vector]) -> np.ndarray:
    """Stack embeddings into a 2D array, checking they share one dimension."""
    if not vectors:
        return np.empty((0, 0))
    dim = len(vectors[0])
    for vector in vectors[1:]:
        if len(vector) != dim:
            raise DimensionMismatch(dim, len(vector))
    return np.array([np.asarray(v, dtype=float) for v in vectors])


def average_pairwise_similarity(vectors: Sequence[Vector]) -> float:
    """Mean cosine similarity over all unordered pairs; 1.0 for fewer than two vectors."""
    if len(vectors) < 2:
        return 1.0

    matrix = pairwise_cosine(stack_embeddings(vectors))
    # Average of upper triangle (excluding diagonal)
    mask = np.triu(np.ones_like(matrix, dtype=bool), k=1)
    return float(matrix[mask].mean())
