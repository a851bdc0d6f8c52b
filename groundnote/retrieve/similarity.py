"""
Cosine Similarity
==================

Similarity primitive shared by the evidence retriever and the
faithfulness evaluator.

Degenerate inputs never raise:
    - vectors of different length → 0.0
    - either vector with zero magnitude → 0.0
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

Vector = Union[Sequence[float], np.ndarray]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine of the angle between two vectors, in [-1, 1].

    Args:
        a: First vector.
        b: Second vector.

    Returns:
        dot(a, b) / (|a| * |b|), or 0.0 for mismatched / zero vectors.
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape != vb.shape:
        return 0.0

    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)
