"""
Cosine Similarity Tests
========================
"""

from __future__ import annotations

import numpy as np
import pytest

from groundnote.retrieve.similarity import cosine_similarity


class TestCosineSimilarity:

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, -2.0], [-1.0, 2.0]) == pytest.approx(-1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
        assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0

    def test_length_mismatch(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0

    def test_scale_invariant(self):
        a = np.array([0.3, 0.4, 0.5])
        assert cosine_similarity(a, a * 10) == pytest.approx(1.0)

    def test_returns_python_float(self):
        assert isinstance(cosine_similarity(np.ones(4), np.ones(4)), float)
