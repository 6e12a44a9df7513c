"""Tests for trust estimation against memory."""

import math

import numpy as np
import pytest

from syntrometry.agent import MemoryStore, TrustEstimator


def _memory(*embeddings, dim=2):
    memory = MemoryStore(capacity=10, embedding_dim=dim)
    for embedding in embeddings:
        memory.add(embedding)
    return memory


class TestTrustEstimator:
    """Tests for TrustEstimator.compute()."""

    def test_empty_memory_is_full_trust(self):
        assert TrustEstimator().compute([0.3, 0.4], _memory()) == 1.0

    def test_identical_direction(self):
        memory = _memory([1.0, 0.0], [2.0, 0.0])
        assert TrustEstimator().compute([0.5, 0.0], memory) == pytest.approx(1.0)

    def test_opposite_direction(self):
        memory = _memory([1.0, 0.0])
        assert TrustEstimator().compute([-1.0, 0.0], memory) == pytest.approx(0.0)

    def test_orthogonal_is_neutral(self):
        memory = _memory([1.0, 0.0])
        assert TrustEstimator().compute([0.0, 1.0], memory) == pytest.approx(0.5)

    def test_mean_similarity_is_rescaled(self):
        """Similarities 1 and 0 average to 0.5, mapped to 0.75."""
        memory = _memory([1.0, 0.0], [0.0, 1.0])
        assert TrustEstimator().compute([1.0, 0.0], memory) == pytest.approx(0.75)

    def test_zero_embedding_is_zero_trust(self):
        memory = _memory([1.0, 0.0])
        assert TrustEstimator().compute([0.0, 0.0], memory) == 0.0

    def test_invalid_embedding_is_neutral(self):
        memory = _memory([1.0, 0.0])
        assert TrustEstimator().compute([math.nan, 0.0], memory) == 0.5
        assert TrustEstimator().compute([[1.0, 0.0]], memory) == 0.5

    def test_no_comparable_entries_is_neutral(self):
        memory = _memory([1.0, 0.0, 0.0], dim=3)
        assert TrustEstimator().compute([1.0, 0.0], memory) == 0.5

    def test_result_in_unit_interval(self):
        rng = np.random.default_rng(5)
        memory = _memory(*rng.normal(size=(6, 4)), dim=4)
        for current in rng.normal(size=(10, 4)):
            assert 0.0 <= TrustEstimator().compute(current, memory) <= 1.0
