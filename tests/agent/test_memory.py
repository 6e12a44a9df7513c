"""Tests for the bounded embedding memory."""

from datetime import datetime, timezone

import numpy as np
import pytest

from syntrometry.agent import MemoryStore


class TestMemoryStore:
    """Tests for FIFO insertion and eviction."""

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            MemoryStore(capacity=0)

    def test_add_and_len(self):
        memory = MemoryStore(capacity=3, embedding_dim=2)
        assert memory.add([1.0, 0.0])
        assert len(memory) == 1
        assert not memory.is_full

    def test_evicts_oldest_when_full(self):
        """The (N+1)-th insert should drop the first embedding."""
        memory = MemoryStore(capacity=3, embedding_dim=1)
        for value in range(4):
            memory.add([float(value)])

        assert memory.is_full
        assert len(memory) == 3
        assert [e.tolist() for e in memory.embeddings()] == [[1.0], [2.0], [3.0]]

    def test_wrong_width_is_skipped(self):
        memory = MemoryStore(capacity=3, embedding_dim=2)
        assert not memory.add([1.0, 2.0, 3.0])
        assert not memory.add([1.0, float("nan")])
        assert len(memory) == 0

    def test_stores_a_copy(self):
        memory = MemoryStore(capacity=2, embedding_dim=2)
        embedding = np.array([0.5, 0.5])
        memory.add(embedding)
        embedding[0] = -1.0
        assert memory.embeddings()[0].tolist() == [0.5, 0.5]

    def test_embeddings_returns_copies(self):
        memory = MemoryStore(capacity=2, embedding_dim=2)
        memory.add([0.5, 0.5])
        memory.embeddings()[0][0] = 9.0
        assert memory.embeddings()[0][0] == 0.5

    def test_copy_is_independent(self):
        memory = MemoryStore(capacity=2, embedding_dim=1)
        memory.add([1.0])
        clone = memory.copy()
        clone.add([2.0])
        clone.clear()
        assert len(memory) == 1

    def test_to_list_serializes_entries(self):
        memory = MemoryStore(capacity=2, embedding_dim=2)
        stamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        memory.add([0.25, -0.25], timestamp=stamp)

        assert memory.to_list() == [
            {"timestamp": "2026-01-02T03:04:05+00:00", "embedding": [0.25, -0.25]}
        ]
