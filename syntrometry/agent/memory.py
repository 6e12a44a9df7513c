"""Bounded FIFO memory of recent belief embeddings.

The store keeps the last `capacity` embeddings in insertion order. Adding to
a full store evicts the oldest entry. It is read by the trust estimator and
written once per successful step.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import numpy as np

from syntrometry.utils.vectors import as_vector

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


@dataclass
class MemoryEntry:
    """One remembered embedding.

    Attributes:
        embedding: Belief embedding of width E (owned copy)
        timestamp: When the embedding was stored
    """

    embedding: np.ndarray
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        """Serialize for storage."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "embedding": self.embedding.tolist(),
        }


class MemoryStore:
    """Rolling window of the most recent belief embeddings.

    Attributes:
        capacity: Maximum number of entries retained (N)
        embedding_dim: Width every stored embedding must have (E)
    """

    def __init__(self, capacity: int = 15, embedding_dim: int = 64):
        """Initialize an empty store.

        Args:
            capacity: Maximum entries to retain
            embedding_dim: Required embedding width
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.embedding_dim = embedding_dim
        self._entries: deque[MemoryEntry] = deque(maxlen=capacity)

    def __len__(self) -> int:
        """Return number of entries currently stored."""
        return len(self._entries)

    def __iter__(self) -> Iterator[MemoryEntry]:
        """Iterate oldest first."""
        return iter(self._entries)

    @property
    def is_full(self) -> bool:
        return len(self._entries) == self.capacity

    def add(self, embedding: Any, timestamp: Optional[datetime] = None) -> bool:
        """Append an embedding, evicting the oldest entry when full.

        Args:
            embedding: Vector of width `embedding_dim`; a copy is stored
            timestamp: Defaults to now (UTC)

        Returns:
            True if stored, False if the embedding was invalid and skipped
        """
        vector = as_vector(embedding)
        if vector is None or vector.shape[0] != self.embedding_dim:
            got = "invalid" if vector is None else f"width {vector.shape[0]}"
            logger.warning(
                f"Skipping memory insert: {got} embedding, expected width {self.embedding_dim}"
            )
            return False

        if self.is_full:
            evicted = self._entries[0]
            logger.debug(f"Memory full, evicting entry from {evicted.timestamp.isoformat()}")
        self._entries.append(MemoryEntry(embedding=vector, timestamp=timestamp or utc_now()))
        return True

    def embeddings(self) -> list[np.ndarray]:
        """Copies of the stored embeddings, oldest first."""
        return [entry.embedding.copy() for entry in self._entries]

    def copy(self) -> "MemoryStore":
        """Independent store with copies of every entry."""
        clone = MemoryStore(capacity=self.capacity, embedding_dim=self.embedding_dim)
        for entry in self._entries:
            clone._entries.append(
                MemoryEntry(embedding=entry.embedding.copy(), timestamp=entry.timestamp)
            )
        return clone

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def to_list(self) -> list[dict]:
        """Serialize entries, oldest first."""
        return [entry.to_dict() for entry in self._entries]
