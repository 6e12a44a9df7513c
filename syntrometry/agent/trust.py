"""Trust: how familiar the current embedding is given recent memory."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from syntrometry.agent.memory import MemoryStore
from syntrometry.utils.vectors import EPSILON, as_vector, cosine_similarity

logger = logging.getLogger(__name__)

# Trust when nothing remembered contradicts the current embedding
EMPTY_MEMORY_TRUST = 1.0
# Trust when no similarity can be computed
NEUTRAL_TRUST = 0.5


class TrustEstimator:
    """Maps mean cosine similarity against memory from [-1, 1] to [0, 1].

    - 1.0 = identical direction to everything remembered
    - 0.5 = orthogonal on average, or nothing comparable
    - 0.0 = opposite direction, or a zero current embedding
    """

    def compute(self, current: Any, memory: MemoryStore) -> float:
        """Estimate trust in the current embedding.

        Args:
            current: Belief embedding of width E
            memory: Remembered embeddings; entries of another width are skipped

        Returns:
            Trust in [0, 1]
        """
        if len(memory) == 0:
            return EMPTY_MEMORY_TRUST

        vector = as_vector(current)
        if vector is None or np.asarray(current).ndim != 1:
            logger.warning("Trust received an invalid embedding, returning neutral trust")
            return NEUTRAL_TRUST
        if float(np.linalg.norm(vector)) < EPSILON:
            return 0.0

        similarities = []
        for entry in memory:
            if entry.embedding.shape != vector.shape:
                continue
            similarities.append(cosine_similarity(vector, entry.embedding))

        if not similarities:
            logger.debug("No comparable memory entries, returning neutral trust")
            return NEUTRAL_TRUST

        mean_similarity = sum(similarities) / len(similarities)
        return float(np.clip((mean_similarity + 1.0) / 2.0, 0.0, 1.0))
