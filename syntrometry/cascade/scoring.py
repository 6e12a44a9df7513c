"""Scores computed over cascade levels.

- AffinityScorer (Affinitätssyndrom): cosine similarity of two levels of
  possibly different length, the shorter one zero-padded.
- CoherenceScorer (reflexive integration, RIH): how peaked a level is,
  |mean| / stddev scaled and clamped to [0, 1].

Both return 0.0 for degenerate input instead of dividing by a near-zero norm
or variance.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from syntrometry.utils.vectors import EPSILON, as_vector, cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_COHERENCE_SCALE = 0.5


class AffinityScorer:
    """Cosine similarity between two syndromes of any length.

    Example:
        scorer = AffinityScorer()
        scorer.compute([1, 0, 0, 0], [1, 0])  # 1.0, second padded to [1, 0, 0, 0]
    """

    def compute(self, a: Any, b: Any) -> float:
        """Compute the affinity of two vectors.

        Args:
            a: First vector (flattened)
            b: Second vector (flattened)

        Returns:
            Similarity in [-1, 1]; 0.0 if either vector is empty, non-finite
            or of near-zero norm.
        """
        vec_a = as_vector(a)
        vec_b = as_vector(b)
        if vec_a is None or vec_b is None:
            logger.warning("Affinity received an invalid vector")
            return 0.0
        if vec_a.size == 0 or vec_b.size == 0:
            return 0.0

        length = max(vec_a.size, vec_b.size)
        vec_a = np.pad(vec_a, (0, length - vec_a.size))
        vec_b = np.pad(vec_b, (0, length - vec_b.size))
        return cosine_similarity(vec_a, vec_b)

    def adjacent(self, history: list[np.ndarray]) -> list[float]:
        """Affinities between each pair of consecutive levels."""
        return [self.compute(history[i], history[i + 1]) for i in range(len(history) - 1)]


class CoherenceScorer:
    """Reflexive integration score of a single level.

    Attributes:
        scale: Multiplier on |mean| / stddev before clamping
    """

    def __init__(self, scale: float = DEFAULT_COHERENCE_SCALE):
        self.scale = scale

    def compute(self, level: Any) -> float:
        """Score how peaked a level is.

        Returns:
            0.0 for fewer than two elements, non-finite input, or variance
            below EPSILON; otherwise clamp(|mean| / sqrt(var) * scale, 0, 1).
        """
        vector = as_vector(level)
        if vector is None or vector.size < 2:
            return 0.0

        mean = float(vector.mean())
        variance = float(vector.var())
        if variance < EPSILON:
            return 0.0

        return float(np.clip(abs(mean) / np.sqrt(variance) * self.scale, 0.0, 1.0))
