"""Persistent self-state: an exponential moving blend of belief embeddings.

    rate  = base_learn_rate * (0.5 + integration)
    self' = self * decay + embedding * (trust * rate)

Higher integration lets new embeddings in faster; trust gates how much of
the embedding is taken at all, so a zero-trust step only decays the state.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np

from syntrometry.utils.vectors import as_vector, zeros

logger = logging.getLogger(__name__)

SELF_STATE_DECAY = 0.98
SELF_STATE_LEARN_RATE = 0.05
INITIAL_STDDEV = 0.1


class SelfStateTracker:
    """Owns the agent's self-state vector and applies the blend each step.

    Attributes:
        decay: Multiplier applied to the previous state
        base_learn_rate: Rate before integration scaling
        resets: Number of dimension-mismatch resets so far
    """

    def __init__(
        self,
        dimensions: int,
        decay: float = SELF_STATE_DECAY,
        base_learn_rate: float = SELF_STATE_LEARN_RATE,
        initial: Optional[np.ndarray] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        """Initialize the tracker.

        Args:
            dimensions: Embedding width E
            decay: Per-step decay of the previous state
            base_learn_rate: Base blend rate
            initial: Starting state; drawn from N(0, 0.1) when omitted
            rng: Generator used for the random starting state
        """
        self.dimensions = dimensions
        self.decay = decay
        self.base_learn_rate = base_learn_rate
        self.resets = 0
        if initial is not None:
            self._state = np.array(initial, dtype=np.float64).reshape(-1)
        else:
            rng = rng if rng is not None else np.random.default_rng()
            self._state = rng.normal(0.0, INITIAL_STDDEV, size=dimensions)

    @property
    def state(self) -> np.ndarray:
        """Copy of the current self-state."""
        return self._state.copy()

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self._state))

    def set_state(self, state: np.ndarray) -> None:
        """Replace the state wholesale (used by state loading)."""
        self._state = np.array(state, dtype=np.float64).reshape(-1)

    def reset(self, dimensions: Optional[int] = None) -> None:
        """Reset to zeros, optionally at a new width."""
        if dimensions is not None:
            self.dimensions = dimensions
        self._state = zeros(self.dimensions)

    def compute(self, embedding: Any, trust: float, integration: float) -> np.ndarray:
        """Next state without committing it.

        Returns:
            The blended state, or zeros of the embedding's width when the
            widths disagree (the blend is skipped for that step).
        """
        vector = as_vector(embedding)
        if vector is None:
            logger.warning("Self-state update skipped: invalid embedding")
            return self._state.copy()
        if vector.shape != self._state.shape:
            logger.warning(
                f"Self-state dimension mismatch: state {self._state.shape[0]} vs "
                f"embedding {vector.shape[0]}, resetting to zeros"
            )
            return zeros(vector.shape[0])

        effective_rate = self.base_learn_rate * (0.5 + integration)
        return self._state * self.decay + vector * (trust * effective_rate)

    def update(self, embedding: Any, trust: float, integration: float) -> np.ndarray:
        """Blend an embedding into the state and return a copy of the result."""
        vector = as_vector(embedding)
        if vector is not None and vector.shape != self._state.shape:
            self.resets += 1
            self.dimensions = vector.shape[0]
        self._state = self.compute(embedding, trust, integration)
        return self._state.copy()
