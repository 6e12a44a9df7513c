"""Enyphansyntrix: bounded perturbation of the core state vector.

Two modes:
- continuous: add Gaussian noise with stddev `scale`, clip to [-1, 1]
- discrete: quantize to multiples of the metron tau, clip to [-1, 1]

A malformed input never raises; it yields a zero vector of the expected
width so the step can continue.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

import numpy as np

from syntrometry.utils.vectors import as_vector, zeros

logger = logging.getLogger(__name__)

DEFAULT_METRON_TAU = 0.1


class PerturbationMode(str, Enum):
    """How the operator transforms a state vector."""

    CONTINUOUS = "continuous"
    DISCRETE = "discrete"


class PerturbationOperator:
    """Adds bounded noise to, or quantizes, a fixed-width state vector.

    Attributes:
        dimensions: Expected input width D
        mode: Continuous noise or discrete quantization
        metron_tau: Quantization step for the discrete mode
    """

    def __init__(
        self,
        dimensions: int,
        mode: PerturbationMode | str = PerturbationMode.CONTINUOUS,
        metron_tau: float = DEFAULT_METRON_TAU,
        rng: Optional[np.random.Generator] = None,
    ):
        """Initialize the operator.

        Args:
            dimensions: Expected input width D
            mode: "continuous" or "discrete"; unknown names fall back to continuous
            metron_tau: Quantization step for the discrete mode
            rng: Source of noise, seedable for reproducible runs
        """
        self.dimensions = dimensions
        try:
            self.mode = PerturbationMode(mode)
        except ValueError:
            logger.warning(f"Unknown perturbation mode {mode!r}, defaulting to continuous")
            self.mode = PerturbationMode.CONTINUOUS
        self.metron_tau = metron_tau if metron_tau > 0 else DEFAULT_METRON_TAU
        self.rng = rng if rng is not None else np.random.default_rng()

    def apply(self, state: Any, scale: float = 0.01) -> np.ndarray:
        """Perturb a state vector.

        Args:
            state: Vector of length `dimensions`
            scale: Noise stddev for the continuous mode (negative treated as 0)

        Returns:
            New vector of length `dimensions` with every element in [-1, 1]
        """
        vector = as_vector(state)
        if vector is None or vector.shape[0] != self.dimensions:
            got = "invalid" if vector is None else f"length {vector.shape[0]}"
            logger.warning(
                f"Perturbation input {got}, expected length {self.dimensions}; "
                "returning zeros"
            )
            return zeros(self.dimensions)

        if self.mode is PerturbationMode.DISCRETE:
            tau = self.metron_tau
            return np.clip(np.rint(vector / tau) * tau, -1.0, 1.0)

        scale = max(0.0, float(scale))
        noise = self.rng.normal(0.0, scale, size=vector.shape) if scale > 0 else 0.0
        return np.clip(vector + noise, -1.0, 1.0)
