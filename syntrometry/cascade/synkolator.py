"""Synkolator: one reduction step of the cascade.

The pyramidal rule replaces a level of length L by the L - stage + 1 means of
its sliding windows (step 1). The averaging rule collapses a level to its
single mean.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import numpy as np

from syntrometry.utils.vectors import as_vector

logger = logging.getLogger(__name__)

MIN_STAGE = 2


class ReductionRule(str, Enum):
    """Aggregation applied by a reducer."""

    PYRAMIDAL = "pyramidal"
    AVERAGE = "average"


def _empty() -> np.ndarray:
    return np.zeros(0, dtype=np.float64)


class CascadeReducer:
    """Applies one synkolation rule to a cascade level.

    Attributes:
        rule: Pyramidal sliding-window mean or whole-level average
        stage: Window size for the pyramidal rule (never below 2)
    """

    def __init__(
        self,
        rule: ReductionRule | str = ReductionRule.PYRAMIDAL,
        stage: int = MIN_STAGE,
    ):
        try:
            self.rule = ReductionRule(rule)
        except ValueError:
            logger.warning(f"Unsupported reduction rule {rule!r}, defaulting to pyramidal")
            self.rule = ReductionRule.PYRAMIDAL
        self.stage = max(MIN_STAGE, int(stage))

    def output_length(self, input_length: int) -> int:
        """Length of the level produced from an input of `input_length`."""
        if input_length <= 0:
            return 0
        if self.rule is ReductionRule.AVERAGE:
            return 1
        return max(0, input_length - self.stage + 1)

    def apply(self, level: Any) -> np.ndarray:
        """Reduce one level.

        Args:
            level: 1-D vector

        Returns:
            New reduced vector; empty for empty, multi-dimensional or
            non-finite input, and for pyramidal input shorter than `stage`.
        """
        if level is None:
            return _empty()
        raw = np.asarray(level)
        if raw.ndim != 1 or raw.shape[0] == 0:
            logger.debug(f"Reducer received shape {raw.shape}, expected non-empty 1-D")
            return _empty()
        vector = as_vector(raw)
        if vector is None:
            logger.warning("Reducer received non-finite values")
            return _empty()

        if self.rule is ReductionRule.AVERAGE:
            return np.array([vector.mean()], dtype=np.float64)

        n_out = self.output_length(vector.shape[0])
        if n_out == 0:
            return _empty()
        windows = np.lib.stride_tricks.sliding_window_view(vector, self.stage)
        return windows.mean(axis=1)
