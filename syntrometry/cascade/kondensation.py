"""Strukturkondensation: repeated synkolation into a level history.

history[0] is a copy of the initial vector; history[i + 1] is reducer i
applied to history[i]. Once a level comes out empty, the remaining levels
are empty as well and no further reducer runs.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np

from syntrometry.cascade.synkolator import MIN_STAGE, CascadeReducer, ReductionRule

logger = logging.getLogger(__name__)


def _empty() -> np.ndarray:
    return np.zeros(0, dtype=np.float64)


class CascadeProcessor:
    """Builds a cascade history with one reducer per level.

    Reducer i uses window `stage + i * stage_increment`, so the default
    increment of 0 gives every level the same window.

    Attributes:
        reducers: One CascadeReducer per level, in application order
    """

    def __init__(
        self,
        levels: int = 4,
        stage: int = MIN_STAGE,
        rule: ReductionRule | str = ReductionRule.PYRAMIDAL,
        stage_increment: int = 0,
    ):
        """Initialize the processor.

        Args:
            levels: Number of reductions after the initial level
            stage: Window of the first reducer
            rule: Reduction rule shared by every level
            stage_increment: Window growth per level
        """
        self.reducers: list[CascadeReducer] = [
            CascadeReducer(rule=rule, stage=stage + i * stage_increment)
            for i in range(max(0, levels))
        ]

    @property
    def levels(self) -> int:
        return len(self.reducers)

    def process(self, initial: Any, levels: Optional[int] = None) -> list[np.ndarray]:
        """Run the cascade.

        Args:
            initial: 1-D starting vector; it is copied, never modified
            levels: Number of reductions; defaults to the number of reducers.
                Indices without a reducer produce empty levels.

        Returns:
            `levels + 1` vectors, or a single empty vector when `initial` is
            missing, not 1-D, empty or non-finite.
        """
        if initial is None:
            logger.warning("Cascade received no initial vector")
            return [_empty()]
        raw = np.asarray(initial, dtype=np.float64)
        if raw.ndim != 1 or raw.shape[0] == 0 or not np.all(np.isfinite(raw)):
            logger.warning(f"Cascade received invalid initial vector of shape {raw.shape}")
            return [_empty()]

        n_levels = self.levels if levels is None else max(0, int(levels))
        history = [raw.copy()]
        current = history[0]
        for i in range(n_levels):
            if current.shape[0] == 0 or i >= len(self.reducers):
                history.append(_empty())
                continue
            current = self.reducers[i].apply(current)
            history.append(current)

        return history


def condense(initial: Any, levels: int, stage: int = MIN_STAGE) -> list[np.ndarray]:
    """Pyramidal cascade with a constant window, as a single call."""
    return CascadeProcessor(levels=levels, stage=stage).process(initial)
