"""Tests for single-level cascade reduction."""

import math

import numpy as np
import pytest

from syntrometry.cascade import CascadeReducer, ReductionRule


class TestPyramidalRule:
    """Sliding-window means with step 1."""

    def test_stage_two(self):
        """Each output element should be the mean of two neighbours."""
        reducer = CascadeReducer(stage=2)
        out = reducer.apply([1.0, 2.0, 3.0, 4.0])
        assert out.tolist() == pytest.approx([1.5, 2.5, 3.5])

    def test_stage_three(self):
        reducer = CascadeReducer(stage=3)
        assert reducer.apply([1.0, 2.0, 3.0, 4.0]).tolist() == pytest.approx([2.0, 3.0])

    def test_output_length_matches_apply(self):
        reducer = CascadeReducer(stage=3)
        for n in range(0, 7):
            level = np.arange(n, dtype=np.float64)
            assert reducer.apply(level).shape[0] == reducer.output_length(n)

    def test_level_shorter_than_stage_is_empty(self):
        assert CascadeReducer(stage=2).apply([1.0]).shape == (0,)

    def test_stage_below_minimum_is_raised(self):
        """A window of 1 would never shrink a level, so it is raised to 2."""
        assert CascadeReducer(stage=1).stage == 2

    def test_input_not_modified(self):
        level = np.array([1.0, 2.0, 3.0])
        CascadeReducer().apply(level)
        assert level.tolist() == [1.0, 2.0, 3.0]


class TestAverageRule:
    """Whole-level mean."""

    def test_average_collapses_to_one(self):
        reducer = CascadeReducer(rule=ReductionRule.AVERAGE)
        assert reducer.apply([1.0, 2.0, 3.0, 4.0]).tolist() == pytest.approx([2.5])

    def test_rule_accepts_string(self):
        assert CascadeReducer(rule="average").rule is ReductionRule.AVERAGE

    def test_unknown_rule_falls_back_to_pyramidal(self):
        assert CascadeReducer(rule="median").rule is ReductionRule.PYRAMIDAL


class TestInvalidLevels:
    """Degenerate input yields an empty level instead of raising."""

    @pytest.mark.parametrize(
        "level",
        [None, [], [[1.0, 2.0], [3.0, 4.0]], [1.0, math.nan, 2.0]],
    )
    def test_invalid_input_returns_empty(self, level):
        assert CascadeReducer().apply(level).shape == (0,)
