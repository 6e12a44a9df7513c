"""Tests for building a cascade level history."""

import math

import numpy as np
import pytest

from syntrometry.cascade import CascadeProcessor, CoherenceScorer, ReductionRule, condense


class TestCascadeProcessor:
    """Tests for CascadeProcessor.process()."""

    def test_level_lengths_with_constant_window(self):
        """Each pyramidal level should be one element shorter."""
        history = CascadeProcessor(levels=4, stage=2).process(np.arange(1.0, 9.0))
        assert [level.shape[0] for level in history] == [8, 7, 6, 5, 4]

    def test_first_level_is_a_copy(self):
        initial = np.arange(1.0, 5.0)
        history = CascadeProcessor(levels=2).process(initial)
        assert history[0].tolist() == initial.tolist()
        history[0][0] = 99.0
        assert initial[0] == 1.0

    def test_short_input_pads_with_empty_levels(self):
        """Once a level is empty every later level is empty too."""
        history = CascadeProcessor(levels=4, stage=2).process([1.0, 2.0, 3.0])
        assert [level.shape[0] for level in history] == [3, 2, 1, 0, 0]

    def test_growing_window(self):
        processor = CascadeProcessor(levels=4, stage=2, stage_increment=1)
        assert [r.stage for r in processor.reducers] == [2, 3, 4, 5]
        history = processor.process(np.arange(12.0))
        assert [level.shape[0] for level in history] == [12, 11, 9, 6, 2]

    def test_levels_beyond_reducers_are_empty(self):
        history = CascadeProcessor(levels=2).process(np.arange(6.0), levels=4)
        assert len(history) == 5
        assert history[3].shape == (0,)
        assert history[4].shape == (0,)

    def test_average_rule(self):
        history = CascadeProcessor(levels=3, rule=ReductionRule.AVERAGE).process(
            [1.0, 2.0, 3.0]
        )
        assert history[1].tolist() == pytest.approx([2.0])
        assert history[2].tolist() == pytest.approx([2.0])

    def test_zero_levels_returns_initial_only(self):
        history = CascadeProcessor(levels=0).process([1.0, 2.0])
        assert len(history) == 1

    @pytest.mark.parametrize(
        "initial",
        [None, [], [[1.0, 2.0], [3.0, 4.0]], [1.0, math.inf]],
    )
    def test_invalid_initial_returns_single_empty_level(self, initial):
        history = CascadeProcessor(levels=4).process(initial)
        assert len(history) == 1
        assert history[0].shape == (0,)


class TestCondense:
    """Tests for the condense() convenience function."""

    def test_condense_values(self):
        history = condense([1.0, 2.0, 3.0, 4.0, 5.0], levels=2)
        assert history[1].tolist() == pytest.approx([1.5, 2.5, 3.5, 4.5])
        assert history[2].tolist() == pytest.approx([2.0, 3.0, 4.0])

    def test_zero_input_cascade(self):
        """Three stage-2 levels over zeros(8) shrink 8 -> 5 and score no coherence."""
        history = CascadeProcessor(levels=3, stage=2).process(np.zeros(8))
        assert [level.shape[0] for level in history] == [8, 7, 6, 5]
        assert CoherenceScorer().compute(history[-1]) == 0.0
