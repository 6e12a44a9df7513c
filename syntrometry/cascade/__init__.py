"""Cascade layer of the syntrometric core.

This package provides the pure numeric stages of a step:
1. Perturbation of the core state (Enyphansyntrix)
2. Sliding-window reduction of a level (Synkolator)
3. Repeated reduction into a level history (Strukturkondensation)
4. Affinity and coherence scoring of the levels
"""

from syntrometry.cascade.enyphansyntrix import PerturbationMode, PerturbationOperator
from syntrometry.cascade.kondensation import CascadeProcessor, condense
from syntrometry.cascade.scoring import AffinityScorer, CoherenceScorer
from syntrometry.cascade.synkolator import CascadeReducer, ReductionRule

__all__ = [
    "PerturbationMode",
    "PerturbationOperator",
    "CascadeReducer",
    "ReductionRule",
    "CascadeProcessor",
    "condense",
    "AffinityScorer",
    "CoherenceScorer",
]
