"""Numeric helpers shared by the cascade and agent layers."""

from syntrometry.utils.vectors import (
    EPSILON,
    as_vector,
    clamp,
    cosine_similarity,
    fit_length,
    l2_norm,
    lerp,
    zeros,
)

__all__ = [
    "EPSILON",
    "as_vector",
    "clamp",
    "cosine_similarity",
    "fit_length",
    "l2_norm",
    "lerp",
    "zeros",
]
