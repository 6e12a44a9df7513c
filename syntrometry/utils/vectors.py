"""Stateless vector helpers.

Everything here returns fresh arrays or plain floats; no helper mutates its
arguments.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np

# Below this a norm product or a variance is treated as zero.
EPSILON = 1e-9


def clamp(value: float, low: float, high: float) -> float:
    """Clamp a scalar into [low, high]."""
    return max(low, min(high, value))


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation from a to b with t clamped to [0, 1]."""
    t = clamp(t, 0.0, 1.0)
    return a + (b - a) * t


def zeros(length: int) -> np.ndarray:
    """Zero vector of the given length."""
    return np.zeros(max(0, int(length)), dtype=np.float64)


def as_vector(value: Any) -> Optional[np.ndarray]:
    """Coerce a sequence or array to a flat float64 copy.

    Returns None when the value cannot be read as numbers or holds
    non-finite entries.
    """
    if value is None:
        return None
    try:
        arr = np.array(value, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError):
        return None
    if not np.all(np.isfinite(arr)):
        return None
    return arr


def fit_length(vector: np.ndarray, length: int) -> np.ndarray:
    """Pad with trailing zeros or truncate to exactly `length` elements."""
    out = zeros(length)
    n = min(length, vector.shape[0])
    out[:n] = vector[:n]
    return out


def l2_norm(vector: Any) -> float:
    """Euclidean norm; 0.0 for anything that is not a finite vector."""
    arr = as_vector(vector)
    if arr is None or arr.size == 0:
        return 0.0
    return float(np.linalg.norm(arr))


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Compute cosine similarity between two equal-length vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Cosine similarity clipped to [-1, 1]. Returns 0.0 if the product of
        the norms is below EPSILON.
    """
    norm_product = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm_product < EPSILON:
        return 0.0
    return float(np.clip(np.dot(a, b) / norm_product, -1.0, 1.0))
