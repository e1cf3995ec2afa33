"""Design rows and the per-point samples pushed into moment accumulators.

Row/column ``0`` of every moment structure is the intercept: a point ``x``
contributes the design row ``z = [1, x_1, ..., x_D]``, the matrix sample
``z z^T`` and the vector sample ``w z``.
"""

from __future__ import annotations

import numpy as np

from .dtypes import HOST_FLOAT_DTYPE


def design_rows(points) -> np.ndarray:
    """Prepend the intercept column to a ``(n, D)`` block (or one point)."""

    points = np.asarray(points, dtype=HOST_FLOAT_DTYPE)
    ones = np.ones(points.shape[:-1] + (1,), dtype=HOST_FLOAT_DTYPE)
    return np.concatenate([ones, points], axis=-1)


def left_hand_side_samples(points) -> np.ndarray:
    rows = design_rows(points)
    return rows[..., :, None] * rows[..., None, :]


def right_hand_side_samples(points, weights) -> np.ndarray:
    rows = design_rows(points)
    return np.asarray(weights, dtype=HOST_FLOAT_DTYPE)[..., None] * rows


__all__ = ["design_rows", "left_hand_side_samples", "right_hand_side_samples"]
