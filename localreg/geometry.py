"""Squared-distance ranges between axis-aligned node bounding boxes."""

from __future__ import annotations

from typing import NamedTuple

import numpy as np


class Range(NamedTuple):
    """Closed interval ``[lo, hi]`` of squared distances."""

    lo: float
    hi: float


def box_squared_distance_range(
    min_a: np.ndarray,
    max_a: np.ndarray,
    min_b: np.ndarray,
    max_b: np.ndarray,
) -> Range:
    """Return min/max squared distance between points of two boxes.

    The lower bound is the squared gap between the boxes (zero when they
    overlap along an axis); the upper bound is the squared distance between
    the farthest pair of corners.
    """

    gap = np.maximum(0.0, np.maximum(min_a - max_b, min_b - max_a))
    span = np.maximum(np.abs(max_a - min_b), np.abs(max_b - min_a))
    return Range(lo=float(np.sum(gap * gap)), hi=float(np.sum(span * span)))


__all__ = ["Range", "box_squared_distance_range"]
