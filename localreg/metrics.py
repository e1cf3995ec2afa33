"""Metrics used by the exact base case."""

from __future__ import annotations

from dataclasses import dataclass

import jax.numpy as jnp


@dataclass(frozen=True)
class EuclideanMetric:
    """Squared Euclidean distance, broadcasting over leading axes."""

    def distance_sq(self, point_a, point_b):
        diff = jnp.asarray(point_a) - jnp.asarray(point_b)
        return jnp.sum(diff * diff, axis=-1)


__all__ = ["EuclideanMetric"]
