"""Per-query weighted least-squares solve on the accumulated moments."""

from __future__ import annotations

import logging

import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, ArrayLike, jaxtyped

from .dtypes import FLOAT_DTYPE

logger = logging.getLogger(__name__)


class IllConditionedLocalFitError(RuntimeError):
    """Raised when a query's moment matrix is singular or near-singular."""

    def __init__(self, query_indices, condition_numbers, max_condition_number: float):
        self.query_indices = tuple(int(i) for i in query_indices)
        self.condition_numbers = tuple(float(c) for c in condition_numbers)
        self.max_condition_number = float(max_condition_number)
        preview = ", ".join(str(i) for i in self.query_indices[:8])
        if len(self.query_indices) > 8:
            preview += ", ..."
        super().__init__(
            f"{len(self.query_indices)} local fit(s) are ill-conditioned "
            f"(condition number above {self.max_condition_number:g}); "
            f"query indices: {preview}"
        )


@jaxtyped(typechecker=beartype)
def solve_local_fits(
    left_hand_side: ArrayLike,
    right_hand_side: ArrayLike,
    *,
    max_condition_number: float = 1e12,
) -> Array:
    """Solve ``left_hand_side[q] @ beta[q] = right_hand_side[q]`` for each query.

    Raises ``IllConditionedLocalFitError`` instead of returning non-finite
    coefficients when any system is singular or its 2-norm condition number
    exceeds ``max_condition_number``.
    """

    lhs = jnp.asarray(left_hand_side, dtype=FLOAT_DTYPE)
    rhs = jnp.asarray(right_hand_side, dtype=FLOAT_DTYPE)
    if lhs.ndim != 3 or lhs.shape[1] != lhs.shape[2]:
        raise ValueError(f"left_hand_side must have shape (Q, P, P); got {lhs.shape}")
    if rhs.shape != lhs.shape[:2]:
        raise ValueError(
            f"right_hand_side must have shape {lhs.shape[:2]}; got {rhs.shape}"
        )
    if lhs.shape[0] == 0:
        return jnp.zeros(rhs.shape, dtype=FLOAT_DTYPE)

    condition = np.asarray(jnp.linalg.cond(lhs))
    bad = ~np.isfinite(condition) | (condition > max_condition_number)
    if np.any(bad):
        indices = np.flatnonzero(bad)
        logger.debug("ill-conditioned local fits at queries %s", indices.tolist())
        raise IllConditionedLocalFitError(
            indices, condition[indices], max_condition_number
        )
    return jnp.linalg.solve(lhs, rhs[..., None])[..., 0]


@jaxtyped(typechecker=beartype)
def predict_from_coefficients(coefficients: ArrayLike, query_points: ArrayLike) -> Array:
    """Evaluate ``beta_0 + sum_j beta_j x_j`` at each query point."""

    beta = jnp.asarray(coefficients, dtype=FLOAT_DTYPE)
    queries = jnp.asarray(query_points, dtype=FLOAT_DTYPE)
    if beta.shape != (queries.shape[0], queries.shape[1] + 1):
        raise ValueError(
            f"coefficients must have shape ({queries.shape[0]}, "
            f"{queries.shape[1] + 1}); got {beta.shape}"
        )
    return beta[:, 0] + jnp.sum(beta[:, 1:] * queries, axis=-1)


__all__ = [
    "IllConditionedLocalFitError",
    "predict_from_coefficients",
    "solve_local_fits",
]
