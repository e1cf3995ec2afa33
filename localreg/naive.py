"""Brute-force O(n_query x n_reference) local regression moments."""

from __future__ import annotations

import jax.numpy as jnp
from beartype import beartype
from jaxtyping import Array, ArrayLike, jaxtyped

from .dtypes import FLOAT_DTYPE


def _design_rows(points: Array) -> Array:
    ones = jnp.ones(points.shape[:-1] + (1,), dtype=points.dtype)
    return jnp.concatenate([ones, points], axis=-1)


@jaxtyped(typechecker=beartype)
def naive_local_regression_moments(
    query_points: ArrayLike,
    reference_points: ArrayLike,
    reference_weights: ArrayLike,
    kernel: object,
    *,
    exclude_self: bool = False,
) -> tuple[Array, Array]:
    """Return ``(lhs, rhs)`` with shapes ``(Q, D+1, D+1)`` and ``(Q, D+1)``.

    ``lhs[q] = sum_r k(|x_q - x_r|^2) z_r z_r^T`` and
    ``rhs[q] = sum_r k(|x_q - x_r|^2) w_r z_r`` with ``z_r = [1, x_r]``.
    ``exclude_self`` drops the diagonal pair when queries and references
    are the same point set.
    """

    queries = jnp.asarray(query_points, dtype=FLOAT_DTYPE)
    references = jnp.asarray(reference_points, dtype=FLOAT_DTYPE)
    weights = jnp.asarray(reference_weights, dtype=FLOAT_DTYPE)
    if queries.ndim != 2 or references.ndim != 2:
        raise ValueError("query_points and reference_points must be 2-D")
    if queries.shape[1] != references.shape[1]:
        raise ValueError(
            "query and reference points must share last-dimension size; "
            f"received {queries.shape[1]} and {references.shape[1]}"
        )
    if weights.shape != (references.shape[0],):
        raise ValueError(
            f"reference_weights must have shape ({references.shape[0]},); "
            f"received {weights.shape}"
        )
    if exclude_self and queries.shape[0] != references.shape[0]:
        raise ValueError("exclude_self requires matching query/reference counts")

    diff = queries[:, None, :] - references[None, :, :]
    kernel_values = kernel.eval_unnorm_on_sq(jnp.sum(diff * diff, axis=-1))
    if exclude_self:
        kernel_values = kernel_values * (1.0 - jnp.eye(queries.shape[0]))
    rows = _design_rows(references)
    lhs = jnp.einsum("qr,ri,rj->qij", kernel_values, rows, rows)
    rhs = jnp.einsum("qr,r,ri->qi", kernel_values, weights, rows)
    return lhs, rhs


__all__ = ["naive_local_regression_moments"]
