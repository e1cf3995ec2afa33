"""High-level local linear regression built on the dual-tree engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Literal, Optional

import jax.numpy as jnp
import numpy as np
from jaxtyping import Array

from .config import LocalRegressionConfig, resolve_local_regression_config
from .context import LocalRegressionGlobal
from .dualtree import DualTreeStats, DualtreeDfs
from .kernels import make_kernel
from .naive import naive_local_regression_moments
from .result import LocalRegressionResult
from .solve import predict_from_coefficients, solve_local_fits
from .table import Table

logger = logging.getLogger(__name__)

Algorithm = Literal["dualtree", "naive"]


@dataclass(frozen=True)
class LocalRegressionFit:
    """Moments, coefficients and predictions for a set of queries."""

    left_hand_side: Array
    right_hand_side: Array
    coefficients: Array
    predictions: Array
    result: Optional[LocalRegressionResult] = None
    stats: Optional[DualTreeStats] = None


class LocalRegression:
    """Kernel-weighted local linear regression.

    ``fit`` stores the reference points and targets; ``compute`` estimates
    the local moments for each query (the reference set itself when no
    queries are passed, excluding each point from its own fit) and solves
    the per-query least-squares systems.
    """

    def __init__(
        self,
        config: Optional[LocalRegressionConfig] = None,
        *,
        stats_logger: Optional[Callable[[DualTreeStats], None]] = None,
        **overrides,
    ) -> None:
        resolved = resolve_local_regression_config(config)
        if overrides:
            resolved = resolve_local_regression_config(replace(resolved, **overrides))
        self.config = resolved
        self.stats_logger = stats_logger
        self._reference_table: Optional[Table] = None

    @property
    def reference_table(self) -> Table:
        if self._reference_table is None:
            raise RuntimeError("LocalRegression.fit must be called before compute")
        return self._reference_table

    def fit(self, reference_points, reference_targets) -> LocalRegression:
        self._reference_table = Table(
            reference_points, reference_targets, leaf_size=self.config.leaf_size
        )
        logger.debug(
            "fitted %d reference points in %d dimension(s)",
            self._reference_table.n_entries,
            self._reference_table.n_attributes,
        )
        return self

    def compute(
        self, query_points=None, *, algorithm: Algorithm = "dualtree"
    ) -> LocalRegressionFit:
        reference_table = self.reference_table
        if algorithm == "dualtree":
            return self._compute_dualtree(reference_table, query_points)
        if algorithm == "naive":
            return self._compute_naive(reference_table, query_points)
        raise ValueError(f"algorithm must be 'dualtree' or 'naive', got {algorithm!r}")

    def predict(self, query_points=None, *, algorithm: Algorithm = "dualtree") -> Array:
        return self.compute(query_points, algorithm=algorithm).predictions

    def _finish(
        self,
        lhs,
        rhs,
        query_points,
        *,
        result: Optional[LocalRegressionResult] = None,
        stats: Optional[DualTreeStats] = None,
    ) -> LocalRegressionFit:
        coefficients = solve_local_fits(
            lhs, rhs, max_condition_number=self.config.max_condition_number
        )
        predictions = predict_from_coefficients(coefficients, query_points)
        return LocalRegressionFit(
            left_hand_side=jnp.asarray(lhs),
            right_hand_side=jnp.asarray(rhs),
            coefficients=coefficients,
            predictions=predictions,
            result=result,
            stats=stats,
        )

    def _compute_dualtree(
        self, reference_table: Table, query_points
    ) -> LocalRegressionFit:
        if query_points is None:
            query_table = reference_table
        else:
            query_table = Table(query_points, leaf_size=self.config.leaf_size)
        global_ = LocalRegressionGlobal.from_config(
            self.config, reference_table, query_table
        )
        driver = DualtreeDfs(
            global_,
            visit_order=self.config.visit_order,
            stats_logger=self.stats_logger,
        )
        result = driver.compute()
        return self._finish(
            result.left_hand_side_totals("e"),
            result.right_hand_side_totals("e"),
            query_table.points,
            result=result,
            stats=driver.stats,
        )

    def _compute_naive(
        self, reference_table: Table, query_points
    ) -> LocalRegressionFit:
        monochromatic = query_points is None
        queries = (
            reference_table.points
            if monochromatic
            else np.asarray(query_points, dtype=np.float64)
        )
        kernel = make_kernel(self.config.kernel, self.config.bandwidth)
        lhs, rhs = naive_local_regression_moments(
            queries,
            reference_table.points,
            reference_table.weights,
            kernel,
            exclude_self=monochromatic,
        )
        return self._finish(lhs, rhs, queries)


__all__ = ["Algorithm", "LocalRegression", "LocalRegressionFit"]
