"""Bounded contribution of one reference node to one query node."""

from __future__ import annotations

import numpy as np

from .geometry import Range
from .monte_carlo import MeanVariancePairMatrix, MeanVariancePairVector


def _fill_bounds(
    means: np.ndarray,
    lower_kernel: float,
    upper_kernel: float,
    lower,
    estimate,
    upper,
    num_terms: int,
) -> float:
    # Moments can be negative, so order the two kernel products per cell.
    far = lower_kernel * means
    near = upper_kernel * means
    low = np.minimum(far, near)
    high = np.maximum(far, near)
    mid = 0.5 * (lower_kernel + upper_kernel) * means
    for accumulator, values in ((lower, low), (estimate, mid), (upper, high)):
        accumulator.init(means.shape)
        accumulator.push(values, num_terms)
        accumulator.set_total_num_terms(num_terms)
    if means.size == 0:
        return 0.0
    return float(np.max(high - low)) * num_terms


class LocalRegressionDelta:
    """Lower/estimate/upper moments for a single node-pair visit.

    Each cell holds one sample pushed with multiplicity equal to the
    reference node count, so ``mean * count`` is the bounded sum over the
    reference node. A delta may be applied to a Postponed only once.
    """

    def __init__(self) -> None:
        self.left_hand_side_l = MeanVariancePairMatrix()
        self.left_hand_side_e = MeanVariancePairMatrix()
        self.left_hand_side_u = MeanVariancePairMatrix()
        self.right_hand_side_l = MeanVariancePairVector()
        self.right_hand_side_e = MeanVariancePairVector()
        self.right_hand_side_u = MeanVariancePairVector()
        self.pruned = 0.0
        self.used_error = 0.0
        self.consumed = False

    def deterministic_compute(
        self,
        global_,
        qnode: int,
        rnode: int,
        squared_distance_range: Range,
    ) -> None:
        """Bound the pair from the kernel range over ``squared_distance_range``.

        The far end of the range gives the lower kernel value and the near
        end the upper one. ``used_error`` is half the widest cell interval of
        the summed contribution.
        """

        table = global_.reference_table
        statistic = table.statistic(rnode)
        count = table.node_count(rnode)
        lower_kernel = global_.kernel_value(squared_distance_range.hi)
        upper_kernel = global_.kernel_value(squared_distance_range.lo)

        lhs_deviation = _fill_bounds(
            statistic.average_info.sample_means(),
            lower_kernel,
            upper_kernel,
            self.left_hand_side_l,
            self.left_hand_side_e,
            self.left_hand_side_u,
            count,
        )
        rhs_deviation = _fill_bounds(
            statistic.weighted_average_info.sample_means(),
            lower_kernel,
            upper_kernel,
            self.right_hand_side_l,
            self.right_hand_side_e,
            self.right_hand_side_u,
            count,
        )
        self.pruned = float(count)
        self.used_error = 0.5 * max(lhs_deviation, rhs_deviation)
        self.consumed = False

    def exact_zero_compute(self, global_, rnode: int) -> None:
        """Record a reference node whose contribution is provably zero."""

        table = global_.reference_table
        count = table.node_count(rnode)
        size = global_.n_attributes + 1
        zeros_matrix = np.zeros((size, size))
        zeros_vector = np.zeros((size,))
        _fill_bounds(
            zeros_matrix,
            0.0,
            0.0,
            self.left_hand_side_l,
            self.left_hand_side_e,
            self.left_hand_side_u,
            count,
        )
        _fill_bounds(
            zeros_vector,
            0.0,
            0.0,
            self.right_hand_side_l,
            self.right_hand_side_e,
            self.right_hand_side_u,
            count,
        )
        self.pruned = float(count)
        self.used_error = 0.0
        self.consumed = False


__all__ = ["LocalRegressionDelta"]
