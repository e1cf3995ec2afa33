"""Node-level bound envelope and the finite-difference pruning test."""

from __future__ import annotations

import math
from typing import Any

import numpy as np

from .dtypes import HOST_FLOAT_DTYPE
from .geometry import Range
from .monte_carlo import ENCODING_VERSION, check_payload

# Relative size below which the remaining reference mass counts as zero.
_REMAINING_MASS_TOLERANCE = 1e-9

_BOUND_FIELDS = (
    "left_hand_side_l",
    "left_hand_side_u",
    "right_hand_side_l",
    "right_hand_side_u",
)


class LocalRegressionSummary:
    """Lower/upper bounds on the summed moments of every query under a node.

    ``pruned_l`` is the smallest reference count any descendant query has
    accounted for and ``used_error_u`` the largest error any of them has
    spent.
    """

    def __init__(self, dimension: int = 0) -> None:
        self.init(dimension)

    def init(self, dimension: int) -> None:
        size = int(dimension) + 1
        self.left_hand_side_l = np.zeros((size, size), dtype=HOST_FLOAT_DTYPE)
        self.left_hand_side_u = np.zeros((size, size), dtype=HOST_FLOAT_DTYPE)
        self.right_hand_side_l = np.zeros((size,), dtype=HOST_FLOAT_DTYPE)
        self.right_hand_side_u = np.zeros((size,), dtype=HOST_FLOAT_DTYPE)
        self.pruned_l = 0.0
        self.used_error_u = 0.0

    def copy(self) -> LocalRegressionSummary:
        clone = LocalRegressionSummary.__new__(LocalRegressionSummary)
        for name in _BOUND_FIELDS:
            setattr(clone, name, getattr(self, name).copy())
        clone.pruned_l = self.pruned_l
        clone.used_error_u = self.used_error_u
        return clone

    def set_zero(self) -> None:
        for name in _BOUND_FIELDS:
            getattr(self, name).fill(0.0)
        self.pruned_l = 0.0
        self.used_error_u = 0.0

    def seed(self, initial_pruned: float) -> None:
        self.set_zero()
        self.pruned_l = float(initial_pruned)

    def start_reaccumulate(self) -> None:
        """Reset to the identity of the min/max folds below."""

        self.left_hand_side_l.fill(np.inf)
        self.right_hand_side_l.fill(np.inf)
        self.left_hand_side_u.fill(0.0)
        self.right_hand_side_u.fill(0.0)
        self.pruned_l = math.inf
        self.used_error_u = 0.0

    def _fold(self, lhs_l, lhs_u, rhs_l, rhs_u, pruned, used_error) -> None:
        np.minimum(self.left_hand_side_l, lhs_l, out=self.left_hand_side_l)
        np.maximum(self.left_hand_side_u, lhs_u, out=self.left_hand_side_u)
        np.minimum(self.right_hand_side_l, rhs_l, out=self.right_hand_side_l)
        np.maximum(self.right_hand_side_u, rhs_u, out=self.right_hand_side_u)
        self.pruned_l = min(self.pruned_l, pruned)
        self.used_error_u = max(self.used_error_u, used_error)

    def accumulate_result(self, global_, results, q_index: int) -> None:
        """Fold in the flushed totals of one query."""

        pruned = float(results.pruned[q_index])
        self._fold(
            results.left_hand_side_l[q_index].sample_totals(),
            results.left_hand_side_u[q_index].sample_totals(),
            results.right_hand_side_l[q_index].sample_totals(),
            results.right_hand_side_u[q_index].sample_totals(),
            pruned,
            float(results.used_error[q_index]),
        )

    def accumulate(self, global_, summary_in: LocalRegressionSummary, postponed_in) -> None:
        """Fold in a child's envelope together with the child's postponed state."""

        pruned = postponed_in.pruned
        self._fold(
            summary_in.left_hand_side_l
            + postponed_in.left_hand_side_l.sample_totals(),
            summary_in.left_hand_side_u
            + postponed_in.left_hand_side_u.sample_totals(),
            summary_in.right_hand_side_l
            + postponed_in.right_hand_side_l.sample_totals(),
            summary_in.right_hand_side_u
            + postponed_in.right_hand_side_u.sample_totals(),
            summary_in.pruned_l + pruned,
            summary_in.used_error_u + postponed_in.used_error,
        )

    def apply_delta(self, delta) -> None:
        """Shift the bounds by a delta; counts and spent error are unchanged."""

        self.left_hand_side_l += delta.left_hand_side_l.sample_totals()
        self.left_hand_side_u += delta.left_hand_side_u.sample_totals()
        self.right_hand_side_l += delta.right_hand_side_l.sample_totals()
        self.right_hand_side_u += delta.right_hand_side_u.sample_totals()

    def apply_postponed(self, postponed) -> None:
        pruned = postponed.pruned
        self.left_hand_side_l += postponed.left_hand_side_l.sample_totals()
        self.left_hand_side_u += postponed.left_hand_side_u.sample_totals()
        self.right_hand_side_l += postponed.right_hand_side_l.sample_totals()
        self.right_hand_side_u += postponed.right_hand_side_u.sample_totals()
        self.pruned_l += pruned
        self.used_error_u += postponed.used_error

    def can_summarize(
        self,
        global_,
        delta,
        squared_distance_range: Range,
        qnode: int,
        rnode: int,
    ) -> bool:
        """Finite-difference test: does ``delta`` fit the remaining error budget?

        The budget ``rel * l1_lower + N * abs - used_error_u`` is shared among
        the ``N - pruned_l`` reference points not yet accounted for, and
        ``rnode`` may spend its proportional part. When no unaccounted mass
        remains the ratio is undefined; the pair is then accepted only if
        both the budget and the delta error are zero within tolerance.
        """

        l1_lower = float(np.sum(self.right_hand_side_l) + np.sum(self.left_hand_side_l))
        effective = global_.effective_num_reference_points
        budget = (
            global_.relative_error * l1_lower
            + effective * global_.absolute_error
            - self.used_error_u
        )
        remaining = effective - self.pruned_l
        tolerance = _REMAINING_MASS_TOLERANCE * max(1.0, effective)
        if remaining <= tolerance:
            scale = _REMAINING_MASS_TOLERANCE * max(1.0, abs(l1_lower))
            return abs(budget) <= scale and delta.used_error <= scale
        count = global_.reference_table.node_count(rnode)
        return delta.used_error <= count * budget / remaining

    def can_probabilistic_summarize(
        self,
        global_,
        delta,
        squared_distance_range: Range,
        qnode: int,
        rnode: int,
    ) -> bool:
        """Monte Carlo pruning hook for ``probability < 1``; never accepts."""

        return False

    def encode(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": "summary", "version": ENCODING_VERSION}
        for name in _BOUND_FIELDS:
            payload[name] = getattr(self, name).tolist()
        payload["pruned_l"] = self.pruned_l
        payload["used_error_u"] = self.used_error_u
        return payload

    @classmethod
    def decode(cls, payload: dict[str, Any]) -> LocalRegressionSummary:
        check_payload(payload, "summary")
        summary = cls.__new__(cls)
        for name in _BOUND_FIELDS:
            setattr(summary, name, np.asarray(payload[name], dtype=HOST_FLOAT_DTYPE))
        summary.pruned_l = float(payload["pruned_l"])
        summary.used_error_u = float(payload["used_error_u"])
        return summary


__all__ = ["LocalRegressionSummary"]
