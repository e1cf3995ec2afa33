"""Per-query accumulators holding the flushed moment estimates."""

from __future__ import annotations

from typing import Any, Literal

import numpy as np

from .dtypes import HOST_FLOAT_DTYPE
from .monte_carlo import (
    ENCODING_VERSION,
    MeanVariancePairMatrix,
    MeanVariancePairVector,
    check_payload,
)
from .moments import left_hand_side_samples, right_hand_side_samples

BoundKind = Literal["l", "e", "u"]

_LHS_FIELDS = ("left_hand_side_l", "left_hand_side_e", "left_hand_side_u")
_RHS_FIELDS = ("right_hand_side_l", "right_hand_side_e", "right_hand_side_u")


class LocalRegressionResult:
    """One set of lower/estimate/upper accumulators per query point.

    Entries are indexed by the query table's original row order and
    allocated once in :meth:`init`. Totals are read as ``mean * count`` of
    each accumulator; ``pruned`` only tracks how many reference points
    (including any seeded ones) the error budget has accounted for.
    """

    def __init__(self, num_query_points: int = 0, dimension: int = 0) -> None:
        self.init(num_query_points, dimension)

    def init(self, num_query_points: int, dimension: int) -> None:
        num_query_points = int(num_query_points)
        size = int(dimension) + 1
        self.dimension = int(dimension)
        for name in _LHS_FIELDS:
            setattr(
                self,
                name,
                [MeanVariancePairMatrix(size, size) for _ in range(num_query_points)],
            )
        for name in _RHS_FIELDS:
            setattr(
                self,
                name,
                [MeanVariancePairVector(size) for _ in range(num_query_points)],
            )
        self.pruned = np.zeros((num_query_points,), dtype=HOST_FLOAT_DTYPE)
        self.used_error = np.zeros((num_query_points,), dtype=HOST_FLOAT_DTYPE)
        self.self_contribution_subtracted = np.zeros((num_query_points,), dtype=bool)

    @property
    def num_query_points(self) -> int:
        return int(self.pruned.shape[0])

    def _entry(self, q_index: int):
        return tuple(getattr(self, name)[q_index] for name in _LHS_FIELDS + _RHS_FIELDS)

    def seed(self, q_index: int, initial_pruned: float) -> None:
        self.pruned[q_index] = float(initial_pruned)

    def set_zero(self) -> None:
        for q_index in range(self.num_query_points):
            for moment in self._entry(q_index):
                moment.set_zero()
        self.pruned.fill(0.0)
        self.used_error.fill(0.0)
        self.self_contribution_subtracted.fill(False)

    def apply_postponed(self, q_index: int, postponed) -> None:
        for name in _LHS_FIELDS + _RHS_FIELDS:
            getattr(self, name)[q_index].combine_with(getattr(postponed, name))
        self.pruned[q_index] += postponed.pruned
        self.used_error[q_index] += postponed.used_error

    def final_apply_postponed(self, global_, query_point, q_index: int, postponed) -> None:
        self.apply_postponed(q_index, postponed)

    def post_process(self, global_, query_point, q_index: int) -> None:
        """Remove the query's own reference contribution in monochromatic runs.

        The traversal counts every reference point, including the query
        itself; the exact self term ``kernel(0) * moments(x_q)`` is removed
        once from the lower, estimate and upper accumulators.
        """

        if not global_.is_monochromatic or self.self_contribution_subtracted[q_index]:
            return
        kernel_zero = global_.kernel_value(0.0)
        _, weight = global_.reference_table.get(q_index)
        lhs = kernel_zero * left_hand_side_samples(query_point)
        rhs = kernel_zero * right_hand_side_samples(query_point, weight)
        for name in _LHS_FIELDS:
            getattr(self, name)[q_index].discard(lhs)
        for name in _RHS_FIELDS:
            getattr(self, name)[q_index].discard(rhs)
        self.pruned[q_index] -= 1.0
        self.self_contribution_subtracted[q_index] = True

    def left_hand_side_totals(self, which: BoundKind = "e") -> np.ndarray:
        """Return ``(Q, D+1, D+1)`` summed moment matrices for one bound kind."""

        size = self.dimension + 1
        entries = getattr(self, f"left_hand_side_{which}")
        if not entries:
            return np.zeros((0, size, size), dtype=HOST_FLOAT_DTYPE)
        return np.stack([entry.sample_totals() for entry in entries])

    def right_hand_side_totals(self, which: BoundKind = "e") -> np.ndarray:
        """Return ``(Q, D+1)`` summed moment vectors for one bound kind."""

        size = self.dimension + 1
        entries = getattr(self, f"right_hand_side_{which}")
        if not entries:
            return np.zeros((0, size), dtype=HOST_FLOAT_DTYPE)
        return np.stack([entry.sample_totals() for entry in entries])

    def encode(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": "result",
            "version": ENCODING_VERSION,
            "dimension": self.dimension,
        }
        for name in _LHS_FIELDS + _RHS_FIELDS:
            payload[name] = [entry.encode() for entry in getattr(self, name)]
        payload["pruned"] = self.pruned.tolist()
        payload["used_error"] = self.used_error.tolist()
        payload["self_contribution_subtracted"] = (
            self.self_contribution_subtracted.tolist()
        )
        return payload

    @classmethod
    def decode(cls, payload: dict[str, Any]) -> LocalRegressionResult:
        check_payload(payload, "result")
        result = cls.__new__(cls)
        result.dimension = int(payload["dimension"])
        for name in _LHS_FIELDS:
            setattr(
                result,
                name,
                [MeanVariancePairMatrix.decode(item) for item in payload[name]],
            )
        for name in _RHS_FIELDS:
            setattr(
                result,
                name,
                [MeanVariancePairVector.decode(item) for item in payload[name]],
            )
        result.pruned = np.asarray(payload["pruned"], dtype=HOST_FLOAT_DTYPE)
        result.used_error = np.asarray(payload["used_error"], dtype=HOST_FLOAT_DTYPE)
        result.self_contribution_subtracted = np.asarray(
            payload["self_contribution_subtracted"], dtype=bool
        )
        return result


__all__ = ["BoundKind", "LocalRegressionResult"]
