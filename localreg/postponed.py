"""Contributions held at a query node until they are pushed to its queries."""

from __future__ import annotations

from typing import Any

import numpy as np

from .monte_carlo import (
    ENCODING_VERSION,
    MeanVariancePairMatrix,
    MeanVariancePairVector,
    check_payload,
)
from .moments import left_hand_side_samples, right_hand_side_samples

_MOMENT_FIELDS = (
    "left_hand_side_l",
    "left_hand_side_e",
    "left_hand_side_u",
    "right_hand_side_l",
    "right_hand_side_e",
    "right_hand_side_u",
)


class LocalRegressionPostponed:
    """Deferred lower/estimate/upper moments plus ``pruned`` and ``used_error``.

    Every ``apply_*`` method only adds; state is cleared solely through
    ``set_zero``/``final_set_zero``.
    """

    def __init__(self, dimension: int = 0) -> None:
        self._allocate(dimension)

    def _allocate(self, dimension: int) -> None:
        size = int(dimension) + 1
        self.left_hand_side_l = MeanVariancePairMatrix(size, size)
        self.left_hand_side_e = MeanVariancePairMatrix(size, size)
        self.left_hand_side_u = MeanVariancePairMatrix(size, size)
        self.right_hand_side_l = MeanVariancePairVector(size)
        self.right_hand_side_e = MeanVariancePairVector(size)
        self.right_hand_side_u = MeanVariancePairVector(size)
        self.pruned = 0.0
        self.used_error = 0.0

    def _moments(self):
        return tuple(getattr(self, name) for name in _MOMENT_FIELDS)

    def init(self, global_, qnode: int, rnode: int) -> None:
        """Start an exact accumulation of ``rnode`` for a single query."""

        count = global_.reference_table.node_count(rnode)
        self._allocate(global_.n_attributes)
        for moment in self._moments():
            moment.set_total_num_terms(count)
        self.pruned = float(count)

    def _combine(self, other) -> None:
        for mine, theirs in zip(self._moments(), other._moments()):
            mine.combine_with(theirs)
        self.pruned += other.pruned
        self.used_error += other.used_error

    def apply_delta(self, delta) -> None:
        if delta.consumed:
            raise RuntimeError("delta has already been applied to a postponed state")
        for name in _MOMENT_FIELDS:
            getattr(self, name).combine_with(getattr(delta, name))
        self.pruned += delta.pruned
        self.used_error += delta.used_error
        delta.consumed = True

    def apply_postponed(self, other: LocalRegressionPostponed) -> None:
        self._combine(other)

    def final_apply_postponed(self, global_, other: LocalRegressionPostponed) -> None:
        self._combine(other)

    def apply_contribution(
        self,
        global_,
        metric,
        query_point,
        query_weight: float,
        reference_point,
        reference_weight: float,
    ) -> None:
        """Push the exact kernel-weighted moments of one reference point."""

        squared_distance = float(metric.distance_sq(query_point, reference_point))
        kernel_value = global_.kernel_value(squared_distance)
        lhs = kernel_value * left_hand_side_samples(reference_point)
        rhs = kernel_value * right_hand_side_samples(reference_point, reference_weight)
        for moment in (self.left_hand_side_l, self.left_hand_side_e, self.left_hand_side_u):
            moment.push(lhs)
        for moment in (
            self.right_hand_side_l,
            self.right_hand_side_e,
            self.right_hand_side_u,
        ):
            moment.push(rhs)

    def apply_contributions(
        self,
        global_,
        metric,
        query_point,
        reference_points,
        reference_weights,
    ) -> None:
        """Batched ``apply_contribution`` over a block of reference points."""

        squared_distances = metric.distance_sq(query_point, reference_points)
        kernel_values = np.asarray(global_.kernel.eval_unnorm_on_sq(squared_distances))
        lhs = kernel_values[:, None, None] * left_hand_side_samples(reference_points)
        rhs = kernel_values[:, None] * right_hand_side_samples(
            reference_points, reference_weights
        )
        for moment in (self.left_hand_side_l, self.left_hand_side_e, self.left_hand_side_u):
            moment.push_samples(lhs)
        for moment in (
            self.right_hand_side_l,
            self.right_hand_side_e,
            self.right_hand_side_u,
        ):
            moment.push_samples(rhs)

    def set_zero(self) -> None:
        for moment in self._moments():
            moment.set_zero()
        self.pruned = 0.0
        self.used_error = 0.0

    def final_set_zero(self) -> None:
        self.set_zero()

    def copy(self) -> LocalRegressionPostponed:
        clone = LocalRegressionPostponed.__new__(LocalRegressionPostponed)
        for name in _MOMENT_FIELDS:
            setattr(clone, name, getattr(self, name).copy())
        clone.pruned = self.pruned
        clone.used_error = self.used_error
        return clone

    def encode(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": "postponed", "version": ENCODING_VERSION}
        for name in _MOMENT_FIELDS:
            payload[name] = getattr(self, name).encode()
        payload["pruned"] = self.pruned
        payload["used_error"] = self.used_error
        return payload

    @classmethod
    def decode(cls, payload: dict[str, Any]) -> LocalRegressionPostponed:
        check_payload(payload, "postponed")
        postponed = cls.__new__(cls)
        for name in _MOMENT_FIELDS:
            container = (
                MeanVariancePairMatrix
                if name.startswith("left")
                else MeanVariancePairVector
            )
            setattr(postponed, name, container.decode(payload[name]))
        postponed.pruned = float(payload["pruned"])
        postponed.used_error = float(payload["used_error"])
        return postponed


__all__ = ["LocalRegressionPostponed"]
