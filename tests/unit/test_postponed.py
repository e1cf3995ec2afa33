"""Tests for deferred contribution state."""

import numpy as np
import pytest

from localreg import (
    EuclideanMetric,
    LocalRegressionDelta,
    LocalRegressionPostponed,
    initialize_tree_statistics,
)
from tests.unit.sample_data import build_global, sample_points, sample_targets

_FIELDS = (
    "left_hand_side_l",
    "left_hand_side_e",
    "left_hand_side_u",
    "right_hand_side_l",
    "right_hand_side_e",
    "right_hand_side_u",
)


def _context():
    points = sample_points(n=24, dim=2)
    context = build_global(
        points, sample_targets(points), sample_points(n=6, dim=2, seed=4), leaf_size=4
    )
    initialize_tree_statistics(context.reference_table)
    initialize_tree_statistics(context.query_table)
    return context


def _exact_postponed(context, rnode: int, query_index: int = 0):
    postponed = LocalRegressionPostponed()
    postponed.init(context, 0, rnode)
    block, _, weights = context.reference_table.node_block(rnode)
    query = context.query_table.points[query_index]
    postponed.apply_contributions(context, EuclideanMetric(), query, block, weights)
    return postponed


def _delta_postponed(context, rnode: int):
    postponed = LocalRegressionPostponed(context.n_attributes)
    delta = LocalRegressionDelta()
    bounds = context.query_table.squared_distance_range(0, context.reference_table, rnode)
    delta.deterministic_compute(context, 0, rnode, bounds)
    postponed.apply_delta(delta)
    return postponed


def _assert_postponed_close(a, b):
    for name in _FIELDS:
        left, right = getattr(a, name), getattr(b, name)
        np.testing.assert_array_equal(left.count, right.count)
        np.testing.assert_allclose(left.mean, right.mean, rtol=1e-12, atol=1e-14)
        np.testing.assert_allclose(left.m2, right.m2, rtol=1e-9, atol=1e-12)
    assert a.pruned == pytest.approx(b.pruned)
    assert a.used_error == pytest.approx(b.used_error)


def _leaves(table):
    return [node for node in range(table.num_nodes) if table.is_leaf(node)]


def test_combination_is_associative():
    context = _context()
    leaves = _leaves(context.reference_table)
    a = _exact_postponed(context, leaves[0])
    b = _delta_postponed(context, leaves[1])
    c = _exact_postponed(context, leaves[2], query_index=3)

    left = a.copy()
    left.apply_postponed(b)
    left.apply_postponed(c)

    bc = b.copy()
    bc.apply_postponed(c)
    right = a.copy()
    right.apply_postponed(bc)

    _assert_postponed_close(left, right)
    assert left.pruned == a.pruned + b.pruned + c.pruned
    assert left.used_error == pytest.approx(b.used_error)


def test_single_contributions_match_batched_push():
    context = _context()
    rnode = _leaves(context.reference_table)[0]
    metric = EuclideanMetric()
    query = context.query_table.points[0]

    single = LocalRegressionPostponed()
    single.init(context, 0, rnode)
    for point, _, weight in context.reference_table.get_node_iterator(rnode):
        single.apply_contribution(context, metric, query, 0.0, point, weight)

    _assert_postponed_close(single, _exact_postponed(context, rnode))


def test_exact_contributions_are_symmetric_and_zero_width():
    context = _context()
    postponed = _exact_postponed(context, _leaves(context.reference_table)[0])
    means = postponed.left_hand_side_e.sample_means()

    np.testing.assert_allclose(means, means.T, rtol=1e-13)
    np.testing.assert_array_equal(
        postponed.left_hand_side_l.sample_means(), postponed.left_hand_side_u.sample_means()
    )
    assert postponed.used_error == 0.0


def test_delta_cannot_be_applied_twice():
    context = _context()
    delta = LocalRegressionDelta()
    bounds = context.query_table.squared_distance_range(0, context.reference_table, 0)
    delta.deterministic_compute(context, 0, 0, bounds)

    postponed = LocalRegressionPostponed(context.n_attributes)
    postponed.apply_delta(delta)
    with pytest.raises(RuntimeError, match="already been applied"):
        postponed.apply_delta(delta)


def test_set_zero_and_encode_decode():
    context = _context()
    postponed = _delta_postponed(context, 0)

    restored = LocalRegressionPostponed.decode(postponed.encode())
    _assert_postponed_close(restored, postponed)

    postponed.final_set_zero()
    assert postponed.pruned == 0.0
    assert postponed.used_error == 0.0
    assert postponed.left_hand_side_u.count.sum() == 0
