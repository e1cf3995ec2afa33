"""Tests for per node-pair contribution bounds."""

import numpy as np
import pytest

from localreg import LocalRegressionDelta, initialize_tree_statistics
from localreg.moments import left_hand_side_samples, right_hand_side_samples
from tests.unit.sample_data import build_global, sample_points, sample_targets


def _context(points, weights, queries):
    context = build_global(points, weights, queries, leaf_size=4)
    initialize_tree_statistics(context.reference_table)
    initialize_tree_statistics(context.query_table)
    return context


def _node_pairs(context):
    qtable = context.query_table
    rtable = context.reference_table
    for qnode in range(qtable.num_nodes):
        for rnode in range(rtable.num_nodes):
            yield qnode, rnode, qtable.squared_distance_range(qnode, rtable, rnode)


@pytest.mark.parametrize("shift", [0.0, -0.7])
def test_bounds_are_ordered(shift):
    points = sample_points(n=24, dim=2) + shift
    weights = sample_targets(points) - 1.5
    context = _context(points, weights, sample_points(n=10, dim=2, seed=9))

    for qnode, rnode, bounds in _node_pairs(context):
        delta = LocalRegressionDelta()
        delta.deterministic_compute(context, qnode, rnode, bounds)
        for side in ("left_hand_side", "right_hand_side"):
            lower = getattr(delta, f"{side}_l").sample_means()
            estimate = getattr(delta, f"{side}_e").sample_means()
            upper = getattr(delta, f"{side}_u").sample_means()
            assert np.all(lower <= estimate + 1e-15)
            assert np.all(estimate <= upper + 1e-15)


def test_bounds_bracket_exact_sums_for_nonnegative_moments():
    points = sample_points(n=24, dim=2)
    weights = sample_targets(points)
    queries = sample_points(n=10, dim=2, seed=9)
    context = _context(points, weights, queries)
    rtable = context.reference_table

    for qnode, rnode, bounds in _node_pairs(context):
        delta = LocalRegressionDelta()
        delta.deterministic_compute(context, qnode, rnode, bounds)
        block, _, block_weights = rtable.node_block(rnode)
        for query in context.query_table.node_block(qnode)[0]:
            squared = np.sum((block - query) ** 2, axis=1)
            kernel = np.asarray(context.kernel.eval_unnorm_on_sq(squared))
            lhs = np.einsum("r,rij->ij", kernel, left_hand_side_samples(block))
            rhs = np.einsum("r,ri->i", kernel, right_hand_side_samples(block, block_weights))
            count = delta.pruned
            assert np.all(delta.left_hand_side_l.sample_means() * count <= lhs + 1e-12)
            assert np.all(lhs <= delta.left_hand_side_u.sample_means() * count + 1e-12)
            assert np.all(delta.right_hand_side_l.sample_means() * count <= rhs + 1e-12)
            assert np.all(rhs <= delta.right_hand_side_u.sample_means() * count + 1e-12)


def test_pruned_and_used_error():
    points = sample_points(n=16, dim=2)
    context = _context(points, sample_targets(points), sample_points(n=4, dim=2, seed=3))
    rtable = context.reference_table
    qnode, rnode = 0, 0
    bounds = context.query_table.squared_distance_range(qnode, rtable, rnode)

    delta = LocalRegressionDelta()
    delta.deterministic_compute(context, qnode, rnode, bounds)

    count = rtable.node_count(rnode)
    deviation = max(
        np.max(delta.left_hand_side_u.sample_means() - delta.left_hand_side_l.sample_means()),
        np.max(delta.right_hand_side_u.sample_means() - delta.right_hand_side_l.sample_means()),
    )
    assert delta.pruned == count
    assert delta.used_error == pytest.approx(0.5 * deviation * count)
    assert int(delta.left_hand_side_e.count[0, 0]) == count
    assert int(delta.right_hand_side_e.total_num_terms[0]) == count
    assert not delta.consumed


def test_exact_zero_delta_only_counts_references():
    points = sample_points(n=16, dim=2)
    context = _context(points, sample_targets(points), sample_points(n=4, dim=2, seed=3))

    delta = LocalRegressionDelta()
    delta.exact_zero_compute(context, 0)

    assert delta.pruned == 16.0
    assert delta.used_error == 0.0
    assert delta.left_hand_side_u.shape == (3, 3)
    np.testing.assert_array_equal(delta.right_hand_side_u.sample_means(), np.zeros(3))
