"""Tests for bottom-up node statistics."""

import numpy as np

from localreg import LocalRegressionStatistic, Table, initialize_tree_statistics
from localreg.moments import left_hand_side_samples, right_hand_side_samples
from tests.unit.sample_data import sample_points, sample_targets


def _table(n: int = 33) -> Table:
    points = sample_points(n=n, dim=3)
    return Table(points, sample_targets(points), leaf_size=4)


def test_child_merge_matches_direct_scan():
    table = _table()
    initialize_tree_statistics(table)

    for node in range(table.num_nodes):
        merged = table.statistic(node)
        scanned = LocalRegressionStatistic(table.n_attributes)
        scanned.init_from_points(table, node)
        np.testing.assert_array_equal(merged.average_info.count, scanned.average_info.count)
        np.testing.assert_allclose(
            merged.average_info.sample_means(), scanned.average_info.sample_means(), rtol=1e-12
        )
        np.testing.assert_allclose(
            merged.weighted_average_info.sample_variances(),
            scanned.weighted_average_info.sample_variances(),
            rtol=1e-9,
        )


def test_root_statistic_holds_moment_averages():
    table = _table()
    initialize_tree_statistics(table)
    root = table.statistic(table.root)

    expected_lhs = left_hand_side_samples(table.points).mean(axis=0)
    expected_rhs = right_hand_side_samples(table.points, table.weights).mean(axis=0)
    np.testing.assert_allclose(root.average_info.sample_means(), expected_lhs, rtol=1e-12)
    np.testing.assert_allclose(
        root.weighted_average_info.sample_means(), expected_rhs, rtol=1e-12
    )
    assert root.average_info.sample_means()[0, 0] == 1.0
    assert root.average_info.shape == (4, 4)


def test_initializers_zero_bookkeeping_and_seed():
    table = _table(8)
    statistic = LocalRegressionStatistic(table.n_attributes)
    statistic.postponed.pruned = 3.0
    statistic.summary.used_error_u = 1.0
    statistic.init_from_points(table, table.root)

    assert statistic.postponed.pruned == 0.0
    assert statistic.summary.used_error_u == 0.0

    statistic.seed(2.0)
    assert statistic.summary.pruned_l == 2.0
