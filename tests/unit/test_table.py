"""Tests for the point table and node-pair distance ranges."""

import numpy as np
import pytest

from localreg import Range, Table, box_squared_distance_range
from tests.unit.sample_data import sample_points, sample_targets


def _leaves(table: Table) -> list[int]:
    return [node for node in range(table.num_nodes) if table.is_leaf(node)]


def test_node_iterator_yields_original_indices_and_weights():
    points = sample_points(n=20, dim=2)
    weights = sample_targets(points)
    table = Table(points, weights, leaf_size=3)

    seen = []
    for node in _leaves(table):
        for coordinates, index, weight in table.get_node_iterator(node):
            np.testing.assert_allclose(coordinates, points[index])
            assert weight == pytest.approx(weights[index])
            seen.append(index)
    assert sorted(seen) == list(range(20))


def test_squared_distance_range_brackets_point_pairs():
    table_a = Table(sample_points(n=30, dim=3, seed=1), leaf_size=5)
    table_b = Table(sample_points(n=30, dim=3, seed=2), leaf_size=5)

    for node_a in range(table_a.num_nodes):
        block_a, _, _ = table_a.node_block(node_a)
        for node_b in _leaves(table_b):
            block_b, _, _ = table_b.node_block(node_b)
            diff = block_a[:, None, :] - block_b[None, :, :]
            squared = np.sum(diff * diff, axis=-1)
            bounds = table_a.squared_distance_range(node_a, table_b, node_b)
            assert bounds.lo <= squared.min() + 1e-12
            assert squared.max() <= bounds.hi + 1e-12


def test_box_range_for_overlapping_and_disjoint_boxes():
    overlapping = box_squared_distance_range(
        np.array([0.0, 0.0]), np.array([1.0, 1.0]), np.array([0.5, 0.5]), np.array([2.0, 1.0])
    )
    assert overlapping.lo == 0.0
    assert overlapping.hi == pytest.approx(4.0 + 1.0)

    disjoint = box_squared_distance_range(
        np.array([0.0]), np.array([1.0]), np.array([3.0]), np.array([4.0])
    )
    assert disjoint == Range(lo=4.0, hi=16.0)


def test_postorder_visits_children_first():
    table = Table(sample_points(n=40, dim=2), leaf_size=4)
    order = list(table.postorder())
    position = {node: i for i, node in enumerate(order)}

    assert sorted(order) == list(range(table.num_nodes))
    assert order[-1] == table.root
    for node in order:
        if not table.is_leaf(node):
            left, right = table.children(node)
            assert position[left] < position[node]
            assert position[right] < position[node]


def test_weights_default_to_zero_and_empty_table():
    table = Table(sample_points(n=5, dim=2))
    np.testing.assert_array_equal(table.weights, np.zeros(5))
    assert table.n_entries == 5
    assert table.n_attributes == 2

    empty = Table(np.zeros((0, 2)))
    assert empty.root is None
    assert list(empty.postorder()) == []


def test_weight_shape_mismatch_raises():
    with pytest.raises(ValueError, match="weights"):
        Table(sample_points(n=5, dim=2), np.ones(4))
