"""Tests for the median-split KD-tree topology."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from beartype.roar import BeartypeCallHintViolation

from localreg import INDEX_DTYPE, KDTree, build_kdtree
from tests.unit.sample_data import sample_points


@pytest.mark.parametrize("leaf_size", [1, 3, 8])
def test_nodes_partition_contiguous_ranges(leaf_size):
    points = sample_points(n=37, dim=3)
    tree = build_kdtree(jnp.asarray(points), leaf_size=leaf_size)

    start = np.asarray(tree.node_start)
    end = np.asarray(tree.node_end)
    left = np.asarray(tree.left_child)
    right = np.asarray(tree.right_child)
    assert (start[0], end[0]) == (0, 37)
    for node in range(tree.num_nodes):
        if left[node] < 0:
            assert right[node] < 0
            assert 0 < end[node] - start[node] <= leaf_size
            continue
        assert start[left[node]] == start[node]
        assert end[left[node]] == start[right[node]]
        assert end[right[node]] == end[node]
        assert int(tree.parent[left[node]]) == node


def test_permutation_and_bounding_boxes():
    points = sample_points(n=25, dim=2)
    tree = build_kdtree(jnp.asarray(points), leaf_size=4)
    permutation = np.asarray(tree.permutation)

    np.testing.assert_array_equal(np.sort(permutation), np.arange(25))
    for node in range(tree.num_nodes):
        owned = points[permutation[int(tree.node_start[node]) : int(tree.node_end[node])]]
        assert np.all(owned >= np.asarray(tree.bbox_min[node]))
        assert np.all(owned <= np.asarray(tree.bbox_max[node]))


def test_tree_metadata_and_index_dtype():
    tree = build_kdtree(jnp.asarray(sample_points(n=16, dim=2)), leaf_size=4)

    assert tree.num_points == 16
    assert tree.dimension == 2
    assert tree.num_leaves == 4
    assert tree.node_start.dtype == INDEX_DTYPE


def test_empty_point_set_builds_empty_tree():
    tree = build_kdtree(jnp.zeros((0, 2)))

    assert tree.num_nodes == 0
    assert tree.bbox_min.shape == (0, 2)


def test_tree_is_a_pytree():
    tree = build_kdtree(jnp.asarray(sample_points(n=12, dim=2)), leaf_size=3)
    leaves, treedef = jax.tree_util.tree_flatten(tree)
    rebuilt = jax.tree_util.tree_unflatten(treedef, leaves)

    assert isinstance(rebuilt, KDTree)
    assert rebuilt.leaf_size == 3
    assert jnp.array_equal(rebuilt.node_end, tree.node_end)


def test_invalid_inputs_raise():
    with pytest.raises(ValueError, match="leaf_size"):
        build_kdtree(jnp.zeros((4, 2)), leaf_size=0)
    with pytest.raises(ValueError, match="shape"):
        build_kdtree(jnp.zeros((4,)))


def test_build_is_type_checked():
    with pytest.raises((TypeError, BeartypeCallHintViolation)):
        build_kdtree(jnp.zeros((4, 2)), leaf_size=2.5)
    with pytest.raises((TypeError, BeartypeCallHintViolation)):
        build_kdtree("not points")
