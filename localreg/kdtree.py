"""Median-split KD-tree whose nodes own contiguous ranges of permuted points."""

from __future__ import annotations

from dataclasses import dataclass

import jax
import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, ArrayLike, jaxtyped

from .dtypes import as_float, as_index


@dataclass(frozen=True)
class KDTree:
    """KD-tree topology in preorder.

    Node ``0`` is the root. Node ``i`` owns sorted positions
    ``node_start[i]:node_end[i]``; ``permutation[p]`` maps a sorted position
    back to the caller's point index. Leaves carry ``-1`` child links.
    """

    points: Array
    permutation: Array
    node_start: Array
    node_end: Array
    parent: Array
    left_child: Array
    right_child: Array
    bbox_min: Array
    bbox_max: Array
    leaf_size: int

    @property
    def num_points(self) -> int:
        return int(self.points.shape[0])

    @property
    def dimension(self) -> int:
        return int(self.points.shape[1])

    @property
    def num_nodes(self) -> int:
        return int(self.node_start.shape[0])

    @property
    def num_leaves(self) -> int:
        return int(jnp.sum(self.left_child < 0))


def _register_kdtree_pytree() -> None:
    if getattr(KDTree, "_localreg_pytree_registered", False):
        return

    def flatten(tree: KDTree):
        children = (
            tree.points,
            tree.permutation,
            tree.node_start,
            tree.node_end,
            tree.parent,
            tree.left_child,
            tree.right_child,
            tree.bbox_min,
            tree.bbox_max,
        )
        aux = (tree.leaf_size,)
        return children, aux

    def unflatten(aux, children):
        (leaf_size,) = aux
        (
            points,
            permutation,
            node_start,
            node_end,
            parent,
            left_child,
            right_child,
            bbox_min,
            bbox_max,
        ) = children
        return KDTree(
            points=points,
            permutation=permutation,
            node_start=node_start,
            node_end=node_end,
            parent=parent,
            left_child=left_child,
            right_child=right_child,
            bbox_min=bbox_min,
            bbox_max=bbox_max,
            leaf_size=leaf_size,
        )

    jax.tree_util.register_pytree_node(KDTree, flatten, unflatten)
    setattr(KDTree, "_localreg_pytree_registered", True)


_register_kdtree_pytree()


def _validate_points(points) -> Array:
    points_arr = as_float(points)
    if points_arr.ndim != 2:
        raise ValueError(
            "points must have shape (n_points, dim); "
            f"received ndim={points_arr.ndim}"
        )
    if points_arr.shape[1] < 1:
        raise ValueError("points must have dim >= 1")
    return points_arr


def _build_kdtree_topology(points: np.ndarray, leaf_size: int) -> dict[str, np.ndarray]:
    num_points, dim = points.shape
    order = np.arange(num_points, dtype=np.int64)
    node_start: list[int] = []
    node_end: list[int] = []
    parent: list[int] = []
    left_child: list[int] = []
    right_child: list[int] = []
    bbox_min: list[np.ndarray] = []
    bbox_max: list[np.ndarray] = []

    def build(start: int, end: int, parent_id: int) -> int:
        node = len(node_start)
        block = points[order[start:end]]
        lo = block.min(axis=0)
        hi = block.max(axis=0)
        node_start.append(start)
        node_end.append(end)
        parent.append(parent_id)
        left_child.append(-1)
        right_child.append(-1)
        bbox_min.append(lo)
        bbox_max.append(hi)
        if end - start <= leaf_size:
            return node

        axis = int(np.argmax(hi - lo))
        local = np.argsort(block[:, axis], kind="stable")
        order[start:end] = order[start:end][local]
        mid = start + (end - start) // 2
        left_child[node] = build(start, mid, node)
        right_child[node] = build(mid, end, node)
        return node

    if num_points > 0:
        build(0, num_points, -1)

    return {
        "permutation": order,
        "node_start": np.asarray(node_start, dtype=np.int64),
        "node_end": np.asarray(node_end, dtype=np.int64),
        "parent": np.asarray(parent, dtype=np.int64),
        "left_child": np.asarray(left_child, dtype=np.int64),
        "right_child": np.asarray(right_child, dtype=np.int64),
        "bbox_min": np.asarray(bbox_min, dtype=np.float64).reshape(-1, dim),
        "bbox_max": np.asarray(bbox_max, dtype=np.float64).reshape(-1, dim),
    }


@jaxtyped(typechecker=beartype)
def build_kdtree(points: ArrayLike, *, leaf_size: int = 16) -> KDTree:
    """Build a KD-tree by recursive median splits along the widest axis.

    An empty point set yields a tree with zero nodes.
    """

    points_arr = _validate_points(points)
    if leaf_size < 1:
        raise ValueError(f"leaf_size must be >= 1, received {leaf_size}")

    topology = _build_kdtree_topology(np.asarray(points_arr), int(leaf_size))
    index_fields = (
        "permutation",
        "node_start",
        "node_end",
        "parent",
        "left_child",
        "right_child",
    )
    arrays = {name: as_index(topology[name]) for name in index_fields}
    return KDTree(
        points=points_arr,
        bbox_min=as_float(topology["bbox_min"]),
        bbox_max=as_float(topology["bbox_max"]),
        leaf_size=int(leaf_size),
        **arrays,
    )


__all__ = ["KDTree", "build_kdtree"]
