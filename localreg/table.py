"""Weighted point table backed by a KD-tree."""

from __future__ import annotations

from typing import Iterator, Optional

import numpy as np

from .dtypes import HOST_FLOAT_DTYPE
from .geometry import Range, box_squared_distance_range
from .kdtree import KDTree, build_kdtree


class Table:
    """Points plus per-point weights, organised into a KD-tree.

    Point indices exposed by the table are the caller's original row
    indices; tree nodes refer to contiguous slices of the permuted order.
    Each node carries one statistic slot filled by the engine.

    ``weights`` are the regression targets of reference points. When omitted
    they default to zeros, which suits query tables (their weights are never
    read) but gives all-zero right-hand sides if the table is used as the
    reference set.
    """

    def __init__(self, points, weights=None, *, leaf_size: int = 16) -> None:
        self.tree: KDTree = build_kdtree(points, leaf_size=leaf_size)
        self._points = np.asarray(self.tree.points, dtype=HOST_FLOAT_DTYPE)
        num_points = self._points.shape[0]
        if weights is None:
            weights_arr = np.zeros((num_points,), dtype=HOST_FLOAT_DTYPE)
        else:
            weights_arr = np.asarray(weights, dtype=HOST_FLOAT_DTYPE)
        if weights_arr.shape != (num_points,):
            raise ValueError(
                f"weights must have shape ({num_points},); "
                f"received {weights_arr.shape}"
            )
        self._weights = weights_arr
        self._permutation = np.asarray(self.tree.permutation)
        self._node_start = np.asarray(self.tree.node_start)
        self._node_end = np.asarray(self.tree.node_end)
        self._left = np.asarray(self.tree.left_child)
        self._right = np.asarray(self.tree.right_child)
        self._bbox_min = np.asarray(self.tree.bbox_min)
        self._bbox_max = np.asarray(self.tree.bbox_max)
        self._statistics: list = [None] * self.num_nodes

    @property
    def n_entries(self) -> int:
        return int(self._points.shape[0])

    @property
    def n_attributes(self) -> int:
        return int(self._points.shape[1])

    @property
    def num_nodes(self) -> int:
        return int(self._node_start.shape[0])

    @property
    def root(self) -> Optional[int]:
        """Root node id, or ``None`` for an empty table."""
        return 0 if self.num_nodes > 0 else None

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    def is_leaf(self, node: int) -> bool:
        return self._left[node] < 0

    def children(self, node: int) -> tuple[int, int]:
        return int(self._left[node]), int(self._right[node])

    def node_count(self, node: int) -> int:
        return int(self._node_end[node] - self._node_start[node])

    def node_indices(self, node: int) -> np.ndarray:
        return self._permutation[self._node_start[node] : self._node_end[node]]

    def node_block(self, node: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(coordinates, point_indices, weights)`` for ``node``."""

        indices = self.node_indices(node)
        return self._points[indices], indices, self._weights[indices]

    def get_node_iterator(self, node: int) -> Iterator[tuple[np.ndarray, int, float]]:
        for index in self.node_indices(node):
            yield self._points[index], int(index), float(self._weights[index])

    def get(self, index: int) -> tuple[np.ndarray, float]:
        return self._points[index], float(self._weights[index])

    def squared_distance_range(self, node: int, other: Table, other_node: int) -> Range:
        return box_squared_distance_range(
            self._bbox_min[node],
            self._bbox_max[node],
            other._bbox_min[other_node],
            other._bbox_max[other_node],
        )

    def postorder(self) -> Iterator[int]:
        """Yield node ids with every child before its parent."""

        if self.root is None:
            return
        stack = [(self.root, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded or self.is_leaf(node):
                yield node
                continue
            left, right = self.children(node)
            stack.append((node, True))
            stack.append((right, False))
            stack.append((left, False))

    def statistic(self, node: int):
        return self._statistics[node]

    def set_statistic(self, node: int, statistic) -> None:
        self._statistics[node] = statistic


__all__ = ["Table"]
