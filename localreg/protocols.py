"""Structural protocols for the collaborators the dual-tree engine consumes."""

from __future__ import annotations

from typing import Iterator, Protocol

import numpy as np

from .geometry import Range


class KernelProtocol(Protocol):
    """Radial kernel evaluated on squared distances."""

    bandwidth_sq: float

    def eval_unnorm_on_sq(self, squared_distance):
        """Return the unnormalized kernel value; non-increasing in its input."""


class CompactSupportKernelProtocol(KernelProtocol, Protocol):
    """Kernel that can prove a distance range contributes exactly zero."""

    def is_outside_support(self, squared_distance_range: Range) -> bool: ...


class MetricProtocol(Protocol):
    """Distance used by the exact base case."""

    def distance_sq(self, point_a, point_b): ...


class TableProtocol(Protocol):
    """Point table organised into a tree of contiguous point ranges."""

    @property
    def n_entries(self) -> int: ...

    @property
    def n_attributes(self) -> int: ...

    def get_node_iterator(self, node: int) -> Iterator[tuple[np.ndarray, int, float]]:
        """Yield ``(coordinates, point_index, weight)`` for points in ``node``."""

    def squared_distance_range(
        self, node: int, other: TableProtocol, other_node: int
    ) -> Range: ...


__all__ = [
    "CompactSupportKernelProtocol",
    "KernelProtocol",
    "MetricProtocol",
    "TableProtocol",
]
