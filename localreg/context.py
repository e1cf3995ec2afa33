"""Run-wide context shared by every node-pair visit."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .config import LocalRegressionConfig, validate_local_regression_config
from .geometry import Range
from .kernels import make_kernel
from .protocols import KernelProtocol
from .table import Table

logger = logging.getLogger(__name__)


class LocalRegressionGlobal:
    """Tolerances, kernel and table handles for one dual-tree run.

    The query and reference tables are held by reference. A run is
    monochromatic when both handles name the same table, in which case a
    query never counts itself as a reference point.
    """

    def __init__(
        self,
        reference_table: Table,
        query_table: Optional[Table] = None,
        *,
        kernel: KernelProtocol,
        relative_error: float = 0.1,
        absolute_error: float = 0.0,
        probability: float = 1.0,
        reference_shard_sizes: Optional[Iterable[int]] = None,
    ) -> None:
        if relative_error < 0.0:
            raise ValueError("relative_error must be >= 0")
        if absolute_error < 0.0:
            raise ValueError("absolute_error must be >= 0")
        if not 0.0 < probability <= 1.0:
            raise ValueError("probability must lie in (0, 1]")
        query_table = reference_table if query_table is None else query_table
        if query_table.n_attributes != reference_table.n_attributes:
            raise ValueError(
                "query and reference tables must share dimension; "
                f"received {query_table.n_attributes} and "
                f"{reference_table.n_attributes}"
            )
        self._reference_table = reference_table
        self._query_table = query_table
        self._kernel = kernel
        self._relative_error = float(relative_error)
        self._absolute_error = float(absolute_error)
        self._probability = float(probability)
        self._effective_num_reference_points = 0.0
        shards = (
            [reference_table.n_entries]
            if reference_shard_sizes is None
            else reference_shard_sizes
        )
        self.set_effective_num_reference_points(shards)

    @classmethod
    def from_config(
        cls,
        config: LocalRegressionConfig,
        reference_table: Table,
        query_table: Optional[Table] = None,
    ) -> LocalRegressionGlobal:
        validate_local_regression_config(config)
        return cls(
            reference_table,
            query_table,
            kernel=make_kernel(config.kernel, config.bandwidth),
            relative_error=config.relative_error,
            absolute_error=config.absolute_error,
            probability=config.probability,
        )

    @property
    def reference_table(self) -> Table:
        return self._reference_table

    @property
    def query_table(self) -> Table:
        return self._query_table

    @property
    def is_monochromatic(self) -> bool:
        return self._query_table is self._reference_table

    @property
    def kernel(self) -> KernelProtocol:
        return self._kernel

    @property
    def bandwidth(self) -> float:
        return float(self._kernel.bandwidth)

    @property
    def relative_error(self) -> float:
        return self._relative_error

    @property
    def absolute_error(self) -> float:
        return self._absolute_error

    @property
    def probability(self) -> float:
        return self._probability

    @property
    def effective_num_reference_points(self) -> float:
        return self._effective_num_reference_points

    @property
    def n_attributes(self) -> int:
        return self._reference_table.n_attributes

    def set_bandwidth(self, bandwidth: float) -> None:
        """Rebuild the kernel at a new bandwidth."""
        self._kernel = self._kernel.with_bandwidth(float(bandwidth))

    def set_effective_num_reference_points(self, shard_sizes: Iterable[int]) -> None:
        """Sum reference counts across shards, excluding self when monochromatic."""

        sizes = [int(size) for size in shard_sizes]
        if any(size < 0 for size in sizes):
            raise ValueError("shard sizes must be >= 0")
        total = sum(sizes)
        if self.is_monochromatic:
            total = max(total - 1, 0)
        self._effective_num_reference_points = float(total)
        logger.debug(
            "effective reference count %d from %d shard(s)", total, len(sizes)
        )

    def consider_extrinsic_prune(self, squared_distance_range: Range) -> bool:
        """Return ``True`` when the kernel is exactly zero over the whole range."""

        predicate = getattr(self._kernel, "is_outside_support", None)
        if predicate is None:
            return False
        return bool(predicate(squared_distance_range))

    def kernel_value(self, squared_distance: float) -> float:
        return float(self._kernel.eval_unnorm_on_sq(squared_distance))


__all__ = ["LocalRegressionGlobal"]
