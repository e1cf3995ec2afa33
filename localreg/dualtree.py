"""Depth-first dual-tree driver for kernel-weighted local regression moments."""

from __future__ import annotations

import logging
from typing import Callable, NamedTuple, Optional

from .config import VISIT_ORDERS, VisitOrder
from .context import LocalRegressionGlobal
from .delta import LocalRegressionDelta
from .geometry import Range
from .metrics import EuclideanMetric
from .postponed import LocalRegressionPostponed
from .protocols import MetricProtocol
from .result import LocalRegressionResult
from .statistic import initialize_tree_statistics

logger = logging.getLogger(__name__)


class DualTreeStats(NamedTuple):
    """Counters describing one completed traversal."""

    num_visits: int
    num_extrinsic_prunes: int
    num_deterministic_prunes: int
    num_probabilistic_prunes: int
    num_base_cases: int
    num_base_case_pairs: int


def log_traversal_stats(
    stats: DualTreeStats,
    *,
    level: int = logging.INFO,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Log traversal counters using the provided (or module) logger."""

    target_logger = logger or logging.getLogger(__name__)
    target_logger.log(
        level,
        (
            "Dual-tree local regression: visits=%d, extrinsic_prunes=%d, "
            "fd_prunes=%d, mc_prunes=%d, base_cases=%d, base_pairs=%d"
        ),
        stats.num_visits,
        stats.num_extrinsic_prunes,
        stats.num_deterministic_prunes,
        stats.num_probabilistic_prunes,
        stats.num_base_cases,
        stats.num_base_case_pairs,
    )


class DualtreeDfs:
    """Recursive node-pair traversal over the query and reference tables.

    Every visited pair is first tested for an exact-zero (extrinsic) skip,
    then for a finite-difference prune; pairs of leaves that survive both
    are evaluated exactly. Postponed state moves down the query tree when a
    query node is split and is flushed to the per-query result at the end.
    """

    def __init__(
        self,
        global_: LocalRegressionGlobal,
        metric: Optional[MetricProtocol] = None,
        *,
        visit_order: VisitOrder = "closest_first",
        stats_logger: Optional[Callable[[DualTreeStats], None]] = None,
    ) -> None:
        if visit_order not in VISIT_ORDERS:
            raise ValueError(f"visit_order must be one of: {', '.join(VISIT_ORDERS)}")
        self.global_ = global_
        self.metric = EuclideanMetric() if metric is None else metric
        self.visit_order = visit_order
        self.stats_logger = stats_logger
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._num_visits = 0
        self._num_extrinsic_prunes = 0
        self._num_deterministic_prunes = 0
        self._num_probabilistic_prunes = 0
        self._num_base_cases = 0
        self._num_base_case_pairs = 0

    @property
    def stats(self) -> DualTreeStats:
        return DualTreeStats(
            num_visits=self._num_visits,
            num_extrinsic_prunes=self._num_extrinsic_prunes,
            num_deterministic_prunes=self._num_deterministic_prunes,
            num_probabilistic_prunes=self._num_probabilistic_prunes,
            num_base_cases=self._num_base_cases,
            num_base_case_pairs=self._num_base_case_pairs,
        )

    def compute(self, *, initial_pruned: float = 0.0) -> LocalRegressionResult:
        """Run the traversal and return the flushed per-query result."""

        global_ = self.global_
        query_table = global_.query_table
        reference_table = global_.reference_table
        result = LocalRegressionResult(query_table.n_entries, global_.n_attributes)
        self._reset_counters()

        if query_table.n_entries == 0 or reference_table.n_entries == 0:
            logger.debug(
                "skipping traversal: %d queries, %d references",
                query_table.n_entries,
                reference_table.n_entries,
            )
            self._emit_stats()
            return result

        initialize_tree_statistics(reference_table)
        if not global_.is_monochromatic:
            initialize_tree_statistics(query_table)
        for node in query_table.postorder():
            query_table.statistic(node).seed(initial_pruned)
        for q_index in range(query_table.n_entries):
            result.seed(q_index, initial_pruned)

        logger.debug(
            "traversing %d query leaves against %d reference leaves",
            query_table.tree.num_leaves,
            reference_table.tree.num_leaves,
        )
        query_root = query_table.root
        reference_root = reference_table.root
        self._canonical(
            query_root,
            reference_root,
            query_table.squared_distance_range(query_root, reference_table, reference_root),
            result,
        )
        self._post_process(query_root, result)
        self._emit_stats()
        return result

    def _emit_stats(self) -> None:
        stats = self.stats
        log_traversal_stats(stats, level=logging.DEBUG, logger=logger)
        if self.stats_logger is None:
            return
        try:
            self.stats_logger(stats)
        except Exception:
            logger.exception("stats_logger raised", exc_info=True)

    def _query_children(self, qnode: int) -> list[int]:
        children = list(self.global_.query_table.children(qnode))
        if self.visit_order == "right_first":
            children.reverse()
        return children

    def _reference_pairs(self, qnode: int, rnodes: list[int]) -> list[tuple[int, Range]]:
        query_table = self.global_.query_table
        reference_table = self.global_.reference_table
        pairs = [
            (rnode, query_table.squared_distance_range(qnode, reference_table, rnode))
            for rnode in rnodes
        ]
        if self.visit_order == "closest_first":
            pairs.sort(key=lambda pair: pair[1].lo)
        elif self.visit_order == "right_first":
            pairs.reverse()
        return pairs

    def _canonical(
        self,
        qnode: int,
        rnode: int,
        squared_distance_range: Range,
        result: LocalRegressionResult,
    ) -> None:
        global_ = self.global_
        query_table = global_.query_table
        reference_table = global_.reference_table
        qstat = query_table.statistic(qnode)
        self._num_visits += 1

        if global_.consider_extrinsic_prune(squared_distance_range):
            delta = LocalRegressionDelta()
            delta.exact_zero_compute(global_, rnode)
            qstat.postponed.apply_delta(delta)
            self._num_extrinsic_prunes += 1
            return

        delta = LocalRegressionDelta()
        delta.deterministic_compute(global_, qnode, rnode, squared_distance_range)
        view = qstat.summary.copy()
        view.apply_postponed(qstat.postponed)
        view.apply_delta(delta)
        if view.can_summarize(global_, delta, squared_distance_range, qnode, rnode):
            qstat.postponed.apply_delta(delta)
            self._num_deterministic_prunes += 1
            return
        if global_.probability < 1.0 and view.can_probabilistic_summarize(
            global_, delta, squared_distance_range, qnode, rnode
        ):
            qstat.postponed.apply_delta(delta)
            self._num_probabilistic_prunes += 1
            return

        query_leaf = query_table.is_leaf(qnode)
        reference_leaf = reference_table.is_leaf(rnode)
        if query_leaf and reference_leaf:
            self._base_case(qnode, rnode, result)
            return

        rnodes = [rnode] if reference_leaf else list(reference_table.children(rnode))
        if query_leaf:
            for rchild, child_range in self._reference_pairs(qnode, rnodes):
                self._canonical(qnode, rchild, child_range, result)
            return

        qchildren = self._query_children(qnode)
        for qchild in qchildren:
            query_table.statistic(qchild).postponed.apply_postponed(qstat.postponed)
        qstat.postponed.set_zero()
        for qchild in qchildren:
            for rchild, child_range in self._reference_pairs(qchild, rnodes):
                self._canonical(qchild, rchild, child_range, result)

        qstat.summary.start_reaccumulate()
        for qchild in qchildren:
            child_stat = query_table.statistic(qchild)
            qstat.summary.accumulate(global_, child_stat.summary, child_stat.postponed)

    def _base_case(self, qnode: int, rnode: int, result: LocalRegressionResult) -> None:
        global_ = self.global_
        query_table = global_.query_table
        qstat = query_table.statistic(qnode)
        reference_points, _, reference_weights = global_.reference_table.node_block(rnode)

        qstat.summary.start_reaccumulate()
        for query_point, q_index, _ in query_table.get_node_iterator(qnode):
            result.apply_postponed(q_index, qstat.postponed)
            contribution = LocalRegressionPostponed()
            contribution.init(global_, qnode, rnode)
            contribution.apply_contributions(
                global_, self.metric, query_point, reference_points, reference_weights
            )
            result.apply_postponed(q_index, contribution)
            qstat.summary.accumulate_result(global_, result, q_index)
        qstat.postponed.set_zero()

        self._num_base_cases += 1
        self._num_base_case_pairs += query_table.node_count(qnode) * int(
            reference_points.shape[0]
        )

    def _post_process(self, qnode: int, result: LocalRegressionResult) -> None:
        """Push every node's postponed state down to its queries, top-down."""

        global_ = self.global_
        query_table = global_.query_table
        qstat = query_table.statistic(qnode)
        if query_table.is_leaf(qnode):
            for query_point, q_index, _ in query_table.get_node_iterator(qnode):
                result.final_apply_postponed(global_, query_point, q_index, qstat.postponed)
                result.post_process(global_, query_point, q_index)
            qstat.postponed.final_set_zero()
            return

        children = query_table.children(qnode)
        for child in children:
            query_table.statistic(child).postponed.final_apply_postponed(
                global_, qstat.postponed
            )
        qstat.postponed.final_set_zero()
        for child in children:
            self._post_process(child, result)


__all__ = ["DualTreeStats", "DualtreeDfs", "log_traversal_stats"]
