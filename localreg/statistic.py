"""Per-node sufficient statistics and their bottom-up construction."""

from __future__ import annotations

from .moments import left_hand_side_samples, right_hand_side_samples
from .monte_carlo import MeanVariancePairMatrix, MeanVariancePairVector
from .postponed import LocalRegressionPostponed
from .summary import LocalRegressionSummary
from .table import Table


class LocalRegressionStatistic:
    """Moment averages over a node's points plus its postponed/summary state."""

    def __init__(self, dimension: int = 0) -> None:
        size = int(dimension) + 1
        self.dimension = int(dimension)
        self.average_info = MeanVariancePairMatrix(size, size)
        self.weighted_average_info = MeanVariancePairVector(size)
        self.postponed = LocalRegressionPostponed(dimension)
        self.summary = LocalRegressionSummary(dimension)

    def init_from_points(self, table: Table, node: int) -> None:
        """Scan the node's own points."""

        for point, _, weight in table.get_node_iterator(node):
            self.average_info.push(left_hand_side_samples(point))
            self.weighted_average_info.push(right_hand_side_samples(point, weight))
        self.set_zero()

    def init_from_children(
        self, left: LocalRegressionStatistic, right: LocalRegressionStatistic
    ) -> None:
        """Merge two initialized child statistics without rescanning points."""

        self.average_info = left.average_info.copy()
        self.average_info.combine_with(right.average_info)
        self.weighted_average_info = left.weighted_average_info.copy()
        self.weighted_average_info.combine_with(right.weighted_average_info)
        self.set_zero()

    def set_zero(self) -> None:
        self.postponed.set_zero()
        self.summary.set_zero()

    def seed(self, initial_pruned: float) -> None:
        self.postponed.set_zero()
        self.summary.seed(initial_pruned)


def initialize_tree_statistics(table: Table) -> None:
    """Attach a statistic to every node of ``table``, leaves first."""

    for node in table.postorder():
        statistic = LocalRegressionStatistic(table.n_attributes)
        if table.is_leaf(node):
            statistic.init_from_points(table, node)
        else:
            left, right = table.children(node)
            statistic.init_from_children(table.statistic(left), table.statistic(right))
        table.set_statistic(node, statistic)


__all__ = ["LocalRegressionStatistic", "initialize_tree_statistics"]
