"""localreg: dual-tree kernel-weighted local linear regression."""

from jax import config as _jax_config

# Moment sums and error budgets are tracked in double precision.
_jax_config.update("jax_enable_x64", True)

from .config import (
    VISIT_ORDERS,
    LocalRegressionConfig,
    VisitOrder,
    resolve_local_regression_config,
    set_default_local_regression_config,
    validate_local_regression_config,
)
from .context import LocalRegressionGlobal
from .delta import LocalRegressionDelta
from .dtypes import FLOAT_DTYPE, INDEX_DTYPE, as_float, as_index
from .dualtree import DualTreeStats, DualtreeDfs, log_traversal_stats
from .geometry import Range, box_squared_distance_range
from .kdtree import KDTree, build_kdtree
from .kernels import (
    EpanKernel,
    GaussianKernel,
    available_kernels,
    make_kernel,
    register_kernel,
)
from .metrics import EuclideanMetric
from .monte_carlo import (
    MeanVariancePair,
    MeanVariancePairMatrix,
    MeanVariancePairVector,
)
from .naive import naive_local_regression_moments
from .postponed import LocalRegressionPostponed
from .protocols import (
    CompactSupportKernelProtocol,
    KernelProtocol,
    MetricProtocol,
    TableProtocol,
)
from .regression import LocalRegression, LocalRegressionFit
from .result import LocalRegressionResult
from .solve import (
    IllConditionedLocalFitError,
    predict_from_coefficients,
    solve_local_fits,
)
from .statistic import LocalRegressionStatistic, initialize_tree_statistics
from .summary import LocalRegressionSummary
from .table import Table

__all__ = [
    "FLOAT_DTYPE",
    "INDEX_DTYPE",
    "VISIT_ORDERS",
    "CompactSupportKernelProtocol",
    "DualTreeStats",
    "DualtreeDfs",
    "EpanKernel",
    "EuclideanMetric",
    "GaussianKernel",
    "IllConditionedLocalFitError",
    "KDTree",
    "KernelProtocol",
    "LocalRegression",
    "LocalRegressionConfig",
    "LocalRegressionDelta",
    "LocalRegressionFit",
    "LocalRegressionGlobal",
    "LocalRegressionPostponed",
    "LocalRegressionResult",
    "LocalRegressionStatistic",
    "LocalRegressionSummary",
    "MeanVariancePair",
    "MeanVariancePairMatrix",
    "MeanVariancePairVector",
    "MetricProtocol",
    "Range",
    "Table",
    "TableProtocol",
    "VisitOrder",
    "as_float",
    "as_index",
    "available_kernels",
    "box_squared_distance_range",
    "build_kdtree",
    "initialize_tree_statistics",
    "log_traversal_stats",
    "make_kernel",
    "naive_local_regression_moments",
    "predict_from_coefficients",
    "register_kernel",
    "resolve_local_regression_config",
    "set_default_local_regression_config",
    "solve_local_fits",
    "validate_local_regression_config",
]
