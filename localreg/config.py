"""Run configuration for dual-tree local regression."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional

from .kernels import available_kernels

VisitOrder = Literal["closest_first", "left_first", "right_first"]

VISIT_ORDERS: tuple[str, ...] = ("closest_first", "left_first", "right_first")


@dataclass(frozen=True)
class LocalRegressionConfig:
    """Error contract, kernel choice and traversal knobs for one run."""

    bandwidth: float = 1.0
    relative_error: float = 0.1
    absolute_error: float = 0.0
    probability: float = 1.0
    kernel: str = "gaussian"
    leaf_size: int = 16
    visit_order: VisitOrder = "closest_first"
    max_condition_number: float = 1e12


def validate_local_regression_config(config: LocalRegressionConfig) -> None:
    """Raise ``ValueError`` when a field is outside its admissible range."""

    if not (math.isfinite(config.bandwidth) and config.bandwidth > 0.0):
        raise ValueError("bandwidth must be a finite value > 0")
    if not config.relative_error >= 0.0:
        raise ValueError("relative_error must be >= 0")
    if not config.absolute_error >= 0.0:
        raise ValueError("absolute_error must be >= 0")
    if not 0.0 < config.probability <= 1.0:
        raise ValueError("probability must lie in (0, 1]")
    if config.kernel not in available_kernels():
        known = ", ".join(available_kernels())
        raise ValueError(f"kernel must be one of: {known}")
    if config.leaf_size < 1:
        raise ValueError("leaf_size must be >= 1")
    if config.visit_order not in VISIT_ORDERS:
        raise ValueError(f"visit_order must be one of: {', '.join(VISIT_ORDERS)}")
    if not config.max_condition_number > 0.0:
        raise ValueError("max_condition_number must be > 0")


_GLOBAL_LOCAL_REGRESSION_CONFIG: Optional[LocalRegressionConfig] = None


def set_default_local_regression_config(
    config: Optional[LocalRegressionConfig],
) -> None:
    """Set the module-level fallback configuration."""

    if config is not None:
        validate_local_regression_config(config)

    global _GLOBAL_LOCAL_REGRESSION_CONFIG
    _GLOBAL_LOCAL_REGRESSION_CONFIG = config


def resolve_local_regression_config(
    config: Optional[LocalRegressionConfig] = None,
) -> LocalRegressionConfig:
    """Return ``config``, else the module fallback, else the defaults."""

    if config is not None:
        validate_local_regression_config(config)
        return config
    if _GLOBAL_LOCAL_REGRESSION_CONFIG is not None:
        return _GLOBAL_LOCAL_REGRESSION_CONFIG
    return LocalRegressionConfig()


__all__ = [
    "VISIT_ORDERS",
    "LocalRegressionConfig",
    "VisitOrder",
    "resolve_local_regression_config",
    "set_default_local_regression_config",
    "validate_local_regression_config",
]
