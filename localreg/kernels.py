"""Radial kernels and the name-based kernel registry."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, ClassVar

import jax.numpy as jnp

from .geometry import Range


def _check_bandwidth(bandwidth: float) -> None:
    if not bandwidth > 0.0:
        raise ValueError(f"bandwidth must be > 0, got {bandwidth!r}")


@dataclass(frozen=True)
class GaussianKernel:
    """``exp(-d^2 / (2 h^2))``; infinite support."""

    bandwidth: float
    name: ClassVar[str] = "gaussian"

    def __post_init__(self) -> None:
        _check_bandwidth(self.bandwidth)

    @property
    def bandwidth_sq(self) -> float:
        return float(self.bandwidth) ** 2

    def eval_unnorm_on_sq(self, squared_distance):
        return jnp.exp(-0.5 * jnp.asarray(squared_distance) / self.bandwidth_sq)

    def with_bandwidth(self, bandwidth: float) -> GaussianKernel:
        return replace(self, bandwidth=bandwidth)


@dataclass(frozen=True)
class EpanKernel:
    """Epanechnikov profile ``max(1 - d^2 / h^2, 0)``; support radius ``h``."""

    bandwidth: float
    name: ClassVar[str] = "epanechnikov"

    def __post_init__(self) -> None:
        _check_bandwidth(self.bandwidth)

    @property
    def bandwidth_sq(self) -> float:
        return float(self.bandwidth) ** 2

    def eval_unnorm_on_sq(self, squared_distance):
        return jnp.maximum(
            1.0 - jnp.asarray(squared_distance) / self.bandwidth_sq, 0.0
        )

    def is_outside_support(self, squared_distance_range: Range) -> bool:
        """Return ``True`` when every distance in the range maps to zero."""

        return self.bandwidth_sq <= squared_distance_range.lo

    def with_bandwidth(self, bandwidth: float) -> EpanKernel:
        return replace(self, bandwidth=bandwidth)


KernelFactory = Callable[[float], object]

_KERNELS: dict[str, KernelFactory] = {
    GaussianKernel.name: GaussianKernel,
    EpanKernel.name: EpanKernel,
}


def available_kernels() -> tuple[str, ...]:
    """Return registered kernel names."""
    return tuple(sorted(_KERNELS.keys()))


def register_kernel(
    name: str, factory: KernelFactory, *, overwrite: bool = False
) -> None:
    """Register a kernel factory taking the bandwidth as its only argument."""

    normalized = name.strip()
    if not normalized:
        raise ValueError("kernel name must be a non-empty string")
    if (normalized in _KERNELS) and (not overwrite):
        raise ValueError(
            f"kernel '{normalized}' is already registered; "
            "pass overwrite=True to replace it"
        )
    _KERNELS[normalized] = factory


def make_kernel(name: str, bandwidth: float):
    """Instantiate the kernel registered under ``name``."""

    try:
        factory = _KERNELS[name]
    except KeyError:
        known = ", ".join(available_kernels())
        raise ValueError(f"unknown kernel '{name}'; expected one of: {known}") from None
    return factory(float(bandwidth))


__all__ = [
    "EpanKernel",
    "GaussianKernel",
    "KernelFactory",
    "available_kernels",
    "make_kernel",
    "register_kernel",
]
