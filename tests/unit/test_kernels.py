"""Tests for radial kernels and the kernel registry."""

import jax.numpy as jnp
import numpy as np
import pytest

from localreg import (
    EpanKernel,
    GaussianKernel,
    Range,
    available_kernels,
    make_kernel,
    register_kernel,
)
from localreg import kernels as kernels_module


@pytest.mark.parametrize("kernel", [GaussianKernel(0.5), EpanKernel(0.5)])
def test_kernels_are_one_at_zero_and_non_increasing(kernel):
    squared = jnp.linspace(0.0, 1.0, 41)
    values = np.asarray(kernel.eval_unnorm_on_sq(squared))

    assert values[0] == pytest.approx(1.0)
    assert np.all(np.diff(values) <= 0.0)
    assert np.all(values >= 0.0)


def test_epanechnikov_support_predicate():
    kernel = EpanKernel(0.5)

    assert kernel.is_outside_support(Range(lo=0.25, hi=1.0))
    assert not kernel.is_outside_support(Range(lo=0.2, hi=1.0))
    assert float(kernel.eval_unnorm_on_sq(0.25)) == 0.0


def test_gaussian_has_no_support_predicate():
    assert not hasattr(GaussianKernel(1.0), "is_outside_support")


def test_with_bandwidth_returns_new_kernel():
    kernel = GaussianKernel(1.0)
    wider = kernel.with_bandwidth(2.0)

    assert kernel.bandwidth == 1.0
    assert wider.bandwidth_sq == pytest.approx(4.0)
    assert float(wider.eval_unnorm_on_sq(1.0)) > float(kernel.eval_unnorm_on_sq(1.0))


def test_make_kernel_and_registry_errors():
    assert set(available_kernels()) >= {"gaussian", "epanechnikov"}
    assert make_kernel("epanechnikov", 2.0) == EpanKernel(2.0)
    with pytest.raises(ValueError, match="unknown kernel"):
        make_kernel("triangular", 1.0)
    with pytest.raises(ValueError, match="already registered"):
        register_kernel("gaussian", GaussianKernel)
    with pytest.raises(ValueError, match="non-empty"):
        register_kernel("  ", GaussianKernel)
    with pytest.raises(ValueError, match="bandwidth"):
        GaussianKernel(0.0)


def test_register_kernel_adds_factory(monkeypatch):
    monkeypatch.setattr(kernels_module, "_KERNELS", dict(kernels_module._KERNELS))
    register_kernel("wide-gaussian", lambda bandwidth: GaussianKernel(2.0 * bandwidth))

    assert "wide-gaussian" in available_kernels()
    assert make_kernel("wide-gaussian", 1.5).bandwidth == pytest.approx(3.0)
