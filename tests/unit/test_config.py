"""Tests for run configuration validation and the module-level default."""

import dataclasses

import pytest

from localreg import (
    LocalRegressionConfig,
    resolve_local_regression_config,
    set_default_local_regression_config,
    validate_local_regression_config,
)


@pytest.mark.parametrize(
    "field, value",
    [
        ("bandwidth", 0.0),
        ("bandwidth", float("inf")),
        ("relative_error", -0.1),
        ("absolute_error", -1.0),
        ("probability", 0.0),
        ("probability", 1.5),
        ("kernel", "boxcar"),
        ("leaf_size", 0),
        ("visit_order", "random"),
        ("max_condition_number", 0.0),
    ],
)
def test_invalid_fields_raise(field, value):
    config = dataclasses.replace(LocalRegressionConfig(), **{field: value})
    with pytest.raises(ValueError, match=field):
        validate_local_regression_config(config)


def test_config_is_frozen():
    config = LocalRegressionConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.bandwidth = 2.0  # type: ignore[misc]


def test_default_config_fallback():
    custom = LocalRegressionConfig(bandwidth=0.25, relative_error=0.0)
    try:
        set_default_local_regression_config(custom)
        assert resolve_local_regression_config() is custom
        explicit = LocalRegressionConfig(bandwidth=3.0)
        assert resolve_local_regression_config(explicit) is explicit
    finally:
        set_default_local_regression_config(None)
    assert resolve_local_regression_config() == LocalRegressionConfig()


def test_set_default_validates():
    with pytest.raises(ValueError, match="leaf_size"):
        set_default_local_regression_config(LocalRegressionConfig(leaf_size=0))
    assert resolve_local_regression_config() == LocalRegressionConfig()
