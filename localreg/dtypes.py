"""Local dtype policy for localreg contracts."""

import jax.numpy as jnp
import numpy as np

# Keep tree/index contracts consistent across localreg artifacts.
INDEX_DTYPE = jnp.int64

# Moment sums and error budgets are tracked in double precision.
FLOAT_DTYPE = jnp.float64
HOST_FLOAT_DTYPE = np.float64


def as_index(x):
    """Convert a scalar/array to localreg index dtype."""
    return jnp.asarray(x, dtype=INDEX_DTYPE)


def as_float(x):
    """Convert a scalar/array to localreg floating dtype."""
    return jnp.asarray(x, dtype=FLOAT_DTYPE)


__all__ = ["FLOAT_DTYPE", "HOST_FLOAT_DTYPE", "INDEX_DTYPE", "as_float", "as_index"]
