"""Smoke run comparing dual-tree and brute-force local regression.

Run from the repository root:
    python examples/local_regression_smoke.py --n-points 2000
"""

from __future__ import annotations

import argparse
import logging
import time

import jax
import jax.numpy as jnp

from localreg import LocalRegression, LocalRegressionConfig, log_traversal_stats


def _make_samples(n: int, dim: int, seed: int) -> tuple[jax.Array, jax.Array]:
    key = jax.random.PRNGKey(seed)
    k1, k2 = jax.random.split(key)
    points = jax.random.uniform(k1, (n, dim), minval=0.0, maxval=1.0)
    noise = 0.05 * jax.random.normal(k2, (n,))
    targets = 1.0 + jnp.sin(3.0 * points[:, 0]) + points.sum(axis=1) + noise
    return points, targets


def _timed(label: str, model: LocalRegression, algorithm: str):
    start = time.perf_counter()
    fit = model.compute(algorithm=algorithm)
    elapsed = time.perf_counter() - start
    print(f"[{label}] seconds: {elapsed:.3f}")
    return fit


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--n-points", type=int, default=2_000)
    parser.add_argument("--dim", type=int, default=2)
    parser.add_argument("--bandwidth", type=float, default=0.2)
    parser.add_argument("--relative-error", type=float, default=0.05)
    parser.add_argument("--kernel", default="gaussian")
    parser.add_argument("--leaf-size", type=int, default=32)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    print("jax:", jax.__version__)
    print("config:", vars(args))

    points, targets = _make_samples(args.n_points, args.dim, args.seed)
    config = LocalRegressionConfig(
        bandwidth=args.bandwidth,
        relative_error=args.relative_error,
        kernel=args.kernel,
        leaf_size=args.leaf_size,
    )
    model = LocalRegression(
        config, stats_logger=log_traversal_stats
    ).fit(points, targets)

    dualtree = _timed("dualtree", model, "dualtree")
    naive = _timed("naive", model, "naive")

    diff = jnp.abs(dualtree.predictions - naive.predictions)
    print(
        "[compare] predictions:",
        {
            "max_abs_diff": float(jnp.max(diff)),
            "mean_abs_diff": float(jnp.mean(diff)),
            "rmse_vs_targets": float(
                jnp.sqrt(jnp.mean((dualtree.predictions - targets) ** 2))
            ),
        },
    )


if __name__ == "__main__":
    main()
