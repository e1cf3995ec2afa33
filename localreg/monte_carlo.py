"""Running mean/variance accumulators and dense containers of them.

``MeanVariancePair`` is the atomic unit every bound in the engine is built
from. It follows Welford's update for single pushes and the Chan et al.
pairwise merge for combining two partial aggregates, so merging is
associative and commutative up to rounding.

The matrix/vector containers keep struct-of-arrays state (``count``,
``mean``, ``m2``, ``total_num_terms``) in host numpy arrays and apply the
same formulas element-wise.
"""

from __future__ import annotations

from typing import Any, ClassVar

import numpy as np

from .dtypes import HOST_FLOAT_DTYPE

ENCODING_VERSION = 1


def _merge_moments(
    count_a: int, mean_a: float, m2_a: float, count_b: int, mean_b: float, m2_b: float
) -> tuple[int, float, float]:
    count = count_a + count_b
    if count == 0:
        return 0, 0.0, 0.0
    delta = mean_b - mean_a
    mean = mean_a + delta * count_b / count
    m2 = m2_a + m2_b + delta * delta * count_a * count_b / count
    return count, mean, m2


def check_payload(payload: dict[str, Any], kind: str) -> None:
    """Raise ``ValueError`` unless ``payload`` is a supported ``kind`` record."""

    if payload.get("kind") != kind:
        raise ValueError(f"expected payload kind '{kind}', got {payload.get('kind')!r}")
    version = payload.get("version")
    if version != ENCODING_VERSION:
        raise ValueError(
            f"unsupported {kind} payload version {version!r}; "
            f"expected {ENCODING_VERSION}"
        )


class MeanVariancePair:
    """Running count/mean/M2 over pushed scalar samples."""

    _kind: ClassVar[str] = "mean_variance_pair"

    __slots__ = ("count", "mean", "m2", "total_num_terms")

    def __init__(self) -> None:
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0
        self.total_num_terms = 0

    def __repr__(self) -> str:
        return (
            f"MeanVariancePair(count={self.count}, mean={self.mean!r}, "
            f"m2={self.m2!r}, total_num_terms={self.total_num_terms})"
        )

    def push(self, value: float, num_terms: int = 1) -> None:
        """Add ``num_terms`` copies of ``value`` in one exact update."""

        if num_terms < 0:
            raise ValueError("num_terms must be >= 0")
        self.count, self.mean, self.m2 = _merge_moments(
            self.count, self.mean, self.m2, int(num_terms), float(value), 0.0
        )

    def discard(self, value: float) -> None:
        """Remove one previously pushed ``value``."""

        if self.count < 1:
            raise ValueError("cannot discard from an empty accumulator")
        remaining = self.count - 1
        if remaining == 0:
            self.count, self.mean, self.m2 = 0, 0.0, 0.0
            return
        value = float(value)
        previous_mean = (self.count * self.mean - value) / remaining
        self.m2 = max(self.m2 - (value - previous_mean) * (value - self.mean), 0.0)
        self.mean = previous_mean
        self.count = remaining

    def combine_with(self, other: MeanVariancePair) -> None:
        self.count, self.mean, self.m2 = _merge_moments(
            self.count, self.mean, self.m2, other.count, other.mean, other.m2
        )
        self.total_num_terms += other.total_num_terms

    def set_zero(self) -> None:
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0
        self.total_num_terms = 0

    def set_total_num_terms(self, num_terms: int) -> None:
        self.total_num_terms = int(num_terms)

    def copy(self) -> MeanVariancePair:
        clone = MeanVariancePair()
        clone.count = self.count
        clone.mean = self.mean
        clone.m2 = self.m2
        clone.total_num_terms = self.total_num_terms
        return clone

    def sample_mean(self) -> float:
        return self.mean if self.count > 0 else 0.0

    def sample_count(self) -> int:
        return self.count

    def sample_variance(self) -> float:
        """Unbiased sample variance; zero with fewer than two samples."""

        if self.count < 2:
            return 0.0
        return self.m2 / (self.count - 1)

    def encode(self) -> dict[str, Any]:
        return {
            "kind": self._kind,
            "version": ENCODING_VERSION,
            "count": self.count,
            "mean": self.mean,
            "m2": self.m2,
            "total_num_terms": self.total_num_terms,
        }

    @classmethod
    def decode(cls, payload: dict[str, Any]) -> MeanVariancePair:
        check_payload(payload, cls._kind)
        pair = cls()
        pair.count = int(payload["count"])
        pair.mean = float(payload["mean"])
        pair.m2 = float(payload["m2"])
        pair.total_num_terms = int(payload["total_num_terms"])
        if pair.count < 0:
            raise ValueError("count must be >= 0")
        return pair


class _MeanVariancePairArray:
    """Dense array of accumulators stored as parallel numpy arrays."""

    _kind: ClassVar[str] = ""
    _ndim: ClassVar[int] = 0

    def __init__(self, shape: tuple[int, ...]) -> None:
        self.init(shape)

    def init(self, shape: tuple[int, ...]) -> None:
        """(Re)allocate zeroed cells with the given ``shape``."""

        shape = tuple(int(s) for s in shape)
        if len(shape) != self._ndim or any(s < 0 for s in shape):
            raise ValueError(
                f"{type(self).__name__} expects a non-negative {self._ndim}-D "
                f"shape, got {shape}"
            )
        self.count = np.zeros(shape, dtype=np.int64)
        self.mean = np.zeros(shape, dtype=HOST_FLOAT_DTYPE)
        self.m2 = np.zeros(shape, dtype=HOST_FLOAT_DTYPE)
        self.total_num_terms = np.zeros(shape, dtype=np.int64)

    @property
    def shape(self) -> tuple[int, ...]:
        return self.count.shape

    def _merge(self, count_b, mean_b, m2_b) -> None:
        count_a = self.count
        count = count_a + count_b
        safe = np.where(count > 0, count, 1)
        delta = mean_b - self.mean
        mean = self.mean + delta * count_b / safe
        m2 = self.m2 + m2_b + delta * delta * count_a * count_b / safe
        self.mean = np.where(count > 0, mean, 0.0)
        self.m2 = np.where(count > 0, m2, 0.0)
        self.count = np.asarray(count, dtype=np.int64)

    def push(self, values, num_terms: int = 1) -> None:
        """Push one sample per cell, each with multiplicity ``num_terms``."""

        if num_terms < 0:
            raise ValueError("num_terms must be >= 0")
        values = np.broadcast_to(np.asarray(values, dtype=HOST_FLOAT_DTYPE), self.shape)
        self._merge(np.int64(num_terms), values, 0.0)

    def push_samples(self, samples) -> None:
        """Push a stack of samples with shape ``(n,) + self.shape``."""

        samples = np.asarray(samples, dtype=HOST_FLOAT_DTYPE)
        if samples.shape[1:] != self.shape:
            raise ValueError(
                f"sample shape {samples.shape[1:]} does not match {self.shape}"
            )
        num = samples.shape[0]
        if num == 0:
            return
        batch_mean = samples.mean(axis=0)
        centered = samples - batch_mean
        batch_m2 = np.sum(centered * centered, axis=0)
        self._merge(np.int64(num), batch_mean, batch_m2)

    def push_cell(self, index, value: float, num_terms: int = 1) -> None:
        index = tuple(index) if isinstance(index, tuple) else (int(index),)
        count, mean, m2 = _merge_moments(
            int(self.count[index]),
            float(self.mean[index]),
            float(self.m2[index]),
            int(num_terms),
            float(value),
            0.0,
        )
        self.count[index] = count
        self.mean[index] = mean
        self.m2[index] = m2

    def discard(self, values) -> None:
        """Remove one previously pushed sample from every cell."""

        if np.any(self.count < 1):
            raise ValueError("cannot discard from an empty accumulator")
        values = np.broadcast_to(np.asarray(values, dtype=HOST_FLOAT_DTYPE), self.shape)
        remaining = self.count - 1
        safe = np.where(remaining > 0, remaining, 1)
        previous_mean = (self.count * self.mean - values) / safe
        previous_m2 = self.m2 - (values - previous_mean) * (values - self.mean)
        self.mean = np.where(remaining > 0, previous_mean, 0.0)
        self.m2 = np.where(remaining > 0, np.maximum(previous_m2, 0.0), 0.0)
        self.count = remaining

    def combine_with(self, other: _MeanVariancePairArray) -> None:
        if self.shape != other.shape:
            if self.count.size == 0:
                self.init(other.shape)
            else:
                raise ValueError(
                    f"cannot combine accumulators of shape {self.shape} "
                    f"and {other.shape}"
                )
        self._merge(other.count, other.mean, other.m2)
        self.total_num_terms = self.total_num_terms + other.total_num_terms

    def set_zero(self) -> None:
        self.count.fill(0)
        self.mean.fill(0.0)
        self.m2.fill(0.0)
        self.total_num_terms.fill(0)

    def set_total_num_terms(self, num_terms: int) -> None:
        self.total_num_terms.fill(int(num_terms))

    def sample_means(self) -> np.ndarray:
        return self.mean.copy()

    def sample_totals(self) -> np.ndarray:
        """Return ``mean * count`` per cell, the sum of every pushed sample."""

        return self.mean * self.count

    def sample_variances(self) -> np.ndarray:
        safe = np.where(self.count > 1, self.count - 1, 1)
        return np.where(self.count > 1, self.m2 / safe, 0.0)

    def pair(self, *index: int) -> MeanVariancePair:
        """Return a detached ``MeanVariancePair`` snapshot of one cell."""

        pair = MeanVariancePair()
        pair.count = int(self.count[index])
        pair.mean = float(self.mean[index])
        pair.m2 = float(self.m2[index])
        pair.total_num_terms = int(self.total_num_terms[index])
        return pair

    def copy(self):
        clone = type(self).__new__(type(self))
        clone.count = self.count.copy()
        clone.mean = self.mean.copy()
        clone.m2 = self.m2.copy()
        clone.total_num_terms = self.total_num_terms.copy()
        return clone

    def encode(self) -> dict[str, Any]:
        return {
            "kind": self._kind,
            "version": ENCODING_VERSION,
            "shape": list(self.shape),
            "count": self.count.tolist(),
            "mean": self.mean.tolist(),
            "m2": self.m2.tolist(),
            "total_num_terms": self.total_num_terms.tolist(),
        }

    @classmethod
    def decode(cls, payload: dict[str, Any]):
        check_payload(payload, cls._kind)
        shape = tuple(payload["shape"])
        container = cls.__new__(cls)
        container.init(shape)
        container.count = np.asarray(payload["count"], dtype=np.int64).reshape(shape)
        container.mean = np.asarray(payload["mean"], dtype=HOST_FLOAT_DTYPE).reshape(
            shape
        )
        container.m2 = np.asarray(payload["m2"], dtype=HOST_FLOAT_DTYPE).reshape(shape)
        container.total_num_terms = np.asarray(
            payload["total_num_terms"], dtype=np.int64
        ).reshape(shape)
        if np.any(container.count < 0):
            raise ValueError("count must be >= 0")
        return container


class MeanVariancePairMatrix(_MeanVariancePairArray):
    """2-D grid of accumulators (moment matrix cells)."""

    _kind: ClassVar[str] = "mean_variance_pair_matrix"
    _ndim: ClassVar[int] = 2

    def __init__(self, n_rows: int = 0, n_cols: int = 0) -> None:
        super().__init__((n_rows, n_cols))

    @property
    def n_rows(self) -> int:
        return self.shape[0]

    @property
    def n_cols(self) -> int:
        return self.shape[1]


class MeanVariancePairVector(_MeanVariancePairArray):
    """1-D run of accumulators (moment vector cells)."""

    _kind: ClassVar[str] = "mean_variance_pair_vector"
    _ndim: ClassVar[int] = 1

    def __init__(self, length: int = 0) -> None:
        super().__init__((length,))

    def __len__(self) -> int:
        return self.shape[0]


__all__ = [
    "ENCODING_VERSION",
    "MeanVariancePair",
    "MeanVariancePairMatrix",
    "MeanVariancePairVector",
    "check_payload",
]
