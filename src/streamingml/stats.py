"""Running sufficient statistics used by rules and detectors."""

from __future__ import annotations

import math
from typing import Sequence

from river import stats


class RunningStatistics:
    """Count, mean and sample variance of a stream of values.

    A thin view over ``river.stats.Var``, which carries its own running
    ``Mean``.
    """

    def __init__(self) -> None:
        self.reset()

    def update(self, value: float) -> None:
        self.count += 1
        self._var.update(value)

    @property
    def mean(self) -> float:
        return self._var.mean.get()

    @property
    def variance(self) -> float:
        """Sample variance (0.0 with fewer than two values)."""
        if self.count < 2:
            return 0.0
        return self._var.get()

    @property
    def std(self) -> float:
        variance = self.variance
        if variance < 0.0:
            return 0.0
        return math.sqrt(variance)

    def reset(self) -> None:
        self.count = 0
        self._var = stats.Var(ddof=1)


class FeatureStatistics:
    """Per-feature running Gaussian estimates for the instances of a rule."""

    def __init__(self, n_features: int):
        self._stats = [RunningStatistics() for _ in range(n_features)]

    def update(self, features: Sequence[float]) -> None:
        for running, value in zip(self._stats, features):
            running.update(value)

    def reset(self) -> None:
        for running in self._stats:
            running.reset()

    @property
    def count(self) -> int:
        return self._stats[0].count if self._stats else 0

    def __len__(self) -> int:
        return len(self._stats)

    def __getitem__(self, index: int) -> RunningStatistics:
        return self._stats[index]

    def __iter__(self):
        return iter(self._stats)


def gaussian_tail_probability(value: float, mean: float, std: float) -> float:
    """Two-sided probability of a value at least this far from the mean.

    A zero standard deviation gives 1.0 for the mean itself and 0.0 for any
    other value.
    """
    if std <= 0.0:
        return 1.0 if value == mean else 0.0
    z = abs(value - mean) / std
    return math.erfc(z / math.sqrt(2.0))


def target_variance(count: float, total: float, total_squares: float) -> float:
    """Population variance from count, sum and sum of squares."""
    if count <= 0:
        return 0.0
    mean = total / count
    return max(total_squares / count - mean * mean, 0.0)
