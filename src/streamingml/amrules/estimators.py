"""Regression estimators embedded in rules.

- TargetMean: running mean of the targets covered by a rule
- Perceptron: linear model on normalised features
- AdaptiveEstimator: predicts with whichever of the two currently has the
  lower faded absolute error
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from streamingml.stats import FeatureStatistics, RunningStatistics


class TargetMean:
    """Running mean of the target from count, sum and sum of squares."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.count = 0.0
        self.total = 0.0
        self.total_squares = 0.0

    def seed(self, count: float, total: float, total_squares: float) -> None:
        """Start from sufficient statistics collected elsewhere."""
        self.count = count
        self.total = total
        self.total_squares = total_squares

    def learn(self, target: float) -> None:
        self.count += 1
        self.total += target
        self.total_squares += target * target

    def predict(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total / self.count


class Perceptron:
    """Linear perceptron trained by the delta rule on normalised values.

    Features and target are normalised as ``(v - mean) / (3 * std)`` using
    running statistics of the instances the perceptron has learned from.
    Weights start uniform in [-1, 1] from a seeded generator, so identical
    streams give identical models.
    """

    def __init__(self, n_features: int, learning_ratio: float = 0.01, seed: int = 1):
        self.n_features = n_features
        self.learning_ratio = learning_ratio
        self.seed = seed
        self.reset()

    def reset(self) -> None:
        rng = np.random.default_rng(self.seed)
        self.weights = rng.uniform(-1.0, 1.0, self.n_features + 1)
        self._feature_stats = FeatureStatistics(self.n_features)
        self._target_stats = RunningStatistics()

    @property
    def instances_seen(self) -> int:
        return self._target_stats.count

    def _normalise(self, features: Sequence[float]) -> np.ndarray:
        normalised = np.zeros(self.n_features + 1)
        if self._target_stats.count > 1:
            for i, (value, stats) in enumerate(zip(features, self._feature_stats)):
                std = stats.std
                if std > 0.0:
                    normalised[i] = (value - stats.mean) / (3.0 * std)
            normalised[-1] = 1.0
        return normalised

    def _predict_normalised(self, normalised: np.ndarray) -> float:
        return float(np.dot(self.weights, normalised))

    def predict(self, features: Sequence[float]) -> float:
        normalised = self._predict_normalised(self._normalise(features))
        std = self._target_stats.std
        return normalised * 3.0 * std + self._target_stats.mean

    def learn(self, features: Sequence[float], target: float) -> None:
        self._feature_stats.update(features)
        self._target_stats.update(target)
        if self._target_stats.count < 2:
            return
        std = self._target_stats.std
        target_normalised = (
            (target - self._target_stats.mean) / (3.0 * std) if std > 0.0 else 0.0
        )
        x = self._normalise(features)
        error = target_normalised - self._predict_normalised(x)
        self.weights += self.learning_ratio * error * x


class AdaptiveEstimator:
    """Chooses between the target mean and a perceptron per prediction.

    Both models learn every instance; their absolute errors are tracked with
    a fading factor and the one with the lower faded error answers.
    """

    def __init__(
        self,
        n_features: int,
        learning_ratio: float = 0.01,
        fading_factor: float = 0.99,
        seed: int = 1,
    ):
        self.fading_factor = fading_factor
        self.target_mean = TargetMean()
        self.perceptron = Perceptron(n_features, learning_ratio=learning_ratio, seed=seed)
        self._mean_error = 0.0
        self._perceptron_error = 0.0

    def reset(self) -> None:
        self.target_mean.reset()
        self.perceptron.reset()
        self._mean_error = 0.0
        self._perceptron_error = 0.0

    def seed(self, count: float, total: float, total_squares: float) -> None:
        self.reset()
        self.target_mean.seed(count, total, total_squares)

    @property
    def count(self) -> float:
        return self.target_mean.count

    @property
    def uses_perceptron(self) -> bool:
        return (
            self.perceptron.instances_seen > 1
            and self._perceptron_error < self._mean_error
        )

    def predict(self, features: Sequence[float]) -> float:
        if self.uses_perceptron:
            return self.perceptron.predict(features)
        return self.target_mean.predict()

    def learn(self, features: Sequence[float], target: float) -> None:
        mean_prediction = self.target_mean.predict()
        perceptron_prediction = self.perceptron.predict(features)
        self._mean_error = self.fading_factor * self._mean_error + abs(
            target - mean_prediction
        )
        self._perceptron_error = self.fading_factor * self._perceptron_error + abs(
            target - perceptron_prediction
        )
        self.target_mean.learn(target)
        self.perceptron.learn(features, target)
