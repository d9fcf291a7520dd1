"""Split evaluation for rule expansion.

A rule accumulates, per feature, the target statistics observed at each
candidate threshold. Expansion picks the threshold with the largest
variance reduction of the target and accepts it when the Hoeffding bound
separates it from the runner-up.
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass
from typing import Sequence

from streamingml.stats import target_variance


@dataclass(frozen=True)
class Predicate:
    """A threshold test on one feature.

    Attributes:
        attribute_index: Index of the tested feature
        operator: Either ``"<="`` or ``">"``
        value: Threshold
    """

    attribute_index: int
    operator: str
    value: float

    def __post_init__(self) -> None:
        if self.operator not in ("<=", ">"):
            raise ValueError(f"Unsupported operator: {self.operator!r}")

    def covers(self, features: Sequence[float]) -> bool:
        value = features[self.attribute_index]
        if self.operator == "<=":
            return value <= self.value
        return value > self.value

    def __str__(self) -> str:
        return f"x{self.attribute_index} {self.operator} {self.value:g}"


@dataclass(frozen=True)
class TargetStats:
    """Count, sum and sum of squares of targets."""

    count: float = 0.0
    total: float = 0.0
    total_squares: float = 0.0

    @property
    def variance(self) -> float:
        return target_variance(self.count, self.total, self.total_squares)

    def __add__(self, other: "TargetStats") -> "TargetStats":
        return TargetStats(
            self.count + other.count,
            self.total + other.total,
            self.total_squares + other.total_squares,
        )

    def __sub__(self, other: "TargetStats") -> "TargetStats":
        return TargetStats(
            self.count - other.count,
            self.total - other.total,
            self.total_squares - other.total_squares,
        )


@dataclass(frozen=True)
class SplitSuggestion:
    """Best binary split found for one feature.

    Attributes:
        attribute_index: Feature the split tests
        threshold: Values ``<= threshold`` go left
        merit: Variance reduction of the target
        left: Target statistics of the left branch
        right: Target statistics of the right branch
    """

    attribute_index: int
    threshold: float
    merit: float
    left: TargetStats
    right: TargetStats

    def best_branch(self) -> tuple[Predicate, TargetStats, TargetStats]:
        """Predicate for the more homogeneous branch.

        Returns:
            The predicate, the chosen branch statistics and the statistics of
            the complementary branch
        """
        if self.left.variance <= self.right.variance:
            return (
                Predicate(self.attribute_index, "<=", self.threshold),
                self.left,
                self.right,
            )
        return (
            Predicate(self.attribute_index, ">", self.threshold),
            self.right,
            self.left,
        )


def variance_reduction(total: TargetStats, left: TargetStats, right: TargetStats) -> float:
    """Reduction of target variance obtained by splitting ``total``."""
    if total.count <= 0:
        return 0.0
    weighted = (
        left.count / total.count * left.variance + right.count / total.count * right.variance
    )
    return total.variance - weighted


def hoeffding_bound(range_value: float, confidence: float, n: float) -> float:
    """Hoeffding bound ``sqrt(R^2 ln(1/delta) / (2n))``."""
    return math.sqrt(range_value * range_value * math.log(1.0 / confidence) / (2.0 * n))


class NumericAttributeObserver:
    """Target statistics per distinct value of one numeric feature.

    At most ``max_split_points`` distinct values are kept; once full, a new
    value is credited to the nearest stored value.
    """

    def __init__(self, max_split_points: int = 1000):
        self.max_split_points = max_split_points
        self._keys: list[float] = []
        self._stats: dict[float, list[float]] = {}

    def __len__(self) -> int:
        return len(self._keys)

    def _nearest(self, value: float) -> float:
        index = bisect.bisect_left(self._keys, value)
        if index == 0:
            return self._keys[0]
        if index == len(self._keys):
            return self._keys[-1]
        before, after = self._keys[index - 1], self._keys[index]
        return before if value - before <= after - value else after

    def update(self, value: float, target: float) -> None:
        if math.isnan(value):
            return
        stats = self._stats.get(value)
        if stats is None:
            if len(self._keys) < self.max_split_points:
                bisect.insort(self._keys, value)
                stats = self._stats[value] = [0.0, 0.0, 0.0]
            else:
                stats = self._stats[self._nearest(value)]
        stats[0] += 1
        stats[1] += target
        stats[2] += target * target

    def best_split(self, attribute_index: int) -> SplitSuggestion | None:
        """Best threshold for this feature, or None with fewer than two values."""
        if len(self._keys) < 2:
            return None
        total = TargetStats()
        for key in self._keys:
            total = total + TargetStats(*self._stats[key])

        best: SplitSuggestion | None = None
        left = TargetStats()
        for key in self._keys[:-1]:
            left = left + TargetStats(*self._stats[key])
            right = total - left
            merit = variance_reduction(total, left, right)
            if best is None or merit > best.merit:
                best = SplitSuggestion(attribute_index, key, merit, left, right)
        return best


class SplitAccumulator:
    """Split statistics of a rule: one observer per feature."""

    def __init__(self, n_features: int, max_split_points: int = 1000):
        self.n_features = n_features
        self.max_split_points = max_split_points
        self.reset()

    def reset(self) -> None:
        self._observers = [
            NumericAttributeObserver(self.max_split_points) for _ in range(self.n_features)
        ]
        self.count = 0

    def update(self, features: Sequence[float], target: float) -> None:
        self.count += 1
        for observer, value in zip(self._observers, features):
            observer.update(value, target)

    def suggestions(self) -> list[SplitSuggestion]:
        """Best split per feature, sorted by increasing merit."""
        found = []
        for index, observer in enumerate(self._observers):
            suggestion = observer.best_split(index)
            if suggestion is not None:
                found.append(suggestion)
        found.sort(key=lambda s: s.merit)
        return found


def select_split(
    suggestions: list[SplitSuggestion],
    n: float,
    split_confidence: float,
    tie_threshold: float,
) -> SplitSuggestion | None:
    """Apply the Hoeffding test to sorted split suggestions.

    The best split is accepted when the merit ratio of the runner-up to the
    best, plus the Hoeffding bound, stays below one, or when the bound has
    shrunk below ``tie_threshold``.
    """
    if not suggestions or n <= 0:
        return None
    best = suggestions[-1]
    if not best.merit > 0.0:
        return None
    second_merit = suggestions[-2].merit if len(suggestions) > 1 else 0.0
    epsilon = hoeffding_bound(1.0, split_confidence, n)
    ratio = max(second_merit, 0.0) / best.merit
    if ratio + epsilon < 1.0 or epsilon < tie_threshold:
        return best
    return None
