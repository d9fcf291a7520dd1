"""Anomaly detectors guarding a rule's statistics against outliers.

Each rule owns one detector. Before the rule learns from an instance the
detector scores it against the rule's per-feature Gaussian estimates; an
instance flagged as anomalous is not learned by that rule.

Supported detectors:
- NoAnomalyDetection: never flags an instance
- AnomalousnessRatioScore: share of log-improbability carried by
  improbable features
- OddsRatioScore: mean log-odds of the feature probabilities, mapped back
  to a probability
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Sequence

from streamingml.base import AMRulesConfig, AnomalyDetectorKind, AnomalyScore
from streamingml.stats import FeatureStatistics, gaussian_tail_probability

_MIN_PROBABILITY = 1e-12
# Features this close to constant within a rule carry no Gaussian evidence.
_MIN_STD = 1e-9

_NOT_ANOMALOUS = AnomalyScore(score=0.0, is_anomaly=False)


class AnomalyDetector(ABC):
    """Abstract base class for anomaly detectors.

    Attributes:
        probability_threshold: Probability below which a feature value is
            considered improbable
        min_instances: Instances a rule must have seen before scoring
    """

    def __init__(self, probability_threshold: float = 0.1, min_instances: int = 30):
        self.probability_threshold = probability_threshold
        self.min_instances = min_instances
        self._n_scored = 0
        self._n_anomalies = 0

    def score(
        self, features: Sequence[float], feature_stats: FeatureStatistics
    ) -> AnomalyScore:
        """Score an instance against a rule's feature statistics."""
        if feature_stats.count < self.min_instances:
            return _NOT_ANOMALOUS
        probabilities = [
            min(
                max(gaussian_tail_probability(value, stats.mean, stats.std), _MIN_PROBABILITY),
                1.0 - _MIN_PROBABILITY,
            )
            for value, stats in zip(features, feature_stats)
            if not stats.std <= _MIN_STD
        ]
        if not probabilities:
            return _NOT_ANOMALOUS
        result = self._score(probabilities)
        self._n_scored += 1
        if result.is_anomaly:
            self._n_anomalies += 1
        return result

    @abstractmethod
    def _score(self, probabilities: list[float]) -> AnomalyScore:
        ...

    @property
    def n_anomalies(self) -> int:
        """Number of instances flagged so far."""
        return self._n_anomalies

    @property
    def n_scored(self) -> int:
        return self._n_scored

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} "
            f"threshold={self.probability_threshold} "
            f"anomalies={self._n_anomalies}>"
        )


class NoAnomalyDetection(AnomalyDetector):
    """Detector that never flags an instance."""

    def score(
        self, features: Sequence[float], feature_stats: FeatureStatistics
    ) -> AnomalyScore:
        return _NOT_ANOMALOUS

    def _score(self, probabilities: list[float]) -> AnomalyScore:
        return _NOT_ANOMALOUS


class AnomalousnessRatioScore(AnomalyDetector):
    """Flags instances whose improbability is concentrated in few features.

    The score is the share of the total negative log-probability that comes
    from features with a probability below ``probability_threshold``. An
    instance is anomalous when that share exceeds ``ratio_threshold``.
    """

    def __init__(
        self,
        probability_threshold: float = 0.1,
        ratio_threshold: float = 0.5,
        min_instances: int = 30,
    ):
        super().__init__(probability_threshold, min_instances)
        self.ratio_threshold = ratio_threshold

    def _score(self, probabilities: list[float]) -> AnomalyScore:
        total = 0.0
        improbable = 0.0
        for p in probabilities:
            surprise = -math.log(p)
            total += surprise
            if p < self.probability_threshold:
                improbable += surprise
        if total <= 0.0:
            return _NOT_ANOMALOUS
        ratio = improbable / total
        return AnomalyScore(score=ratio, is_anomaly=ratio > self.ratio_threshold)


class OddsRatioScore(AnomalyDetector):
    """Flags instances whose combined feature odds are improbable.

    Per-feature odds ``(1 - p) / p`` are combined by their geometric mean;
    the score is the mean log-odds. The combined odds correspond to a
    probability ``1 / (1 + odds)``, which is compared with
    ``probability_threshold``.
    """

    def _score(self, probabilities: list[float]) -> AnomalyScore:
        if not probabilities:
            return _NOT_ANOMALOUS
        log_odds = sum(math.log((1.0 - p) / p) for p in probabilities) / len(
            probabilities
        )
        combined_probability = 1.0 / (1.0 + math.exp(log_odds))
        return AnomalyScore(
            score=log_odds,
            is_anomaly=combined_probability < self.probability_threshold,
        )


def create_anomaly_detector(config: AMRulesConfig) -> AnomalyDetector:
    """Instantiate the anomaly detector selected by a config."""
    kind = config.anomaly_detector
    if kind is AnomalyDetectorKind.ANOMALOUSNESS_RATIO:
        return AnomalousnessRatioScore(
            probability_threshold=config.anomaly_probability_threshold,
            ratio_threshold=config.anomaly_ratio_threshold,
            min_instances=config.anomaly_min_instances,
        )
    if kind is AnomalyDetectorKind.ODDS_RATIO:
        return OddsRatioScore(
            probability_threshold=config.anomaly_probability_threshold,
            min_instances=config.anomaly_min_instances,
        )
    return NoAnomalyDetection(
        probability_threshold=config.anomaly_probability_threshold,
        min_instances=config.anomaly_min_instances,
    )
