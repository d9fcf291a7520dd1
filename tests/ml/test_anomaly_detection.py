"""Tests for anomaly detectors."""

from __future__ import annotations

import math
import random

import pytest

from streamingml.anomaly_detection import (
    AnomalousnessRatioScore,
    NoAnomalyDetection,
    OddsRatioScore,
    create_anomaly_detector,
)
from streamingml.base import AMRulesConfig, AnomalyScore
from streamingml.stats import FeatureStatistics, gaussian_tail_probability


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def feature_stats() -> FeatureStatistics:
    """Statistics of 100 instances of two standard normal features."""
    rng = random.Random(42)
    stats = FeatureStatistics(2)
    for _ in range(100):
        stats.update([rng.gauss(0, 1), rng.gauss(0, 1)])
    return stats


# =============================================================================
# Gaussian probability
# =============================================================================


class TestGaussianTailProbability:
    """Tests for the two-sided tail probability."""

    def test_at_mean(self):
        """Test that the mean itself has probability one."""
        assert gaussian_tail_probability(5.0, 5.0, 2.0) == pytest.approx(1.0)

    def test_two_sigma(self):
        """Test the probability two standard deviations away."""
        assert gaussian_tail_probability(2.0, 0.0, 1.0) == pytest.approx(0.0455, abs=1e-4)

    def test_zero_std(self):
        """Test the degenerate distribution."""
        assert gaussian_tail_probability(1.0, 1.0, 0.0) == 1.0
        assert gaussian_tail_probability(1.5, 1.0, 0.0) == 0.0


class TestFeatureStatistics:
    """Tests for per-feature running estimates."""

    def test_mean_and_std(self):
        """Test the sample statistics of each feature."""
        stats = FeatureStatistics(2)
        for value in [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]:
            stats.update([value, 1.0])

        assert stats.count == 8
        assert stats[0].mean == pytest.approx(5.0)
        assert stats[0].std == pytest.approx(math.sqrt(32.0 / 7.0))
        assert stats[1].std == 0.0

    def test_single_value(self):
        """Test that one value has no spread."""
        stats = FeatureStatistics(1)
        stats.update([3.0])

        assert stats[0].variance == 0.0
        assert stats[0].std == 0.0

    def test_reset(self):
        """Test that reset forgets every feature."""
        stats = FeatureStatistics(2)
        stats.update([1.0, 2.0])
        stats.reset()

        assert stats.count == 0
        assert stats[1].mean == 0.0


# =============================================================================
# Scoring
# =============================================================================


class TestNoAnomalyDetection:
    """Tests for the no-op detector."""

    def test_never_anomalous(self, feature_stats):
        """Test that even extreme values are accepted."""
        detector = NoAnomalyDetection()
        result = detector.score([1e6, -1e6], feature_stats)

        assert result == AnomalyScore(score=0.0, is_anomaly=False)
        assert detector.n_anomalies == 0


class TestAnomalousnessRatioScore:
    """Tests for the anomalousness ratio."""

    def test_concentrated_improbability(self):
        """Test that one very improbable feature dominates the ratio."""
        result = AnomalousnessRatioScore()._score([0.01, 0.9, 0.9])

        assert result.is_anomaly
        assert result.score > 0.9

    def test_no_improbable_features(self):
        """Test that probable features give a zero ratio."""
        result = AnomalousnessRatioScore()._score([0.5, 0.5])

        assert result.score == 0.0
        assert not result.is_anomaly

    def test_scores_against_statistics(self, feature_stats):
        """Test scoring through the rule's feature statistics."""
        detector = AnomalousnessRatioScore()

        assert detector.score([50.0, 50.0], feature_stats).is_anomaly
        assert not detector.score([0.0, 0.0], feature_stats).is_anomaly
        assert detector.n_scored == 2
        assert detector.n_anomalies == 1


class TestOddsRatioScore:
    """Tests for the odds ratio score."""

    def test_even_odds(self):
        """Test that probability one half gives zero log-odds."""
        result = OddsRatioScore()._score([0.5, 0.5])

        assert result.score == pytest.approx(0.0)
        assert not result.is_anomaly

    def test_improbable_instance(self):
        """Test that improbable features are flagged."""
        result = OddsRatioScore()._score([0.01, 0.01])

        assert result.score == pytest.approx(math.log(99.0))
        assert result.is_anomaly

    def test_scores_against_statistics(self, feature_stats):
        """Test that an outlier is flagged and a central point is not."""
        detector = OddsRatioScore()

        assert detector.score([40.0, -40.0], feature_stats).is_anomaly
        assert not detector.score([0.0, 0.0], feature_stats).is_anomaly

    def test_constant_feature_is_ignored(self):
        """Test that a feature constant so far does not decide the score."""
        stats = FeatureStatistics(2)
        for i in range(40):
            stats.update([float(i % 7), 0.0])
        detector = OddsRatioScore()

        assert not detector.score([3.0, 1.0], stats).is_anomaly
        assert detector.score([50.0, 1.0], stats).is_anomaly

    def test_only_constant_features(self):
        """Test that an instance with nothing to score against is accepted."""
        stats = FeatureStatistics(1)
        for _ in range(40):
            stats.update([0.0])
        detector = OddsRatioScore()

        assert not detector.score([5.0], stats).is_anomaly
        assert detector.n_scored == 0

    def test_min_instances(self):
        """Test that young statistics are never scored."""
        stats = FeatureStatistics(1)
        for value in [0.0, 1.0, 0.0, 1.0]:
            stats.update([value])
        detector = OddsRatioScore(min_instances=30)

        assert not detector.score([1000.0], stats).is_anomaly
        assert detector.n_scored == 0


# =============================================================================
# Factory
# =============================================================================


class TestFactory:
    """Tests for selecting a detector from the config."""

    @pytest.mark.parametrize(
        "selector, expected",
        [
            (0, NoAnomalyDetection),
            (1, AnomalousnessRatioScore),
            (2, OddsRatioScore),
        ],
    )
    def test_selector(self, selector, expected):
        """Test that each selector builds its detector."""
        detector = create_anomaly_detector(AMRulesConfig(anomaly_detector=selector))
        assert isinstance(detector, expected)

    def test_thresholds(self):
        """Test that thresholds come from the config."""
        config = AMRulesConfig(
            anomaly_detector=1,
            anomaly_probability_threshold=0.05,
            anomaly_ratio_threshold=0.7,
            anomaly_min_instances=10,
        )
        detector = create_anomaly_detector(config)

        assert detector.probability_threshold == 0.05
        assert detector.ratio_threshold == 0.7
        assert detector.min_instances == 10
