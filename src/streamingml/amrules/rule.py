"""Rules of an adaptive model rules regressor.

A rule is a conjunction of threshold predicates paired with a local
regression estimator, a change detector watching the rule's error, an
anomaly detector guarding its statistics and a split accumulator used to
specialise it. Predicates are only ever appended.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from streamingml.anomaly_detection import AnomalyDetector, create_anomaly_detector
from streamingml.base import AMRulesConfig, Signal
from streamingml.change_detection import ChangeDetector, create_change_detector
from streamingml.stats import FeatureStatistics
from streamingml.amrules.estimators import AdaptiveEstimator
from streamingml.amrules.split import Predicate, SplitAccumulator, TargetStats


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LearnOutcome:
    """What happened when a rule saw a labelled instance.

    Attributes:
        learned: Whether the rule updated its statistics
        anomaly_score: Score given by the anomaly detector
        signal: Change detector signal (STABLE when not learned)
    """

    learned: bool
    anomaly_score: float = 0.0
    signal: Signal = Signal.STABLE

    @property
    def drift(self) -> bool:
        return self.signal is Signal.DRIFT


class Rule:
    """An ordinary rule of the rule set.

    Args:
        rule_id: Identifier, unique within the rule set (creation order)
        n_features: Number of features of the model
        config: Model hyperparameters
        predicates: Initial predicates
    """

    def __init__(
        self,
        rule_id: int,
        n_features: int,
        config: AMRulesConfig,
        predicates: Sequence[Predicate] = (),
    ):
        self.rule_id = rule_id
        self.n_features = n_features
        self._predicates: list[Predicate] = list(predicates)
        self.estimator = AdaptiveEstimator(
            n_features,
            learning_ratio=config.learning_ratio,
            fading_factor=config.fading_factor,
            seed=config.random_seed + rule_id,
        )
        self.change_detector: ChangeDetector = create_change_detector(config)
        self.anomaly_detector: AnomalyDetector = create_anomaly_detector(config)
        self.feature_stats = FeatureStatistics(n_features)
        self.accumulator = SplitAccumulator(n_features, config.max_split_points)
        self.instances_seen = 0
        self.seen_at_last_expand = 0
        self.n_drifts = 0

    @property
    def predicates(self) -> tuple[Predicate, ...]:
        return tuple(self._predicates)

    @property
    def is_default(self) -> bool:
        return False

    def covers(self, features: Sequence[float]) -> bool:
        return all(p.covers(features) for p in self._predicates)

    def predict(self, features: Sequence[float]) -> float:
        return self.estimator.predict(features)

    def learn(self, features: Sequence[float], target: float) -> LearnOutcome:
        """Learn from a covered instance unless it is anomalous for this rule.

        The feature estimates the anomaly detector scores against absorb every
        covered instance, vetoed or not, so a lasting shift in the inputs stops
        being vetoed once the estimates have followed it.
        """
        anomaly = self.anomaly_detector.score(features, self.feature_stats)
        self.feature_stats.update(features)
        if anomaly.is_anomaly:
            return LearnOutcome(learned=False, anomaly_score=anomaly.score)

        error = abs(self.estimator.predict(features) - target)
        signal = self.change_detector.update(error)
        self._update_statistics(features, target)

        if signal is Signal.DRIFT:
            self.n_drifts += 1
            logger.debug(
                "Drift detected in rule %d after %d instances, resetting its model",
                self.rule_id,
                self.instances_seen,
            )
            self.reset_model()
        return LearnOutcome(learned=True, anomaly_score=anomaly.score, signal=signal)

    def _update_statistics(self, features: Sequence[float], target: float) -> None:
        self.instances_seen += 1
        self.estimator.learn(features, target)
        self.accumulator.update(features, target)

    def reset_model(self) -> None:
        """Cold start the estimator and the split accumulator."""
        self.estimator.reset()
        self.accumulator.reset()
        self.seen_at_last_expand = self.instances_seen

    def ready_to_expand(self, grace_period: int) -> bool:
        return self.instances_seen - self.seen_at_last_expand >= grace_period

    def specialize(self, predicate: Predicate, branch: TargetStats) -> None:
        """Append a predicate and restart the model from the branch statistics."""
        self._predicates.append(predicate)
        self.accumulator.reset()
        self.estimator.seed(branch.count, branch.total, branch.total_squares)
        self.seen_at_last_expand = self.instances_seen

    def conditions(self) -> str:
        return " AND ".join(str(p) for p in self._predicates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "conditions": self.conditions(),
            "n_predicates": len(self._predicates),
            "instances_seen": self.instances_seen,
            "target_mean": self.estimator.target_mean.predict(),
            "n_drifts": self.n_drifts,
            "n_anomalies": self.anomaly_detector.n_anomalies,
        }

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} id={self.rule_id} "
            f"conditions={self.conditions()!r} n={self.instances_seen}>"
        )


class DefaultRule(Rule):
    """Fallback rule covering every instance no ordinary rule covers.

    The default rule has no predicates and learns without anomaly or change
    detection. After a successful expansion it restarts from the statistics
    of the branch the new rule did not take.
    """

    def __init__(self, n_features: int, config: AMRulesConfig):
        super().__init__(0, n_features, config)

    @property
    def is_default(self) -> bool:
        return True

    def covers(self, features: Sequence[float]) -> bool:
        return True

    def learn(self, features: Sequence[float], target: float) -> LearnOutcome:
        self.feature_stats.update(features)
        self._update_statistics(features, target)
        return LearnOutcome(learned=True)

    def restart(self, branch: TargetStats) -> None:
        self.feature_stats.reset()
        self.accumulator.reset()
        self.estimator.seed(branch.count, branch.total, branch.total_squares)
        self.instances_seen = 0
        self.seen_at_last_expand = 0

    def conditions(self) -> str:
        return "default"
