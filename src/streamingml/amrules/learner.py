"""Adaptive model rules regressor.

The learner keeps an ordered rule set plus a default rule. An instance is
predicted by the mean of every covering rule, or by the default rule when
none covers it. Training follows the sequence:

1. predict (the caller uses this value for error bookkeeping)
2. every covering rule learns, subject to its anomaly veto and change
   detector, and tries to expand once per grace period
3. an instance no rule covers is learned by the default rule, which spawns
   a new rule once it has seen a grace period of instances and the
   Hoeffding test accepts a split
"""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

import polars as pl

from streamingml.base import AMRulesConfig
from streamingml.amrules.rule import DefaultRule, Rule
from streamingml.amrules.split import SplitSuggestion, select_split


logger = logging.getLogger(__name__)

RULES_SCHEMA = {
    "rule_id": pl.Int64,
    "conditions": pl.Utf8,
    "n_predicates": pl.Int64,
    "instances_seen": pl.Int64,
    "target_mean": pl.Float64,
    "n_drifts": pl.Int64,
    "n_anomalies": pl.Int64,
}


class RuleSet:
    """Ordered arena of rules addressed by rule id.

    Rules are never removed; iteration follows creation order. The default
    rule is held separately and always exists.
    """

    def __init__(self, n_features: int, config: AMRulesConfig):
        self.n_features = n_features
        self._config = config
        self._rules: list[Rule] = []
        self._by_id: dict[int, Rule] = {}
        self.default_rule = DefaultRule(n_features, config)
        self._next_id = 1

    def create(self, predicates=()) -> Rule:
        """Append a new rule and return it."""
        rule = Rule(self._next_id, self.n_features, self._config, predicates)
        self._next_id += 1
        self._rules.append(rule)
        self._by_id[rule.rule_id] = rule
        return rule

    def covering(self, features: Sequence[float]) -> list[Rule]:
        return [rule for rule in self._rules if rule.covers(features)]

    def get(self, rule_id: int) -> Rule:
        return self._by_id[rule_id]

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __getitem__(self, index: int) -> Rule:
        return self._rules[index]


class AMRulesRegressor:
    """Online rule-based regressor over a fixed number of numeric features.

    Example:
        >>> learner = AMRulesRegressor(n_features=4)
        >>> for x, y in stream:
        ...     learner.update(x, y)
        >>> learner.predict(x)
    """

    def __init__(self, n_features: int, config: AMRulesConfig | None = None):
        self.n_features = n_features
        self.config = config or AMRulesConfig()
        self.rules = RuleSet(n_features, self.config)
        self.instances_seen = 0

    @property
    def n_rules(self) -> int:
        """Number of ordinary rules (the default rule excluded)."""
        return len(self.rules)

    def predict(self, features: Sequence[float]) -> float:
        covering = self.rules.covering(features)
        if not covering:
            return self.rules.default_rule.predict(features)
        return sum(rule.predict(features) for rule in covering) / len(covering)

    def update(self, features: Sequence[float], target: float) -> float:
        """Learn one labelled instance.

        Returns:
            The prediction made before learning
        """
        prediction = self.predict(features)
        self.instances_seen += 1

        covered = False
        for rule in self.rules.covering(features):
            covered = True
            outcome = rule.learn(features, target)
            if outcome.learned and rule.ready_to_expand(self.config.grace_period):
                self._expand_rule(rule)

        if not covered:
            default_rule = self.rules.default_rule
            default_rule.learn(features, target)
            if default_rule.ready_to_expand(self.config.grace_period):
                self._create_rule()
        return prediction

    def _select(self, rule: Rule) -> SplitSuggestion | None:
        accumulator = rule.accumulator
        return select_split(
            accumulator.suggestions(),
            accumulator.count,
            self.config.split_confidence,
            self.config.tie_threshold,
        )

    def _expand_rule(self, rule: Rule) -> None:
        rule.seen_at_last_expand = rule.instances_seen
        suggestion = self._select(rule)
        if suggestion is None:
            return
        predicate, branch, _ = suggestion.best_branch()
        rule.specialize(predicate, branch)
        logger.debug(
            "Expanded rule %d with %s (merit=%.6f)", rule.rule_id, predicate, suggestion.merit
        )

    def _create_rule(self) -> None:
        default_rule = self.rules.default_rule
        default_rule.seen_at_last_expand = default_rule.instances_seen
        if len(self.rules) >= self.config.max_rules:
            return
        suggestion = self._select(default_rule)
        if suggestion is None:
            return
        predicate, branch, complement = suggestion.best_branch()
        rule = self.rules.create([predicate])
        rule.estimator.seed(branch.count, branch.total, branch.total_squares)
        default_rule.restart(complement)
        logger.debug(
            "Created rule %d: %s (merit=%.6f, rules=%d)",
            rule.rule_id,
            predicate,
            suggestion.merit,
            len(self.rules),
        )

    def rules_frame(self) -> pl.DataFrame:
        """Describe the rule set, default rule last, as a DataFrame."""
        rows = [rule.to_dict() for rule in self.rules]
        rows.append(self.rules.default_rule.to_dict())
        return pl.DataFrame(rows, schema=RULES_SCHEMA)

    def describe(self) -> str:
        lines = []
        for rule in self.rules:
            lines.append(
                f"Rule {rule.rule_id}: IF {rule.conditions()} "
                f"THEN {rule.estimator.target_mean.predict():.3f}"
            )
        lines.append(
            f"Default rule: {self.rules.default_rule.estimator.target_mean.predict():.3f}"
        )
        return "\n".join(lines)
