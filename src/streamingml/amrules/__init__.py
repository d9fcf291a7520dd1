"""Adaptive model rules: rule set, rules, estimators and split evaluation."""

from streamingml.amrules.estimators import AdaptiveEstimator, Perceptron, TargetMean
from streamingml.amrules.learner import AMRulesRegressor, RuleSet
from streamingml.amrules.rule import DefaultRule, LearnOutcome, Rule
from streamingml.amrules.split import (
    NumericAttributeObserver,
    Predicate,
    SplitAccumulator,
    SplitSuggestion,
    TargetStats,
    hoeffding_bound,
    select_split,
    variance_reduction,
)

__all__ = [
    "AMRulesRegressor",
    "RuleSet",
    "Rule",
    "DefaultRule",
    "LearnOutcome",
    "TargetMean",
    "Perceptron",
    "AdaptiveEstimator",
    "Predicate",
    "TargetStats",
    "SplitSuggestion",
    "NumericAttributeObserver",
    "SplitAccumulator",
    "hoeffding_bound",
    "select_split",
    "variance_reduction",
]
