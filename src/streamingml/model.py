"""Named adaptive model rules regression model.

An ``AdaptiveModelRulesModel`` wraps an ``AMRulesRegressor`` with what the
surrounding pipeline needs: a frozen feature count, a train/predict state
machine, running error accounting and a per-model lock so that each call is
atomic relative to the model.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any, Sequence

import polars as pl

from streamingml.amrules import AMRulesRegressor
from streamingml.base import (
    AMRulesConfig,
    InvalidHyperparameterError,
    MLError,
    ModelNotTrainedError,
    ModelState,
    PredictionResult,
    RegressionModel,
)
from streamingml.instances import Instance, to_instance
from streamingml.metrics import StreamingErrorTracker, round_off


logger = logging.getLogger(__name__)


class AdaptiveModelRulesModel(RegressionModel):
    """Online AMRules regression model bound to a fixed number of features.

    Args:
        model_name: Name of the model within its scope
        feature_count: Number of numeric features, fixed for the model's life
        config: Hyperparameters (defaults when omitted)
        scope: Owning pipeline scope, used in the model key

    Example:
        >>> model = AdaptiveModelRulesModel("price", feature_count=4)
        >>> prediction, mse = model.train([1.0, 2.0, 3.0, 4.0], 10.0)
        >>> prediction, mse = model.predict([1.0, 2.0, 3.0, 4.0])
    """

    def __init__(
        self,
        model_name: str,
        feature_count: int,
        config: AMRulesConfig | None = None,
        scope: str | None = None,
    ):
        self.model_name = model_name
        self.scope = scope
        if isinstance(feature_count, bool) or not isinstance(feature_count, int):
            raise InvalidHyperparameterError(
                f"Model [{self.key}] feature count must be an integer, "
                f"got {feature_count!r}",
                model_name=self.key,
            )
        if feature_count < 1:
            raise InvalidHyperparameterError(
                f"Model [{self.key}] needs at least one feature, got {feature_count}",
                model_name=self.key,
            )
        self._feature_count = feature_count
        self._config = config or AMRulesConfig()
        self._lock = threading.RLock()
        self._state = ModelState.UNTRAINED
        self._learner = AMRulesRegressor(feature_count, self._config)
        self._errors = StreamingErrorTracker()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def key(self) -> str:
        """Model key as used in messages: ``scope.name`` or ``name``."""
        if self.scope:
            return f"{self.scope}.{self.model_name}"
        return self.model_name

    @property
    def feature_count(self) -> int:
        return self._feature_count

    @property
    def config(self) -> AMRulesConfig:
        return self._config

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        """Whether the model has learned from at least one event."""
        return self._state is ModelState.TRAINED

    @property
    def instances_seen(self) -> int:
        return self._errors.instances_seen

    @property
    def mean_squared_error(self) -> float:
        return self._errors.mean_squared_error

    @property
    def n_rules(self) -> int:
        return self._learner.n_rules

    def is_valid_stream_header(self, feature_count: int) -> bool:
        """Check an input definition against the model's feature count."""
        return feature_count == self._feature_count

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def configure(self, config: AMRulesConfig) -> None:
        """Replace the hyperparameters of an untrained model.

        Raises:
            MLError: If the model is trained and the config differs
        """
        with self._lock:
            if config == self._config:
                return
            if self.is_initialized:
                raise MLError(
                    f"Model [{self.key}] is already trained, "
                    "its hyperparameters can no longer change",
                    model_name=self.key,
                )
            self._config = config
            self._learner = AMRulesRegressor(self._feature_count, config)

    def set_configurations(
        self,
        split_confidence: float,
        tie_threshold: float,
        grace_period: int,
        change_detector: int,
        anomaly_detector: int,
    ) -> None:
        """Configure the hyperparameters exposed to the pipeline."""
        self.configure(
            dataclasses.replace(
                self._config,
                split_confidence=split_confidence,
                tie_threshold=tie_threshold,
                grace_period=grace_period,
                change_detector=change_detector,
                anomaly_detector=anomaly_detector,
            )
        )

    # -------------------------------------------------------------------------
    # Train / predict
    # -------------------------------------------------------------------------

    def train(self, features: Sequence[float], target: float) -> PredictionResult:
        instance = to_instance(
            [*features, target],
            self._feature_count,
            has_target=True,
            model_name=self.key,
        )
        return self._train_instance(instance)

    def train_on_event(self, raw_values: Sequence[Any]) -> PredictionResult:
        """Train from a raw event whose last value is the target."""
        instance = to_instance(
            raw_values, self._feature_count, has_target=True, model_name=self.key
        )
        return self._train_instance(instance)

    def _train_instance(self, instance: Instance) -> PredictionResult:
        with self._lock:
            if not self.is_initialized:
                logger.debug(
                    "Initialising model %s with %d features", self.key, self._feature_count
                )
            prediction = round_off(self._learner.update(instance.features, instance.target))
            mse = self._errors.observe(instance.target, prediction)
            self._state = ModelState.TRAINED
            return PredictionResult(prediction=prediction, mean_squared_error=mse)

    def predict(self, features: Sequence[float]) -> PredictionResult:
        instance = to_instance(features, self._feature_count, model_name=self.key)
        return self._predict_instance(instance)

    def predict_event(self, raw_values: Sequence[Any]) -> PredictionResult:
        """Predict from a raw event holding only feature values."""
        instance = to_instance(raw_values, self._feature_count, model_name=self.key)
        return self._predict_instance(instance)

    def _predict_instance(self, instance: Instance) -> PredictionResult:
        with self._lock:
            if not self.is_initialized:
                raise ModelNotTrainedError(
                    f"Model [{self.key}] needs to be trained before it can predict",
                    model_name=self.key,
                )
            prediction = round_off(self._learner.predict(instance.features))
            return PredictionResult(
                prediction=prediction,
                mean_squared_error=self._errors.mean_squared_error,
            )

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def rules_frame(self) -> pl.DataFrame:
        with self._lock:
            return self._learner.rules_frame()

    def describe(self) -> str:
        with self._lock:
            return self._learner.describe()

    def __repr__(self) -> str:
        return (
            f"<AdaptiveModelRulesModel key={self.key!r} features={self._feature_count} "
            f"state={self._state.value!r}>"
        )
