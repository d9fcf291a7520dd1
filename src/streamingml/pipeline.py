"""Pipeline-facing surface: training and prediction sites bound to models.

A ``StreamingPipeline`` owns (or shares) a ``ModelRegistry`` and a scope.
Sites are bound at setup time, where schema mismatches are reported; events
are then sent through the sites one at a time.

Example:
    with StreamingPipeline("app") as pipeline:
        trainer = pipeline.bind_training_site("price", feature_count=4)
        predictor = pipeline.bind_prediction_site("price", feature_count=4)
        trainer.send([1.0, 2.0, 3.0, 4.0, 10.0])
        prediction, mse = predictor.send([1.0, 2.0, 3.0, 4.0])
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from streamingml.base import AMRulesConfig, PredictionResult
from streamingml.model import AdaptiveModelRulesModel
from streamingml.registry import ModelRegistry


logger = logging.getLogger(__name__)


class TrainingSite:
    """Sends labelled events (features followed by the target) to a model."""

    def __init__(self, model: AdaptiveModelRulesModel):
        self.model = model

    def send(self, values: Sequence[Any]) -> PredictionResult:
        return self.model.train_on_event(values)

    def __repr__(self) -> str:
        return f"<TrainingSite model={self.model.key!r}>"


class PredictionSite:
    """Sends unlabelled events to a model."""

    def __init__(self, model: AdaptiveModelRulesModel):
        self.model = model

    def send(self, values: Sequence[Any]) -> PredictionResult:
        return self.model.predict_event(values)

    def __repr__(self) -> str:
        return f"<PredictionSite model={self.model.key!r}>"


class StreamingPipeline:
    """Scope of models shared by the sites of one pipeline.

    Args:
        scope: Pipeline scope; models of different scopes never interfere
        registry: Registry to use (a private one when omitted)
    """

    def __init__(self, scope: str, registry: ModelRegistry | None = None):
        self.scope = scope
        self.registry = registry if registry is not None else ModelRegistry()

    def bind_training_site(
        self,
        model_name: str,
        feature_count: int,
        config: AMRulesConfig | None = None,
    ) -> TrainingSite:
        """Bind a training site, creating the model on first use.

        Raises:
            SchemaMismatchError: If the model exists with another feature count
            MLError: If the model is trained and config differs from its own
        """
        model = self.registry.get_or_create(self.scope, model_name, feature_count, config)
        if config is not None:
            model.configure(config)
        return TrainingSite(model)

    def bind_prediction_site(self, model_name: str, feature_count: int) -> PredictionSite:
        """Bind a prediction site.

        The site may be bound before any training site; the model then stays
        untrained until its first training event.

        Raises:
            SchemaMismatchError: If the model exists with another feature count
        """
        model = self.registry.get_or_create(self.scope, model_name, feature_count)
        return PredictionSite(model)

    def train(self, model_name: str, values: Sequence[Any]) -> PredictionResult:
        """Train a model from one event whose last value is the target."""
        model = self.registry.get_or_create(self.scope, model_name, len(values) - 1)
        return model.train_on_event(values)

    def predict(self, model_name: str, features: Sequence[Any]) -> PredictionResult:
        """Predict with a trained model.

        Raises:
            ModelNotTrainedError: If the model is missing or untrained
        """
        model = self.registry.require_initialized(self.scope, model_name)
        return model.predict_event(features)

    def shutdown(self) -> None:
        """Drop the models of this pipeline's scope."""
        self.registry.close_scope(self.scope)
        logger.debug("Pipeline %s shut down", self.scope)

    def __enter__(self) -> "StreamingPipeline":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
