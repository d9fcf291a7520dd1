"""End-to-end tests for training and prediction sites."""

from __future__ import annotations

import math

import pytest

from streamingml.base import (
    AMRulesConfig,
    InvalidHyperparameterError,
    MLError,
    ModelNotTrainedError,
    NonNumericFeatureError,
    SchemaMismatchError,
)
from streamingml.pipeline import StreamingPipeline
from streamingml.registry import ModelRegistry


# =============================================================================
# Test Fixtures
# =============================================================================


TRAINING_EVENTS = [
    [0.1, 0.8, 0.2, 0.5, 1.1],
    [0.2, 0.6, 0.4, 0.3, 1.4],
    [0.9, 0.1, 0.7, 0.8, 3.2],
    [0.4, 0.5, 0.3, 0.6, 1.8],
    [0.7, 0.2, 0.9, 0.1, 2.3],
    [0.3, 0.9, 0.5, 0.4, 1.5],
    [0.8, 0.3, 0.6, 0.7, 2.9],
    [0.5, 0.4, 0.1, 0.9, 2.4],
    [0.6, 0.7, 0.8, 0.2, 2.0],
    [0.2, 0.2, 0.2, 0.2, 1.0],
    [0.9, 0.9, 0.9, 0.9, 3.5],
    [0.1, 0.1, 0.1, 0.1, 0.7],
]

PREDICTION_EVENTS = [
    [0.5, 0.5, 0.5, 0.5],
    [0.1, 0.9, 0.3, 0.2],
    [0.8, 0.4, 0.6, 0.9],
]


@pytest.fixture
def pipeline():
    """Pipeline with a private registry, shut down after the test."""
    with StreamingPipeline("app") as p:
        yield p


# =============================================================================
# Scenarios
# =============================================================================


class TestTrainThenPredict:
    """Tests for the train-then-predict flow."""

    def test_twelve_events_then_three_predictions(self, pipeline):
        """Test the four-feature flow from training to prediction."""
        trainer = pipeline.bind_training_site("price", 4)
        predictor = pipeline.bind_prediction_site("price", 4)

        training = [trainer.send(event) for event in TRAINING_EVENTS]
        predictions = [predictor.send(event) for event in PREDICTION_EVENTS]

        assert len(training) == 12
        assert len(predictions) == 3
        final_mse = training[-1].mean_squared_error
        for prediction, mse in predictions:
            assert math.isfinite(prediction)
            assert prediction == round(prediction, 3)
            assert mse == final_mse

    def test_prediction_site_bound_first(self, pipeline):
        """Test that a prediction site may be bound before training."""
        predictor = pipeline.bind_prediction_site("price", 4)
        config = AMRulesConfig(grace_period=5)
        trainer = pipeline.bind_training_site("price", 4, config)

        assert trainer.model is predictor.model
        assert trainer.model.config.grace_period == 5

        trainer.send(TRAINING_EVENTS[0])
        assert math.isfinite(predictor.send(PREDICTION_EVENTS[0]).prediction)

    def test_pipeline_level_calls(self, pipeline):
        """Test training and predicting by model name."""
        for event in TRAINING_EVENTS:
            pipeline.train("price", event)

        prediction, mse = pipeline.predict("price", PREDICTION_EVENTS[0])

        assert math.isfinite(prediction)
        assert mse == pipeline.registry.get("app", "price").mean_squared_error


class TestFailures:
    """Tests for the failure scenarios."""

    def test_feature_count_mismatch_at_setup(self, pipeline):
        """Test that N vs M features fails when the site is bound."""
        pipeline.bind_training_site("price", 4)

        with pytest.raises(SchemaMismatchError) as exc_info:
            pipeline.bind_prediction_site("price", 3)

        assert exc_info.value.expected == 4
        assert exc_info.value.found == 3
        assert "app.price" in str(exc_info.value)

    def test_non_numeric_value(self, pipeline):
        """Test that a boolean feature is reported with its position."""
        trainer = pipeline.bind_training_site("price", 4)

        with pytest.raises(NonNumericFeatureError) as exc_info:
            trainer.send([0.1, 0.2, True, 0.4, 1.0])

        assert exc_info.value.position == 2
        assert "Found BOOL" in str(exc_info.value)

    def test_predict_before_train(self, pipeline):
        """Test that prediction fails until the model is trained."""
        predictor = pipeline.bind_prediction_site("price", 4)

        with pytest.raises(ModelNotTrainedError):
            predictor.send(PREDICTION_EVENTS[0])
        with pytest.raises(ModelNotTrainedError):
            pipeline.predict("price", PREDICTION_EVENTS[0])

    def test_unknown_model(self, pipeline):
        """Test that predicting with an unknown model fails."""
        with pytest.raises(ModelNotTrainedError):
            pipeline.predict("missing", PREDICTION_EVENTS[0])

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"change_detector": 3},
            {"change_detector": "1"},
            {"anomaly_detector": -1},
            {"anomaly_detector": True},
        ],
    )
    def test_invalid_selectors(self, kwargs):
        """Test that invalid selectors are rejected at configuration."""
        with pytest.raises(InvalidHyperparameterError) as exc_info:
            AMRulesConfig(**kwargs)

        assert "0,1,2" in str(exc_info.value)

    def test_reconfigure_trained_model(self, pipeline):
        """Test that a trained model cannot be rebound with other settings."""
        trainer = pipeline.bind_training_site("price", 4)
        trainer.send(TRAINING_EVENTS[0])

        with pytest.raises(MLError):
            pipeline.bind_training_site("price", 4, AMRulesConfig(grace_period=10))


class TestLifetime:
    """Tests for pipeline shutdown."""

    def test_shutdown_drops_scope(self):
        """Test that leaving the pipeline drops its models only."""
        registry = ModelRegistry()
        registry.get_or_create("other", "price", 2)

        with StreamingPipeline("app", registry=registry) as pipeline:
            pipeline.bind_training_site("price", 4)
            assert len(registry) == 2

        assert registry.list_models() == [("other", "price")]
