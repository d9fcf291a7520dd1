"""streamingml: online adaptive model rules regression for event pipelines.

Example:
    from streamingml import StreamingPipeline

    with StreamingPipeline("app") as pipeline:
        trainer = pipeline.bind_training_site("price", feature_count=4)
        prediction, mse = trainer.send([1.0, 2.0, 3.0, 4.0, 10.0])
"""

from streamingml.amrules import AMRulesRegressor
from streamingml.anomaly_detection import (
    AnomalousnessRatioScore,
    AnomalyDetector,
    NoAnomalyDetection,
    OddsRatioScore,
    create_anomaly_detector,
)
from streamingml.base import (
    AMRulesConfig,
    AnomalyDetectorKind,
    AnomalyScore,
    ChangeDetectorKind,
    IncompatibleSchemaError,
    InvalidHyperparameterError,
    MLError,
    ModelNotTrainedError,
    ModelState,
    NonNumericFeatureError,
    PredictionResult,
    RegressionModel,
    SchemaMismatchError,
    Signal,
)
from streamingml.change_detection import (
    ADWINChangeDetector,
    ChangeDetector,
    NoChangeDetection,
    PageHinkleyChangeDetector,
    create_change_detector,
)
from streamingml.config import ConfigError, load_config
from streamingml.instances import Instance, to_instance
from streamingml.metrics import StreamingErrorTracker
from streamingml.model import AdaptiveModelRulesModel
from streamingml.pipeline import PredictionSite, StreamingPipeline, TrainingSite
from streamingml.registry import ModelRegistry

__version__ = "0.1.0"

__all__ = [
    # Core
    "AMRulesConfig",
    "AMRulesRegressor",
    "AdaptiveModelRulesModel",
    "RegressionModel",
    "ModelRegistry",
    "StreamingPipeline",
    "TrainingSite",
    "PredictionSite",
    "PredictionResult",
    "ModelState",
    # Instances and metrics
    "Instance",
    "to_instance",
    "StreamingErrorTracker",
    # Detectors
    "Signal",
    "ChangeDetectorKind",
    "ChangeDetector",
    "NoChangeDetection",
    "ADWINChangeDetector",
    "PageHinkleyChangeDetector",
    "create_change_detector",
    "AnomalyDetectorKind",
    "AnomalyScore",
    "AnomalyDetector",
    "NoAnomalyDetection",
    "AnomalousnessRatioScore",
    "OddsRatioScore",
    "create_anomaly_detector",
    # Config
    "ConfigError",
    "load_config",
    # Errors
    "MLError",
    "SchemaMismatchError",
    "IncompatibleSchemaError",
    "NonNumericFeatureError",
    "ModelNotTrainedError",
    "InvalidHyperparameterError",
]
