"""Base classes and core abstractions for online regression models.

This module provides the foundational abstractions shared by every
component of the package:
- Enums for model state and the pluggable detector selectors
- The MLError exception hierarchy
- AMRulesConfig: hyperparameters supplied once at model creation
- Result types returned to the surrounding pipeline
- RegressionModel: the train/predict interface of a streaming model
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any, Sequence


# =============================================================================
# Enums
# =============================================================================


class ModelState(str, Enum):
    """Lifecycle states for streaming models."""

    UNTRAINED = "untrained"
    TRAINED = "trained"


class ChangeDetectorKind(IntEnum):
    """Change detector selector as supplied by the pipeline (0, 1 or 2)."""

    NONE = 0
    ADWIN = 1
    PAGE_HINKLEY = 2

    @property
    def label(self) -> str:
        return _CHANGE_DETECTOR_LABELS[self]


class AnomalyDetectorKind(IntEnum):
    """Anomaly detector selector as supplied by the pipeline (0, 1 or 2)."""

    NONE = 0
    ANOMALOUSNESS_RATIO = 1
    ODDS_RATIO = 2

    @property
    def label(self) -> str:
        return _ANOMALY_DETECTOR_LABELS[self]


_CHANGE_DETECTOR_LABELS = {
    ChangeDetectorKind.NONE: "NoChangeDetection",
    ChangeDetectorKind.ADWIN: "ADWINChangeDetector",
    ChangeDetectorKind.PAGE_HINKLEY: "PageHinkleyDM",
}

_ANOMALY_DETECTOR_LABELS = {
    AnomalyDetectorKind.NONE: "NoAnomalyDetection",
    AnomalyDetectorKind.ANOMALOUSNESS_RATIO: "AnomalinessRatioScore",
    AnomalyDetectorKind.ODDS_RATIO: "OddsRatioScore",
}


class Signal(str, Enum):
    """Output of a change detector for one observation."""

    STABLE = "stable"
    WARNING = "warning"
    DRIFT = "drift"


# =============================================================================
# Exceptions
# =============================================================================


class MLError(Exception):
    """Base exception for model-related errors."""

    def __init__(self, message: str, model_name: str | None = None):
        self.model_name = model_name
        super().__init__(message)


class SchemaMismatchError(MLError):
    """Raised when a feature count disagrees with a model's frozen schema."""

    def __init__(
        self,
        message: str,
        model_name: str | None = None,
        expected: int | None = None,
        found: int | None = None,
    ):
        self.expected = expected
        self.found = found
        super().__init__(message, model_name=model_name)


IncompatibleSchemaError = SchemaMismatchError


class NonNumericFeatureError(MLError, TypeError):
    """Raised when a feature or target position holds a non-numeric value."""

    def __init__(
        self,
        message: str,
        model_name: str | None = None,
        position: int | None = None,
        found_type: str | None = None,
    ):
        self.position = position
        self.found_type = found_type
        super().__init__(message, model_name=model_name)


class ModelNotTrainedError(MLError):
    """Raised when predicting with a model that has never been trained."""

    pass


class InvalidHyperparameterError(MLError, ValueError):
    """Raised when a hyperparameter is out of its accepted range."""

    pass


# =============================================================================
# Configuration
# =============================================================================


def _selector_message(title: str, value: Any, labels: dict[Any, str]) -> str:
    options = ", ".join(f"{int(k)}:{v}" for k, v in labels.items())
    return (
        f"Input for {title} hyper-parameter needs to be either 0,1,2. "
        f"But found {value}. {options}"
    )


def parse_change_detector(value: Any) -> ChangeDetectorKind:
    """Convert a raw selector into a ChangeDetectorKind.

    Raises:
        InvalidHyperparameterError: If the value is not one of 0, 1, 2
    """
    if isinstance(value, ChangeDetectorKind):
        return value
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidHyperparameterError(
            _selector_message("Change Detector", value, _CHANGE_DETECTOR_LABELS)
        )
    try:
        return ChangeDetectorKind(value)
    except ValueError:
        raise InvalidHyperparameterError(
            _selector_message("Change Detector", value, _CHANGE_DETECTOR_LABELS)
        ) from None


def parse_anomaly_detector(value: Any) -> AnomalyDetectorKind:
    """Convert a raw selector into an AnomalyDetectorKind.

    Raises:
        InvalidHyperparameterError: If the value is not one of 0, 1, 2
    """
    if isinstance(value, AnomalyDetectorKind):
        return value
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidHyperparameterError(
            _selector_message("Anomaly Detector", value, _ANOMALY_DETECTOR_LABELS)
        )
    try:
        return AnomalyDetectorKind(value)
    except ValueError:
        raise InvalidHyperparameterError(
            _selector_message("Anomaly Detector", value, _ANOMALY_DETECTOR_LABELS)
        ) from None


@dataclass
class AMRulesConfig:
    """Hyperparameters of an adaptive model rules regressor.

    Attributes:
        split_confidence: Probability of choosing a wrong split (Hoeffding delta)
        tie_threshold: Hoeffding bound below which a split is forced
        grace_period: Instances a rule observes between split attempts
        change_detector: Change detector selector (0: none, 1: ADWIN, 2: Page-Hinkley)
        anomaly_detector: Anomaly detector selector (0: none, 1: anomalousness
            ratio, 2: odds ratio)
        max_rules: Maximum number of ordinary rules in the rule set
        max_split_points: Maximum candidate thresholds kept per attribute
        learning_ratio: Perceptron learning rate
        fading_factor: Fading factor for the estimator error comparison
        random_seed: Seed for perceptron weight initialisation
    """

    split_confidence: float = 1e-7
    tie_threshold: float = 0.05
    grace_period: int = 200
    change_detector: ChangeDetectorKind | int = ChangeDetectorKind.PAGE_HINKLEY
    anomaly_detector: AnomalyDetectorKind | int = AnomalyDetectorKind.ODDS_RATIO
    max_rules: int = 1000
    max_split_points: int = 1000
    learning_ratio: float = 0.01
    fading_factor: float = 0.99
    random_seed: int = 1

    # Page-Hinkley
    page_hinkley_delta: float = 0.05
    page_hinkley_threshold: float = 35.0
    page_hinkley_alpha: float = 1 - 0.0001
    # ADWIN
    adwin_delta: float = 0.002
    adwin_warning_delta: float = 0.01
    # Anomaly detection
    anomaly_probability_threshold: float = 0.1
    anomaly_ratio_threshold: float = 0.5
    anomaly_min_instances: int = 30

    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.change_detector = parse_change_detector(self.change_detector)
        self.anomaly_detector = parse_anomaly_detector(self.anomaly_detector)
        self.validate()

    def validate(self) -> None:
        """Check numeric ranges.

        Raises:
            InvalidHyperparameterError: If a value is out of range
        """
        if not 0.0 < self.split_confidence < 1.0:
            raise InvalidHyperparameterError(
                f"split_confidence must be in (0, 1), got {self.split_confidence}"
            )
        if self.tie_threshold < 0.0:
            raise InvalidHyperparameterError(
                f"tie_threshold must be >= 0, got {self.tie_threshold}"
            )
        if self.grace_period < 1:
            raise InvalidHyperparameterError(
                f"grace_period must be >= 1, got {self.grace_period}"
            )
        if self.max_rules < 0:
            raise InvalidHyperparameterError(
                f"max_rules must be >= 0, got {self.max_rules}"
            )
        if self.max_split_points < 2:
            raise InvalidHyperparameterError(
                f"max_split_points must be >= 2, got {self.max_split_points}"
            )
        if not 0.0 < self.page_hinkley_alpha <= 1.0:
            raise InvalidHyperparameterError(
                f"page_hinkley_alpha must be in (0, 1], got {self.page_hinkley_alpha}"
            )
        if not 0.0 < self.anomaly_probability_threshold < 1.0:
            raise InvalidHyperparameterError(
                "anomaly_probability_threshold must be in (0, 1), "
                f"got {self.anomaly_probability_threshold}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AMRulesConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["change_detector"] = int(self.change_detector)
        data["anomaly_detector"] = int(self.anomaly_detector)
        return data


# =============================================================================
# Result Classes
# =============================================================================


@dataclass(frozen=True)
class PredictionResult:
    """Output of one train or predict call.

    Attributes:
        prediction: Model output rounded to 3 decimals (may be NaN)
        mean_squared_error: Running MSE of the model after the call
    """

    prediction: float
    mean_squared_error: float

    def __iter__(self):
        return iter((self.prediction, self.mean_squared_error))

    def to_dict(self) -> dict[str, Any]:
        return {
            "prediction": self.prediction,
            "mean_squared_error": self.mean_squared_error,
        }


@dataclass(frozen=True)
class AnomalyScore:
    """Anomaly score of one instance against a rule's statistics.

    Attributes:
        score: Continuous anomaly score (higher = more anomalous)
        is_anomaly: Whether the rule should skip learning from the instance
    """

    score: float
    is_anomaly: bool

    def to_dict(self) -> dict[str, Any]:
        return {"score": round(self.score, 6), "is_anomaly": self.is_anomaly}


# =============================================================================
# Base Model Class
# =============================================================================


class RegressionModel(ABC):
    """Interface of a single-target streaming regression model.

    Models learn one event at a time; ``train`` returns the prediction made
    before learning from the event so the caller can account for the error.
    """

    @abstractmethod
    def train(self, features: Sequence[float], target: float) -> PredictionResult:
        """Predict, then learn from one labelled event."""
        ...

    @abstractmethod
    def predict(self, features: Sequence[float]) -> PredictionResult:
        """Predict the target of one unlabelled event.

        Raises:
            ModelNotTrainedError: If the model has not been trained
        """
        ...
