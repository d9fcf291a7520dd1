"""Conversion of raw event attributes into typed numeric instances."""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Any, Sequence

from streamingml.base import NonNumericFeatureError, SchemaMismatchError


@dataclass(frozen=True)
class Instance:
    """A schema-validated feature vector with an optional target.

    Attributes:
        features: Ordered numeric feature values
        target: Target value at training sites, None otherwise
    """

    features: tuple[float, ...]
    target: float | None = None

    def __len__(self) -> int:
        return len(self.features)

    def __getitem__(self, index: int) -> float:
        return self.features[index]

    @property
    def is_labelled(self) -> bool:
        return self.target is not None


def is_numeric(value: Any) -> bool:
    """Check whether a value is an integer or floating point number.

    Booleans are rejected even though they subclass int.
    """
    if isinstance(value, bool):
        return False
    return isinstance(value, numbers.Real)


def _check_numeric(value: Any, position: int, role: str, model_name: str | None) -> float:
    if not is_numeric(value):
        type_name = type(value).__name__
        raise NonNumericFeatureError(
            f"{role} at position {position} is not a numerical type attribute. "
            f"Found {type_name.upper()}. Check the input stream definition",
            model_name=model_name,
            position=position,
            found_type=type_name,
        )
    return float(value)


def to_instance(
    raw_values: Sequence[Any],
    feature_count: int,
    *,
    has_target: bool = False,
    model_name: str | None = None,
) -> Instance:
    """Convert a raw attribute array into an Instance.

    Args:
        raw_values: Feature values, followed by the target when has_target
        feature_count: Number of features the model expects
        has_target: Whether the last value is the target (training sites)
        model_name: Model key used in error messages

    Returns:
        Instance with the target stripped from the features

    Raises:
        SchemaMismatchError: If the number of values does not match
        NonNumericFeatureError: If a feature or the target is not numeric
    """
    expected = feature_count + 1 if has_target else feature_count
    values = list(raw_values)
    if len(values) != expected:
        found = len(values) - 1 if has_target else len(values)
        raise SchemaMismatchError(
            f"Model [{model_name}] expects {feature_count} features, "
            f"but the event has {found} features",
            model_name=model_name,
            expected=feature_count,
            found=found,
        )

    features = tuple(
        _check_numeric(v, i, "model.features", model_name)
        for i, v in enumerate(values[:feature_count])
    )
    target = None
    if has_target:
        target = _check_numeric(values[-1], feature_count, "model.target", model_name)
    return Instance(features=features, target=target)
