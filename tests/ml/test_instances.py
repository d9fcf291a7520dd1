"""Tests for raw event conversion into numeric instances."""

from __future__ import annotations

import numpy as np
import pytest

from streamingml.base import MLError, NonNumericFeatureError, SchemaMismatchError
from streamingml.instances import Instance, is_numeric, to_instance


# =============================================================================
# Numeric checks
# =============================================================================


class TestIsNumeric:
    """Tests for the numeric type check."""

    @pytest.mark.parametrize("value", [1, 2.5, -3, np.float64(1.5), np.int64(7)])
    def test_numbers_accepted(self, value):
        """Test that ints, floats and numpy scalars are numeric."""
        assert is_numeric(value)

    @pytest.mark.parametrize("value", [True, False, "1.0", None, [1.0], np.bool_(True)])
    def test_non_numbers_rejected(self, value):
        """Test that booleans, strings and containers are not numeric."""
        assert not is_numeric(value)


# =============================================================================
# Conversion
# =============================================================================


class TestToInstance:
    """Tests for to_instance."""

    def test_prediction_event(self):
        """Test that feature-only events keep every value as a feature."""
        instance = to_instance([1, 2.5, np.float64(3.0)], 3)

        assert isinstance(instance, Instance)
        assert instance.features == (1.0, 2.5, 3.0)
        assert instance.target is None
        assert not instance.is_labelled
        assert len(instance) == 3
        assert instance[1] == 2.5

    def test_training_event_strips_target(self):
        """Test that the last value of a training event becomes the target."""
        instance = to_instance([1.0, 2.0, 3.0, 4.0, 10.0], 4, has_target=True)

        assert instance.features == (1.0, 2.0, 3.0, 4.0)
        assert instance.target == 10.0
        assert instance.is_labelled

    def test_wrong_length(self):
        """Test that a feature count mismatch names both counts."""
        with pytest.raises(SchemaMismatchError) as exc_info:
            to_instance([1.0, 2.0, 3.0], 4, model_name="app.price")

        error = exc_info.value
        assert error.expected == 4
        assert error.found == 3
        assert error.model_name == "app.price"
        assert "app.price" in str(error)

    def test_wrong_length_with_target(self):
        """Test that the target is not counted as a feature in the message."""
        with pytest.raises(SchemaMismatchError) as exc_info:
            to_instance([1.0, 2.0, 3.0, 4.0], 4, has_target=True)

        assert exc_info.value.found == 3

    def test_non_numeric_feature_position(self):
        """Test that the error reports the position and the found type."""
        with pytest.raises(NonNumericFeatureError) as exc_info:
            to_instance([1.0, "high", 3.0], 3)

        error = exc_info.value
        assert error.position == 1
        assert error.found_type == "str"
        assert "position 1" in str(error)
        assert "Found STR" in str(error)

    def test_boolean_feature_rejected(self):
        """Test that booleans are rejected even though they subclass int."""
        with pytest.raises(NonNumericFeatureError) as exc_info:
            to_instance([1.0, 2.0, 3.0, True], 4)

        assert exc_info.value.position == 3
        assert "Found BOOL" in str(exc_info.value)

    def test_non_numeric_target(self):
        """Test that the target position follows the features."""
        with pytest.raises(NonNumericFeatureError) as exc_info:
            to_instance([1.0, 2.0, None], 2, has_target=True)

        assert exc_info.value.position == 2
        assert "model.target" in str(exc_info.value)

    def test_errors_are_ml_errors(self):
        """Test that conversion errors belong to the MLError hierarchy."""
        with pytest.raises(MLError):
            to_instance(["a"], 1)
        with pytest.raises(TypeError):
            to_instance(["a"], 1)
