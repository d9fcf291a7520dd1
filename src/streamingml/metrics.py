"""Running error accounting for streaming models."""

from __future__ import annotations

import math


def round_off(value: float, decimals: int = 3) -> float:
    """Round to ``decimals`` places; NaN and infinities pass through."""
    if math.isnan(value) or math.isinf(value):
        return value
    return round(value, decimals)


class StreamingErrorTracker:
    """Mean squared error over every training event seen by a model.

    The tracker is never reset; a fresh model starts a fresh tracker.
    """

    def __init__(self) -> None:
        self.instances_seen = 0
        self.sum_squared_error = 0.0

    def observe(self, truth: float, prediction: float) -> float:
        """Account for one prediction and return the running MSE."""
        self.instances_seen += 1
        error = truth - prediction
        self.sum_squared_error += error * error
        return self.mean_squared_error

    @property
    def mean_squared_error(self) -> float:
        if self.instances_seen == 0:
            return 0.0
        return round_off(self.sum_squared_error / self.instances_seen)

    def __repr__(self) -> str:
        return (
            f"<StreamingErrorTracker n={self.instances_seen} "
            f"mse={self.mean_squared_error}>"
        )
