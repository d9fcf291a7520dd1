"""Change detectors monitoring a rule's error signal.

Each rule owns one detector and feeds it the absolute error of its own
prediction for every instance it learns from. Supported detectors:
- NoChangeDetection: never signals
- ADWINChangeDetector: river's adaptive windowing
- PageHinkleyChangeDetector: river's cumulative deviation test

Both river-backed detectors pair a drift detector with a more sensitive
twin whose detections are reported as WARNING. A drift also restarts the
warning twin.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from river import base, drift

from streamingml.base import AMRulesConfig, ChangeDetectorKind, Signal


logger = logging.getLogger(__name__)


class ChangeDetector(ABC):
    """Abstract base class for change detectors."""

    def __init__(self) -> None:
        self._signal = Signal.STABLE
        self._n_detections = 0

    @abstractmethod
    def update(self, value: float) -> Signal:
        """Observe one error value and return the detector's signal."""
        ...

    @abstractmethod
    def reset(self) -> None:
        """Forget everything observed so far."""
        ...

    @property
    def signal(self) -> Signal:
        """Signal emitted for the last observation."""
        return self._signal

    @property
    def drift_detected(self) -> bool:
        return self._signal is Signal.DRIFT

    @property
    def in_warning_zone(self) -> bool:
        return self._signal is Signal.WARNING

    @property
    def n_detections(self) -> int:
        """Number of drifts reported over the detector's lifetime."""
        return self._n_detections

    def _emit(self, signal: Signal) -> Signal:
        self._signal = signal
        if signal is Signal.DRIFT:
            self._n_detections += 1
        return signal

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} signal={self._signal.value!r}>"


class NoChangeDetection(ChangeDetector):
    """Detector that always reports a stable error distribution."""

    def update(self, value: float) -> Signal:
        return self._emit(Signal.STABLE)

    def reset(self) -> None:
        self._signal = Signal.STABLE


class _RiverChangeDetector(ChangeDetector):
    """Drift detector plus a warning twin, both river drift detectors."""

    def __init__(self) -> None:
        super().__init__()
        self.reset()

    @abstractmethod
    def _build(self) -> tuple[base.DriftDetector, base.DriftDetector]:
        """Return fresh ``(drift, warning)`` detectors."""
        ...

    def reset(self) -> None:
        self._signal = Signal.STABLE
        self._drift, self._warning = self._build()

    def update(self, value: float) -> Signal:
        self._drift.update(value)
        self._warning.update(value)

        if self._drift.drift_detected:
            self._warning = self._warning.clone()
            return self._emit(Signal.DRIFT)
        if self._warning.drift_detected:
            return self._emit(Signal.WARNING)
        return self._emit(Signal.STABLE)


# =============================================================================
# Page-Hinkley
# =============================================================================


class PageHinkleyChangeDetector(_RiverChangeDetector):
    """Page-Hinkley test for an increase in the mean of the error.

    The faded cumulative sum of deviations from the running mean, less the
    tolerance ``delta``, is compared with its running minimum. A gap above
    ``threshold`` is a drift, a gap above ``warning_ratio * threshold`` a
    warning. river's detector restarts itself on the observation following
    a detection.

    Example:
        >>> detector = PageHinkleyChangeDetector(delta=0.05, threshold=35.0)
        >>> signal = detector.update(abs(prediction - target))
    """

    def __init__(
        self,
        delta: float = 0.05,
        threshold: float = 35.0,
        alpha: float = 1 - 0.0001,
        warning_ratio: float = 0.5,
        min_instances: int = 30,
    ) -> None:
        self.delta = delta
        self.threshold = threshold
        self.alpha = alpha
        self.warning_ratio = warning_ratio
        self.min_instances = min_instances
        super().__init__()

    def _make(self, threshold: float) -> drift.PageHinkley:
        return drift.PageHinkley(
            min_instances=self.min_instances,
            delta=self.delta,
            threshold=threshold,
            alpha=self.alpha,
            mode="up",
        )

    def _build(self) -> tuple[drift.PageHinkley, drift.PageHinkley]:
        return self._make(self.threshold), self._make(self.warning_ratio * self.threshold)


# =============================================================================
# ADWIN
# =============================================================================


class ADWINChangeDetector(_RiverChangeDetector):
    """ADWIN adaptive windowing change detector.

    river keeps the window as an exponential histogram and, every ``clock``
    observations, drops the older part of the window when the means of two
    sub-windows differ by more than the ADWIN bound for ``delta``. The
    warning twin uses the looser ``warning_delta``.
    """

    def __init__(
        self,
        delta: float = 0.002,
        warning_delta: float = 0.01,
        clock: int = 32,
        max_buckets: int = 5,
        min_window_length: int = 5,
        grace_period: int = 10,
    ) -> None:
        self.delta = delta
        self.warning_delta = warning_delta
        self.clock = clock
        self.max_buckets = max_buckets
        self.min_window_length = min_window_length
        self.grace_period = grace_period
        super().__init__()

    def _make(self, delta: float) -> drift.ADWIN:
        return drift.ADWIN(
            delta=delta,
            clock=self.clock,
            max_buckets=self.max_buckets,
            min_window_length=self.min_window_length,
            grace_period=self.grace_period,
        )

    def _build(self) -> tuple[drift.ADWIN, drift.ADWIN]:
        return self._make(self.delta), self._make(self.warning_delta)

    @property
    def width(self) -> int:
        """Number of observations in the current window."""
        return int(self._drift.width)

    @property
    def estimation(self) -> float:
        """Mean of the current window."""
        return float(self._drift.estimation)

    def update(self, value: float) -> Signal:
        signal = super().update(value)
        if signal is Signal.DRIFT:
            logger.debug("ADWIN window shrunk to %d observations", self.width)
        return signal


# =============================================================================
# Factory
# =============================================================================


def create_change_detector(config: AMRulesConfig) -> ChangeDetector:
    """Instantiate the change detector selected by a config."""
    kind = config.change_detector
    if kind is ChangeDetectorKind.ADWIN:
        return ADWINChangeDetector(
            delta=config.adwin_delta, warning_delta=config.adwin_warning_delta
        )
    if kind is ChangeDetectorKind.PAGE_HINKLEY:
        return PageHinkleyChangeDetector(
            delta=config.page_hinkley_delta,
            threshold=config.page_hinkley_threshold,
            alpha=config.page_hinkley_alpha,
        )
    return NoChangeDetection()
