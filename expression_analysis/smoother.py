"""Temporal smoothing module for expression confidence vectors.

This module provides a uniform-weight sliding-window average over the most
recent confidence vectors reported by an external expression classifier.
"""

from collections import deque
from typing import Deque, Dict, Mapping, Optional

import numpy as np

from .errors import InvalidInputError

# Closed label set of the external expression classifier
EXPRESSION_LABELS = (
    "neutral",
    "happy",
    "sad",
    "angry",
    "fearful",
    "disgusted",
    "surprised",
)

ConfidenceVector = Dict[str, float]


def zero_confidences() -> ConfidenceVector:
    """All-zero confidence vector over EXPRESSION_LABELS."""
    return {label: 0.0 for label in EXPRESSION_LABELS}


def normalize_confidences(vector: Mapping[str, float]) -> ConfidenceVector:
    """
    Restrict a classifier output to EXPRESSION_LABELS.

    Unknown labels are dropped, missing labels become 0, and values are
    clipped into [0, 1]. Non-finite values are treated as 0.

    Raises:
        InvalidInputError: If the vector is not a mapping of numbers
    """
    if not isinstance(vector, Mapping):
        raise InvalidInputError(
            f"Expected a mapping of expression confidences, got {type(vector).__name__}"
        )

    normalized = zero_confidences()
    for label in EXPRESSION_LABELS:
        try:
            value = float(vector.get(label, 0.0))
        except (TypeError, ValueError, OverflowError) as e:
            raise InvalidInputError(f"Confidence for {label!r} is not a number: {e}") from e
        if not np.isfinite(value):
            value = 0.0
        normalized[label] = float(np.clip(value, 0.0, 1.0))
    return normalized


class TemporalSmoother:
    """滑动窗口时序平滑器 (Sliding-window Temporal Smoother)

    Keeps the last ``window_size`` confidence vectors and reports their
    per-label arithmetic mean. All frames in the window carry equal weight,
    so a single noisy frame moves the average by at most 1/window_size
    while the output still follows a change within window_size frames.

    Attributes:
        window_size: Number of vectors kept. Oldest is evicted on overflow.
    """

    def __init__(self, window_size: int = 5):
        """Initialize the temporal smoother.

        Args:
            window_size: Capacity of the window. Default is 5, about
                         100-150ms at typical capture rates.

        Raises:
            ValueError: If window_size < 1.
        """
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")

        self.window_size = window_size
        self._window: Deque[ConfidenceVector] = deque(maxlen=window_size)

    def push(self, vector: Mapping[str, float]) -> None:
        """Append a confidence vector, evicting the oldest if full."""
        self._window.append(normalize_confidences(vector))

    def average(self) -> ConfidenceVector:
        """Per-label mean over the window, or all zeros when empty."""
        if not self._window:
            return zero_confidences()

        count = len(self._window)
        return {
            label: sum(v[label] for v in self._window) / count
            for label in EXPRESSION_LABELS
        }

    def reset(self):
        """Drop all buffered vectors.

        Call this when tracking of the face is lost so a stale window does
        not leak into the next sequence.
        """
        self._window.clear()

    def __len__(self) -> int:
        return len(self._window)

    @property
    def is_full(self) -> bool:
        return len(self._window) == self.window_size

    @property
    def latest(self) -> Optional[ConfidenceVector]:
        """Most recently pushed vector, or None if the window is empty."""
        if not self._window:
            return None
        return dict(self._window[-1])
