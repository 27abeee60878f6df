"""
Smile fusion model.

Combines the smoothed "happy" confidence of an external expression classifier
with a geometric mouth-shape score. The classifier is the better semantic
signal but jumps around its decision boundary; the mouth width-to-height
ratio is continuous and always available. When no classifier output exists
the geometric score is used alone.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np


@dataclass
class SmileThresholds:
    """Calibration parameters for smile fusion.

    Attributes:
        minimal: Happy confidence below which the neural score is 0.
        slight: Band edge for a slight smile (descriptive only).
        moderate: Band edge for a moderate smile (descriptive only).
        broad: Band edge for a broad smile (descriptive only).
        mouth_ratio_base: Width/height ratio at which the geometric score starts rising.
        mouth_ratio_scale: Ratio span over which the geometric score goes from 0 to 1.
        neural_weight: Weight of the neural score when fused; geometry gets the rest.
        epsilon: Added to mouth height before dividing.
    """
    minimal: float = 0.40
    slight: float = 0.60
    moderate: float = 0.75
    broad: float = 0.85
    mouth_ratio_base: float = 4.0
    mouth_ratio_scale: float = 4.0
    neural_weight: float = 0.75
    epsilon: float = 1e-4

    def __post_init__(self):
        if not (0 <= self.minimal < 1):
            raise ValueError(f"minimal must be in range [0, 1), got {self.minimal}")
        if not (self.minimal <= self.slight <= self.moderate <= self.broad <= 1):
            raise ValueError(
                "Thresholds must satisfy minimal <= slight <= moderate <= broad <= 1, "
                f"got {self.minimal}, {self.slight}, {self.moderate}, {self.broad}"
            )
        if self.mouth_ratio_scale <= 0:
            raise ValueError(
                f"mouth_ratio_scale must be > 0, got {self.mouth_ratio_scale}"
            )
        if not (0 <= self.neural_weight <= 1):
            raise ValueError(
                f"neural_weight must be in range [0, 1], got {self.neural_weight}"
            )
        if self.epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {self.epsilon}")


class SmileFusionModel:
    """
    Fuses neural and geometric smile signals into a score in [0, 1].

    Usage:
        model = SmileFusionModel()
        level = model.fuse(smoother.average(), mouth_width, mouth_height)
        level = model.fuse(None, mouth_width, mouth_height)  # geometry only
    """

    def __init__(self, thresholds: Optional[SmileThresholds] = None):
        self.thresholds = thresholds or SmileThresholds()

    def mouth_ratio(self, mouth_width: float, mouth_height: float) -> float:
        """Width-to-height ratio, finite even for a zero mouth height."""
        return mouth_width / (mouth_height + self.thresholds.epsilon)

    def geometric_score(self, mouth_width: float, mouth_height: float) -> float:
        """Geometry-only smile score in [0, 1]."""
        t = self.thresholds
        ratio = self.mouth_ratio(mouth_width, mouth_height)
        return float(np.clip((ratio - t.mouth_ratio_base) / t.mouth_ratio_scale, 0.0, 1.0))

    def neural_score(self, happy: float) -> float:
        """
        Rescale a happy confidence through the ``minimal`` deadband.

        Values below ``minimal`` map to 0; the rest of the range is stretched
        linearly onto [0, 1].
        """
        minimal = self.thresholds.minimal
        if not np.isfinite(happy) or happy < minimal:
            return 0.0
        return float(np.clip((happy - minimal) / (1 - minimal), 0.0, 1.0))

    def fuse(
        self,
        smoothed: Optional[Mapping[str, float]],
        mouth_width: float,
        mouth_height: float,
    ) -> float:
        """
        Compute the smile level.

        Args:
            smoothed: Smoothed confidence vector, or None when no classifier
                      output is available
            mouth_width: Current mouth width
            mouth_height: Current mouth height

        Returns:
            Smile level in [0, 1]
        """
        geo = self.geometric_score(mouth_width, mouth_height)
        if smoothed is None:
            return geo

        nn = self.neural_score(float(smoothed.get("happy", 0.0)))
        w = self.thresholds.neural_weight
        return float(np.clip(w * nn + (1 - w) * geo, 0.0, 1.0))

    def classify(self, happy: float) -> str:
        """
        Name the smile band of a happy confidence.

        Returns:
            One of "none", "minimal", "slight", "moderate", "broad"
        """
        t = self.thresholds
        if happy >= t.broad:
            return "broad"
        if happy >= t.moderate:
            return "moderate"
        if happy >= t.slight:
            return "slight"
        if happy >= t.minimal:
            return "minimal"
        return "none"
