"""Neutral-face baseline calibration.

The calibrator averages the first ``max_samples`` observed frames into a
neutral baseline. Once that many frames have been seen the baseline is frozen
and later frames are normalized against it.
"""

import logging
from dataclasses import dataclass

from .features import FaceMeasurements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BaselineState:
    """Snapshot of the neutral-face baseline.

    Attributes:
        mean_mouth_height: Running mean of mouth height
        mean_mouth_width: Running mean of mouth width
        mean_eye_height: Running mean of the two-eye mean aperture
        sample_count: Number of frames folded into the means
        is_calibrated: True once sample_count reached max_samples
    """

    mean_mouth_height: float = 0.0
    mean_mouth_width: float = 0.0
    mean_eye_height: float = 0.0
    sample_count: int = 0
    is_calibrated: bool = False


class BaselineCalibrator:
    """中性表情基线校准器 (Neutral baseline calibrator)

    Maintains a running mean of mouth height, mouth width, and eye height:

        mean' = (mean * n + value) / (n + 1)

    Eye height is the mean aperture of both eyes, the same quantity that
    is later normalized per frame. A left-eye-only baseline would skew
    eye openness whenever the two eyes differ.

    Each observe() call replaces the state with a fully computed new
    snapshot, so a frame either updates every mean or none of them.

    Attributes:
        max_samples: Number of frames averaged before the baseline freezes.
    """

    def __init__(self, max_samples: int = 30):
        """
        Args:
            max_samples: Frames required for calibration. Must be >= 1.

        Raises:
            ValueError: If max_samples < 1.
        """
        if max_samples < 1:
            raise ValueError(f"max_samples must be >= 1, got {max_samples}")

        self.max_samples = max_samples
        self._state = BaselineState()

    def observe(self, measurements: FaceMeasurements) -> None:
        """Fold one frame into the baseline. No-op once calibrated."""
        state = self._state
        if state.is_calibrated:
            logger.debug("Baseline frozen, ignoring observation")
            return

        n = state.sample_count
        sample_count = n + 1
        self._state = BaselineState(
            mean_mouth_height=(state.mean_mouth_height * n + measurements.mouth_height) / sample_count,
            mean_mouth_width=(state.mean_mouth_width * n + measurements.mouth_width) / sample_count,
            mean_eye_height=(state.mean_eye_height * n + measurements.eye_height) / sample_count,
            sample_count=sample_count,
            is_calibrated=sample_count >= self.max_samples,
        )

        if self._state.is_calibrated:
            logger.info(
                f"Calibration complete after {sample_count} frames: "
                f"mouth_height={self._state.mean_mouth_height:.4f}, "
                f"mouth_width={self._state.mean_mouth_width:.4f}, "
                f"eye_height={self._state.mean_eye_height:.4f}"
            )

    def is_ready(self) -> bool:
        return self._state.is_calibrated

    @property
    def state(self) -> BaselineState:
        """Immutable snapshot of the current baseline."""
        return self._state

    @property
    def progress(self) -> float:
        """Calibration progress in [0, 1]."""
        return self._state.sample_count / self.max_samples
