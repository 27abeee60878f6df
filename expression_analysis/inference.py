"""
Per-frame expression inference engine.

This module provides the ExpressionEngine class that integrates the full
pipeline for one tracked face:
landmarks -> geometry -> baseline calibration / normalization
          -> confidence smoothing -> smile fusion -> ExpressionMetrics.
"""

import enum
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Mapping, Optional, Tuple

import numpy as np

from .calibrator import BaselineCalibrator, BaselineState
from .errors import InvalidInputError
from .extractor import GeometryExtractor
from .features import ExpressionMetrics, FaceMeasurements, HeadPose
from .landmarks import LandmarkInput, LandmarkLayout
from .smile import SmileFusionModel, SmileThresholds
from .smoother import TemporalSmoother, normalize_confidences

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for the expression engine.

    Attributes:
        layout: Landmark index layout of the detector in use
        smile: Smile fusion thresholds and weights
        window_size: Number of confidence vectors averaged by the smoother
        calibration_samples: Frames averaged into the neutral baseline
        openness_max: Upper clamp for mouth and eye openness
        epsilon: Lower bound for baseline denominators
        log_performance: Whether to record per-frame latency statistics
    """
    layout: LandmarkLayout = field(default_factory=LandmarkLayout)
    smile: SmileThresholds = field(default_factory=SmileThresholds)
    window_size: int = 5
    calibration_samples: int = 30
    openness_max: float = 2.0
    epsilon: float = 1e-4
    log_performance: bool = True

    def __post_init__(self):
        if self.window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {self.window_size}")
        if self.calibration_samples < 1:
            raise ValueError(
                f"calibration_samples must be >= 1, got {self.calibration_samples}"
            )
        if self.openness_max <= 0:
            raise ValueError(f"openness_max must be > 0, got {self.openness_max}")
        if self.epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {self.epsilon}")


class EngineState(enum.Enum):
    """Calibration state. UNCALIBRATED -> CALIBRATED only."""
    UNCALIBRATED = "uncalibrated"
    CALIBRATED = "calibrated"


class ExpressionEngine:
    """表情推理引擎 (Expression inference engine)

    One engine tracks exactly one face. It owns the neutral baseline and the
    confidence smoothing window; neither is shared with other engines.

    While uncalibrated every frame is folded into the baseline and a neutral
    (all-zero) record is returned. Once calibration_samples frames have been
    seen, frames are normalized against the frozen baseline.

    Usage:
        engine = ExpressionEngine()
        for landmarks, expressions in frames:
            metrics, info = engine.process_frame(landmarks, expressions)
            if metrics is None:
                continue  # invalid frame, try the next one
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize the engine and its components.

        Args:
            config: Engine configuration. Defaults to EngineConfig().
        """
        self.config = config or EngineConfig()

        self._extractor = GeometryExtractor(self.config.layout)
        self._calibrator = BaselineCalibrator(self.config.calibration_samples)
        self._smoother = TemporalSmoother(self.config.window_size)
        self._smile_model = SmileFusionModel(self.config.smile)

        self._state = EngineState.UNCALIBRATED

        # Performance tracking
        self._latencies: Deque[float] = deque(maxlen=1000)
        self._frame_count: int = 0
        self._skipped_count: int = 0

    def analyze(
        self,
        landmarks: LandmarkInput,
        expressions: Optional[Mapping[str, float]] = None,
    ) -> ExpressionMetrics:
        """
        Run inference on one frame.

        Args:
            landmarks: Landmark frame from the external detector
            expressions: Optional confidence vector from an external
                         expression classifier

        Returns:
            ExpressionMetrics for the frame; all zeros while calibrating

        Raises:
            InvalidLandmarksError: If the landmark frame is unusable
            InvalidInputError: If the confidence vector is malformed

            No state is changed when either is raised.
        """
        if expressions is not None:
            expressions = normalize_confidences(expressions)
        measurements = self._extractor.measure(landmarks)

        if self._state is EngineState.UNCALIBRATED:
            self._calibrator.observe(measurements)
            if self._calibrator.is_ready():
                self._state = EngineState.CALIBRATED
                logger.info("Expression engine calibrated")
            return ExpressionMetrics.neutral()

        return self._normalize(measurements, expressions)

    def _normalize(
        self,
        measurements: FaceMeasurements,
        expressions: Optional[Mapping[str, float]],
    ) -> ExpressionMetrics:
        baseline = self._calibrator.state
        upper = self.config.openness_max

        mouth_openness = self._ratio(measurements.mouth_height, baseline.mean_mouth_height)
        eye_openness = self._ratio(measurements.eye_height, baseline.mean_eye_height)

        smoothed = None
        if expressions is not None:
            self._smoother.push(expressions)
            smoothed = self._smoother.average()

        smile_level = self._smile_model.fuse(
            smoothed, measurements.mouth_width, measurements.mouth_height
        )

        return ExpressionMetrics(
            mouth_openness=float(np.clip(mouth_openness, 0.0, upper)),
            eye_openness=float(np.clip(eye_openness, 0.0, upper)),
            smile_level=smile_level,
            head_pose=HeadPose(
                pitch=measurements.pitch,
                yaw=measurements.yaw,
                roll=measurements.roll,
            ),
        )

    def _ratio(self, value: float, baseline: float) -> float:
        return value / max(baseline, self.config.epsilon)

    def process_frame(
        self,
        landmarks: LandmarkInput,
        expressions: Optional[Mapping[str, float]] = None,
    ) -> Tuple[Optional[ExpressionMetrics], Dict[str, Any]]:
        """
        Process a single frame for the per-frame loop.

        Unlike analyze(), invalid frames do not raise: they are logged and
        reported through the info dictionary so the caller can move on to
        the next frame.

        Args:
            landmarks: Landmark frame from the external detector
            expressions: Optional confidence vector

        Returns:
            Tuple of:
                - metrics: ExpressionMetrics, or None if the frame was skipped
                - info: Dictionary with processing info
        """
        start_time = time.perf_counter()
        info = {
            'calibrated': self.is_calibrated,
            'calibration_progress': self._calibrator.progress,
            'calibrating': False,
            'skipped': False,
            'used_expressions': False,
            'smile_band': None,
            'latency_ms': 0.0,
        }

        was_calibrated = self.is_calibrated
        try:
            metrics = self.analyze(landmarks, expressions)
        except InvalidInputError as e:
            logger.warning(f"Skipping frame: {e}")
            self._skipped_count += 1
            info['skipped'] = True
            info['error'] = str(e)
            metrics = None
        else:
            info['calibrating'] = not was_calibrated
            info['calibrated'] = self.is_calibrated
            info['calibration_progress'] = self._calibrator.progress
            if was_calibrated and expressions is not None:
                info['used_expressions'] = True
                info['smile_band'] = self._smile_model.classify(
                    self._smoother.average()['happy']
                )

        latency_ms = (time.perf_counter() - start_time) * 1000
        info['latency_ms'] = latency_ms

        if self.config.log_performance:
            self._latencies.append(latency_ms)
            self._frame_count += 1

        return metrics, info

    def get_performance_stats(self) -> Dict[str, float]:
        """
        Get per-frame latency statistics over the last 1000 frames.

        Returns:
            Dictionary with latency statistics
        """
        if not self._latencies:
            return {'mean_ms': 0, 'p95_ms': 0, 'max_ms': 0, 'fps': 0,
                    'frame_count': 0, 'skipped_count': self._skipped_count}

        latencies = np.array(self._latencies)
        mean_ms = float(np.mean(latencies))
        return {
            'mean_ms': mean_ms,
            'p95_ms': float(np.percentile(latencies, 95)),
            'max_ms': float(np.max(latencies)),
            'fps': 1000.0 / mean_ms if mean_ms > 0 else 0,
            'frame_count': self._frame_count,
            'skipped_count': self._skipped_count,
        }

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_calibrated(self) -> bool:
        """Check if the neutral baseline has been established."""
        return self._state is EngineState.CALIBRATED

    @property
    def baseline(self) -> BaselineState:
        """Snapshot of the neutral baseline."""
        return self._calibrator.state

    @property
    def smoother(self) -> TemporalSmoother:
        return self._smoother
