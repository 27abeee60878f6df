"""
MediaPipe landmark source for live capture.

Wraps the MediaPipe Tasks FaceLandmarker and turns BGR video frames into the
normalized (N, 3) landmark arrays consumed by ExpressionEngine. This is the
external detector; the engine never imports it.

Uses the MediaPipe Tasks API (FaceLandmarker), mediapipe >= 0.10.
"""

import logging
import os
import urllib.request
from typing import Optional

import numpy as np

try:
    import cv2
    import mediapipe as mp
    from mediapipe.tasks import python
    from mediapipe.tasks.python import vision

    MEDIAPIPE_AVAILABLE = True
except ImportError:
    MEDIAPIPE_AVAILABLE = False

from .errors import LandmarkSourceError

logger = logging.getLogger(__name__)

# Model download URL
MODEL_URL = "https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/1/face_landmarker.task"
DEFAULT_MODEL_PATH = "face_landmarker.task"


class MediaPipeLandmarkSource:
    """从视频帧获取面部关键点 (Landmark source backed by MediaPipe)

    Returns landmarks in MediaPipe's normalized image coordinates: x and y
    in [0, 1] relative to frame width and height, z relative depth. These
    are the units the engine's head pose approximation expects.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        model_path: Optional[str] = None,
    ):
        """
        Initialize MediaPipe Face Landmarker.

        Args:
            min_detection_confidence: Minimum confidence for face detection [0, 1]
            min_tracking_confidence: Minimum confidence for landmark tracking [0, 1]
            model_path: Path to the face_landmarker.task model file. If None, will download.

        Raises:
            LandmarkSourceError: If MediaPipe is unavailable or the model
                cannot be loaded
        """
        if not MEDIAPIPE_AVAILABLE:
            raise LandmarkSourceError(
                "MediaPipe is not installed. Install with: pip install 'expression-analysis[live]'"
            )

        self._model_path = model_path or self._get_model_path()

        try:
            base_options = python.BaseOptions(model_asset_path=self._model_path)
            options = vision.FaceLandmarkerOptions(
                base_options=base_options,
                num_faces=1,
                min_face_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
            self._detector = vision.FaceLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise LandmarkSourceError(f"Failed to create FaceLandmarker: {e}") from e

        logger.info(f"MediaPipe FaceLandmarker loaded from {self._model_path}")

    def _get_model_path(self) -> str:
        """Get or download the face landmarker model."""
        if os.path.exists(DEFAULT_MODEL_PATH):
            return DEFAULT_MODEL_PATH

        package_dir = os.path.dirname(__file__)
        package_model_path = os.path.join(package_dir, DEFAULT_MODEL_PATH)
        if os.path.exists(package_model_path):
            return package_model_path

        logger.info(f"Downloading face landmarker model to {DEFAULT_MODEL_PATH}...")
        try:
            urllib.request.urlretrieve(MODEL_URL, DEFAULT_MODEL_PATH)
        except OSError as e:
            raise LandmarkSourceError(f"Failed to download model: {e}") from e
        logger.info("Model downloaded successfully.")
        return DEFAULT_MODEL_PATH

    def detect(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """
        Detect landmarks of the first face in a frame.

        Args:
            frame: BGR format video frame (H, W, 3)

        Returns:
            Array of shape (N, 3) in normalized coordinates, or None if no
            face is detected
        """
        if frame is None or frame.size == 0:
            return None

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)

        result = self._detector.detect(mp_image)

        if not result.face_landmarks:
            return None

        return np.array(
            [[lm.x, lm.y, lm.z] for lm in result.face_landmarks[0]],
            dtype=np.float64,
        )

    def close(self):
        """Release MediaPipe resources."""
        if hasattr(self, "_detector") and self._detector:
            self._detector.close()
            self._detector = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
