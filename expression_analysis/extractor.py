"""
GeometryExtractor for reading facial measurements from landmark frames.

All measurements are computed from a small set of named landmarks selected
through a LandmarkLayout. The extractor has no state; the same frame always
yields the same measurements.
"""

import math
from typing import Optional

import numpy as np

from .errors import InvalidLandmarksError
from .features import FaceMeasurements
from .landmarks import LandmarkInput, LandmarkLayout, select_points

# Scale applied to the normalized nose offsets to approximate degrees
POSE_SCALE_DEGREES = 90.0


def distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between two 3D points."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return float(np.linalg.norm(b - a))


class GeometryExtractor:
    """从面部关键点提取几何特征 (Facial geometry extractor)

    Computes mouth width/height, per-eye apertures, and a coarse head pose:

        pitch = (nose.y - mean(left_eye_top.y, right_eye_top.y)) * 90
        yaw   = (nose.x - mean(left_cheek.x, right_cheek.x)) * 90
        roll  = degrees(atan2(right_eye_top.y - left_eye_top.y,
                              right_eye_top.x - left_eye_top.x))

    The pose is a linear approximation on normalized image coordinates, not a
    rotation solve. Pitch and yaw are only meaningful for detectors that
    report coordinates normalized to [0, 1].
    """

    def __init__(self, layout: Optional[LandmarkLayout] = None):
        """
        Args:
            layout: Landmark index layout. Defaults to the MediaPipe Face Mesh
                    layout.
        """
        self.layout = layout or LandmarkLayout()

    def measure(self, landmarks: LandmarkInput) -> FaceMeasurements:
        """
        Compute measurements for one landmark frame.

        Args:
            landmarks: Landmark frame, shape (N, 3) or any accepted container

        Returns:
            FaceMeasurements for the frame

        Raises:
            InvalidLandmarksError: If the frame is missing required landmarks
                or a measurement overflows to a non-finite value
        """
        p = select_points(landmarks, self.layout)

        # Huge but finite coordinates overflow; caught by the check below
        with np.errstate(over="ignore", invalid="ignore"):
            mouth_width = distance(p["mouth_left"], p["mouth_right"])
            mouth_height = distance(p["mouth_top"], p["mouth_bottom"])
            left_eye_height = distance(p["left_eye_top"], p["left_eye_bottom"])
            right_eye_height = distance(p["right_eye_top"], p["right_eye_bottom"])

            pitch, yaw, roll = self._compute_head_pose(p)

        values = {
            "mouth_width": mouth_width,
            "mouth_height": mouth_height,
            "left_eye_height": left_eye_height,
            "right_eye_height": right_eye_height,
            "pitch": pitch,
            "yaw": yaw,
            "roll": roll,
        }
        for name, value in values.items():
            if not math.isfinite(value):
                raise InvalidLandmarksError(f"Measurement {name!r} is not finite: {value}")

        return FaceMeasurements(**values)

    def _compute_head_pose(self, p: dict):
        left_eye_top = p["left_eye_top"]
        right_eye_top = p["right_eye_top"]
        nose = p["nose_tip"]

        eye_line_y = (left_eye_top[1] + right_eye_top[1]) / 2
        cheek_center_x = (p["left_cheek"][0] + p["right_cheek"][0]) / 2

        pitch = (nose[1] - eye_line_y) * POSE_SCALE_DEGREES
        yaw = (nose[0] - cheek_center_x) * POSE_SCALE_DEGREES
        roll = math.degrees(math.atan2(
            right_eye_top[1] - left_eye_top[1],
            right_eye_top[0] - left_eye_top[0],
        ))

        return float(pitch), float(yaw), float(roll)
