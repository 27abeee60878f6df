"""
Data structures for facial measurements and expression metrics.

FaceMeasurements holds the raw geometry read from one landmark frame.
ExpressionMetrics is the normalized per-frame result handed to rendering,
UI, and text-enrichment collaborators.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

import numpy as np


@dataclass(frozen=True)
class FaceMeasurements:
    """单帧几何测量 (Single-frame geometric measurements)

    Distances are in the detector's coordinate units. Head pose angles are
    coarse linear approximations in degrees (see GeometryExtractor).
    """

    mouth_width: float
    mouth_height: float
    left_eye_height: float
    right_eye_height: float
    pitch: float
    yaw: float
    roll: float

    @property
    def eye_height(self) -> float:
        """Mean eye aperture of both eyes."""
        return (self.left_eye_height + self.right_eye_height) / 2


@dataclass(frozen=True)
class HeadPose:
    """Head orientation in degrees."""

    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"pitch": self.pitch, "yaw": self.yaw, "roll": self.roll}


@dataclass(frozen=True)
class ExpressionMetrics:
    """表情指标 (Per-frame expression metrics)

    Attributes:
        mouth_openness: Mouth height relative to the neutral baseline [0, 2]
        eye_openness: Eye height relative to the neutral baseline [0, 2]
        smile_level: Fused smile score [0, 1]
        head_pose: Pitch, yaw, and roll in degrees
    """

    mouth_openness: float
    eye_openness: float
    smile_level: float
    head_pose: HeadPose = field(default_factory=HeadPose)

    # Number of scalar fields in to_array()
    NUM_FIELDS = 6

    @classmethod
    def neutral(cls) -> "ExpressionMetrics":
        """
        Create the all-zero metrics record.

        Emitted while the engine is still calibrating.
        """
        return cls(
            mouth_openness=0.0,
            eye_openness=0.0,
            smile_level=0.0,
            head_pose=HeadPose(),
        )

    def is_neutral(self) -> bool:
        return not np.any(self.to_array())

    def to_array(self) -> np.ndarray:
        """
        Convert metrics to a flat array.

        Returns:
            np.ndarray: Shape (6,) in order
                [mouth_openness, eye_openness, smile_level, pitch, yaw, roll]
        """
        return np.array([
            self.mouth_openness,
            self.eye_openness,
            self.smile_level,
            self.head_pose.pitch,
            self.head_pose.yaw,
            self.head_pose.roll,
        ], dtype=np.float64)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape consumed by UI collaborators."""
        return {
            "mouthOpenness": self.mouth_openness,
            "eyeOpenness": self.eye_openness,
            "smileLevel": self.smile_level,
            "headPose": self.head_pose.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpressionMetrics":
        pose = data.get("headPose", {})
        return cls(
            mouth_openness=float(data["mouthOpenness"]),
            eye_openness=float(data["eyeOpenness"]),
            smile_level=float(data["smileLevel"]),
            head_pose=HeadPose(
                pitch=float(pose.get("pitch", 0.0)),
                yaw=float(pose.get("yaw", 0.0)),
                roll=float(pose.get("roll", 0.0)),
            ),
        )
