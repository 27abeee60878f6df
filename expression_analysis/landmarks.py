"""
Landmark points and the index layout used to read them.

A landmark frame is an ordered sequence of 3D points produced by an external
face detector. The engine only reads a handful of named points; which index
each name maps to depends on the detector's mesh topology, so the mapping is
carried by a LandmarkLayout instead of hardcoded constants.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, NamedTuple, Sequence, Union

import numpy as np

from .errors import InvalidLandmarksError


class LandmarkPoint(NamedTuple):
    """Immutable 3D landmark coordinate in detector space."""

    x: float
    y: float
    z: float = 0.0


LandmarkInput = Union[np.ndarray, Sequence[Any]]


@dataclass(frozen=True)
class LandmarkLayout:
    """面部关键点索引 (Face landmark index layout)

    Binds the named landmarks read by the engine to indices of the detector's
    landmark array. Defaults follow the MediaPipe Face Mesh topology
    (468/478 points).

    Attributes:
        mouth_top: Upper lip center
        mouth_bottom: Lower lip center
        mouth_left: Left mouth corner
        mouth_right: Right mouth corner
        left_eye_top: Upper eyelid, left eye
        left_eye_bottom: Lower eyelid, left eye
        right_eye_top: Upper eyelid, right eye
        right_eye_bottom: Lower eyelid, right eye
        nose_tip: Nose tip
        left_cheek: Left cheek
        right_cheek: Right cheek
    """

    mouth_top: int = 13
    mouth_bottom: int = 14
    mouth_left: int = 78
    mouth_right: int = 308
    left_eye_top: int = 159
    left_eye_bottom: int = 145
    right_eye_top: int = 386
    right_eye_bottom: int = 374
    nose_tip: int = 1
    left_cheek: int = 123
    right_cheek: int = 352

    def __post_init__(self):
        for name, index in asdict(self).items():
            if not isinstance(index, (int, np.integer)) or isinstance(index, bool):
                raise ValueError(f"{name} must be an integer index, got {index!r}")
            if index < 0:
                raise ValueError(f"{name} must be >= 0, got {index}")

    @property
    def indices(self) -> Dict[str, int]:
        """Mapping of landmark name to index."""
        return asdict(self)

    @property
    def required_length(self) -> int:
        """Minimum number of landmarks a frame must contain."""
        return max(self.indices.values()) + 1

    @classmethod
    def from_dict(cls, data: Mapping[str, int]) -> "LandmarkLayout":
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown landmark names: {sorted(unknown)}")
        return cls(**{name: int(index) for name, index in data.items()})


def _point_to_row(point: Any) -> Sequence[float]:
    if isinstance(point, Mapping):
        return (point["x"], point["y"], point.get("z", 0.0))
    if hasattr(point, "x") and hasattr(point, "y"):
        return (point.x, point.y, getattr(point, "z", 0.0))
    row = tuple(point)
    if len(row) == 2:
        return (row[0], row[1], 0.0)
    return row


def as_landmark_array(landmarks: LandmarkInput) -> np.ndarray:
    """
    Convert a landmark container into a float64 array of shape (N, 3).

    Accepts an (N, 3) or (N, 2) array, a sequence of LandmarkPoint or
    tuples, a sequence of objects with ``x``/``y``/``z`` attributes (such as
    MediaPipe landmarks), or a sequence of ``{"x", "y", "z"}`` mappings.
    Missing z coordinates are taken as 0.

    Raises:
        InvalidLandmarksError: If the container cannot be read as points
    """
    if landmarks is None:
        raise InvalidLandmarksError("No landmarks supplied")

    if isinstance(landmarks, np.ndarray):
        arr = landmarks
    else:
        try:
            arr = np.array([_point_to_row(p) for p in landmarks], dtype=np.float64)
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise InvalidLandmarksError(f"Malformed landmark sequence: {e}") from e

    if arr.ndim != 2 or arr.shape[1] not in (2, 3):
        raise InvalidLandmarksError(
            f"Expected landmarks of shape (N, 3), got {arr.shape}"
        )

    try:
        arr = arr.astype(np.float64, copy=False)
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidLandmarksError(f"Non-numeric landmark coordinates: {e}") from e

    if arr.shape[1] == 2:
        arr = np.hstack([arr, np.zeros((arr.shape[0], 1))])

    return arr


def select_points(
    landmarks: LandmarkInput, layout: LandmarkLayout
) -> Dict[str, np.ndarray]:
    """
    Read the layout's named points from a landmark frame.

    Args:
        landmarks: Landmark frame in any accepted container format
        layout: Index layout to read

    Returns:
        Dictionary mapping landmark name to a (3,) coordinate array

    Raises:
        InvalidLandmarksError: If the frame is shorter than the layout
            requires or a selected point is not finite
    """
    arr = as_landmark_array(landmarks)

    if arr.shape[0] < layout.required_length:
        raise InvalidLandmarksError(
            f"Expected at least {layout.required_length} landmarks, "
            f"got {arr.shape[0]}"
        )

    points = {name: arr[index] for name, index in layout.indices.items()}

    for name, point in points.items():
        if not np.all(np.isfinite(point)):
            raise InvalidLandmarksError(
                f"Landmark {name!r} has non-finite coordinates: {point.tolist()}"
            )

    return points

