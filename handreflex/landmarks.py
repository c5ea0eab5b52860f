"""
Hand landmark data types.

A hand observation is exactly 21 landmarks in MediaPipe order:
wrist first, then MCP/PIP/DIP/TIP (CMC/MCP/IP/TIP for the thumb)
for each finger from thumb to pinky.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

NUM_LANDMARKS = 21


class LandmarkIndex:
    """MediaPipe hand landmark indices."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


# (tip, proximal joint) per non-thumb finger
FINGER_JOINTS: dict[str, tuple[int, int]] = {
    "index": (LandmarkIndex.INDEX_TIP, LandmarkIndex.INDEX_PIP),
    "middle": (LandmarkIndex.MIDDLE_TIP, LandmarkIndex.MIDDLE_PIP),
    "ring": (LandmarkIndex.RING_TIP, LandmarkIndex.RING_PIP),
    "pinky": (LandmarkIndex.PINKY_TIP, LandmarkIndex.PINKY_PIP),
}


@dataclass(frozen=True)
class Landmark:
    """Single hand landmark. x/y in oracle coordinates, z is relative depth."""
    x: float
    y: float
    z: float = 0.0

    def distance_to(self, other: "Landmark") -> float:
        """Planar Euclidean distance to another landmark."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def translated(self, dx: float, dy: float) -> "Landmark":
        return Landmark(x=self.x + dx, y=self.y + dy, z=self.z)


@dataclass
class HandLandmarks:
    """
    Complete hand landmark data for one observation.

    Attributes:
        landmarks: The 21 hand landmarks.
        handedness: 'Left' or 'Right'.
        score: Detection confidence score.
    """
    landmarks: list[Landmark]
    handedness: str = "Right"
    score: float = 1.0

    @property
    def is_complete(self) -> bool:
        """True when the observation carries the full 21-point set."""
        return len(self.landmarks) == NUM_LANDMARKS

    @property
    def wrist(self) -> Landmark:
        """Get wrist landmark."""
        return self.landmarks[LandmarkIndex.WRIST]

    def get_landmark(self, index: int) -> Optional[Landmark]:
        """Get landmark by index."""
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None

    def translated(self, dx: float, dy: float) -> "HandLandmarks":
        """Return a copy with every landmark shifted by (dx, dy)."""
        return HandLandmarks(
            landmarks=[lm.translated(dx, dy) for lm in self.landmarks],
            handedness=self.handedness,
            score=self.score
        )

    def to_array(self) -> np.ndarray:
        """Landmarks as an (N, 3) float array."""
        return np.array([[lm.x, lm.y, lm.z] for lm in self.landmarks], dtype=np.float64)

    def to_vector(self) -> list[float]:
        """Flattened [x0, y0, z0, x1, ...] vector for persistence."""
        return self.to_array().ravel().tolist()

    @classmethod
    def from_array(
        cls,
        points: "np.ndarray | Sequence[Sequence[float]]",
        handedness: str = "Right",
        score: float = 1.0
    ) -> "HandLandmarks":
        """
        Build from an (N, 2) or (N, 3) array of points.

        Args:
            points: Point coordinates, one row per landmark.
            handedness: 'Left' or 'Right'.
            score: Detection confidence score.
        """
        arr = np.asarray(points, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] not in (2, 3):
            raise ValueError(f"Expected (N, 2) or (N, 3) points, got shape {arr.shape}")
        landmarks = [
            Landmark(x=float(row[0]), y=float(row[1]), z=float(row[2]) if arr.shape[1] == 3 else 0.0)
            for row in arr
        ]
        return cls(landmarks=landmarks, handedness=handedness, score=score)
