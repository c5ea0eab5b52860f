"""Gesture classification types and the per-frame event."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .landmarks import HandLandmarks

if TYPE_CHECKING:
    from .extrapolator import MotionPrediction


class GestureType(Enum):
    """
    Classification emitted once per admitted frame.

    NONE is the ambiguous or empty outcome, UNKNOWN marks an observation
    that could not be interpreted at all.
    """

    ROCK = "rock"
    PAPER = "paper"
    SCISSORS = "scissors"
    MOVING_UP = "moving_up"
    MOVING_DOWN = "moving_down"
    NONE = "none"
    UNKNOWN = "unknown"

    @property
    def is_move(self) -> bool:
        """True for the three playable hand shapes."""
        return self in (GestureType.ROCK, GestureType.PAPER, GestureType.SCISSORS)

    @property
    def is_motion(self) -> bool:
        return self in (GestureType.MOVING_UP, GestureType.MOVING_DOWN)

    @property
    def is_resolved(self) -> bool:
        """True when the frame produced a definite classification."""
        return self not in (GestureType.NONE, GestureType.UNKNOWN)


@dataclass
class GestureEvent:
    """
    Output of one admitted frame.

    Attributes:
        gesture: Classification for the frame.
        confidence: Confidence in [0, 1].
        landmarks: Smoothed landmarks that produced the classification
                   (None when no hand was observed).
        prediction: Residual reflection computed this frame, if any.
        timestamp: Wall-clock time the event was created.
    """
    gesture: GestureType
    confidence: float
    landmarks: Optional[HandLandmarks] = None
    prediction: Optional["MotionPrediction"] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        self.confidence = min(max(float(self.confidence), 0.0), 1.0)

    @classmethod
    def empty(cls) -> "GestureEvent":
        """Event for a frame with no observation."""
        return cls(gesture=GestureType.NONE, confidence=0.0)
