"""
Static pose classifier for rock / paper / scissors.

A finger counts as extended when its tip is farther from the wrist
than its PIP joint. The test compares distances, not directions, so
it holds for any in-plane hand rotation.
"""

from dataclasses import dataclass
from typing import Optional

from .config import PAPER_MIN_EXTENDED, ClassifierSettings
from .gesture_types import GestureType
from .landmarks import FINGER_JOINTS, HandLandmarks
from .logger import get_logger

logger = get_logger("PoseClassifier")


@dataclass(frozen=True)
class FingerState:
    """Extension state of the four non-thumb fingers."""
    index: bool
    middle: bool
    ring: bool
    pinky: bool

    @property
    def extended_count(self) -> int:
        return sum((self.index, self.middle, self.ring, self.pinky))


class PoseClassifier:
    """
    Rule-based classifier over the four non-thumb fingers.

    The thumb is never consulted. Ambiguous shapes come back as NONE
    instead of being forced into the nearest move.
    """

    def __init__(self, settings: Optional[ClassifierSettings] = None):
        self.settings = settings or ClassifierSettings()

    def finger_state(self, hand: HandLandmarks) -> FingerState:
        """Determine which non-thumb fingers are extended."""
        wrist = hand.wrist
        extended = {}
        for finger, (tip_idx, pip_idx) in FINGER_JOINTS.items():
            tip = hand.landmarks[tip_idx]
            pip = hand.landmarks[pip_idx]
            extended[finger] = tip.distance_to(wrist) > pip.distance_to(wrist)
        return FingerState(**extended)

    def classify(self, hand: HandLandmarks) -> tuple[GestureType, float]:
        """
        Classify a stable hand shape.

        Args:
            hand: Complete 21-point observation.

        Returns:
            Tuple of (gesture_type, confidence).
        """
        if not hand.is_complete:
            logger.warning(f"Cannot classify observation with {len(hand.landmarks)} landmarks")
            return GestureType.UNKNOWN, 0.0

        fingers = self.finger_state(hand)
        gesture = self.classify_fingers(fingers)
        confidence = self.settings.confidence if gesture.is_resolved else 0.0
        return gesture, confidence

    def classify_fingers(self, fingers: FingerState) -> GestureType:
        """Apply the ordered rules; first match wins."""
        if fingers.index and fingers.middle and not fingers.ring and not fingers.pinky:
            return GestureType.SCISSORS

        count = fingers.extended_count
        # Paper needs at least three fingers whatever the settings say
        if count >= max(self.settings.paper_min_extended, PAPER_MIN_EXTENDED):
            return GestureType.PAPER
        if count == 0:
            return GestureType.ROCK

        return GestureType.NONE
