"""
Landmark smoother for temporal filtering of hand position.

Applies one exponential filter per axis to the wrist anchor and moves
the whole 21-point hand by the anchor's correction. Finger geometry
relative to the wrist is untouched, so smoothing never changes the
static pose classification.
"""

from dataclasses import dataclass
from typing import Optional

from .config import SmoothingSettings
from .ema_filter import ExponentialFilter
from .landmarks import HandLandmarks
from .logger import get_logger

logger = get_logger("LandmarkSmoother")


@dataclass
class SmoothedPosition:
    """Smoothed anchor position for one frame."""
    x: float
    y: float


class LandmarkSmoother:
    """
    Smooths the hand position with two independent exponential filters.

    Attributes:
        settings: Smoothing settings.
    """

    def __init__(self, settings: Optional[SmoothingSettings] = None):
        """
        Initialize landmark smoother.

        Args:
            settings: Smoothing settings. Uses defaults if None.
        """
        self.settings = settings or SmoothingSettings()

        self._filter_x = ExponentialFilter(self.settings.alpha)
        self._filter_y = ExponentialFilter(self.settings.alpha)
        self._last_position: Optional[SmoothedPosition] = None
        self._smoothed_count = 0

        logger.debug(f"LandmarkSmoother initialized (alpha={self.settings.alpha})")

    def smooth(self, landmarks: HandLandmarks) -> HandLandmarks:
        """
        Apply temporal smoothing to the hand position.

        Args:
            landmarks: Raw landmarks from the oracle.

        Returns:
            HandLandmarks shifted so the wrist sits at the smoothed position.
        """
        wrist = landmarks.wrist
        smooth_x = self._filter_x.filter(wrist.x)
        smooth_y = self._filter_y.filter(wrist.y)

        self._last_position = SmoothedPosition(x=smooth_x, y=smooth_y)
        self._smoothed_count += 1

        return landmarks.translated(smooth_x - wrist.x, smooth_y - wrist.y)

    def reset(self) -> None:
        """Reset all filter states (call when tracking is lost)."""
        self._filter_x.reset()
        self._filter_y.reset()
        self._last_position = None
        logger.debug("LandmarkSmoother reset")

    @property
    def position(self) -> Optional[SmoothedPosition]:
        """Last smoothed anchor position."""
        return self._last_position

    @property
    def smoothed_count(self) -> int:
        """Get total number of frames smoothed."""
        return self._smoothed_count
