"""
Per-frame gesture inference pipeline.

Stages, in order:
    smooth position -> buffer vertical position -> extrapolate motion
    -> decisive motion? emit direction : classify static pose

All state lives on the pipeline instance, which belongs to exactly one
detection session.
"""

from typing import Optional

from .config import PipelineSettings
from .extrapolator import MotionExtrapolator, MotionPrediction
from .gesture_types import GestureEvent, GestureType
from .landmark_smoother import LandmarkSmoother
from .landmarks import HandLandmarks
from .logger import get_logger
from .pose_classifier import PoseClassifier

logger = get_logger("GesturePipeline")


class GesturePipeline:
    """
    Turns one observation into one GestureEvent.

    Attributes:
        settings: Pipeline settings.
        smoother: Position smoother (x/y filter state).
        extrapolator: Observation buffer and residual reflection.
        classifier: Static pose classifier.
    """

    def __init__(self, settings: Optional[PipelineSettings] = None):
        self.settings = settings or PipelineSettings()
        self.smoother = LandmarkSmoother(self.settings.smoothing)
        self.extrapolator = MotionExtrapolator(self.settings.prediction)
        self.classifier = PoseClassifier(self.settings.classifier)

        self._consecutive_misses = 0
        self._frame_count = 0

    def process(self, observation: Optional[HandLandmarks]) -> GestureEvent:
        """
        Run all stages on one observation.

        Args:
            observation: Landmarks from the oracle, or None for no hand.

        Returns:
            The event for this frame.
        """
        self._frame_count += 1

        if observation is None or not observation.landmarks:
            self._on_miss()
            return GestureEvent.empty()

        if not observation.is_complete:
            logger.warning(
                f"Discarding malformed observation ({len(observation.landmarks)} landmarks)"
            )
            return GestureEvent(gesture=GestureType.UNKNOWN, confidence=0.0)

        self._consecutive_misses = 0

        smoothed = self.smoother.smooth(observation)
        prediction = self.extrapolator.update(smoothed.wrist.y)

        if prediction is not None and prediction.is_decisive:
            return GestureEvent(
                gesture=prediction.direction,
                confidence=prediction.confidence,
                landmarks=smoothed,
                prediction=prediction,
            )

        gesture, confidence = self.classifier.classify(smoothed)
        return GestureEvent(
            gesture=gesture,
            confidence=confidence,
            landmarks=smoothed,
            prediction=prediction,
        )

    def _on_miss(self) -> None:
        self._consecutive_misses += 1
        if self._consecutive_misses == self.settings.smoothing.lost_reset_frames:
            logger.debug(f"Hand lost for {self._consecutive_misses} frames - resetting history")
            self.reset()

    @property
    def last_prediction(self) -> Optional[MotionPrediction]:
        """Residual reflection from the most recent non-empty frame."""
        return self.extrapolator.last_prediction

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def reset(self) -> None:
        """Clear filter state and the observation buffer."""
        self.smoother.reset()
        self.extrapolator.reset()
