"""
Residual reflection: short-horizon motion extrapolation.

Projects the smoothed vertical position one step ahead using the last
observed velocity, so a fast "bounce" registers near the start of the
motion rather than after it completes. Gain and threshold together
trade perceived latency against false triggers.
"""

from dataclasses import dataclass
from typing import Optional

from .config import PredictionSettings
from .gesture_types import GestureType
from .logger import get_logger
from .observation_buffer import ObservationBuffer

logger = get_logger("Extrapolator")


@dataclass(frozen=True)
class MotionPrediction:
    """
    Velocity estimate and projection for one frame.

    Attributes:
        current: Newest smoothed position.
        velocity: Difference between the last two buffered positions.
        predicted: current + gain * velocity.
        predicted_velocity: predicted - current (the residual reflection).
        threshold: Threshold the decision was made against.
        confidence_scale: Multiple of threshold at which confidence saturates.
    """
    current: float
    velocity: float
    predicted: float
    predicted_velocity: float
    threshold: float
    confidence_scale: float = 3.0

    @property
    def is_decisive(self) -> bool:
        """True when the projected motion is large enough to act on."""
        return abs(self.predicted_velocity) > self.threshold

    @property
    def direction(self) -> Optional[GestureType]:
        """MOVING_UP for negative motion (y grows downward), MOVING_DOWN for positive."""
        if not self.is_decisive:
            return None
        return GestureType.MOVING_UP if self.predicted_velocity < 0 else GestureType.MOVING_DOWN

    @property
    def confidence(self) -> float:
        if not self.is_decisive:
            return 0.0
        return min(abs(self.predicted_velocity) / (self.confidence_scale * self.threshold), 1.0)


class MotionExtrapolator:
    """
    Maintains the observation buffer and computes motion predictions.

    Attributes:
        settings: Prediction settings (buffer size, gain, threshold).
    """

    def __init__(self, settings: Optional[PredictionSettings] = None):
        self.settings = settings or PredictionSettings()
        if self.settings.threshold <= 0:
            raise ValueError(f"threshold must be positive, got {self.settings.threshold}")
        self.buffer = ObservationBuffer(self.settings.buffer_size)
        self._last_prediction: Optional[MotionPrediction] = None

    def update(self, value: float) -> Optional[MotionPrediction]:
        """
        Record a smoothed position and predict the next one.

        Args:
            value: Smoothed primary-axis position.

        Returns:
            MotionPrediction, or None until two samples are buffered.
        """
        self.buffer.push(value)
        self._last_prediction = self.predict()
        return self._last_prediction

    def predict(self) -> Optional[MotionPrediction]:
        """Predict from the current buffer contents without recording anything."""
        current = self.buffer.latest
        previous = self.buffer.previous
        if current is None or previous is None:
            return None

        velocity = current - previous
        predicted = current + self.settings.gain * velocity
        prediction = MotionPrediction(
            current=current,
            velocity=velocity,
            predicted=predicted,
            predicted_velocity=predicted - current,
            threshold=self.settings.threshold,
            confidence_scale=self.settings.confidence_scale,
        )

        if prediction.is_decisive:
            logger.debug(
                f"Decisive motion: velocity={velocity:.2f}, "
                f"residual={prediction.predicted_velocity:.2f}"
            )
        return prediction

    @property
    def last_prediction(self) -> Optional[MotionPrediction]:
        return self._last_prediction

    def reset(self) -> None:
        self.buffer.clear()
        self._last_prediction = None
