"""
Configuration constants for HandReflex.

This module contains all tunable parameters for frame capture,
landmark smoothing, motion extrapolation, pose classification and
the detection loop cadence.
"""

from dataclasses import dataclass, field
from typing import Final


# Camera configuration
CAMERA_WIDTH: Final[int] = 640
CAMERA_HEIGHT: Final[int] = 480
CAMERA_FPS: Final[int] = 30
DEFAULT_CAMERA_INDEX: Final[int] = 0

# MediaPipe configuration
MEDIAPIPE_MODEL_COMPLEXITY: Final[int] = 0  # Lite model, matches the browser "lite" detector
MEDIAPIPE_MAX_NUM_HANDS: Final[int] = 1
MEDIAPIPE_MIN_DETECTION_CONFIDENCE: Final[float] = 0.7
MEDIAPIPE_MIN_TRACKING_CONFIDENCE: Final[float] = 0.5
MEDIAPIPE_USE_IMAGE_MODE: Final[bool] = False

# Backend preference order: first success wins
DEFAULT_BACKENDS: Final[tuple[str, ...]] = ("gpu", "cpu")
KNOWN_BACKENDS: Final[tuple[str, ...]] = ("gpu", "cpu", "solutions")

# Mirror the image horizontally (selfie view)
FLIP_HORIZONTAL: Final[bool] = True

# =============================================================================
# Smoothing (one-pole exponential filter on the wrist anchor)
# =============================================================================
# Lower alpha = more smoothing, more lag. 0.4-0.5 recommended.
SMOOTHING_ALPHA: Final[float] = 0.45

# Reset filters and history after this many consecutive frames without a hand
HAND_LOST_RESET_FRAMES: Final[int] = 10

# =============================================================================
# Residual reflection (short-horizon extrapolation)
# =============================================================================
OBSERVATION_BUFFER_SIZE: Final[int] = 10
PREDICTION_GAIN: Final[float] = 0.85
MOTION_THRESHOLD: Final[float] = 5.0  # Same units as landmark coordinates (pixels)
MOTION_CONFIDENCE_SCALE: Final[float] = 3.0  # Confidence saturates at 3x threshold

# =============================================================================
# Static pose classification
# =============================================================================
STATIC_POSE_CONFIDENCE: Final[float] = 0.92
PAPER_MIN_EXTENDED: Final[int] = 3  # Floor: one or two fingers is never paper

# =============================================================================
# Loop cadence
# =============================================================================
TICK_INTERVAL_S: Final[float] = 1.0 / 60.0  # One check per display refresh
MIN_FRAME_INTERVAL_S: Final[float] = 0.05  # ~20 Hz admitted frame rate

# =============================================================================
# Move confirmation (game host)
# =============================================================================
MOVE_HOLD_FRAMES: Final[int] = 3
MOVE_RELEASE_FRAMES: Final[int] = 4
MOVE_DEBOUNCE_MS: Final[int] = 250
MOVE_MIN_CONFIDENCE: Final[float] = 0.5

# Event log sink
EVENT_LOG_FILENAME: Final[str] = "latent_events.jsonl"
SINK_MIN_CONFIDENCE: Final[float] = 0.9

# Fluidity rating bands (ms)
FLUIDITY_EXCELLENT_MS: Final[float] = 150.0
FLUIDITY_GOOD_MS: Final[float] = 300.0

# Logging
LOG_FILENAME: Final[str] = "handreflex.log"
LOG_MAX_BYTES: Final[int] = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT: Final[int] = 3

# Exit codes
EXIT_SUCCESS: Final[int] = 0
EXIT_PROFILE_ERROR: Final[int] = 1
EXIT_CAMERA_ERROR: Final[int] = 2
EXIT_RUNTIME_ERROR: Final[int] = 3


@dataclass
class SmoothingSettings:
    """Container for position smoothing settings."""

    alpha: float = SMOOTHING_ALPHA
    lost_reset_frames: int = HAND_LOST_RESET_FRAMES


@dataclass
class PredictionSettings:
    """Container for residual reflection settings."""

    buffer_size: int = OBSERVATION_BUFFER_SIZE
    gain: float = PREDICTION_GAIN
    threshold: float = MOTION_THRESHOLD
    confidence_scale: float = MOTION_CONFIDENCE_SCALE


@dataclass
class ClassifierSettings:
    """Container for static pose classifier settings."""

    confidence: float = STATIC_POSE_CONFIDENCE
    paper_min_extended: int = PAPER_MIN_EXTENDED


@dataclass
class LoopSettings:
    """Container for detection loop cadence and backend selection."""

    tick_interval_s: float = TICK_INTERVAL_S
    min_frame_interval_s: float = MIN_FRAME_INTERVAL_S
    backends: tuple[str, ...] = DEFAULT_BACKENDS
    sink_min_confidence: float = SINK_MIN_CONFIDENCE


@dataclass
class PipelineSettings:
    """All settings needed to run one detection session."""

    smoothing: SmoothingSettings = field(default_factory=SmoothingSettings)
    prediction: PredictionSettings = field(default_factory=PredictionSettings)
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    loop: LoopSettings = field(default_factory=LoopSettings)
