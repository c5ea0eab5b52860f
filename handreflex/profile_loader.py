"""
Profile loader for HandReflex.

Loads and validates JSON profile files. Profile properties use camelCase.
Numeric tunables are clamped to safe ranges; structural problems raise
ProfileLoadError.

Example profile:

    {
        "id": "arcade-1",
        "name": "Arcade cabinet",
        "profileType": "Custom",
        "playerId": "architect-42",
        "selectedCameraIndex": 0,
        "flipHorizontal": true,
        "backends": ["gpu", "cpu"],
        "smoothing": {"alpha": 0.45, "lostResetFrames": 10},
        "prediction": {"bufferSize": 10, "gain": 0.85, "threshold": 5.0},
        "classifier": {"confidence": 0.92, "paperMinExtended": 3},
        "loop": {"minFrameIntervalMs": 50, "sinkMinConfidence": 0.9},
        "moveConfirmation": {"holdFrames": 3, "releaseFrames": 4, "debounceMs": 250},
        "eventLog": {"enabled": true, "path": null}
    }
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .config import (
    DEFAULT_BACKENDS,
    FLIP_HORIZONTAL,
    KNOWN_BACKENDS,
    MOVE_DEBOUNCE_MS,
    MOVE_HOLD_FRAMES,
    MOVE_MIN_CONFIDENCE,
    MOVE_RELEASE_FRAMES,
    PAPER_MIN_EXTENDED,
    PipelineSettings,
)
from .logger import get_logger

logger = get_logger("ProfileLoader")


@dataclass
class MoveConfirmationConfig:
    """Hold/release settings for the move state machine."""

    hold_frames: int = MOVE_HOLD_FRAMES
    release_frames: int = MOVE_RELEASE_FRAMES
    debounce_ms: int = MOVE_DEBOUNCE_MS
    min_confidence: float = MOVE_MIN_CONFIDENCE


@dataclass
class EventLogConfig:
    """Event log sink settings."""

    enabled: bool = True
    path: Optional[str] = None


@dataclass
class HandReflexProfile:
    """
    Profile configuration loaded from JSON.

    Attributes:
        id: Unique identifier.
        name: Profile display name.
        profile_type: "Preset" or "Custom".
        player_id: Identifier events are logged under.
        selected_camera_index: Camera device index (-1 for auto).
        flip_horizontal: Mirror landmarks horizontally (selfie view).
        pipeline: Smoothing, prediction, classifier and loop settings.
        move_confirmation: Move state machine settings.
        event_log: Event log sink settings.
    """

    id: str
    name: str
    profile_type: str = "Preset"
    player_id: str = "anonymous"
    selected_camera_index: int = -1
    flip_horizontal: bool = FLIP_HORIZONTAL
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    move_confirmation: MoveConfirmationConfig = field(default_factory=MoveConfirmationConfig)
    event_log: EventLogConfig = field(default_factory=EventLogConfig)


class ProfileLoadError(Exception):
    """Raised when profile loading or validation fails."""
    pass


def load_profile(profile_path: str | Path) -> HandReflexProfile:
    """
    Load and validate a profile from a JSON file.

    Args:
        profile_path: Path to the JSON profile file.

    Returns:
        Validated HandReflexProfile instance.

    Raises:
        ProfileLoadError: If file cannot be read or validation fails.
    """
    path = Path(profile_path)
    logger.info(f"Loading profile from: {path}")

    if not path.exists():
        raise ProfileLoadError(f"Profile file not found: {path}")

    if not path.is_file():
        raise ProfileLoadError(f"Profile path is not a file: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ProfileLoadError(f"Invalid JSON in profile: {e}")
    except OSError as e:
        raise ProfileLoadError(f"Cannot read profile file: {e}")

    if not isinstance(data, dict):
        raise ProfileLoadError("Profile root must be a JSON object")

    return parse_profile(data)


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProfileLoadError(f"Profile field '{key}' must be an object")
    return value


def _number(
    section: dict[str, Any],
    key: str,
    default: float,
    low: float,
    high: float
) -> float:
    """Read a numeric field, falling back to default and clamping to [low, high]."""
    value = section.get(key, default)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.warning(f"Invalid {key} '{value}', using default: {default}")
        value = default
    clamped = max(low, min(high, float(value)))
    if clamped != value:
        logger.warning(f"{key}={value} out of range, clamped to {clamped}")
    return clamped


def _integer(section: dict[str, Any], key: str, default: int, low: int, high: int) -> int:
    return int(round(_number(section, key, default, low, high)))


def _flag(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        logger.warning(f"Invalid {key} '{value}', using default: {default}")
        return default
    return value


def _parse_backends(data: dict[str, Any]) -> tuple[str, ...]:
    raw = data.get("backends", list(DEFAULT_BACKENDS))
    if not isinstance(raw, list) or not raw:
        raise ProfileLoadError("Profile field 'backends' must be a non-empty list")

    backends: list[str] = []
    for name in raw:
        name = str(name).lower()
        if name not in KNOWN_BACKENDS:
            raise ProfileLoadError(
                f"Unknown backend '{name}' (expected one of {', '.join(KNOWN_BACKENDS)})"
            )
        if name not in backends:
            backends.append(name)
    return tuple(backends)


def parse_profile(data: dict[str, Any]) -> HandReflexProfile:
    """
    Parse and validate profile data from dictionary.

    Args:
        data: Dictionary with camelCase profile properties.

    Returns:
        Validated HandReflexProfile instance.

    Raises:
        ProfileLoadError: If required fields are missing or invalid.
    """
    if "id" not in data:
        raise ProfileLoadError("Profile missing required field: id")

    if "name" not in data:
        raise ProfileLoadError("Profile missing required field: name")

    # Accept both lowercase and PascalCase
    profile_type_raw = str(data.get("profileType", "Custom"))
    profile_type = profile_type_raw.lower()
    if profile_type not in ("preset", "custom"):
        raise ProfileLoadError(f"Invalid profile type: {profile_type_raw} (expected 'Preset' or 'Custom')")
    profile_type = profile_type.capitalize()

    player_id = data.get("playerId", "anonymous")
    if not isinstance(player_id, str) or not player_id.strip():
        logger.warning("Invalid playerId, using 'anonymous'")
        player_id = "anonymous"

    camera_index = data.get("selectedCameraIndex", -1)
    if isinstance(camera_index, bool) or not isinstance(camera_index, int):
        camera_index = -1

    pipeline = PipelineSettings()

    smoothing = _section(data, "smoothing")
    pipeline.smoothing.alpha = _number(smoothing, "alpha", pipeline.smoothing.alpha, 0.01, 1.0)
    pipeline.smoothing.lost_reset_frames = _integer(
        smoothing, "lostResetFrames", pipeline.smoothing.lost_reset_frames, 1, 600
    )

    prediction = _section(data, "prediction")
    pipeline.prediction.buffer_size = _integer(
        prediction, "bufferSize", pipeline.prediction.buffer_size, 2, 120
    )
    pipeline.prediction.gain = _number(prediction, "gain", pipeline.prediction.gain, 0.0, 5.0)
    pipeline.prediction.threshold = _number(
        prediction, "threshold", pipeline.prediction.threshold, 0.1, 1000.0
    )
    pipeline.prediction.confidence_scale = _number(
        prediction, "confidenceScale", pipeline.prediction.confidence_scale, 1.0, 100.0
    )

    classifier = _section(data, "classifier")
    pipeline.classifier.confidence = _number(
        classifier, "confidence", pipeline.classifier.confidence, 0.0, 1.0
    )
    pipeline.classifier.paper_min_extended = _integer(
        classifier, "paperMinExtended", pipeline.classifier.paper_min_extended,
        PAPER_MIN_EXTENDED, 4
    )

    loop = _section(data, "loop")
    pipeline.loop.tick_interval_s = _number(
        loop, "tickIntervalMs", pipeline.loop.tick_interval_s * 1000, 1.0, 1000.0
    ) / 1000.0
    pipeline.loop.min_frame_interval_s = _number(
        loop, "minFrameIntervalMs", pipeline.loop.min_frame_interval_s * 1000, 0.0, 5000.0
    ) / 1000.0
    pipeline.loop.sink_min_confidence = _number(
        loop, "sinkMinConfidence", pipeline.loop.sink_min_confidence, 0.0, 1.0
    )
    pipeline.loop.backends = _parse_backends(data)

    moves = _section(data, "moveConfirmation")
    move_confirmation = MoveConfirmationConfig(
        hold_frames=_integer(moves, "holdFrames", MOVE_HOLD_FRAMES, 1, 60),
        release_frames=_integer(moves, "releaseFrames", MOVE_RELEASE_FRAMES, 1, 60),
        debounce_ms=_integer(moves, "debounceMs", MOVE_DEBOUNCE_MS, 0, 5000),
        min_confidence=_number(moves, "minConfidence", MOVE_MIN_CONFIDENCE, 0.0, 1.0)
    )

    event_log_data = _section(data, "eventLog")
    event_log_path = event_log_data.get("path")
    if event_log_path is not None and not isinstance(event_log_path, str):
        logger.warning("Invalid eventLog.path, using default location")
        event_log_path = None
    event_log = EventLogConfig(
        enabled=_flag(event_log_data, "enabled", True),
        path=event_log_path
    )

    profile = HandReflexProfile(
        id=str(data["id"]),
        name=str(data["name"]),
        profile_type=profile_type,
        player_id=player_id,
        selected_camera_index=camera_index,
        flip_horizontal=_flag(data, "flipHorizontal", FLIP_HORIZONTAL),
        pipeline=pipeline,
        move_confirmation=move_confirmation,
        event_log=event_log
    )

    logger.info(f"Loaded profile: {profile.name} (id={profile.id})")
    logger.debug(f"  Player: {profile.player_id}")
    logger.debug(f"  Camera index: {profile.selected_camera_index}")
    logger.debug(f"  Backends: {', '.join(pipeline.loop.backends)}")
    logger.debug(f"  Smoothing alpha: {pipeline.smoothing.alpha}")
    logger.debug(f"  Gain / threshold: {pipeline.prediction.gain} / {pipeline.prediction.threshold}")

    return profile


def create_default_profile() -> HandReflexProfile:
    """
    Create a default profile with standard settings.

    Returns:
        HandReflexProfile with default values.
    """
    return HandReflexProfile(id="default", name="Default", profile_type="Preset")
