"""
HandReflex - reactive hand gesture detection for rock-paper-scissors.

Smooths MediaPipe hand landmarks, extrapolates vertical wrist motion and
classifies static hand poses at a throttled rate on an asyncio loop.
"""

__version__ = "1.0.0"
__author__ = "HandReflex Team"

from .config import PipelineSettings
from .landmarks import HandLandmarks, Landmark
from .gesture_types import GestureEvent, GestureType
from .gesture_pipeline import GesturePipeline
from .oracle import BackendUnavailableError, DetectorHandle, LandmarkOracle, OracleError
from .loop_controller import ReactiveLoop
from .hand_detector import MediaPipeOracle
from .camera_manager import CameraManager, CameraError
from .gesture_state_machine import GestureStateMachine, MoveEvent, GestureState
from .profile_loader import HandReflexProfile, ProfileLoadError, load_profile
from .event_log import JsonlEventLog

__all__ = [
    "PipelineSettings",
    "HandLandmarks",
    "Landmark",
    "GestureEvent",
    "GestureType",
    "GesturePipeline",
    "BackendUnavailableError",
    "DetectorHandle",
    "LandmarkOracle",
    "OracleError",
    "ReactiveLoop",
    "MediaPipeOracle",
    "CameraManager",
    "CameraError",
    "GestureStateMachine",
    "MoveEvent",
    "GestureState",
    "HandReflexProfile",
    "ProfileLoadError",
    "load_profile",
    "JsonlEventLog",
]
