#!/usr/bin/env python3
"""
HandReflex

Main entry point. Runs the reactive detection loop against a webcam and
plays rock-paper-scissors rounds from confirmed hand poses.

Usage:
    handreflex [--profile <path>] [--camera <index>] [--debug]

Exit Codes:
    0 - Success
    1 - Profile error
    2 - Camera error
    3 - Runtime error
"""

import argparse
import asyncio
import signal
import sys
import time
from typing import Optional

from .camera_manager import CameraManager, CameraError, select_camera
from .config import (
    EXIT_SUCCESS,
    EXIT_PROFILE_ERROR,
    EXIT_CAMERA_ERROR,
    EXIT_RUNTIME_ERROR,
    DEFAULT_CAMERA_INDEX,
    KNOWN_BACKENDS,
)
from .event_log import GameResultPayload, JsonlEventLog
from .game_rules import GameSession, RoundOutcome
from .gesture_state_machine import GestureStateMachine, MoveEvent
from .gesture_types import GestureType
from .hand_detector import MediaPipeOracle
from .landmarks import HandLandmarks
from .logger import setup_logging, get_logger
from .loop_controller import ReactiveLoop
from .profile_loader import (
    HandReflexProfile,
    ProfileLoadError,
    create_default_profile,
    load_profile,
)


class HandReflexApp:
    """
    Wires camera capture, the landmark oracle, the reactive loop, move
    confirmation and the event log into one session.
    """

    def __init__(
        self,
        profile: HandReflexProfile,
        camera_index: int = DEFAULT_CAMERA_INDEX,
        duration_s: Optional[float] = None,
        model_path: Optional[str] = None
    ):
        """
        Initialize application.

        Args:
            profile: Loaded profile configuration.
            camera_index: Camera device index.
            duration_s: Stop after this many seconds. Runs until signalled if None.
            model_path: Explicit hand landmarker model file.
        """
        self.profile = profile
        self.camera_index = camera_index
        self.duration_s = duration_s
        self.model_path = model_path

        self._logger = get_logger("App")
        self._stop_event: Optional[asyncio.Event] = None

        self._camera: Optional[CameraManager] = None
        self._camera_failure: Optional[CameraError] = None
        self._loop: Optional[ReactiveLoop] = None
        self._event_log: Optional[JsonlEventLog] = None
        self._state_machine = GestureStateMachine(
            debounce_ms=profile.move_confirmation.debounce_ms,
            hold_frames=profile.move_confirmation.hold_frames,
            release_frames=profile.move_confirmation.release_frames,
            min_confidence=profile.move_confirmation.min_confidence
        )
        self._state_machine.set_callbacks(on_start=self._on_move_start, on_end=self._on_move_end)
        self.game = GameSession()

        # Time the current candidate move was first seen
        self._candidate: Optional[GestureType] = None
        self._candidate_since = 0.0

    def _build(self) -> None:
        self._camera = CameraManager(camera_index=self.camera_index)
        self._camera.open()

        if self.profile.event_log.enabled:
            self._event_log = JsonlEventLog(self.profile.event_log.path)
            self._logger.info(f"Event log: {self._event_log.path}")

        oracle = MediaPipeOracle(
            flip_horizontal=self.profile.flip_horizontal,
            model_path=self.model_path
        )
        self._loop = ReactiveLoop(
            oracle=oracle,
            frame_source=self._read_frame,
            on_gesture=self._on_gesture,
            set_is_detecting=self._on_detecting,
            settings=self.profile.pipeline,
            event_sink=self._event_log,
            sink_id=self.profile.player_id
        )

    async def run(self) -> bool:
        """
        Run until stopped by signal, duration or a loop failure.

        Returns:
            False if detection could not be started.

        Raises:
            CameraError: If the camera cannot be opened or stops delivering frames.
        """
        self._stop_event = asyncio.Event()
        self._install_signal_handlers()

        try:
            self._build()
            if not await self._loop.activate():
                self._logger.error("Hand detection could not be started")
                return False

            self._logger.info("Show rock, paper or scissors to play. Ctrl+C to quit.")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.duration_s)
            except asyncio.TimeoutError:
                self._logger.info(f"Session duration of {self.duration_s:.0f}s reached")
            if self._camera_failure is not None:
                raise self._camera_failure
            return True
        finally:
            self.stop()

    def _read_frame(self):
        try:
            return self._camera.latest_frame()
        except CameraError as e:
            if self._camera_failure is None:
                self._logger.error(f"Camera failure: {e}")
                self._camera_failure = e
                self.request_stop()
            return None

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def stop(self) -> None:
        """Release the loop and camera. Safe to call more than once."""
        if self._loop is not None:
            self._loop.deactivate()
            self._loop = None
        self._state_machine.reset()
        if self._camera is not None:
            self._camera.close()
            self._camera = None
        if self._event_log is not None:
            self._event_log.close()

        if self.game.rounds:
            self._logger.info(
                f"Final score after {self.game.rounds} rounds: "
                f"you {self.game.player_score} - AI {self.game.ai_score}"
            )

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        signals = [signal.SIGINT]
        # SIGTERM is not available on Windows
        if sys.platform != "win32":
            signals.append(signal.SIGTERM)

        for sig in signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except NotImplementedError:
                signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(self._on_signal, s))

    def _on_signal(self, sig) -> None:
        self._logger.info(f"Received shutdown signal ({signal.Signals(sig).name})")
        self.request_stop()

    # ========== Loop callbacks ==========

    def _on_detecting(self, detecting: bool) -> None:
        self._logger.info("Detecting hands" if detecting else "Hand detection stopped")

    def _on_gesture(
        self,
        landmarks: Optional[HandLandmarks],
        gesture: GestureType,
        confidence: float
    ) -> None:
        if gesture.is_motion:
            self._logger.debug(f"Motion: {gesture.value} ({confidence:.2f})")

        if gesture.is_move and gesture != self._candidate:
            self._candidate = gesture
            self._candidate_since = time.perf_counter()
        elif not gesture.is_move:
            self._candidate = None

        self._state_machine.update(gesture, confidence)

    def _on_move_start(self, event: MoveEvent) -> None:
        if self._candidate == event.gesture:
            latency_ms = (time.perf_counter() - self._candidate_since) * 1000
        else:
            latency_ms = 0.0
        outcome = self.game.play(event.gesture, latency_ms)
        self._report(outcome)

    def _on_move_end(self, event: MoveEvent) -> None:
        self._logger.debug(f"Move released: {event.gesture.value}")

    def _report(self, outcome: RoundOutcome) -> None:
        self._logger.info(
            f"Round {outcome.round_number}: you {outcome.user_move.value} vs AI "
            f"{outcome.ai_move.value} -> {outcome.result.value.upper()} "
            f"({outcome.latency_ms:.0f}ms, {outcome.commentary}) "
            f"score {self.game.player_score}-{self.game.ai_score}"
        )
        if self._event_log is not None:
            self._event_log.log_game_result(
                self.profile.player_id,
                GameResultPayload(
                    user_move=outcome.user_move.value,
                    ai_move=outcome.ai_move.value,
                    result=outcome.result.value
                )
            )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="handreflex",
        description="HandReflex - reactive rock-paper-scissors hand gesture detection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0  Success
  1  Profile error (file not found, invalid JSON)
  2  Camera error (camera not available)
  3  Runtime error (no detector backend, unexpected error)

Examples:
  handreflex
  handreflex --profile arcade.json --camera 1
  handreflex --backend cpu --threshold 8 --debug
"""
    )

    parser.add_argument("--profile", "-p", default=None, help="Path to JSON profile file")
    parser.add_argument(
        "--camera", "-c",
        type=int,
        default=-1,
        help="Camera index (default: profile, then auto-detect)"
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--backend", "-b",
        action="append",
        choices=KNOWN_BACKENDS,
        default=None,
        help="Detector backend, repeat for a fallback order (default: gpu then cpu)"
    )
    parser.add_argument("--alpha", type=float, default=None, help="Smoothing factor in (0, 1]")
    parser.add_argument("--gain", type=float, default=None, help="Motion prediction gain")
    parser.add_argument("--threshold", type=float, default=None, help="Motion threshold in pixels per frame")
    parser.add_argument("--player-id", default=None, help="Identifier events are logged under")
    parser.add_argument("--event-log", default=None, help="Event log file (JSON lines)")
    parser.add_argument("--no-event-log", action="store_true", help="Disable the event log")
    parser.add_argument("--model-path", default=None, help="Hand landmarker .task model file")
    parser.add_argument("--duration", type=float, default=None, help="Stop after N seconds")
    parser.add_argument("--no-flip", action="store_true", help="Do not mirror the camera image")

    return parser


def apply_overrides(profile: HandReflexProfile, args: argparse.Namespace) -> HandReflexProfile:
    """
    Apply command line overrides on top of a profile.

    Raises:
        ProfileLoadError: If an override is out of range.
    """
    pipeline = profile.pipeline

    if args.alpha is not None:
        if not 0.0 < args.alpha <= 1.0:
            raise ProfileLoadError(f"--alpha must be in (0, 1], got {args.alpha}")
        pipeline.smoothing.alpha = args.alpha
    if args.gain is not None:
        if args.gain < 0.0:
            raise ProfileLoadError(f"--gain must be non-negative, got {args.gain}")
        pipeline.prediction.gain = args.gain
    if args.threshold is not None:
        if args.threshold <= 0.0:
            raise ProfileLoadError(f"--threshold must be positive, got {args.threshold}")
        pipeline.prediction.threshold = args.threshold
    if args.backend:
        pipeline.loop.backends = tuple(dict.fromkeys(args.backend))
    if args.player_id:
        profile.player_id = args.player_id
    if args.event_log:
        profile.event_log.path = args.event_log
    if args.no_event_log:
        profile.event_log.enabled = False
    if args.no_flip:
        profile.flip_horizontal = False

    return profile


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code.
    """
    args = build_parser().parse_args(argv)

    logger = setup_logging(debug=args.debug)
    logger.info("HandReflex starting...")

    try:
        profile = load_profile(args.profile) if args.profile else create_default_profile()
        profile = apply_overrides(profile, args)
    except ProfileLoadError as e:
        logger.error(f"Failed to load profile: {e}")
        return EXIT_PROFILE_ERROR

    try:
        if args.camera >= 0:
            camera_index = args.camera
        elif profile.selected_camera_index >= 0:
            camera_index = profile.selected_camera_index
        else:
            camera_index = select_camera()
    except CameraError as e:
        logger.error(f"Camera selection failed: {e}")
        return EXIT_CAMERA_ERROR

    app = HandReflexApp(
        profile=profile,
        camera_index=camera_index,
        duration_s=args.duration,
        model_path=args.model_path
    )

    try:
        started = asyncio.run(app.run())
    except CameraError as e:
        logger.error(f"Camera error: {e}")
        return EXIT_CAMERA_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_SUCCESS
    except Exception as e:
        logger.exception(f"Runtime error: {e}")
        return EXIT_RUNTIME_ERROR

    return EXIT_SUCCESS if started else EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
