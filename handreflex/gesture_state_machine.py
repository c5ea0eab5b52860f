"""
Move confirmation state machine for HandReflex.

Tracks hold/release pairs for rock, paper and scissors with debouncing,
so a single flickering frame never counts as a thrown move. Motion and
ambiguous frames count as "not detected" for every move.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Optional

from .config import (
    MOVE_HOLD_FRAMES,
    MOVE_RELEASE_FRAMES,
    MOVE_DEBOUNCE_MS,
    MOVE_MIN_CONFIDENCE,
)
from .game_rules import MOVES
from .gesture_types import GestureType
from .logger import get_logger

logger = get_logger("GestureStateMachine")


class GestureState(Enum):
    """State of a tracked move."""
    IDLE = auto()       # Move not seen
    PENDING = auto()    # Move seen, awaiting confirmation
    ACTIVE = auto()     # Move confirmed and held
    RELEASING = auto()  # Move gone, awaiting release confirmation


@dataclass
class MoveEvent:
    """Event emitted when a move's state changes."""
    gesture: GestureType
    event_type: str  # "start", "end", "hold"
    confidence: float = 1.0
    timestamp: float = field(default_factory=time.time)


class TrackedGesture:
    """
    Hold/release tracker for one move.

    A move starts after hold_frames consecutive detections and ends after
    release_frames consecutive misses. A detection while releasing cancels
    the release.
    """

    def __init__(
        self,
        gesture_type: GestureType,
        hold_frames: int = MOVE_HOLD_FRAMES,
        release_frames: int = MOVE_RELEASE_FRAMES
    ):
        self.gesture_type = gesture_type
        self.hold_frames = max(1, hold_frames)
        self.release_frames = max(1, release_frames)

        self.state = GestureState.IDLE
        # Consecutive frames in the current PENDING or RELEASING phase
        self._streak = 0

    def _enter(self, state: GestureState) -> None:
        self.state = state
        self._streak = 0

    def update(self, detected: bool) -> Optional[str]:
        """
        Advance by one frame.

        Returns:
            "start", "hold", "end" or None.
        """
        if detected:
            if self.is_active:
                self._enter(GestureState.ACTIVE)
                return "hold"
            self._streak = self._streak + 1 if self.state == GestureState.PENDING else 1
            if self._streak >= self.hold_frames:
                self._enter(GestureState.ACTIVE)
                logger.debug(f"Move {self.gesture_type.name} started")
                return "start"
            self.state = GestureState.PENDING
            return None

        if self.state == GestureState.PENDING:
            self._enter(GestureState.IDLE)
        elif self.is_active:
            self._streak = self._streak + 1 if self.state == GestureState.RELEASING else 1
            if self._streak >= self.release_frames:
                self._enter(GestureState.IDLE)
                logger.debug(f"Move {self.gesture_type.name} ended")
                return "end"
            self.state = GestureState.RELEASING
        return None

    @property
    def is_active(self) -> bool:
        return self.state in (GestureState.ACTIVE, GestureState.RELEASING)

    def reset(self) -> None:
        self._enter(GestureState.IDLE)


class GestureStateMachine:
    """
    Confirms thrown moves from the per-frame classification stream.

    At most one move is active at a time: confirming a new move
    force-ends the previous one.
    """

    def __init__(
        self,
        debounce_ms: int = MOVE_DEBOUNCE_MS,
        hold_frames: int = MOVE_HOLD_FRAMES,
        release_frames: int = MOVE_RELEASE_FRAMES,
        min_confidence: float = MOVE_MIN_CONFIDENCE,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize move state machine.

        Args:
            debounce_ms: Minimum time between activations of the same move.
            hold_frames: Frames required to confirm a move.
            release_frames: Frames required to confirm release.
            min_confidence: Frames below this confidence count as not detected.
            clock: Time source in seconds.
        """
        self.debounce_ms = debounce_ms
        self.min_confidence = min_confidence
        self._clock = clock

        self._tracked: dict[GestureType, TrackedGesture] = {
            move: TrackedGesture(move, hold_frames=hold_frames, release_frames=release_frames)
            for move in MOVES
        }
        self._last_activation_time: dict[GestureType, float] = {}

        self._on_start: Optional[Callable[[MoveEvent], None]] = None
        self._on_end: Optional[Callable[[MoveEvent], None]] = None
        self._on_hold: Optional[Callable[[MoveEvent], None]] = None

        logger.debug(
            f"GestureStateMachine initialized (debounce={debounce_ms}ms, "
            f"hold={hold_frames}, release={release_frames})"
        )

    def set_callbacks(
        self,
        on_start: Optional[Callable[[MoveEvent], None]] = None,
        on_end: Optional[Callable[[MoveEvent], None]] = None,
        on_hold: Optional[Callable[[MoveEvent], None]] = None
    ) -> None:
        """
        Set event callbacks.

        Args:
            on_start: Called when a move is confirmed.
            on_end: Called when a move is released.
            on_hold: Called each frame while a move is held.
        """
        self._on_start = on_start
        self._on_end = on_end
        self._on_hold = on_hold

    def _candidate(self, gesture: GestureType, confidence: float, now: float) -> Optional[GestureType]:
        # The move this frame counts as a detection of, if any
        tracker = self._tracked.get(gesture)
        if tracker is None or confidence < self.min_confidence:
            return None
        if not tracker.is_active:
            last = self._last_activation_time.get(gesture)
            if last is not None and (now - last) * 1000 < self.debounce_ms:
                return None
        return gesture

    def update(self, gesture: GestureType, confidence: float) -> list[MoveEvent]:
        """
        Feed one frame's classification.

        Args:
            gesture: Classification from the detection loop.
            confidence: Its confidence.

        Returns:
            Move events generated by this frame, in callback order.
        """
        now = self._clock()
        candidate = self._candidate(gesture, confidence, now)
        events: list[MoveEvent] = []
        started: Optional[GestureType] = None

        for move, tracker in self._tracked.items():
            detected = move == candidate
            event_type = tracker.update(detected)
            if event_type is None:
                continue
            if event_type == "start":
                self._last_activation_time[move] = now
                started = move
            events.append(MoveEvent(
                gesture=move,
                event_type=event_type,
                confidence=confidence if detected else 1.0,
                timestamp=now
            ))

        # Only one move is held at a time
        if started is not None:
            for move, tracker in self._tracked.items():
                if move != started and tracker.is_active:
                    tracker.reset()
                    events.append(MoveEvent(gesture=move, event_type="end", timestamp=now))
                    logger.debug(f"{started.name} confirmed, force-ended {move.name}")

        for event in events:
            self._fire_callback(event)
        return events

    def _fire_callback(self, event: MoveEvent) -> None:
        handler = {
            "start": self._on_start,
            "end": self._on_end,
            "hold": self._on_hold,
        }.get(event.event_type)
        if handler is None:
            return
        try:
            handler(event)
        except Exception as e:
            logger.error(f"Move {event.event_type} callback failed: {e}")

    @property
    def active_move(self) -> Optional[GestureType]:
        """Currently held move, if any."""
        for gesture_type, tracker in self._tracked.items():
            if tracker.is_active:
                return gesture_type
        return None

    def is_gesture_active(self, gesture_type: GestureType) -> bool:
        tracker = self._tracked.get(gesture_type)
        return tracker.is_active if tracker else False

    def reset(self) -> None:
        """Reset all tracked moves."""
        for tracker in self._tracked.values():
            tracker.reset()
        self._last_activation_time.clear()
        logger.debug("GestureStateMachine reset")
