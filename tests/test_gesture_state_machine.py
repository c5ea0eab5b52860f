"""Tests for move confirmation."""

from handreflex.gesture_state_machine import GestureState, GestureStateMachine, TrackedGesture
from handreflex.gesture_types import GestureType

from helpers import FakeClock

ROCK, PAPER, NONE = GestureType.ROCK, GestureType.PAPER, GestureType.NONE


def _feed(machine, gesture, frames, confidence=0.92):
    events = []
    for _ in range(frames):
        events.extend(machine.update(gesture, confidence))
    return events


class TestTrackedGesture:
    def test_confirm_and_release(self):
        tracker = TrackedGesture(ROCK, hold_frames=2, release_frames=2)
        assert tracker.update(True) is None
        assert tracker.state == GestureState.PENDING
        assert tracker.update(True) == "start"
        assert tracker.update(True) == "hold"
        assert tracker.update(False) is None
        assert tracker.is_active
        assert tracker.update(False) == "end"
        assert tracker.state == GestureState.IDLE

    def test_flicker_does_not_confirm(self):
        tracker = TrackedGesture(ROCK, hold_frames=3)
        for detected in (True, True, False, True, True, False):
            assert tracker.update(detected) is None

    def test_false_release(self):
        tracker = TrackedGesture(ROCK, hold_frames=1, release_frames=3)
        tracker.update(True)
        tracker.update(False)
        assert tracker.update(True) == "hold"
        assert tracker.state == GestureState.ACTIVE


class TestGestureStateMachine:
    def test_move_confirmed_after_hold_frames(self):
        machine = GestureStateMachine(clock=FakeClock())
        assert _feed(machine, ROCK, 2) == []
        events = _feed(machine, ROCK, 1)
        assert [(e.gesture, e.event_type) for e in events] == [(ROCK, "start")]
        assert machine.active_move == ROCK

    def test_release(self):
        machine = GestureStateMachine(release_frames=4, clock=FakeClock())
        _feed(machine, ROCK, 3)
        assert _feed(machine, NONE, 3, confidence=0.0) == []
        events = _feed(machine, NONE, 1, confidence=0.0)
        assert [(e.gesture, e.event_type) for e in events] == [(ROCK, "end")]
        assert machine.active_move is None

    def test_low_confidence_ignored(self):
        machine = GestureStateMachine(min_confidence=0.5, clock=FakeClock())
        assert _feed(machine, ROCK, 10, confidence=0.3) == []

    def test_motion_frames_do_not_confirm(self):
        machine = GestureStateMachine(clock=FakeClock())
        assert _feed(machine, GestureType.MOVING_UP, 10, confidence=1.0) == []

    def test_new_move_ends_previous(self):
        machine = GestureStateMachine(release_frames=10, clock=FakeClock())
        _feed(machine, ROCK, 3)
        events = _feed(machine, PAPER, 3)
        pairs = [(e.gesture, e.event_type) for e in events]
        assert (PAPER, "start") in pairs
        assert (ROCK, "end") in pairs
        assert machine.active_move == PAPER
        assert not machine.is_gesture_active(ROCK)

    def test_debounce(self):
        clock = FakeClock()
        machine = GestureStateMachine(debounce_ms=250, release_frames=1, clock=clock)
        _feed(machine, ROCK, 3)
        _feed(machine, NONE, 1)

        assert _feed(machine, ROCK, 5) == []

        clock.advance(0.3)
        events = _feed(machine, ROCK, 3)
        assert [(e.gesture, e.event_type) for e in events] == [(ROCK, "start")]

    def test_callbacks(self):
        started, ended = [], []
        machine = GestureStateMachine(release_frames=1, clock=FakeClock())
        machine.set_callbacks(on_start=started.append, on_end=ended.append)
        _feed(machine, PAPER, 3)
        _feed(machine, NONE, 1)
        assert [e.gesture for e in started] == [PAPER]
        assert [e.gesture for e in ended] == [PAPER]

    def test_callback_error_swallowed(self):
        def explode(event):
            raise RuntimeError("handler bug")

        machine = GestureStateMachine(clock=FakeClock())
        machine.set_callbacks(on_start=explode)
        events = _feed(machine, ROCK, 3)
        assert len(events) == 1

    def test_reset(self):
        machine = GestureStateMachine(clock=FakeClock())
        _feed(machine, ROCK, 3)
        machine.reset()
        assert machine.active_move is None
