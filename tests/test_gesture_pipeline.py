"""Tests for the per-frame gesture pipeline."""

import pytest

from handreflex.config import PipelineSettings, SmoothingSettings
from handreflex.gesture_pipeline import GesturePipeline
from handreflex.gesture_types import GestureType
from handreflex.landmarks import HandLandmarks

from helpers import make_paper, make_rock, make_scissors


class TestGesturePipeline:
    def test_no_observation_is_none(self):
        event = GesturePipeline().process(None)
        assert event.gesture == GestureType.NONE
        assert event.confidence == 0.0
        assert event.landmarks is None

    def test_static_hand_classified(self):
        pipeline = GesturePipeline()
        events = [pipeline.process(make_scissors()) for _ in range(5)]
        assert all(e.gesture == GestureType.SCISSORS for e in events)
        assert all(e.confidence == pytest.approx(0.92) for e in events)

    def test_first_frame_has_no_prediction(self):
        event = GesturePipeline().process(make_rock())
        assert event.gesture == GestureType.ROCK
        assert event.prediction is None

    def test_fast_downward_motion_wins_over_pose(self):
        pipeline = GesturePipeline()
        pipeline.process(make_rock(wrist=(320.0, 400.0)))
        event = pipeline.process(make_rock(wrist=(320.0, 440.0)))

        # smoothed y: 400 -> 418, residual 0.85 * 18
        assert event.gesture == GestureType.MOVING_DOWN
        assert event.prediction.predicted_velocity == pytest.approx(15.3)
        assert event.confidence == 1.0

    def test_upward_motion(self):
        pipeline = GesturePipeline()
        pipeline.process(make_paper(wrist=(320.0, 400.0)))
        event = pipeline.process(make_paper(wrist=(320.0, 380.0)))
        assert event.gesture == GestureType.MOVING_UP
        assert 0.0 < event.confidence <= 1.0

    def test_slow_drift_keeps_pose(self):
        pipeline = GesturePipeline()
        y = 400.0
        for _ in range(6):
            event = pipeline.process(make_paper(wrist=(320.0, y)))
            y += 2.0
        assert event.gesture == GestureType.PAPER

    def test_horizontal_motion_ignored(self):
        pipeline = GesturePipeline()
        pipeline.process(make_scissors(wrist=(100.0, 300.0)))
        event = pipeline.process(make_scissors(wrist=(400.0, 300.0)))
        assert event.gesture == GestureType.SCISSORS

    def test_malformed_observation_is_unknown(self):
        hand = HandLandmarks(landmarks=make_rock().landmarks[:5])
        event = GesturePipeline().process(hand)
        assert event.gesture == GestureType.UNKNOWN
        assert event.confidence == 0.0

    def test_history_reset_after_hand_lost(self):
        settings = PipelineSettings(smoothing=SmoothingSettings(lost_reset_frames=10))
        pipeline = GesturePipeline(settings)
        pipeline.process(make_rock(wrist=(320.0, 400.0)))
        pipeline.process(make_rock(wrist=(320.0, 400.0)))
        for _ in range(10):
            pipeline.process(None)

        # History is gone, so the jump is not read as motion
        event = pipeline.process(make_rock(wrist=(320.0, 100.0)))
        assert event.gesture == GestureType.ROCK
        assert event.landmarks.wrist.y == pytest.approx(100.0)

    def test_short_gap_keeps_history(self):
        pipeline = GesturePipeline()
        pipeline.process(make_rock(wrist=(320.0, 400.0)))
        pipeline.process(make_rock(wrist=(320.0, 400.0)))
        for _ in range(3):
            pipeline.process(None)

        event = pipeline.process(make_rock(wrist=(320.0, 100.0)))
        assert event.gesture == GestureType.MOVING_UP

    def test_confidence_in_range(self):
        pipeline = GesturePipeline()
        hands = [make_rock(wrist=(320.0, y)) for y in (400.0, 100.0, 460.0, 460.0)]
        for hand in hands + [None]:
            event = pipeline.process(hand)
            assert 0.0 <= event.confidence <= 1.0

    def test_reset(self):
        pipeline = GesturePipeline()
        pipeline.process(make_rock())
        pipeline.process(make_rock())
        pipeline.reset()
        assert pipeline.last_prediction is None
        assert pipeline.frame_count == 2
