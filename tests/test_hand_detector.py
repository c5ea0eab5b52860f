"""Tests for the MediaPipe oracle adapter that do not need a model."""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import numpy as np
import pytest

from handreflex.hand_detector import HandDetector, MediaPipeHandle, MediaPipeOracle
from handreflex.oracle import BackendUnavailableError, OracleError


def _normalized_points(n=21):
    return [SimpleNamespace(x=0.25, y=0.5, z=-0.1) for _ in range(n)]


class FakeDetector:
    backend = "cpu"

    def __init__(self, result=None):
        self.result = result
        self.frames = []
        self.closed = threading.Event()
        self.close_thread = None

    def detect(self, frame):
        self.frames.append(frame)
        return self.result

    def close(self):
        self.close_thread = threading.current_thread().name
        self.closed.set()


class TestHandDetector:
    def test_unknown_backend(self):
        with pytest.raises(OracleError):
            HandDetector(backend="webgl")

    def test_detect_requires_initialize(self):
        detector = HandDetector(backend="cpu")
        with pytest.raises(OracleError):
            detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))

    def test_pixel_coordinates(self):
        detector = HandDetector(backend="cpu", flip_horizontal=False)
        hand = detector._to_pixels(_normalized_points(), 640, 480, "Left", 0.8)
        assert hand.is_complete
        assert hand.wrist.x == pytest.approx(160.0)
        assert hand.wrist.y == pytest.approx(240.0)
        assert hand.handedness == "Left"
        assert hand.score == pytest.approx(0.8)

    def test_horizontal_flip(self):
        detector = HandDetector(backend="cpu", flip_horizontal=True)
        hand = detector._to_pixels(_normalized_points(), 640, 480, "Right", 1.0)
        assert hand.wrist.x == pytest.approx(480.0)
        assert hand.wrist.y == pytest.approx(240.0)

    def test_video_timestamps_increase(self):
        detector = HandDetector(backend="cpu")
        stamps = [detector._next_timestamp_ms() for _ in range(50)]
        assert all(b > a for a, b in zip(stamps, stamps[1:]))


class TestMediaPipeHandle:
    def test_estimate_runs_detector(self):
        fake = FakeDetector(result="hand")
        handle = MediaPipeHandle(fake, ThreadPoolExecutor(max_workers=1))
        frame = np.zeros((4, 4, 3), dtype=np.uint8)

        assert asyncio.run(handle.estimate(frame)) == "hand"
        assert fake.frames[0] is frame
        handle.dispose()

    def test_dispose_is_idempotent(self):
        fake = FakeDetector()
        handle = MediaPipeHandle(fake, ThreadPoolExecutor(max_workers=1, thread_name_prefix="worker"))
        handle.dispose()
        handle.dispose()

        assert handle.disposed
        assert fake.closed.wait(timeout=2.0)
        assert fake.close_thread.startswith("worker")

    def test_estimate_after_dispose(self):
        handle = MediaPipeHandle(FakeDetector(), ThreadPoolExecutor(max_workers=1))
        handle.dispose()
        with pytest.raises(OracleError):
            asyncio.run(handle.estimate(np.zeros((4, 4, 3), dtype=np.uint8)))


class TestMediaPipeOracle:
    def test_unknown_backends_unavailable(self):
        oracle = MediaPipeOracle()
        with pytest.raises(BackendUnavailableError) as exc_info:
            asyncio.run(oracle.initialize(["webgl", "metal"]))
        assert set(exc_info.value.failures) == {"webgl", "metal"}

    def test_cancelled_initialize_closes_detector(self, monkeypatch):
        release = threading.Event()
        closed = threading.Event()
        initialized = []

        def slow_initialize(detector):
            release.wait(2.0)
            initialized.append(detector.backend)

        monkeypatch.setattr(HandDetector, "initialize", slow_initialize)
        monkeypatch.setattr(HandDetector, "close", lambda detector: closed.set())

        async def scenario():
            task = asyncio.create_task(MediaPipeOracle().initialize(("cpu",)))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        # Model load finishes after the caller gave up
        release.set()
        assert closed.wait(2.0)
        assert initialized == ["cpu"]

    def test_failed_initialize_closes_detector(self, monkeypatch):
        closed = threading.Event()

        def broken_initialize(detector):
            raise RuntimeError("delegate not supported")

        monkeypatch.setattr(HandDetector, "initialize", broken_initialize)
        monkeypatch.setattr(HandDetector, "close", lambda detector: closed.set())

        with pytest.raises(BackendUnavailableError):
            asyncio.run(MediaPipeOracle().initialize(("gpu",)))
        assert closed.wait(2.0)
