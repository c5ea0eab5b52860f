"""Hand builders and fake oracle backends for handreflex tests."""

import asyncio
import math
from typing import Iterable, Optional

import numpy as np

from handreflex.landmarks import HandLandmarks, LandmarkIndex, NUM_LANDMARKS
from handreflex.oracle import first_available

ALL_FINGERS = ("index", "middle", "ring", "pinky")

# x offset of each finger column relative to the wrist, in pixels
_FINGER_X = {"index": -30.0, "middle": -10.0, "ring": 10.0, "pinky": 30.0}
_FINGER_BASE = {
    "index": LandmarkIndex.INDEX_MCP,
    "middle": LandmarkIndex.MIDDLE_MCP,
    "ring": LandmarkIndex.RING_MCP,
    "pinky": LandmarkIndex.PINKY_MCP,
}


def make_hand(
    extended: Iterable[str] = (),
    thumb_extended: bool = False,
    wrist: tuple[float, float] = (320.0, 400.0),
    angle_deg: float = 0.0,
    scale: float = 1.0
) -> HandLandmarks:
    """
    Build a 21-point hand in pixel coordinates, fingers pointing up.

    Args:
        extended: Non-thumb fingers to extend ("index", "middle", "ring", "pinky").
        thumb_extended: Stick the thumb out sideways.
        wrist: Wrist position.
        angle_deg: In-plane rotation about the wrist.
        scale: Hand size multiplier.
    """
    extended = set(extended)
    points = np.zeros((NUM_LANDMARKS, 3), dtype=np.float64)

    for finger, x in _FINGER_X.items():
        base = _FINGER_BASE[finger]
        points[base] = [x, -60.0, 0.0]       # MCP
        points[base + 1] = [x, -90.0, 0.0]   # PIP
        if finger in extended:
            points[base + 2] = [x, -110.0, 0.0]  # DIP
            points[base + 3] = [x, -130.0, 0.0]  # TIP
        else:
            points[base + 2] = [x, -80.0, 0.0]
            points[base + 3] = [x, -70.0, 0.0]

    points[LandmarkIndex.THUMB_CMC] = [-25.0, -15.0, 0.0]
    points[LandmarkIndex.THUMB_MCP] = [-45.0, -30.0, 0.0]
    if thumb_extended:
        points[LandmarkIndex.THUMB_IP] = [-70.0, -45.0, 0.0]
        points[LandmarkIndex.THUMB_TIP] = [-95.0, -55.0, 0.0]
    else:
        points[LandmarkIndex.THUMB_IP] = [-40.0, -50.0, 0.0]
        points[LandmarkIndex.THUMB_TIP] = [-25.0, -60.0, 0.0]

    theta = math.radians(angle_deg)
    rotation = np.array([
        [math.cos(theta), -math.sin(theta), 0.0],
        [math.sin(theta), math.cos(theta), 0.0],
        [0.0, 0.0, 1.0],
    ])
    points = points @ rotation.T * scale
    points[:, 0] += wrist[0]
    points[:, 1] += wrist[1]

    return HandLandmarks.from_array(points)


def make_rock(**kwargs) -> HandLandmarks:
    return make_hand(extended=(), **kwargs)


def make_paper(**kwargs) -> HandLandmarks:
    return make_hand(extended=ALL_FINGERS, thumb_extended=True, **kwargs)


def make_scissors(**kwargs) -> HandLandmarks:
    return make_hand(extended=("index", "middle"), **kwargs)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHandle:
    """
    Detector handle returning scripted observations.

    Each script entry is a HandLandmarks, None, or an Exception to raise.
    The last entry repeats once the script is exhausted.
    """

    def __init__(self, backend: str = "cpu", script: Optional[list] = None, gate: Optional[asyncio.Event] = None):
        self.backend = backend
        self.script = list(script or [None])
        self.gate = gate
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.dispose_count = 0

    async def estimate(self, frame):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            index = min(self.calls, len(self.script) - 1)
            self.calls += 1
            item = self.script[index]
            if isinstance(item, Exception):
                raise item
            return item
        finally:
            self.in_flight -= 1

    def dispose(self) -> None:
        self.dispose_count += 1


class FakeOracle:
    """
    Oracle whose backends either fail or hand out a FakeHandle.

    Args:
        handles: backend name -> FakeHandle. Missing backends fail.
        init_gate: If set, initialize waits on it before returning.
    """

    def __init__(self, handles: Optional[dict] = None, init_gate: Optional[asyncio.Event] = None):
        self.handles = handles or {}
        self.init_gate = init_gate
        self.attempts: list[str] = []

    async def initialize(self, backends):
        return await first_available(backends, self._create)

    async def _create(self, backend: str):
        self.attempts.append(backend)
        if self.init_gate is not None:
            await self.init_gate.wait()
        if backend not in self.handles:
            raise RuntimeError(f"{backend} backend not supported")
        return self.handles[backend]


class GestureRecorder:
    """Collects on_gesture and set_is_detecting callbacks."""

    def __init__(self):
        self.events: list[tuple] = []
        self.detecting: list[bool] = []

    def on_gesture(self, landmarks, gesture, confidence) -> None:
        self.events.append((landmarks, gesture, confidence))

    def set_is_detecting(self, detecting: bool) -> None:
        self.detecting.append(detecting)

    @property
    def gestures(self) -> list:
        return [g for _, g, _ in self.events]


class RecordingSink:
    """Event sink that keeps every offered record."""

    def __init__(self):
        self.records: list[tuple] = []

    def record_gesture(self, event_id, gesture, confidence, vector) -> None:
        self.records.append((event_id, gesture, confidence, list(vector)))


FRAME = np.zeros((480, 640, 3), dtype=np.uint8)


def frame_source():
    return FRAME
