"""
Reactive detection loop.

Owns the detector handle for one detection session and drives the
gesture pipeline at a throttled rate on a single asyncio event loop.
The awaited oracle call is the only suspension point inside a frame,
and at most one such call is ever in flight.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .config import PipelineSettings
from .event_log import EventSink
from .extrapolator import MotionPrediction
from .gesture_pipeline import GesturePipeline
from .gesture_types import GestureEvent, GestureType
from .landmarks import HandLandmarks
from .logger import get_logger
from .oracle import BackendUnavailableError, DetectorHandle, LandmarkOracle

logger = get_logger("ReactiveLoop")

GestureCallback = Callable[[Optional[HandLandmarks], GestureType, float], None]
DetectingCallback = Callable[[bool], None]
FrameSource = Callable[[], Optional[Any]]


@dataclass
class LoopStats:
    """Frame counters for one detection session."""
    admitted: int = 0
    throttled: int = 0
    not_ready: int = 0
    failed: int = 0
    emitted: int = 0


class DetectionSession:
    """
    State private to one activation: the detector handle, the pipeline
    and the loop counters. Discarded on deactivation.
    """

    def __init__(self, handle: DetectorHandle, settings: PipelineSettings):
        self.handle = handle
        self.pipeline = GesturePipeline(settings)
        self.stats = LoopStats()
        self.last_admitted: Optional[float] = None
        self.started_at = time.perf_counter()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Dispose the handle exactly once and clear pipeline state."""
        if self._closed:
            return
        self._closed = True
        try:
            self.handle.dispose()
        except Exception as e:
            logger.error(f"Error disposing detector: {e}")
        self.pipeline.reset()


class ReactiveLoop:
    """
    Lifecycle and cadence controller for hand gesture detection.

    Example:
        >>> loop = ReactiveLoop(oracle, camera.read_frame_rgb, on_gesture, on_detecting)
        >>> async with loop:
        ...     await asyncio.sleep(10)
    """

    def __init__(
        self,
        oracle: LandmarkOracle,
        frame_source: FrameSource,
        on_gesture: GestureCallback,
        set_is_detecting: Optional[DetectingCallback] = None,
        settings: Optional[PipelineSettings] = None,
        event_sink: Optional[EventSink] = None,
        sink_id: str = "anonymous",
        clock: Callable[[], float] = time.perf_counter
    ):
        """
        Initialize the loop. Nothing is acquired until activate().

        Args:
            oracle: Landmark oracle used to create the detector handle.
            frame_source: Returns the current frame, or None if none is ready.
            on_gesture: Called as (landmarks, gesture, confidence) once per admitted frame.
            set_is_detecting: Called with True once detecting, False when stopped.
            settings: Pipeline settings. Uses defaults if None.
            event_sink: Optional sink for high-confidence classifications.
            sink_id: Identifier the sink records events under.
            clock: Monotonic time source in seconds.
        """
        self.settings = settings or PipelineSettings()
        self._oracle = oracle
        self._frame_source = frame_source
        self._on_gesture = on_gesture
        self._set_is_detecting = set_is_detecting
        self._event_sink = event_sink
        self._sink_id = sink_id
        self._clock = clock

        self._session: Optional[DetectionSession] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._is_detecting = False
        self._last_event: Optional[GestureEvent] = None
        self._last_stats: Optional[LoopStats] = None

    # ========== Properties ==========

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def is_detecting(self) -> bool:
        return self._is_detecting

    @property
    def backend(self) -> Optional[str]:
        """Name of the backend serving the current session."""
        if self._session is None:
            return None
        return getattr(self._session.handle, "backend", None)

    @property
    def last_event(self) -> Optional[GestureEvent]:
        return self._last_event

    @property
    def last_prediction(self) -> Optional[MotionPrediction]:
        """Residual reflection of the current session's latest hand frame."""
        if self._session is None:
            return None
        return self._session.pipeline.last_prediction

    @property
    def stats(self) -> Optional[LoopStats]:
        """Counters of the current session, or of the last one once stopped."""
        if self._session is not None:
            return self._session.stats
        return self._last_stats

    # ========== Lifecycle ==========

    async def activate(self) -> bool:
        """
        Acquire a detector handle and start the poll loop.

        Returns:
            True if detection is running, False if no backend was available
            or the loop was deactivated while initializing.
        """
        if self._session is not None:
            logger.debug("Loop already active")
            return True

        self._generation += 1
        generation = self._generation
        backends = tuple(self.settings.loop.backends)
        logger.info(f"Activating detection loop (backends={', '.join(backends)})")

        try:
            handle = await self._oracle.initialize(backends)
        except BackendUnavailableError as e:
            logger.error(f"Hand detector unavailable: {e}")
            self._notify_detecting(False, force=True)
            return False
        except Exception as e:
            logger.exception(f"Error loading hand detector: {e}")
            self._notify_detecting(False, force=True)
            return False

        if generation != self._generation:
            logger.info("Loop deactivated during initialization - releasing detector")
            try:
                handle.dispose()
            except Exception as e:
                logger.error(f"Error disposing detector: {e}")
            return False

        session = DetectionSession(handle, self.settings)
        self._session = session
        self._task = asyncio.get_running_loop().create_task(self._run(session))
        logger.info(f"Hand detector loaded (backend={getattr(handle, 'backend', 'unknown')})")
        self._notify_detecting(True)
        return True

    def deactivate(self) -> None:
        """
        Stop the loop, release the detector and clear session state.

        Safe to call repeatedly and before activate() has completed.
        """
        self._generation += 1

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

        session, self._session = self._session, None
        if session is not None:
            session.close()
            self._last_stats = session.stats
            self._log_session_stats(session)

        self._notify_detecting(False)

    async def set_active(self, active: bool) -> bool:
        """
        Apply the activation flag.

        Args:
            active: True to activate, False to deactivate.

        Returns:
            Whether the loop is active afterwards.
        """
        if active:
            return await self.activate()
        self.deactivate()
        return False

    async def __aenter__(self) -> "ReactiveLoop":
        await self.activate()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.deactivate()

    # ========== Poll loop ==========

    async def _run(self, session: DetectionSession) -> None:
        """Schedule one tick per refresh interval until the session ends."""
        try:
            while session is self._session:
                await asyncio.sleep(self.settings.loop.tick_interval_s)
                if session is not self._session:
                    break
                await self._tick(session)
        except asyncio.CancelledError:
            logger.debug("Detection loop cancelled")
            raise
        except Exception as e:
            logger.exception(f"Detection loop stopped unexpectedly: {e}")
            if session is self._session:
                self._task = None
                self.deactivate()

    async def _tick(self, session: DetectionSession) -> None:
        """Admit, estimate and emit one frame if the throttle allows it."""
        now = self._clock()
        min_interval = self.settings.loop.min_frame_interval_s
        if session.last_admitted is not None and now - session.last_admitted < min_interval:
            session.stats.throttled += 1
            return

        try:
            frame = self._frame_source()
        except Exception as e:
            logger.warning(f"Frame source error: {e}")
            frame = None
        if frame is None:
            session.stats.not_ready += 1
            return

        session.last_admitted = now
        session.stats.admitted += 1

        try:
            observation = await session.handle.estimate(frame)
        except Exception as e:
            session.stats.failed += 1
            logger.error(f"Error during hand estimation: {e}")
            observation = None

        if session is not self._session or session.closed:
            logger.debug("Discarding estimate from a closed session")
            return

        event = session.pipeline.process(observation)
        session.stats.emitted += 1
        self._emit(event)

    def _emit(self, event: GestureEvent) -> None:
        """Hand the event to the caller and, if eligible, to the sink."""
        self._last_event = event
        try:
            self._on_gesture(event.landmarks, event.gesture, event.confidence)
        except Exception as e:
            logger.error(f"Error in gesture callback: {e}")

        if (
            self._event_sink is not None
            and event.gesture.is_resolved
            and event.landmarks is not None
            and event.confidence >= self.settings.loop.sink_min_confidence
        ):
            try:
                self._event_sink.record_gesture(
                    self._sink_id,
                    event.gesture.value,
                    event.confidence,
                    event.landmarks.to_vector(),
                )
            except Exception as e:
                logger.error(f"Error offering event to sink: {e}")

    # ========== Helpers ==========

    def _notify_detecting(self, detecting: bool, force: bool = False) -> None:
        if detecting == self._is_detecting and not force:
            return
        self._is_detecting = detecting
        if self._set_is_detecting is None:
            return
        try:
            self._set_is_detecting(detecting)
        except Exception as e:
            logger.error(f"Error in detecting-state callback: {e}")

    def _log_session_stats(self, session: DetectionSession) -> None:
        stats = session.stats
        elapsed = time.perf_counter() - session.started_at
        rate = stats.admitted / elapsed if elapsed > 0 else 0.0
        logger.info(
            f"Detection stopped. Admitted {stats.admitted} frames in {elapsed:.1f}s "
            f"({rate:.1f} Hz), throttled {stats.throttled}, failed {stats.failed}"
        )
