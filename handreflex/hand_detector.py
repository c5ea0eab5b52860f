"""
Hand landmark oracle backed by MediaPipe.

Backends:
    "gpu"       - Tasks API HandLandmarker with the GPU delegate
    "cpu"       - Tasks API HandLandmarker with the CPU delegate
    "solutions" - legacy mp.solutions.hands (older mediapipe wheels only)

Landmarks are returned in pixel coordinates of the input frame, mirrored
horizontally when flip_horizontal is set.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Sequence

import numpy as np

from .config import (
    FLIP_HORIZONTAL,
    KNOWN_BACKENDS,
    MEDIAPIPE_MODEL_COMPLEXITY,
    MEDIAPIPE_MAX_NUM_HANDS,
    MEDIAPIPE_MIN_DETECTION_CONFIDENCE,
    MEDIAPIPE_MIN_TRACKING_CONFIDENCE,
    MEDIAPIPE_USE_IMAGE_MODE,
)
from .landmarks import HandLandmarks, Landmark
from .logger import get_logger
from .oracle import OracleError, first_available

logger = get_logger("HandDetector")


class HandDetector:
    """
    Synchronous MediaPipe hand detector for a single backend.

    Not thread-safe: every call must come from the same worker thread.
    """

    def __init__(
        self,
        backend: str = "cpu",
        model_complexity: int = MEDIAPIPE_MODEL_COMPLEXITY,
        max_num_hands: int = MEDIAPIPE_MAX_NUM_HANDS,
        min_detection_confidence: float = MEDIAPIPE_MIN_DETECTION_CONFIDENCE,
        min_tracking_confidence: float = MEDIAPIPE_MIN_TRACKING_CONFIDENCE,
        use_image_mode: bool = MEDIAPIPE_USE_IMAGE_MODE,
        flip_horizontal: bool = FLIP_HORIZONTAL,
        model_path: Optional[str] = None
    ):
        """
        Initialize hand detector.

        Args:
            backend: One of "gpu", "cpu" or "solutions".
            model_complexity: Model complexity (0=Lite, 1=Full). Solutions API only.
            max_num_hands: Maximum number of hands to detect.
            min_detection_confidence: Minimum detection confidence.
            min_tracking_confidence: Minimum tracking confidence.
            use_image_mode: Use IMAGE mode instead of VIDEO mode (Tasks API only).
                           IMAGE mode processes each frame independently.
                           VIDEO mode maintains tracking state between frames.
            flip_horizontal: Mirror x coordinates (selfie view).
            model_path: Explicit .task model file. Downloaded if None.

        Raises:
            OracleError: If the backend name is not recognised.
        """
        if backend not in KNOWN_BACKENDS:
            raise OracleError(f"Unknown backend '{backend}' (expected one of {', '.join(KNOWN_BACKENDS)})")

        self.backend = backend
        self.model_complexity = model_complexity
        self.max_num_hands = max_num_hands
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.use_image_mode = use_image_mode
        self.flip_horizontal = flip_horizontal
        self.model_path = model_path

        self._hands = None  # Solutions API Hands object
        self._landmarker = None  # Tasks API HandLandmarker object
        self._is_initialized = False
        self._frame_count = 0
        self._last_timestamp_ms = 0

    @property
    def uses_tasks_api(self) -> bool:
        return self.backend != "solutions"

    def initialize(self) -> None:
        """Load the MediaPipe model for this backend."""
        if self._is_initialized:
            return

        if self.uses_tasks_api:
            self._initialize_tasks_api()
        else:
            self._initialize_solutions_api()

        self._is_initialized = True

    def _initialize_solutions_api(self) -> None:
        import mediapipe as mp

        if not (hasattr(mp, "solutions") and hasattr(mp.solutions, "hands")):
            raise OracleError("mediapipe.solutions.hands is not available in this mediapipe build")

        logger.debug("Initializing MediaPipe Hands (Solutions API)...")
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=self.use_image_mode,
            model_complexity=self.model_complexity,
            max_num_hands=self.max_num_hands,
            min_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence
        )
        logger.info("MediaPipe Hands initialized (Solutions API)")

    def _initialize_tasks_api(self) -> None:
        from mediapipe.tasks import python as mp_python
        from mediapipe.tasks.python import vision as mp_vision

        from .model_manager import ensure_hand_landmarker_model

        model_path = ensure_hand_landmarker_model(self.model_path)

        delegate = (
            mp_python.BaseOptions.Delegate.GPU
            if self.backend == "gpu"
            else mp_python.BaseOptions.Delegate.CPU
        )
        base_options = mp_python.BaseOptions(model_asset_path=model_path, delegate=delegate)

        if self.use_image_mode:
            running_mode = mp_vision.RunningMode.IMAGE
            mode_str = "IMAGE"
        else:
            running_mode = mp_vision.RunningMode.VIDEO
            mode_str = "VIDEO"

        options = mp_vision.HandLandmarkerOptions(
            base_options=base_options,
            running_mode=running_mode,
            num_hands=self.max_num_hands,
            min_hand_detection_confidence=self.min_detection_confidence,
            min_hand_presence_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence
        )

        self._landmarker = mp_vision.HandLandmarker.create_from_options(options)
        self._last_timestamp_ms = 0
        logger.info(f"MediaPipe HandLandmarker initialized ({self.backend.upper()} delegate, {mode_str} mode)")

    def close(self) -> None:
        """Release MediaPipe resources."""
        if self._hands:
            self._hands.close()
            self._hands = None
        if self._landmarker:
            self._landmarker.close()
            self._landmarker = None
        self._is_initialized = False
        logger.debug(f"HandDetector closed ({self.backend})")

    def detect(self, rgb_image: np.ndarray) -> Optional[HandLandmarks]:
        """
        Detect hand landmarks in an RGB image.

        Args:
            rgb_image: RGB image as numpy array (H, W, 3).

        Returns:
            HandLandmarks in pixel coordinates if a hand is detected, None otherwise.

        Raises:
            OracleError: If the detector is closed or the frame is not an image.
        """
        if not self._is_initialized:
            raise OracleError("HandDetector is not initialized")
        if not isinstance(rgb_image, np.ndarray) or rgb_image.ndim != 3 or rgb_image.shape[2] != 3:
            raise OracleError(f"Expected an (H, W, 3) RGB frame, got {getattr(rgb_image, 'shape', type(rgb_image))}")

        self._frame_count += 1
        height, width = rgb_image.shape[:2]

        if self.uses_tasks_api:
            found = self._detect_tasks_api(rgb_image)
        else:
            found = self._detect_solutions_api(rgb_image)

        if found is None:
            return None
        points, handedness, score = found
        return self._to_pixels(points, width, height, handedness, score)

    def _detect_solutions_api(self, rgb_image: np.ndarray):
        results = self._hands.process(rgb_image)
        if not results.multi_hand_landmarks:
            return None

        # Only the first hand is tracked
        points = results.multi_hand_landmarks[0].landmark

        handedness, score = "Right", 1.0
        if results.multi_handedness:
            classification = results.multi_handedness[0].classification[0]
            handedness, score = classification.label, classification.score

        return points, handedness, score

    def _detect_tasks_api(self, rgb_image: np.ndarray):
        import mediapipe as mp

        if not rgb_image.flags["C_CONTIGUOUS"]:
            rgb_image = np.ascontiguousarray(rgb_image)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_image)

        if self.use_image_mode:
            result = self._landmarker.detect(mp_image)
        else:
            result = self._landmarker.detect_for_video(mp_image, self._next_timestamp_ms())

        if not result.hand_landmarks:
            return None

        points = result.hand_landmarks[0]

        handedness, score = "Right", 1.0
        if result.handedness:
            category = result.handedness[0][0]
            handedness, score = category.category_name, category.score

        return points, handedness, score

    def _next_timestamp_ms(self) -> int:
        # VIDEO mode rejects non-increasing timestamps
        now_ms = int(time.monotonic() * 1000)
        self._last_timestamp_ms = max(now_ms, self._last_timestamp_ms + 1)
        return self._last_timestamp_ms

    def _to_pixels(
        self,
        points: Sequence[Any],
        width: int,
        height: int,
        handedness: str,
        score: float
    ) -> HandLandmarks:
        landmarks = []
        for lm in points:
            x = (1.0 - lm.x) * width if self.flip_horizontal else lm.x * width
            landmarks.append(Landmark(x=x, y=lm.y * height, z=lm.z))
        return HandLandmarks(landmarks=landmarks, handedness=handedness, score=score)

    @property
    def frame_count(self) -> int:
        return self._frame_count


class MediaPipeHandle:
    """
    Detector handle owning one HandDetector and its worker thread.

    All MediaPipe calls, including close, run on the handle's single
    worker so the graph is only ever touched from one thread.
    """

    def __init__(self, detector: HandDetector, executor: ThreadPoolExecutor):
        self.detector = detector
        self.backend = detector.backend
        self._executor = executor
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def estimate(self, frame: Any) -> Optional[HandLandmarks]:
        """
        Run hand detection on one RGB frame without blocking the event loop.

        Raises:
            OracleError: If the handle has been disposed or the frame is invalid.
        """
        if self._disposed:
            raise OracleError("Detector handle has been disposed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.detector.detect, frame)

    def dispose(self) -> None:
        """Release the detector. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        try:
            self._executor.submit(self.detector.close)
        except RuntimeError as e:
            logger.warning(f"Detector worker already stopped: {e}")
        self._executor.shutdown(wait=False)
        logger.debug(f"Detector handle disposed ({self.backend})")


class MediaPipeOracle:
    """
    Landmark oracle creating MediaPipe detector handles.

    Example:
        >>> oracle = MediaPipeOracle()
        >>> handle = await oracle.initialize(("gpu", "cpu"))
        >>> landmarks = await handle.estimate(rgb_frame)
    """

    def __init__(
        self,
        model_complexity: int = MEDIAPIPE_MODEL_COMPLEXITY,
        min_detection_confidence: float = MEDIAPIPE_MIN_DETECTION_CONFIDENCE,
        min_tracking_confidence: float = MEDIAPIPE_MIN_TRACKING_CONFIDENCE,
        use_image_mode: bool = MEDIAPIPE_USE_IMAGE_MODE,
        flip_horizontal: bool = FLIP_HORIZONTAL,
        model_path: Optional[str] = None
    ):
        self.model_complexity = model_complexity
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.use_image_mode = use_image_mode
        self.flip_horizontal = flip_horizontal
        self.model_path = model_path

    async def initialize(self, backends: Sequence[str]) -> MediaPipeHandle:
        """
        Create a handle on the first backend that loads.

        Raises:
            BackendUnavailableError: If every backend failed.
        """
        return await first_available(backends, self._create_handle)

    async def _create_handle(self, backend: str) -> MediaPipeHandle:
        detector = HandDetector(
            backend=backend,
            model_complexity=self.model_complexity,
            max_num_hands=1,
            min_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
            use_image_mode=self.use_image_mode,
            flip_horizontal=self.flip_horizontal,
            model_path=self.model_path
        )
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"mediapipe-{backend}")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(executor, detector.initialize)
        except BaseException:
            # On cancellation the worker still finishes initialize(); close runs after it
            executor.submit(detector.close)
            executor.shutdown(wait=False)
            raise
        return MediaPipeHandle(detector, executor)
