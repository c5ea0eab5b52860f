"""
Camera frame source for HandReflex.

A background thread keeps grabbing from OpenCV VideoCapture and holds
only the newest frame. The detection loop polls latest_frame(), which
returns each captured frame at most once and None when nothing new has
arrived, so a blocking camera read never stalls the event loop.
"""

import sys
import threading
import time
from typing import Optional

import cv2
import numpy as np

from .config import CAMERA_WIDTH, CAMERA_HEIGHT, CAMERA_FPS, DEFAULT_CAMERA_INDEX
from .logger import get_logger

logger = get_logger("CameraManager")

# Give up after this many consecutive failed grabs
MAX_CONSECUTIVE_FAILURES = 30


class CameraError(Exception):
    """Raised when camera operations fail."""
    pass


def _capture_apis() -> list[int]:
    # DirectShow opens faster on Windows
    if sys.platform == "win32":
        return [cv2.CAP_DSHOW, cv2.CAP_ANY]
    return [cv2.CAP_ANY]


def open_capture(camera_index: int) -> cv2.VideoCapture:
    """
    Open a capture device, trying each platform API in turn.

    Raises:
        CameraError: If no API can open the device.
    """
    for api in _capture_apis():
        capture = cv2.VideoCapture(camera_index, api)
        if capture.isOpened():
            return capture
        capture.release()
        logger.debug(f"Capture API {api} could not open camera {camera_index}")
    raise CameraError(f"Failed to open camera {camera_index}")


class CameraManager:
    """
    Threaded webcam capture serving the newest RGB frame.

    Attributes:
        camera_index: Index of the camera device.
        width: Requested capture width in pixels.
        height: Requested capture height in pixels.
        fps: Requested frame rate.
    """

    def __init__(
        self,
        camera_index: int = DEFAULT_CAMERA_INDEX,
        width: int = CAMERA_WIDTH,
        height: int = CAMERA_HEIGHT,
        fps: int = CAMERA_FPS
    ):
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.fps = fps

        self._capture: Optional[cv2.VideoCapture] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False

        self._frame_lock = threading.Lock()
        self._latest: Optional[np.ndarray] = None
        self._latest_seq = 0
        self._served_seq = 0
        self._failed_reads = 0
        self._error: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._running

    @property
    def frame_count(self) -> int:
        """Frames captured since open()."""
        with self._frame_lock:
            return self._latest_seq

    def open(self) -> None:
        """
        Open the device and start the capture thread.

        Raises:
            CameraError: If camera cannot be opened.
        """
        if self._running:
            logger.warning("Camera already open, closing first")
            self.close()

        logger.info(f"Opening camera {self.camera_index}...")
        capture = open_capture(self.camera_index)

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        capture.set(cv2.CAP_PROP_FPS, self.fps)
        capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        actual_w = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info(f"Camera opened: {actual_w}x{actual_h} @ {capture.get(cv2.CAP_PROP_FPS):.1f} FPS")
        if (actual_w, actual_h) != (self.width, self.height):
            logger.warning(f"Requested {self.width}x{self.height}, got {actual_w}x{actual_h}")

        self._capture = capture
        with self._frame_lock:
            self._latest = None
            self._latest_seq = 0
            self._served_seq = 0
        self._failed_reads = 0
        self._error = None

        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, daemon=True, name="CameraCapture")
        self._thread.start()

    def close(self) -> None:
        """Stop the capture thread and release the device."""
        if not self._running and self._capture is None:
            return

        self._running = False
        if self._thread:
            self._thread.join(timeout=1.0)
            if self._thread.is_alive():
                logger.warning("Camera thread did not exit cleanly")
            self._thread = None

        if self._capture is not None:
            self._capture.release()
            self._capture = None
        logger.info(f"Camera closed ({self.frame_count} frames, {self._failed_reads} failed reads)")

    def latest_frame(self) -> Optional[np.ndarray]:
        """
        Newest RGB frame not yet served, or None if none has arrived.

        Raises:
            CameraError: If the camera is closed or the capture thread gave up.
        """
        if self._error:
            raise CameraError(self._error)
        if not self._running:
            raise CameraError("Camera is not open")

        with self._frame_lock:
            if self._latest is None or self._latest_seq == self._served_seq:
                return None
            self._served_seq = self._latest_seq
            return self._latest

    def _capture_loop(self) -> None:
        consecutive_failures = 0
        while self._running:
            ret, frame = self._capture.read()
            if not ret or frame is None:
                self._failed_reads += 1
                consecutive_failures += 1
                if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                    self._error = f"Camera {self.camera_index} stopped delivering frames"
                    logger.error(self._error)
                    self._running = False
                    return
                time.sleep(0.01)
                continue

            consecutive_failures = 0
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            with self._frame_lock:
                self._latest = rgb
                self._latest_seq += 1

    def __enter__(self) -> "CameraManager":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def list_available_cameras(max_index: int = 10) -> list[int]:
    """
    Enumerate available camera indices.

    Args:
        max_index: Maximum index to probe.

    Returns:
        List of available camera indices.
    """
    available = []
    api = _capture_apis()[0]

    for i in range(max_index):
        cap = cv2.VideoCapture(i, api)
        if cap.isOpened():
            available.append(i)
        cap.release()

    logger.debug(f"Available cameras: {available}")
    return available


def select_camera(preferred_index: int = -1, max_index: int = 10) -> int:
    """
    Select the best available camera.

    Args:
        preferred_index: Preferred camera index (-1 for auto).
        max_index: Maximum index to probe.

    Returns:
        Selected camera index.

    Raises:
        CameraError: If no camera is available.
    """
    available = list_available_cameras(max_index)

    if not available:
        raise CameraError("No cameras available")

    if preferred_index in available:
        logger.info(f"Using preferred camera index: {preferred_index}")
        return preferred_index
    if preferred_index >= 0:
        logger.warning(f"Preferred camera {preferred_index} not available, using {available[0]}")

    selected = available[0]
    logger.info(f"Auto-selected camera index: {selected}")
    return selected
