"""
MediaPipe model file manager.

Downloads and caches the hand landmarker task file used by the Tasks API
backends ("gpu" and "cpu"). The legacy solutions backend ships its model
inside the mediapipe wheel and does not need this.
"""

import hashlib
import os
import shutil
import sys
import time
import urllib.request
from pathlib import Path
from typing import Optional

from .logger import get_logger

logger = get_logger("ModelManager")

HAND_LANDMARKER_URL = "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/latest/hand_landmarker.task"
HAND_LANDMARKER_FILENAME = "hand_landmarker.task"
HAND_LANDMARKER_SIZE_MB = 7.8

# Anything smaller is a truncated download or an error page
MIN_MODEL_BYTES = 1024 * 1024

HTTP_TIMEOUT_S = 120
READ_BLOCK = 64 * 1024
MAX_ATTEMPTS = 3
BACKOFF_S = 2


def get_model_cache_dir(create: bool = True) -> Path:
    """
    Directory holding downloaded model files.

    HANDREFLEX_MODEL_DIR overrides the platform default.
    """
    override = os.environ.get("HANDREFLEX_MODEL_DIR")
    if override:
        cache_dir = Path(override)
    else:
        if sys.platform == "win32":
            base = os.environ.get("LOCALAPPDATA", os.path.expanduser("~"))
        else:
            base = os.environ.get("XDG_CACHE_HOME", os.path.expanduser("~/.cache"))
        cache_dir = Path(base) / "HandReflex" / "mediapipe_models"

    if create:
        cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(READ_BLOCK), b""):
            digest.update(block)
    return digest.hexdigest()


def is_usable_model(path: Path, expected_sha256: Optional[str] = None) -> bool:
    """
    Check a model file is present, plausibly sized and, if a hash is given, intact.
    """
    if not path.is_file() or path.stat().st_size < MIN_MODEL_BYTES:
        return False
    if expected_sha256 and file_sha256(path) != expected_sha256.lower():
        return False
    return True


def ensure_hand_landmarker_model(
    model_path: Optional[str] = None,
    expected_sha256: Optional[str] = None,
    url: str = HAND_LANDMARKER_URL
) -> str:
    """
    Return a path to a usable hand landmarker model, downloading it if needed.

    A cached file that fails the size or hash check is discarded and
    fetched again.

    Args:
        model_path: Explicit model file. Used as-is when given.
        expected_sha256: Hex digest the cached file must match.
        url: Download location.

    Raises:
        FileNotFoundError: If an explicit model_path does not exist.
        RuntimeError: If every download attempt fails.
    """
    if model_path:
        if not Path(model_path).is_file():
            raise FileNotFoundError(f"Hand landmarker model not found: {model_path}")
        return model_path

    cached = get_model_cache_dir() / HAND_LANDMARKER_FILENAME
    if is_usable_model(cached, expected_sha256):
        logger.debug(f"Using cached model: {cached}")
        return str(cached)
    if cached.exists():
        logger.warning(f"Cached model {cached} is damaged, downloading again")
        cached.unlink()

    logger.info(f"Downloading hand landmarker model (~{HAND_LANDMARKER_SIZE_MB} MB) from {url}")

    last_error: Optional[Exception] = None
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            _fetch(url, cached)
            if not is_usable_model(cached, expected_sha256):
                cached.unlink()
                raise ValueError("downloaded file failed verification")
            logger.info(f"Model saved to {cached}")
            return str(cached)
        except (OSError, ValueError) as e:
            last_error = e
            logger.warning(f"Model download attempt {attempt}/{MAX_ATTEMPTS} failed: {e}")
            if attempt < MAX_ATTEMPTS:
                time.sleep(BACKOFF_S * attempt)

    raise RuntimeError(
        f"Could not download the hand landmarker model after {MAX_ATTEMPTS} attempts"
    ) from last_error


def _fetch(url: str, dest_path: Path) -> None:
    # Write beside the target and rename so a partial file never looks cached
    partial = dest_path.with_name(dest_path.name + ".part")
    request = urllib.request.Request(url, headers={"User-Agent": "HandReflex/1.0"})
    try:
        with urllib.request.urlopen(request, timeout=HTTP_TIMEOUT_S) as response, \
                open(partial, "wb") as out:
            shutil.copyfileobj(response, out, READ_BLOCK)
        partial.replace(dest_path)
    finally:
        if partial.exists():
            partial.unlink()
