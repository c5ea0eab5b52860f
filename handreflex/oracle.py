"""
Landmark oracle capability interface.

The detection loop depends only on these protocols, so any pose
estimation provider that can initialize, estimate and dispose can be
plugged in.
"""

from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

from .landmarks import HandLandmarks
from .logger import get_logger

logger = get_logger("Oracle")

T = TypeVar("T")


class OracleError(Exception):
    """Raised when the landmark oracle cannot serve a request."""
    pass


class BackendUnavailableError(OracleError):
    """Raised when no backend in the preference list could be initialized."""

    def __init__(self, failures: dict[str, Exception]):
        self.failures = failures
        if failures:
            details = "; ".join(f"{name}: {err}" for name, err in failures.items())
        else:
            details = "no backends configured"
        super().__init__(f"No landmark backend available ({details})")


class DetectorHandle(Protocol):
    """An initialized oracle instance, exclusively owned by one session."""

    backend: str

    async def estimate(self, frame: Any) -> Optional[HandLandmarks]:
        """Return the landmarks of one hand in the frame, or None."""
        ...

    def dispose(self) -> None:
        """Release backend resources. Must be idempotent."""
        ...


class LandmarkOracle(Protocol):
    """Factory for detector handles."""

    async def initialize(self, backends: Sequence[str]) -> DetectorHandle:
        """Create a handle on the first backend that initializes."""
        ...


async def first_available(
    candidates: Sequence[str],
    factory: Callable[[str], Awaitable[T]]
) -> T:
    """
    Try each candidate in order and return the first successful result.

    Args:
        candidates: Names tried in preference order.
        factory: Async callable building a result for one candidate.

    Returns:
        Result of the first candidate that did not raise.

    Raises:
        BackendUnavailableError: If every candidate failed.
    """
    failures: dict[str, Exception] = {}
    for candidate in candidates:
        try:
            result = await factory(candidate)
        except Exception as e:
            logger.warning(f"Backend '{candidate}' failed to initialize: {e}")
            failures[candidate] = e
            continue
        if failures:
            logger.info(f"Falling back to backend '{candidate}'")
        return result
    raise BackendUnavailableError(failures)
