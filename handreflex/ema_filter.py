"""
One-pole exponential filter for scalar signal smoothing.

Kept in its own module so the smoother and tests can import it
without pulling in landmark types.
"""

from typing import Optional


class ExponentialFilter:
    """
    Exponential moving average over a single scalar axis.

    Each output is a convex combination of the newest input and the
    previous output, so it never overshoots either of them:
    - Low alpha = heavy smoothing (more lag)
    - High alpha = light smoothing (less lag)
    """

    def __init__(self, alpha: float = 0.45):
        """
        Initialize exponential filter.

        Args:
            alpha: Weight of the newest sample, in (0, 1].
                   0.4-0.5 is a good range for hand tracking.

        Raises:
            ValueError: If alpha is outside (0, 1].
        """
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self._prev: Optional[float] = None

    @property
    def value(self) -> Optional[float]:
        """Last smoothed value, or None before the first sample."""
        return self._prev

    @property
    def is_initialized(self) -> bool:
        return self._prev is not None

    def filter(self, value: float) -> float:
        """
        Smooth a new sample.

        Args:
            value: Raw input value.

        Returns:
            Filtered value. The first sample is adopted as-is.
        """
        if self._prev is None:
            self._prev = value
            return value

        smoothed = self.alpha * value + (1.0 - self.alpha) * self._prev
        self._prev = smoothed
        return smoothed

    def reset(self) -> None:
        """Reset filter state."""
        self._prev = None
