"""Bounded FIFO window of recent smoothed positions."""

from collections import deque
from typing import Iterator, Optional


class ObservationBuffer:
    """
    Fixed-capacity buffer of scalar samples, oldest evicted first.

    Used only for velocity estimation; never outlives a detection session.
    """

    def __init__(self, capacity: int = 10):
        if capacity < 2:
            raise ValueError(f"capacity must be at least 2, got {capacity}")
        self.capacity = capacity
        self._values: deque[float] = deque(maxlen=capacity)

    def push(self, value: float) -> None:
        self._values.append(value)

    @property
    def latest(self) -> Optional[float]:
        return self._values[-1] if self._values else None

    @property
    def previous(self) -> Optional[float]:
        return self._values[-2] if len(self._values) >= 2 else None

    def clear(self) -> None:
        self._values.clear()

    def to_list(self) -> list[float]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(self._values)
