# /src/core/fee_rate.py
from collections import deque
from typing import List

from pydantic import BaseModel, ConfigDict


class FeeRate(BaseModel):
    """A published fee rate, in the currency's smallest fee unit per byte."""
    model_config = ConfigDict(frozen=True)

    currency: str
    rate: int
    timestamp: int  # epoch seconds of the computation


class SmoothingWindow:
    """
    Bounded FIFO of recently accepted fee rates, oldest first.
    Pushing into a full window evicts the oldest entry.
    """
    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"Window capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._values: deque[int] = deque()

    def push(self, value: int) -> None:
        if len(self._values) == self.capacity:
            self._values.popleft()
        self._values.append(value)

    def average(self) -> int:
        """Arithmetic mean of the window, truncated toward zero."""
        if not self._values:
            raise ValueError("Cannot average an empty window")
        return int(sum(self._values) / len(self._values))

    def values(self) -> List[int]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)
