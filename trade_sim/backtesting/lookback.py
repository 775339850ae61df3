"""Bounded lookback window: the most recent N bars, oldest evicted on push."""

from __future__ import annotations
from collections import deque
from typing import Any, Deque, Optional

import pandas as pd


class LookbackWindow:
    """Fixed-capacity ring buffer of bars with a cached DataFrame snapshot."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Lookback capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._bars: Deque[Any] = deque(maxlen=capacity)
        self._frame: Optional[pd.DataFrame] = None

    def __len__(self) -> int:
        return len(self._bars)

    def push(self, bar: Any) -> None:
        self._bars.append(bar)
        self._frame = None

    def is_full(self) -> bool:
        return len(self._bars) == self.capacity

    @property
    def last(self) -> Any:
        """Most recently pushed bar."""
        if not self._bars:
            raise IndexError("Lookback window is empty")
        return self._bars[-1]

    def snapshot(self) -> pd.DataFrame:
        """Bars in the window, oldest first. Rebuilt at most once per push."""
        if self._frame is None:
            self._frame = pd.DataFrame(list(self._bars))
        return self._frame
