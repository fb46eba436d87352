"""Moving-average smoothing of detected frequencies."""

from __future__ import annotations

import math
from collections import deque


class FrequencySmoother:
    """
    Mean of the last ``window_size`` positive frequency observations.

    Zero, negative and non-finite values are ignored, so undetected frames
    do not pull the average down. Call reset() on silence so that separate
    phrases are never averaged together.
    """

    def __init__(self, window_size: int = 5) -> None:
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self._window: deque[float] = deque(maxlen=window_size)

    @property
    def window_size(self) -> int:
        return self._window.maxlen or 0

    def __len__(self) -> int:
        return len(self._window)

    def add_frequency(self, frequency_hz: float) -> float:
        """Push one observation and return the current mean (0.0 if empty)."""
        if frequency_hz > 0 and math.isfinite(frequency_hz):
            self._window.append(float(frequency_hz))
        return self.current()

    def current(self) -> float:
        if not self._window:
            return 0.0
        return sum(self._window) / len(self._window)

    def reset(self) -> None:
        self._window.clear()
