"""Audio capture interface and in-memory replay."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import numpy as np

from .audio import to_float_samples

AudioCallback = Callable[[np.ndarray, int], None]
ErrorCallback = Callable[[str], None]


class AudioCapture(Protocol):
    """
    Push-based audio source.

    start() hands over both callbacks for the lifetime of that capture run;
    blocks arrive on the capture thread through ``on_audio(samples, rate)``.
    """

    def start(self, on_audio: AudioCallback, on_error: ErrorCallback) -> None: ...

    def stop(self) -> None: ...

    @property
    def is_capturing(self) -> bool: ...


class ArrayCapture:
    """
    Replays an in-memory recording in fixed-size blocks.

    Blocks are delivered on the caller's thread by pump(), which lets offline
    analysis and tests interleave audio with engine ticks deterministically.
    """

    def __init__(self, samples: np.ndarray, sample_rate: int, block_size: int = 4096) -> None:
        self._samples = to_float_samples(samples)
        self._sample_rate = sample_rate
        self._block_size = block_size
        self._offset = 0
        self._on_audio: AudioCallback | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def is_capturing(self) -> bool:
        return self._on_audio is not None

    @property
    def exhausted(self) -> bool:
        return self._offset + self._block_size > self._samples.size

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def block_size(self) -> int:
        return self._block_size

    @property
    def next_block_end_ms(self) -> float:
        """Recording time at which the next block is complete."""
        return (self._offset + self._block_size) * 1000.0 / self._sample_rate

    def start(self, on_audio: AudioCallback, on_error: ErrorCallback) -> None:
        self._on_audio = on_audio
        self._on_error = on_error

    def stop(self) -> None:
        self._on_audio = None
        self._on_error = None

    def pump(self) -> bool:
        """Deliver the next full block. Returns False when stopped or out of audio."""
        if self._on_audio is None or self.exhausted:
            return False
        block = self._samples[self._offset : self._offset + self._block_size]
        self._offset += self._block_size
        self._on_audio(block, self._sample_rate)
        return True

    def fail(self, message: str) -> None:
        """Simulate an asynchronous device failure."""
        on_error = self._on_error
        self.stop()
        if on_error is not None:
            on_error(message)
