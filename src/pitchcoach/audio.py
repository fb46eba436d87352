"""PCM buffer helpers."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

INT16_SCALE = 32768.0


def to_float_samples(samples: np.ndarray | Sequence[float] | Sequence[int]) -> np.ndarray:
    """
    Normalise a PCM block to float64 samples in [-1, 1].

    Signed 16-bit input is scaled by 1/32768; float input is passed through.
    Multi-channel input (frames x channels) is mixed down to mono.
    """
    x = np.asarray(samples)
    if x.dtype.kind in "iu":
        x = x.astype(np.float64) / INT16_SCALE
    else:
        x = x.astype(np.float64, copy=False)
    if x.ndim > 1:
        x = x.mean(axis=1)
    return x


def mean_square(x: np.ndarray) -> float:
    if x.size == 0:
        return 0.0
    return float(np.mean(np.square(x)))


def rms(x: np.ndarray) -> float:
    return float(np.sqrt(mean_square(x)))


def is_silence(x: np.ndarray, threshold: float = 0.01) -> bool:
    return rms(x) < threshold


def rms_to_db(value: float) -> float:
    """Level in dBFS, floored at -100 dB."""
    if value <= 0:
        return -100.0
    return float(20.0 * np.log10(value))
