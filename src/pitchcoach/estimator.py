"""Fundamental-frequency estimation by normalised autocorrelation."""

from __future__ import annotations

import numpy as np

from .audio import mean_square, to_float_samples
from .config import EstimatorConfig
from .models import PitchSample


class FrequencyEstimator:
    """
    Stateless autocorrelation pitch estimator for one monophonic voice.

    Strategy:
    - Gate by mean-square energy (silence short-circuits everything else).
    - Autocorrelation over the lag range matching [min_frequency, max_frequency],
      normalised by the zero-lag energy r(0).
    - The best lag's normalised correlation is the confidence.
    - Parabolic interpolation around the peak for a sub-sample period.

    The lag search is clamped to len(buffer) - 1, so buffers shorter than the
    longest period are accepted.
    """

    def __init__(self, config: EstimatorConfig | None = None) -> None:
        self._cfg = config or EstimatorConfig()
        self.min_lag = int(self._cfg.sample_rate / self._cfg.max_frequency)
        self.max_lag = int(self._cfg.sample_rate / self._cfg.min_frequency)

    @property
    def sample_rate(self) -> int:
        return self._cfg.sample_rate

    def estimate(self, samples: np.ndarray, timestamp_ms: int = 0) -> PitchSample:
        """
        Estimate the pitch of one block of samples.

        Args:
            samples: Normalised float samples in [-1, 1] (int16 PCM is scaled)
            timestamp_ms: Capture time carried onto the returned sample

        Returns:
            PitchSample with frequency_hz == 0 when nothing was detected
        """
        x = to_float_samples(samples)
        if x.size == 0 or mean_square(x) < self._cfg.silence_threshold:
            return PitchSample(is_silent=True, timestamp_ms=timestamp_ms)

        period, confidence = self._detect_period(x)
        frequency = 0.0
        if period > 0 and confidence > self._cfg.confidence_threshold:
            frequency = self._cfg.sample_rate / period

        return PitchSample(
            frequency_hz=frequency,
            confidence=confidence,
            is_silent=False,
            timestamp_ms=timestamp_ms,
        )

    def _detect_period(self, x: np.ndarray) -> tuple[float, float]:
        """Return (period in samples, confidence); (0, 0) when no peak exists."""
        n = int(x.size)
        r0 = float(np.dot(x, x))
        if r0 == 0.0:
            return 0.0, 0.0

        min_lag = self.min_lag
        max_lag = min(self.max_lag, n - 1)
        if max_lag < min_lag:
            return 0.0, 0.0

        r = _autocorrelation(x)[: max_lag + 1] / r0

        # Only positive correlations count as a period candidate.
        segment = r[min_lag : max_lag + 1]
        best_lag = int(np.argmax(segment)) + min_lag
        confidence = float(r[best_lag])
        if confidence <= 0.0:
            return 0.0, 0.0
        confidence = min(confidence, 1.0)

        period = float(best_lag)
        if min_lag < best_lag < max_lag:
            period = _parabolic_peak(r[best_lag - 1], r[best_lag], r[best_lag + 1], best_lag)

        return period, confidence


def _autocorrelation(x: np.ndarray) -> np.ndarray:
    """Linear (non-circular) autocorrelation r[lag] = sum x[i] * x[i + lag], lag >= 0."""
    n = int(x.size)
    nfft = 1 << (2 * n - 1).bit_length()
    spectrum = np.fft.rfft(x, n=nfft)
    return np.fft.irfft(spectrum * np.conj(spectrum), n=nfft)[:n]


def _parabolic_peak(y0: float, y1: float, y2: float, lag: int) -> float:
    a = (y0 + y2 - 2.0 * y1) / 2.0
    b = (y2 - y0) / 2.0
    if abs(a) <= 1e-10:
        return float(lag)
    return lag - b / (2.0 * a)
