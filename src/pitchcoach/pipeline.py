"""Per-session pitch pipeline: estimate, smooth, publish."""

from __future__ import annotations

import logging

import numpy as np

from .config import EstimatorConfig, SmootherConfig
from .estimator import FrequencyEstimator
from .models import PitchSample
from .slot import LatestValue
from .smoother import FrequencySmoother

logger = logging.getLogger(__name__)


class PitchPipeline:
    """
    Turns captured PCM blocks into the latest smoothed pitch.

    process_audio_block() runs on the capture thread and is the only writer
    of the latest-pitch slot; the practice tick reads it with latest_pitch().
    Silence resets the smoother as an explicit transition so notes separated
    by a rest are never averaged together.
    """

    def __init__(
        self,
        estimator_config: EstimatorConfig | None = None,
        smoother_config: SmootherConfig | None = None,
    ) -> None:
        self._estimator_config = estimator_config or EstimatorConfig()
        self._estimators: dict[int, FrequencyEstimator] = {}
        self._smoother = FrequencySmoother((smoother_config or SmootherConfig()).window_size)
        self._latest_pitch: LatestValue[float] = LatestValue()
        self._latest_sample: LatestValue[PitchSample] = LatestValue()
        self._blocks = 0

    def _estimator_for(self, sample_rate: int) -> FrequencyEstimator:
        estimator = self._estimators.get(sample_rate)
        if estimator is None:
            cfg = self._estimator_config.model_copy(update={"sample_rate": sample_rate})
            estimator = FrequencyEstimator(cfg)
            self._estimators[sample_rate] = estimator
        return estimator

    def process_audio_block(
        self, samples: np.ndarray, sample_rate: int, timestamp_ms: int = 0
    ) -> PitchSample:
        """
        Analyse one captured block and publish the smoothed pitch.

        Args:
            samples: int16 PCM or float samples in [-1, 1]
            sample_rate: Sample rate of the block in Hz
            timestamp_ms: Capture time, carried onto the returned sample

        Returns:
            The raw (unsmoothed) PitchSample for this block
        """
        sample = self._estimator_for(sample_rate).estimate(samples, timestamp_ms)
        self._blocks += 1

        if sample.is_silent:
            self._smoother.reset()
            self._latest_pitch.set(None)
        else:
            smoothed = self._smoother.add_frequency(sample.frequency_hz)
            self._latest_pitch.set(smoothed if smoothed > 0 else None)

        self._latest_sample.set(sample)
        return sample

    def latest_pitch(self) -> float | None:
        """Newest smoothed frequency in Hz, or None when nothing is sounding."""
        return self._latest_pitch.get()

    def get_latest_pitch_estimate(self) -> float | None:
        return self.latest_pitch()

    def latest_sample(self) -> PitchSample | None:
        return self._latest_sample.get()

    @property
    def blocks_processed(self) -> int:
        return self._blocks

    def reset(self) -> None:
        self._smoother.reset()
        self._latest_pitch.clear()
        self._latest_sample.clear()
        logger.debug("Pitch pipeline reset after %d blocks", self._blocks)
        self._blocks = 0
