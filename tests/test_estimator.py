"""Tests for the autocorrelation frequency estimator."""

import numpy as np
import pytest

from pitchcoach.audio import is_silence, rms, rms_to_db, to_float_samples
from pitchcoach.config import EstimatorConfig
from pitchcoach.estimator import FrequencyEstimator


class TestEstimatorDetection:
    """Pitch detection on synthetic tones."""

    def test_a4_sine(self, sine) -> None:
        """440 Hz at 44.1 kHz in a 4096-sample block lands within 1 Hz."""
        sample = FrequencyEstimator().estimate(sine(440.0))
        assert not sample.is_silent
        assert sample.frequency_hz == pytest.approx(440.0, abs=1.0)
        assert sample.confidence > 0.3

    @pytest.mark.parametrize("frequency", [196.0, 261.63, 659.25, 1318.5])
    def test_instrument_range(self, sine, frequency: float) -> None:
        """Pitches across the instrument range are found within 1%."""
        sample = FrequencyEstimator().estimate(sine(frequency))
        assert sample.frequency_hz == pytest.approx(frequency, rel=0.01)

    def test_int16_input_is_normalised(self, sine) -> None:
        """16-bit PCM gives the same pitch as float input."""
        pcm = (sine(440.0) * 32767).astype(np.int16)
        sample = FrequencyEstimator().estimate(pcm)
        assert sample.frequency_hz == pytest.approx(440.0, abs=1.0)

    def test_timestamp_is_carried(self, sine) -> None:
        """The caller's timestamp is kept on the sample."""
        assert FrequencyEstimator().estimate(sine(440.0), timestamp_ms=1234).timestamp_ms == 1234

    def test_deterministic(self, sine) -> None:
        """The same block always gives the same sample."""
        estimator = FrequencyEstimator()
        block = sine(523.25)
        assert estimator.estimate(block) == estimator.estimate(block)


class TestEstimatorDegenerateInput:
    """Silence, noise and short buffers."""

    def test_zero_buffer_is_silent(self) -> None:
        """An all-zero block is silent with no pitch."""
        sample = FrequencyEstimator().estimate(np.zeros(4096))
        assert sample.is_silent
        assert sample.frequency_hz == 0.0
        assert sample.confidence == 0.0

    def test_quiet_buffer_is_silent(self, sine) -> None:
        """A block below the energy gate is silent."""
        # mean square of a 0.05 amplitude sine is 0.00125, below 0.01
        assert FrequencyEstimator().estimate(sine(440.0, amplitude=0.05)).is_silent

    def test_empty_buffer_is_silent(self) -> None:
        """An empty block is silent."""
        assert FrequencyEstimator().estimate(np.array([], dtype=np.float32)).is_silent

    def test_noise_is_not_silent_but_undetected(self) -> None:
        """Loud noise passes the gate but yields no pitch."""
        rng = np.random.default_rng(7)
        noise = rng.uniform(-1.0, 1.0, 4096)
        sample = FrequencyEstimator().estimate(noise)
        assert not sample.is_silent
        assert sample.frequency_hz == 0.0
        assert sample.confidence < 0.3

    def test_buffer_shorter_than_max_lag(self, sine) -> None:
        """A 256-sample block cannot hold a 65 Hz period; the lag search is clamped."""
        sample = FrequencyEstimator().estimate(sine(1000.0, n_samples=256))
        assert sample.frequency_hz == pytest.approx(1000.0, rel=0.02)

    def test_tiny_buffer(self) -> None:
        """A block shorter than the lag range yields no pitch."""
        sample = FrequencyEstimator().estimate(np.array([0.5, -0.5, 0.5], dtype=np.float32))
        assert sample.frequency_hz == 0.0


class TestEstimatorConfig:
    def test_lag_range_from_config(self) -> None:
        """Lag bounds follow sample rate and frequency range."""
        estimator = FrequencyEstimator(EstimatorConfig(sample_rate=48000, min_frequency=100.0, max_frequency=1000.0))
        assert estimator.min_lag == 48
        assert estimator.max_lag == 480
        assert estimator.sample_rate == 48000

    def test_invalid_range_rejected(self) -> None:
        """Minimum frequency must be below maximum."""
        with pytest.raises(ValueError):
            EstimatorConfig(min_frequency=500.0, max_frequency=100.0)

    def test_high_confidence_threshold_suppresses_detection(self, sine) -> None:
        """A threshold of 1.0 rejects every periodicity peak."""
        estimator = FrequencyEstimator(EstimatorConfig(confidence_threshold=1.0))
        sample = estimator.estimate(sine(440.0))
        assert sample.frequency_hz == 0.0
        assert sample.confidence > 0.3


class TestAudioHelpers:
    def test_int16_scaling(self) -> None:
        """16-bit samples scale to [-1, 1)."""
        x = to_float_samples(np.array([0, 16384, -32768], dtype=np.int16))
        assert x.tolist() == [0.0, 0.5, -1.0]

    def test_stereo_mixdown(self) -> None:
        """Stereo frames are averaged to mono."""
        x = to_float_samples(np.array([[1.0, 0.0], [0.5, 0.5]]))
        assert x.tolist() == [0.5, 0.5]

    def test_rms_and_db(self) -> None:
        """RMS level and its dBFS value."""
        x = np.full(100, 0.5)
        assert rms(x) == pytest.approx(0.5)
        assert rms_to_db(1.0) == pytest.approx(0.0)
        assert rms_to_db(0.0) == -100.0

    def test_is_silence(self) -> None:
        """Silence is judged by mean energy."""
        assert is_silence(np.zeros(10))
        assert not is_silence(np.full(10, 0.1))
