"""Pytest fixtures with synthetic test data.

These fixtures build in-memory songs, comparison results, sine buffers and
fake collaborators so that no test needs an audio device or a score file.
"""

from collections.abc import Callable

import numpy as np
import pytest

from pitchcoach.exceptions import CaptureError
from pitchcoach.models import ComparisonResult, Measure, Note, Song, sample_song
from pitchcoach.playback import ClockPlayback, ManualClock

SAMPLE_RATE = 44100


# --- Song Fixtures ---


@pytest.fixture
def two_note_song() -> Song:
    """One measure: A4 over [0, 500) and C5 over [500, 1000)."""
    return Song(
        id="two_notes",
        title="Two Notes",
        measures=(
            Measure(
                measure_number=1,
                notes=(Note.from_midi(69, 0, 500), Note.from_midi(72, 500, 500)),
            ),
        ),
    )


@pytest.fixture
def twinkle() -> Song:
    """Four measures, seven notes, 4000 ms."""
    return sample_song()


@pytest.fixture
def gapped_song() -> Song:
    """Two measures with a rest inside measure 1 and a gap between the measures."""
    return Song(
        id="gapped",
        title="Gapped",
        measures=(
            Measure(
                measure_number=1,
                notes=(Note.from_midi(60, 0, 400), Note.from_midi(62, 600, 400)),
            ),
            Measure(measure_number=2, notes=(Note.from_midi(64, 1500, 500),)),
        ),
    )


@pytest.fixture
def empty_song() -> Song:
    return Song(id="empty", title="Empty")


# --- ComparisonResult Fixtures ---


def make_result(
    note: Note,
    accuracy: str = "PERFECT",
    deviation_cents: float = 0.0,
    timing_error_ms: int = 0,
    in_time_window: bool = True,
) -> ComparisonResult:
    detected = note.frequency_hz * 2.0 ** (deviation_cents / 1200.0) if accuracy != "MISS" else 0.0
    return ComparisonResult(
        target_note=note,
        detected_frequency_hz=detected,
        deviation_cents=deviation_cents,
        accuracy=accuracy,
        timing_error_ms=timing_error_ms,
        in_time_window=in_time_window,
    )


@pytest.fixture
def result_factory() -> Callable[..., ComparisonResult]:
    return make_result


@pytest.fixture
def perfect_results() -> list[ComparisonResult]:
    """Four PERFECT, on-time results for C4 D4 E4 F4."""
    return [make_result(Note.from_midi(midi, i * 500, 500)) for i, midi in enumerate((60, 62, 64, 65))]


# --- Audio Fixtures ---


def make_sine(
    frequency_hz: float,
    n_samples: int = 4096,
    sample_rate: int = SAMPLE_RATE,
    amplitude: float = 0.5,
) -> np.ndarray:
    t = np.arange(n_samples) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency_hz * t)).astype(np.float32)


@pytest.fixture
def sine() -> Callable[..., np.ndarray]:
    return make_sine


# --- Collaborator Fakes ---


class FakeCapture:
    """Capture collaborator driven by the test: push blocks or fail on demand."""

    def __init__(self, fail_on_start: bool = False) -> None:
        self.fail_on_start = fail_on_start
        self.on_audio = None
        self.on_error = None
        self.start_calls = 0
        self.stop_calls = 0

    @property
    def is_capturing(self) -> bool:
        return self.on_audio is not None

    def start(self, on_audio, on_error) -> None:
        self.start_calls += 1
        if self.fail_on_start:
            raise CaptureError("Microphone permission denied")
        self.on_audio = on_audio
        self.on_error = on_error

    def stop(self) -> None:
        self.stop_calls += 1
        self.on_audio = None

    def push(self, samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> None:
        assert self.on_audio is not None, "capture is not running"
        self.on_audio(samples, sample_rate)

    def fail(self, message: str) -> None:
        assert self.on_error is not None
        self.on_error(message)


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1000.0)


@pytest.fixture
def playback_factory(clock: ManualClock) -> Callable[[Song], ClockPlayback]:
    def _make(song: Song) -> ClockPlayback:
        return ClockPlayback(song.total_duration_ms, clock=clock)

    return _make
