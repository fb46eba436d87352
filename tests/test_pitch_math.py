"""Tests for pitch conversions and accuracy verdicts."""

import math

import pytest

from pitchcoach.pitch_math import (
    accuracy_verdict,
    analyze_frequency,
    cents_deviation,
    cents_from_nearest_note,
    frequency_to_midi,
    frequency_to_note_name,
    midi_to_frequency,
    midi_to_note_name,
    note_name_to_midi,
)


class TestFrequencyMidi:
    """Frequency <-> MIDI number conversion."""

    def test_reference_pitches(self) -> None:
        """A4 is MIDI 69 at 440 Hz and middle C is MIDI 60."""
        assert frequency_to_midi(440.0) == 69
        assert frequency_to_midi(261.63) == 60
        assert midi_to_frequency(69) == pytest.approx(440.0)
        assert midi_to_frequency(60) == pytest.approx(261.6256, abs=1e-3)

    def test_non_positive_frequency_is_zero(self) -> None:
        """Zero or negative frequencies map to MIDI 0."""
        assert frequency_to_midi(0.0) == 0
        assert frequency_to_midi(-10.0) == 0

    def test_clamped_to_midi_range(self) -> None:
        """Out-of-range frequencies clamp to 0..127."""
        assert frequency_to_midi(1.0) == 0
        assert frequency_to_midi(50_000.0) == 127

    @pytest.mark.parametrize("frequency", [65.0, 110.0, 233.1, 440.0, 1000.0, 2637.0, 4186.0])
    def test_round_trip_within_half_semitone(self, frequency: float) -> None:
        """Snapping to the nearest MIDI note moves pitch by at most 50 cents."""
        back = midi_to_frequency(frequency_to_midi(frequency))
        assert abs(1200 * math.log2(back / frequency)) <= 50.0 + 1e-9


class TestNoteNames:
    """MIDI number <-> note name conversion."""

    def test_midi_to_name(self) -> None:
        """MIDI numbers render as sharp names with octave."""
        assert midi_to_note_name(60) == "C4"
        assert midi_to_note_name(61) == "C#4"
        assert midi_to_note_name(69) == "A4"
        assert midi_to_note_name(0) == "C-1"

    def test_name_to_midi(self) -> None:
        """Note names parse back to MIDI numbers."""
        assert note_name_to_midi("A4") == 69
        assert note_name_to_midi("F#3") == 54
        assert note_name_to_midi(" C-1 ") == 0

    def test_unparseable_name(self) -> None:
        """Unknown letters, flats and empty strings give None."""
        assert note_name_to_midi("H2") is None
        assert note_name_to_midi("Bb4") is None
        assert note_name_to_midi("") is None

    def test_frequency_to_note_name(self) -> None:
        """Frequencies are named after their nearest note."""
        assert frequency_to_note_name(440.0) == "A4"
        assert frequency_to_note_name(446.0) == "A4"


class TestCents:
    """Cents deviation properties."""

    def test_identity_is_zero(self) -> None:
        """A frequency against itself deviates by zero cents."""
        for f in (65.0, 261.63, 440.0, 3000.0):
            assert cents_deviation(f, f) == 0.0

    def test_antisymmetric(self) -> None:
        """Swapping target and detected flips the sign."""
        assert cents_deviation(450.0, 440.0) == pytest.approx(-cents_deviation(440.0, 450.0))

    def test_octave_and_semitone(self) -> None:
        """An octave is 1200 cents and a semitone 100."""
        assert cents_deviation(880.0, 440.0) == pytest.approx(1200.0)
        assert cents_deviation(midi_to_frequency(70), 440.0) == pytest.approx(100.0)

    def test_sharp_is_positive(self) -> None:
        """Sharp deviations are positive, flat ones negative."""
        assert cents_deviation(445.0, 440.0) > 0
        assert cents_deviation(435.0, 440.0) < 0

    def test_invalid_frequency_gives_zero(self) -> None:
        """Non-positive frequencies give zero deviation."""
        assert cents_deviation(0.0, 440.0) == 0.0
        assert cents_deviation(440.0, 0.0) == 0.0
        assert cents_deviation(-1.0, -1.0) == 0.0

    def test_cents_from_nearest_note(self) -> None:
        """Offset from the closest equal-tempered note."""
        assert cents_from_nearest_note(440.0) == pytest.approx(0.0)
        assert cents_from_nearest_note(445.0) == pytest.approx(19.56, abs=0.01)
        assert cents_from_nearest_note(0.0) == 0.0


class TestAccuracyVerdict:
    """Verdict buckets: <10 PERFECT, <25 GOOD, <50 FAIR, else POOR."""

    @pytest.mark.parametrize(
        "cents, verdict",
        [
            (0.0, "PERFECT"),
            (9.99, "PERFECT"),
            (10.0, "GOOD"),
            (24.99, "GOOD"),
            (25.0, "FAIR"),
            (49.99, "FAIR"),
            (50.0, "POOR"),
            (300.0, "POOR"),
        ],
    )
    def test_boundaries(self, cents: float, verdict: str) -> None:
        """Verdict bucket edges at 10, 25 and 50 cents."""
        assert accuracy_verdict(cents) == verdict

    def test_sign_is_ignored(self) -> None:
        """Flat deviations are judged by magnitude."""
        assert accuracy_verdict(-12.0) == "GOOD"


class TestAnalyzeFrequency:
    def test_breakdown(self) -> None:
        """A frequency breaks down into note, MIDI and cents offset."""
        analysis = analyze_frequency(445.0)
        assert analysis.midi == 69
        assert analysis.note_name == "A4"
        assert analysis.cents_from_note == pytest.approx(19.56, abs=0.01)
        assert analysis.verdict == "GOOD"
