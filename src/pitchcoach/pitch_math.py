"""Pitch conversions: frequency, MIDI number, note name and cents."""

from __future__ import annotations

import math
import re
from typing import Literal, NamedTuple

A4_FREQUENCY = 440.0
A4_MIDI = 69

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Verdict thresholds in absolute cents; every accuracy judgement goes through
# accuracy_verdict() so these are the only copies.
PERFECT_THRESHOLD = 10.0
GOOD_THRESHOLD = 25.0
FAIR_THRESHOLD = 50.0

Verdict = Literal["PERFECT", "GOOD", "FAIR", "POOR", "MISS"]

_NOTE_NAME_RE = re.compile(r"^([A-G]#?)(-?\d+)$")


class FrequencyAnalysis(NamedTuple):
    """Nearest-note breakdown of a frequency."""

    frequency_hz: float
    midi: int
    note_name: str
    cents_from_note: float
    verdict: Verdict


def frequency_to_midi(frequency_hz: float) -> int:
    """
    Convert a frequency to the nearest MIDI note number.

    Returns 0 for non-positive frequencies; the result is clamped to [0, 127].
    """
    if frequency_hz <= 0:
        return 0
    midi = round(A4_MIDI + 12 * math.log2(frequency_hz / A4_FREQUENCY))
    return max(0, min(127, midi))


def midi_to_frequency(midi: int) -> float:
    """Convert a MIDI note number to its equal-tempered frequency (A4 = 440 Hz)."""
    return A4_FREQUENCY * 2.0 ** ((midi - A4_MIDI) / 12.0)


def midi_to_note_name(midi: int) -> str:
    """Convert a MIDI note number to a sharp-spelled name such as 'C#4'."""
    octave = midi // 12 - 1
    return f"{NOTE_NAMES[midi % 12]}{octave}"


def note_name_to_midi(name: str) -> int | None:
    """Parse a name like 'A4' or 'F#3' into a MIDI number; None if it does not parse."""
    match = _NOTE_NAME_RE.match(name.strip())
    if match is None:
        return None
    letter, octave = match.groups()
    return (int(octave) + 1) * 12 + NOTE_NAMES.index(letter)


def frequency_to_note_name(frequency_hz: float) -> str:
    return midi_to_note_name(frequency_to_midi(frequency_hz))


def cents_deviation(actual_hz: float, target_hz: float) -> float:
    """
    Interval from target to actual in cents.

    Positive means actual is sharp of target. Returns 0.0 when either
    frequency is non-positive.
    """
    if actual_hz <= 0 or target_hz <= 0:
        return 0.0
    return 1200.0 * math.log2(actual_hz / target_hz)


def cents_from_nearest_note(frequency_hz: float) -> float:
    if frequency_hz <= 0:
        return 0.0
    nearest = midi_to_frequency(frequency_to_midi(frequency_hz))
    return cents_deviation(frequency_hz, nearest)


def accuracy_verdict(abs_cents: float) -> Verdict:
    """Bucket an absolute cents deviation into PERFECT / GOOD / FAIR / POOR."""
    abs_cents = abs(abs_cents)
    if abs_cents < PERFECT_THRESHOLD:
        return "PERFECT"
    if abs_cents < GOOD_THRESHOLD:
        return "GOOD"
    if abs_cents < FAIR_THRESHOLD:
        return "FAIR"
    return "POOR"


def analyze_frequency(frequency_hz: float) -> FrequencyAnalysis:
    midi = frequency_to_midi(frequency_hz)
    cents = cents_from_nearest_note(frequency_hz)
    return FrequencyAnalysis(
        frequency_hz=frequency_hz,
        midi=midi,
        note_name=midi_to_note_name(midi),
        cents_from_note=cents,
        verdict=accuracy_verdict(cents),
    )
