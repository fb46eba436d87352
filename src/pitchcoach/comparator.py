"""Pitch and timing judgement of one note attempt."""

from __future__ import annotations

import logging

from .config import TimingWindow
from .models import ComparisonResult, Note
from .pitch_math import GOOD_THRESHOLD, Verdict, accuracy_verdict, cents_deviation

logger = logging.getLogger(__name__)

# Deviations within this many cents count as neither sharp nor flat.
IN_TUNE_CENTS = 5.0

ACCURACY_LABELS: dict[str, str] = {
    "PERFECT": "Perfect",
    "GOOD": "Good",
    "FAIR": "Fair",
    "POOR": "Poor",
    "MISS": "Missed",
}


class PitchComparator:
    """
    Compares a detected frequency against a target note.

    Sign conventions:
    - deviation_cents > 0: detected pitch is sharp of the target
    - timing_error_ms < 0: the attempt came early
    """

    def __init__(self, timing_window: TimingWindow | None = None) -> None:
        self.timing_window = timing_window or TimingWindow()

    def compare(self, target_note: Note, detected_frequency_hz: float, current_time_ms: int) -> ComparisonResult:
        """
        Judge one attempt at ``target_note``.

        Never raises for degenerate input: a non-positive frequency gives a
        deviation of 0 cents.
        """
        deviation = cents_deviation(detected_frequency_hz, target_note.frequency_hz)
        timing_error = int(current_time_ms - target_note.start_time_ms)

        result = ComparisonResult(
            target_note=target_note,
            detected_frequency_hz=max(0.0, detected_frequency_hz),
            deviation_cents=deviation,
            accuracy=accuracy_verdict(abs(deviation)),
            timing_error_ms=timing_error,
            in_time_window=self.timing_window.contains(timing_error),
        )
        logger.debug(
            "Compared %s (%.2f Hz) with %.2f Hz: %+.1f cents, %s, timing %+d ms",
            target_note.pitch_name,
            target_note.frequency_hz,
            detected_frequency_hz,
            deviation,
            result.accuracy,
            timing_error,
        )
        return result

    def miss(self, target_note: Note) -> ComparisonResult:
        """Result for a note whose whole interval passed without an attempt."""
        return ComparisonResult(
            target_note=target_note,
            detected_frequency_hz=0.0,
            deviation_cents=0.0,
            accuracy="MISS",
            timing_error_ms=target_note.duration_ms,
            in_time_window=False,
        )


def is_close_to_target(
    target_frequency_hz: float,
    detected_frequency_hz: float,
    threshold_cents: float = GOOD_THRESHOLD,
) -> bool:
    return abs(cents_deviation(detected_frequency_hz, target_frequency_hz)) <= threshold_cents


def deviation_direction(deviation_cents: float) -> str:
    if deviation_cents > IN_TUNE_CENTS:
        return "sharp"
    if deviation_cents < -IN_TUNE_CENTS:
        return "flat"
    return "in tune"


def accuracy_feedback(accuracy: Verdict) -> str:
    return ACCURACY_LABELS[accuracy]


def suggestion(result: ComparisonResult) -> str:
    """One line of coaching for a single result; pitch problems take priority over timing."""
    cents = result.deviation_cents
    if result.accuracy == "PERFECT":
        return "Great! Keep it up."
    if result.accuracy == "MISS":
        return "Note missed, come in on the beat."
    if abs(cents) > 50:
        if cents > 0:
            return "Too sharp, bring the pitch down."
        return "Too flat, bring the pitch up."
    if abs(cents) > 25:
        return "Intonation needs a small adjustment."
    if not result.in_time_window:
        if result.timing_error_ms < 0:
            return "Too early, watch the rhythm."
        return "Too late, keep up with the beat."
    return "Not bad, keep practising."
