"""Session statistics and final scoring."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from .comparator import IN_TUNE_CENTS
from .models import ComparisonResult, Grade, PracticeScore, StatisticsReport

logger = logging.getLogger(__name__)

PITCH_WEIGHT = 0.6
TIMING_WEIGHT = 0.3
COMPLETION_WEIGHT = 0.1

VERDICT_POINTS: dict[str, float] = {
    "PERFECT": 100.0,
    "GOOD": 80.0,
    "FAIR": 60.0,
    "POOR": 40.0,
    "MISS": 0.0,
}

# (upper bound on mean |timing error| in ms, penalty); above the last bound the penalty is 15.
TIMING_PENALTIES: tuple[tuple[float, float], ...] = ((50.0, 0.0), (100.0, 5.0), (150.0, 10.0))
MAX_TIMING_PENALTY = 15.0

GRADE_FLOORS: tuple[tuple[int, Grade], ...] = ((90, "S"), (80, "A"), (70, "B"), (60, "C"))

# Feedback texts. Suggestions are keyed off these exact weakness strings.
STRENGTH_OVERALL = "Excellent overall performance"
STRENGTH_ACCURACY = "Outstanding intonation control"
STRENGTH_STABILITY = "Stable pitch"
STRENGTH_PERFECT_RATIO = "High share of perfect notes"
STRENGTH_DEFAULT = "Keep up the practice"

WEAKNESS_ACCURACY = "Low intonation accuracy"
WEAKNESS_DEVIATION = "Large pitch deviation"
WEAKNESS_SHARP = "Pitch tends to be sharp"
WEAKNESS_FLAT = "Pitch tends to be flat"
WEAKNESS_POOR_RATIO = "Too many poor notes"

GRADE_TEXT: dict[str, str] = {
    "S": "S - Outstanding",
    "A": "A - Excellent",
    "B": "B - Good",
    "C": "C - Pass",
    "D": "D - Needs work",
}

ENCOURAGEMENT: dict[str, str] = {
    "S": "Amazing! You have really mastered this piece!",
    "A": "Well done! Keep it up!",
    "B": "Nice! There is still room to improve.",
    "C": "Keep going, you can do better!",
    "D": "Don't give up, practice makes progress!",
}


class PitchStatistics:
    """Running collection of comparison results with summary figures."""

    def __init__(self, results: Iterable[ComparisonResult] = ()) -> None:
        self._results: list[ComparisonResult] = list(results)

    def add_result(self, result: ComparisonResult) -> None:
        self._results.append(result)

    def clear(self) -> None:
        self._results.clear()

    @property
    def total_notes(self) -> int:
        return len(self._results)

    def count(self, accuracy: str) -> int:
        return sum(1 for r in self._results if r.accuracy == accuracy)

    def _rate(self, count: int) -> float:
        if not self._results:
            return 0.0
        return count / len(self._results)

    def accuracy_rate(self) -> float:
        return self._rate(self.count("PERFECT") + self.count("GOOD"))

    def average_deviation(self) -> float:
        if not self._results:
            return 0.0
        return sum(abs(r.deviation_cents) for r in self._results) / len(self._results)

    def max_deviation(self) -> float:
        return max((abs(r.deviation_cents) for r in self._results), default=0.0)

    def sharp_rate(self) -> float:
        return self._rate(sum(1 for r in self._results if r.deviation_cents > IN_TUNE_CENTS))

    def flat_rate(self) -> float:
        return self._rate(sum(1 for r in self._results if r.deviation_cents < -IN_TUNE_CENTS))

    def report(self) -> StatisticsReport:
        return StatisticsReport(
            total_notes=self.total_notes,
            perfect_count=self.count("PERFECT"),
            good_count=self.count("GOOD"),
            fair_count=self.count("FAIR"),
            poor_count=self.count("POOR"),
            miss_count=self.count("MISS"),
            accuracy_rate=self.accuracy_rate(),
            average_deviation=self.average_deviation(),
            max_deviation=self.max_deviation(),
            sharp_rate=self.sharp_rate(),
            flat_rate=self.flat_rate(),
        )


class ScoreCalculator:
    """
    Folds a finished session's results into a PracticeScore.

    Pure: the same results and expected note count always give the same
    score, and nothing here reads the clock.
    """

    def calculate_score(self, results: Sequence[ComparisonResult], expected_notes: int) -> PracticeScore:
        """
        Score a session.

        Args:
            results: Every recorded comparison, in session order
            expected_notes: Number of notes in the song

        Returns:
            PracticeScore with sub-scores, grade, statistics and feedback
        """
        logger.debug("Scoring %d results against %d expected notes", len(results), expected_notes)

        statistics = PitchStatistics(results).report()
        pitch = pitch_accuracy_score(results)
        timing = timing_accuracy_score(results)
        completion = completion_score(played_note_count(results), expected_notes)

        weighted = pitch * PITCH_WEIGHT + timing * TIMING_WEIGHT + completion * COMPLETION_WEIGHT
        total = max(0, min(100, int(math.floor(weighted + 0.5))))
        grade = determine_grade(total)

        strengths = analyze_strengths(statistics, total)
        weaknesses = analyze_weaknesses(statistics)
        suggestions = generate_suggestions(statistics, weaknesses)

        logger.info("Session scored %d (%s)", total, grade)
        return PracticeScore(
            total_score=total,
            pitch_accuracy_score=pitch,
            timing_accuracy_score=timing,
            completion_score=completion,
            grade=grade,
            statistics=statistics,
            strengths=tuple(strengths),
            weaknesses=tuple(weaknesses),
            suggestions=tuple(suggestions),
        )


def pitch_accuracy_score(results: Sequence[ComparisonResult]) -> float:
    if not results:
        return 0.0
    return sum(VERDICT_POINTS[r.accuracy] for r in results) / len(results)


def timing_accuracy_score(results: Sequence[ComparisonResult]) -> float:
    if not results:
        return 0.0
    in_window = sum(1 for r in results if r.in_time_window)
    base = in_window / len(results) * 100.0
    mean_error = sum(abs(r.timing_error_ms) for r in results) / len(results)
    return max(0.0, base - timing_penalty(mean_error))


def timing_penalty(mean_abs_error_ms: float) -> float:
    for bound, penalty in TIMING_PENALTIES:
        if mean_abs_error_ms < bound:
            return penalty
    return MAX_TIMING_PENALTY


def played_note_count(results: Iterable[ComparisonResult]) -> int:
    """Notes actually sounded. A MISS stands for a note that was never played."""
    return sum(1 for r in results if r.accuracy != "MISS")


def completion_score(played_notes: int, expected_notes: int) -> float:
    if expected_notes <= 0:
        return 100.0
    return min(played_notes / expected_notes, 1.0) * 100.0


def determine_grade(total_score: int) -> Grade:
    for floor, grade in GRADE_FLOORS:
        if total_score >= floor:
            return grade
    return "D"


def analyze_strengths(stats: StatisticsReport, total_score: int) -> list[str]:
    strengths: list[str] = []
    if total_score >= 90:
        strengths.append(STRENGTH_OVERALL)
    if stats.total_notes > 0:
        if stats.accuracy_rate >= 0.9:
            strengths.append(STRENGTH_ACCURACY)
        if stats.average_deviation < 15:
            strengths.append(STRENGTH_STABILITY)
        if stats.perfect_count >= stats.total_notes * 0.5:
            strengths.append(STRENGTH_PERFECT_RATIO)
    if not strengths:
        strengths.append(STRENGTH_DEFAULT)
    return strengths


def analyze_weaknesses(stats: StatisticsReport) -> list[str]:
    weaknesses: list[str] = []
    if stats.total_notes == 0:
        return weaknesses
    if stats.accuracy_rate < 0.7:
        weaknesses.append(WEAKNESS_ACCURACY)
    if stats.average_deviation > 25:
        weaknesses.append(WEAKNESS_DEVIATION)
    if stats.sharp_rate > 0.5:
        weaknesses.append(WEAKNESS_SHARP)
    elif stats.flat_rate > 0.5:
        weaknesses.append(WEAKNESS_FLAT)
    if stats.poor_count >= stats.total_notes * 0.3:
        weaknesses.append(WEAKNESS_POOR_RATIO)
    return weaknesses


def generate_suggestions(stats: StatisticsReport, weaknesses: Sequence[str]) -> list[str]:
    suggestions: list[str] = []
    if WEAKNESS_ACCURACY in weaknesses:
        suggestions.append("Practise in slow mode and focus on intonation")
        suggestions.append("Warm up with scales to get familiar with the pitches")
    if WEAKNESS_SHARP in weaknesses:
        suggestions.append("Bring the pitch down, fingers may be placed too far forward")
    elif WEAKNESS_FLAT in weaknesses:
        suggestions.append("Bring the pitch up, fingers may be placed too far back")
    if WEAKNESS_DEVIATION in weaknesses:
        suggestions.append("Calibrate against a tuner")
        suggestions.append("Loop a single measure to improve stability")
    if stats.average_deviation > 30:
        suggestions.append("Slow the playback down to 0.5x-0.75x")
    if not suggestions:
        suggestions.append("Keep it up and try a faster playback speed")
        suggestions.append("Try a more difficult piece")
    return suggestions


def grade_text(grade: Grade) -> str:
    return GRADE_TEXT[grade]


def encouragement(grade: Grade) -> str:
    return ENCOURAGEMENT[grade]


class ProgressReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_practices: int
    average_score: float
    highest_score: int
    progress_trend: float
    recent_scores: tuple[int, ...]


class ProgressTracker:
    """In-memory history of session scores for trend feedback."""

    def __init__(self) -> None:
        self._scores: list[PracticeScore] = []

    def add_score(self, score: PracticeScore) -> None:
        self._scores.append(score)

    def average_score(self) -> float:
        if not self._scores:
            return 0.0
        return sum(s.total_score for s in self._scores) / len(self._scores)

    def highest_score(self) -> int:
        return max((s.total_score for s in self._scores), default=0)

    def progress_trend(self) -> float:
        """Mean of the last five scores minus the mean of the five before them."""
        recent = self._scores[-5:]
        earlier = self._scores[:-5][-5:]
        if not earlier:
            return 0.0
        recent_avg = sum(s.total_score for s in recent) / len(recent)
        earlier_avg = sum(s.total_score for s in earlier) / len(earlier)
        return recent_avg - earlier_avg

    def report(self) -> ProgressReport:
        return ProgressReport(
            total_practices=len(self._scores),
            average_score=self.average_score(),
            highest_score=self.highest_score(),
            progress_trend=self.progress_trend(),
            recent_scores=tuple(s.total_score for s in self._scores[-10:]),
        )
