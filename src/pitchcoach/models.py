"""Pydantic models for songs, pitch samples, comparisons and session results."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import SessionStateError
from .pitch_math import (
    Verdict,
    frequency_to_midi,
    midi_to_frequency,
    midi_to_note_name,
    note_name_to_midi,
)

Grade = Literal["S", "A", "B", "C", "D"]


class Note(BaseModel):
    """A single scored note with absolute timing in milliseconds."""

    model_config = ConfigDict(frozen=True)

    pitch_name: str = Field(..., description="Display name e.g. 'A4', 'C#5'")
    frequency_hz: float = Field(..., ge=0, description="Target frequency in Hz")
    start_time_ms: int = Field(..., ge=0, description="Onset from song start")
    duration_ms: int = Field(..., ge=0)
    staff_position: int = Field(default=0, description="Offset from middle C, for drawing")
    notation_type: str = Field(default="quarter", description="e.g. 'quarter', 'half'")

    @classmethod
    def from_midi(cls, midi: int, start_time_ms: int, duration_ms: int, notation_type: str = "quarter") -> Note:
        return cls(
            pitch_name=midi_to_note_name(midi),
            frequency_hz=midi_to_frequency(midi),
            start_time_ms=start_time_ms,
            duration_ms=duration_ms,
            staff_position=midi - 60,
            notation_type=notation_type,
        )

    @property
    def end_time_ms(self) -> int:
        return self.start_time_ms + self.duration_ms

    @property
    def midi(self) -> int:
        """MIDI number from the pitch name, falling back to the stored frequency."""
        parsed = note_name_to_midi(self.pitch_name)
        if parsed is not None:
            return parsed
        return frequency_to_midi(self.frequency_hz)

    def contains_time(self, time_ms: int) -> bool:
        return self.start_time_ms <= time_ms < self.end_time_ms


class Measure(BaseModel):
    """A bar of a monophonic line; notes are kept ordered by start time."""

    model_config = ConfigDict(frozen=True)

    measure_number: int = Field(..., ge=1)
    notes: tuple[Note, ...] = ()
    time_signature: str = "4/4"
    tempo_bpm: int = Field(default=120, gt=0)

    @field_validator("notes")
    @classmethod
    def _sort_notes(cls, notes: tuple[Note, ...]) -> tuple[Note, ...]:
        return tuple(sorted(notes, key=lambda n: n.start_time_ms))

    @property
    def start_time_ms(self) -> int:
        if not self.notes:
            return 0
        return min(n.start_time_ms for n in self.notes)

    @property
    def end_time_ms(self) -> int:
        if not self.notes:
            return 0
        return max(n.end_time_ms for n in self.notes)

    @property
    def duration_ms(self) -> int:
        return self.end_time_ms - self.start_time_ms

    def contains_time(self, time_ms: int) -> bool:
        """Half-open containment, so a boundary instant belongs to the following measure."""
        return self.start_time_ms <= time_ms < self.end_time_ms

    def note_at(self, time_ms: int) -> Note | None:
        for n in self.notes:
            if n.contains_time(time_ms):
                return n
        return None


class Song(BaseModel):
    """An immutable parsed score: measures ordered by measure number."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    composer: str = "Unknown"
    default_tempo: int = Field(default=120, gt=0, description="BPM")
    default_time_signature: str = "4/4"
    key: str = "C"
    measures: tuple[Measure, ...] = ()
    audio_url: str | None = Field(default=None, description="Reference recording locator")
    difficulty: str = "Beginner"
    tags: tuple[str, ...] = ()

    @field_validator("measures")
    @classmethod
    def _sort_measures(cls, measures: tuple[Measure, ...]) -> tuple[Measure, ...]:
        return tuple(sorted(measures, key=lambda m: m.measure_number))

    @property
    def total_duration_ms(self) -> int:
        """End of the last sounding measure; a trailing rest-only measure adds nothing."""
        return max((m.end_time_ms for m in self.measures), default=0)

    @property
    def total_note_count(self) -> int:
        return sum(len(m.notes) for m in self.measures)

    def all_notes(self) -> list[Note]:
        return [n for m in self.measures for n in m.notes]

    def measure_at(self, time_ms: int) -> Measure | None:
        for m in self.measures:
            if m.contains_time(time_ms):
                return m
        return None

    def note_at(self, time_ms: int) -> Note | None:
        measure = self.measure_at(time_ms)
        if measure is None:
            return None
        return measure.note_at(time_ms)

    def get_measure(self, measure_number: int) -> Measure | None:
        for m in self.measures:
            if m.measure_number == measure_number:
                return m
        return None

    def notes_in_range(self, start_ms: int, end_ms: int) -> list[Note]:
        """Notes whose interval overlaps [start_ms, end_ms)."""
        return [
            n
            for n in self.all_notes()
            if not (n.end_time_ms <= start_ms or n.start_time_ms >= end_ms)
        ]


class PitchSample(BaseModel):
    """One frame's pitch estimate. Produced per audio block, never persisted."""

    model_config = ConfigDict(frozen=True)

    frequency_hz: float = Field(default=0.0, ge=0, description="0 when undetected")
    confidence: float = Field(default=0.0, ge=0, le=1)
    is_silent: bool = False
    timestamp_ms: int = 0


class ComparisonResult(BaseModel):
    """Judgement of one note occurrence against the detected pitch."""

    model_config = ConfigDict(frozen=True)

    target_note: Note
    detected_frequency_hz: float = Field(..., ge=0)
    deviation_cents: float = Field(..., description="Positive = detected is sharp")
    accuracy: Verdict
    timing_error_ms: int = Field(..., description="Negative = early")
    in_time_window: bool

    @property
    def is_hit(self) -> bool:
        return self.in_time_window and self.accuracy not in ("POOR", "MISS")


class StatisticsReport(BaseModel):
    """Aggregate pitch statistics over a list of comparison results."""

    model_config = ConfigDict(frozen=True)

    total_notes: int = 0
    perfect_count: int = 0
    good_count: int = 0
    fair_count: int = 0
    poor_count: int = 0
    miss_count: int = 0
    accuracy_rate: float = Field(default=0.0, ge=0, le=1, description="(PERFECT+GOOD)/total")
    average_deviation: float = Field(default=0.0, ge=0, description="Mean |cents|")
    max_deviation: float = Field(default=0.0, ge=0)
    sharp_rate: float = Field(default=0.0, ge=0, le=1)
    flat_rate: float = Field(default=0.0, ge=0, le=1)


class PracticeScore(BaseModel):
    """Final score of a completed session."""

    model_config = ConfigDict(frozen=True)

    total_score: int = Field(..., ge=0, le=100)
    pitch_accuracy_score: float
    timing_accuracy_score: float
    completion_score: float
    grade: Grade
    statistics: StatisticsReport
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


class PracticeSession(BaseModel):
    """A practice attempt at one song. Sealed (end time set) at completion."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    song_id: str
    user_id: str | None = None
    start_time_ms: int = Field(..., ge=0, description="Epoch milliseconds")
    end_time_ms: int | None = None
    results: tuple[ComparisonResult, ...] = ()
    total_score: int = Field(default=0, ge=0, le=100)
    accuracy_rate: float = Field(default=0.0, ge=0, le=1)

    @property
    def is_completed(self) -> bool:
        return self.end_time_ms is not None

    @property
    def duration_seconds(self) -> int:
        if self.end_time_ms is None:
            return 0
        return (self.end_time_ms - self.start_time_ms) // 1000

    @property
    def hit_count(self) -> int:
        return sum(1 for r in self.results if r.is_hit)

    def verdict_counts(self) -> dict[str, int]:
        counts = {v: 0 for v in ("PERFECT", "GOOD", "FAIR", "POOR", "MISS")}
        for r in self.results:
            counts[r.accuracy] += 1
        return counts

    def seal(
        self,
        end_time_ms: int,
        results: tuple[ComparisonResult, ...],
        total_score: int,
        accuracy_rate: float,
    ) -> PracticeSession:
        """Return the completed copy of this session."""
        if self.is_completed:
            raise SessionStateError(f"Session {self.id} is already sealed")
        return self.model_copy(
            update={
                "end_time_ms": end_time_ms,
                "results": tuple(results),
                "total_score": total_score,
                "accuracy_rate": accuracy_rate,
            }
        )


def sample_song() -> Song:
    """First four bars of 'Twinkle Twinkle Little Star' at 120 BPM."""
    measures = (
        Measure(measure_number=1, notes=(Note.from_midi(60, 0, 500), Note.from_midi(60, 500, 500))),
        Measure(measure_number=2, notes=(Note.from_midi(67, 1000, 500), Note.from_midi(67, 1500, 500))),
        Measure(measure_number=3, notes=(Note.from_midi(69, 2000, 500), Note.from_midi(69, 2500, 500))),
        Measure(
            measure_number=4,
            notes=(Note.from_midi(67, 3000, 1000, notation_type="half"),),
        ),
    )
    return Song(
        id="sample_001",
        title="Twinkle Twinkle Little Star",
        composer="Traditional",
        default_tempo=120,
        default_time_signature="4/4",
        key="C",
        measures=measures,
        difficulty="Beginner",
        tags=("children", "etude"),
    )
