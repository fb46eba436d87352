"""Practice report export."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .models import ComparisonResult, Grade, PracticeScore, PracticeSession, Song, StatisticsReport
from .pitch_math import Verdict
from .scoring import encouragement, grade_text

logger = logging.getLogger(__name__)

REPORT_VERSION = "1.0"


class SongSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    composer: str
    tempo_bpm: int
    time_signature: str
    total_notes: int
    duration_ms: int


class SessionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str | None
    start_time_ms: int
    end_time_ms: int | None
    duration_seconds: int
    hit_count: int


class ScoreSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_score: int = Field(..., ge=0, le=100)
    pitch_accuracy_score: float
    timing_accuracy_score: float
    completion_score: float
    grade: Grade
    grade_text: str
    encouragement: str
    statistics: StatisticsReport
    strengths: list[str]
    weaknesses: list[str]
    suggestions: list[str]


class NoteResult(BaseModel):
    """Flattened ComparisonResult for the report."""

    model_config = ConfigDict(frozen=True)

    pitch_name: str
    target_frequency_hz: float
    start_time_ms: int
    detected_frequency_hz: float
    deviation_cents: float
    accuracy: Verdict
    timing_error_ms: int
    in_time_window: bool

    @classmethod
    def from_result(cls, result: ComparisonResult) -> NoteResult:
        note = result.target_note
        return cls(
            pitch_name=note.pitch_name,
            target_frequency_hz=note.frequency_hz,
            start_time_ms=note.start_time_ms,
            detected_frequency_hz=result.detected_frequency_hz,
            deviation_cents=result.deviation_cents,
            accuracy=result.accuracy,
            timing_error_ms=result.timing_error_ms,
            in_time_window=result.in_time_window,
        )


class PracticeReport(BaseModel):
    """Self-contained JSON record of one completed practice session."""

    model_config = ConfigDict(frozen=True)

    version: Literal["1.0"] = REPORT_VERSION
    song: SongSummary
    session: SessionSummary
    score: ScoreSummary
    results: list[NoteResult]


def build_report(session: PracticeSession, score: PracticeScore, song: Song) -> PracticeReport:
    return PracticeReport(
        song=SongSummary(
            id=song.id,
            title=song.title,
            composer=song.composer,
            tempo_bpm=song.default_tempo,
            time_signature=song.default_time_signature,
            total_notes=song.total_note_count,
            duration_ms=song.total_duration_ms,
        ),
        session=SessionSummary(
            id=session.id,
            user_id=session.user_id,
            start_time_ms=session.start_time_ms,
            end_time_ms=session.end_time_ms,
            duration_seconds=session.duration_seconds,
            hit_count=session.hit_count,
        ),
        score=ScoreSummary(
            total_score=score.total_score,
            pitch_accuracy_score=score.pitch_accuracy_score,
            timing_accuracy_score=score.timing_accuracy_score,
            completion_score=score.completion_score,
            grade=score.grade,
            grade_text=grade_text(score.grade),
            encouragement=encouragement(score.grade),
            statistics=score.statistics,
            strengths=list(score.strengths),
            weaknesses=list(score.weaknesses),
            suggestions=list(score.suggestions),
        ),
        results=[NoteResult.from_result(r) for r in session.results],
    )


def write_report(report: PracticeReport, path: str | Path) -> Path:
    """Write the report as indented JSON."""
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
    logger.info("Wrote report to %s", path)
    return path
