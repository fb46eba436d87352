"""Score following: map a playback position onto the song timeline."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Union

from pydantic import BaseModel, ConfigDict

from .models import Measure, Note, Song

logger = logging.getLogger(__name__)


class MeasureChanged(BaseModel):
    model_config = ConfigDict(frozen=True)

    measure: Measure
    measure_index: int


class CurrentNoteChanged(BaseModel):
    """note is None when the position falls in a gap (a rest)."""

    model_config = ConfigDict(frozen=True)

    note: Note | None
    measure_number: int


class ProgressUpdated(BaseModel):
    model_config = ConfigDict(frozen=True)

    position_ms: int
    total_ms: int
    progress: float


FollowerEvent = Union[MeasureChanged, CurrentNoteChanged, ProgressUpdated]


class ScoreFollower:
    """
    Tracks the current measure and note of a song for a moving position.

    Not thread-safe: the practice tick is the only caller that mutates it.
    Notifications go to a single ``on_event`` sink supplied at construction.
    """

    def __init__(self, song: Song, on_event: Callable[[FollowerEvent], None] | None = None) -> None:
        self._song = song
        self._on_event = on_event
        self._total_ms = song.total_duration_ms
        self._position_ms: int | None = None
        self._measure_index = 0
        self._note_index = 0
        self._current_note: Note | None = None

    @property
    def song(self) -> Song:
        return self._song

    @property
    def position_ms(self) -> int:
        return self._position_ms or 0

    @property
    def measure_index(self) -> int:
        return self._measure_index

    def update_position(self, position_ms: int) -> None:
        """Move to ``position_ms``. Repeating the current position does nothing."""
        if position_ms == self._position_ms:
            return
        self._locate(position_ms, force=False)

    def seek_to(self, position_ms: int) -> None:
        """Jump to ``position_ms`` and re-emit measure and note notifications."""
        self._locate(position_ms, force=True)

    def reset(self) -> None:
        self._position_ms = None
        self._measure_index = 0
        self._note_index = 0
        self._current_note = None
        if self._song.measures:
            self._emit(MeasureChanged(measure=self._song.measures[0], measure_index=0))

    def get_current_note(self) -> Note | None:
        """Note at the cached indices, provided the position is still inside it."""
        if self._position_ms is None:
            return None
        measure = self.get_current_measure()
        if measure is None or self._note_index >= len(measure.notes):
            return None
        note = measure.notes[self._note_index]
        if note.contains_time(self._position_ms):
            return note
        return None

    def get_current_measure(self) -> Measure | None:
        if self._measure_index < len(self._song.measures):
            return self._song.measures[self._measure_index]
        return None

    def get_current_measure_number(self) -> int:
        measure = self.get_current_measure()
        return measure.measure_number if measure is not None else 0

    def get_next_note(self) -> Note | None:
        """
        Preview of the note after the current one.

        In a gap (no current note) this is the first note starting after the
        position. Returns None at the end of the song.
        """
        measures = self._song.measures
        if self.get_current_note() is not None:
            notes = measures[self._measure_index].notes
            if self._note_index + 1 < len(notes):
                return notes[self._note_index + 1]
            for measure in measures[self._measure_index + 1 :]:
                if measure.notes:
                    return measure.notes[0]
            return None

        position = self.position_ms
        for measure in measures[self._measure_index :]:
            for note in measure.notes:
                if note.start_time_ms > position:
                    return note
        return None

    def get_notes_in_range(self, start_ms: int, end_ms: int) -> list[Note]:
        return self._song.notes_in_range(start_ms, end_ms)

    @property
    def total_duration_ms(self) -> int:
        return self._total_ms

    def get_progress(self) -> float:
        if self._total_ms <= 0:
            return 0.0
        return min(1.0, max(0.0, self.position_ms / self._total_ms))

    def _locate(self, position_ms: int, force: bool) -> None:
        self._position_ms = position_ms
        self._update_measure(force)
        self._update_note(force)
        self._emit(
            ProgressUpdated(
                position_ms=position_ms,
                total_ms=self._total_ms,
                progress=self.get_progress(),
            )
        )

    def _update_measure(self, force: bool) -> None:
        measures = self._song.measures
        if not measures:
            return
        index = self._find_measure_index(self.position_ms)
        if index != self._measure_index or force:
            if index != self._measure_index:
                self._note_index = 0
            self._measure_index = index
            logger.debug("Measure changed: %d", measures[index].measure_number)
            self._emit(MeasureChanged(measure=measures[index], measure_index=index))

    def _update_note(self, force: bool) -> None:
        measure = self.get_current_measure()
        if measure is None:
            return

        found: Note | None = None
        for i, note in enumerate(measure.notes):
            if note.contains_time(self.position_ms):
                self._note_index = i
                found = note
                break

        if found != self._current_note or force:
            self._current_note = found
            logger.debug(
                "Current note: %s (measure %d)",
                found.pitch_name if found is not None else "-",
                measure.measure_number,
            )
            self._emit(CurrentNoteChanged(note=found, measure_number=measure.measure_number))

    def _find_measure_index(self, position_ms: int) -> int:
        measures = self._song.measures
        for i, measure in enumerate(measures):
            if measure.contains_time(position_ms):
                return i

        if position_ms >= self._total_ms:
            return len(measures) - 1

        # Gap between measures: stay on the latest one already started.
        latest = 0
        for i, measure in enumerate(measures):
            if measure.notes and measure.start_time_ms <= position_ms:
                latest = i
        return latest

    def _emit(self, event: FollowerEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)
