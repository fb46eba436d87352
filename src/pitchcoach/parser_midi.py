"""MIDI score loading using mido."""

from __future__ import annotations

import logging
from pathlib import Path

import mido

from .exceptions import ParseError
from .models import Measure, Note, Song

logger = logging.getLogger(__name__)

DEFAULT_TEMPO_BPM = 120.0


def parse_midi(path: str | Path) -> Song:
    """
    Parse a MIDI file into a monophonic Song.

    All tracks are merged. Simultaneous onsets keep the highest pitch and a
    note that overlaps the next onset is cut short, so the result is a
    single melodic line. Measures are derived from the first tempo and time
    signature.

    Args:
        path: Path to .mid or .midi file

    Returns:
        Parsed Song

    Raises:
        FileNotFoundError: If file doesn't exist
        ParseError: If file is not valid MIDI
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"MIDI file not found: {path}")

    try:
        mid = mido.MidiFile(str(path))
    except Exception as e:
        raise ParseError(f"Failed to parse MIDI: {e}", "midi") from e

    tempo_bpm = DEFAULT_TEMPO_BPM
    numerator, denominator = 4, 4
    title: str | None = None
    seen_tempo = seen_ts = False
    for track in mid.tracks:
        for msg in track:
            if msg.type == "set_tempo" and not seen_tempo:
                tempo_bpm = mido.tempo2bpm(msg.tempo)
                seen_tempo = True
            elif msg.type == "time_signature" and not seen_ts:
                numerator, denominator = msg.numerator, msg.denominator
                seen_ts = True
            elif msg.type == "track_name" and title is None and msg.name.strip():
                title = msg.name.strip()

    raw = _collect_notes(mid)
    melody = _reduce_to_melody(raw)

    measure_ms = numerator * (4.0 / denominator) * 60000.0 / tempo_bpm
    by_measure: dict[int, list[Note]] = {}
    for start_ms, end_ms, pitch in melody:
        number = int(start_ms // measure_ms) + 1
        by_measure.setdefault(number, []).append(
            Note.from_midi(pitch, int(round(start_ms)), max(0, int(round(end_ms - start_ms))))
        )

    bpm = max(1, int(round(tempo_bpm)))
    time_signature = f"{numerator}/{denominator}"
    song = Song(
        id=path.stem,
        title=title or path.stem,
        default_tempo=bpm,
        default_time_signature=time_signature,
        measures=tuple(
            Measure(measure_number=n, notes=tuple(notes), time_signature=time_signature, tempo_bpm=bpm)
            for n, notes in sorted(by_measure.items())
        ),
    )
    logger.info("Parsed %s: %d measures, %d notes", path.name, len(song.measures), song.total_note_count)
    return song


def _collect_notes(mid: mido.MidiFile) -> list[tuple[float, float, int]]:
    """Return (start_ms, end_ms, pitch) for every sounded note, in onset order."""
    notes: list[tuple[float, float, int]] = []
    active: dict[tuple[int, int], float] = {}
    now_sec = 0.0

    # Iterating a MidiFile merges tracks and yields delta times in seconds.
    for msg in mid:
        now_sec += msg.time
        if msg.type == "note_on" and msg.velocity > 0:
            active[(msg.note, msg.channel)] = now_sec
        elif msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
            start_sec = active.pop((msg.note, msg.channel), None)
            if start_sec is not None:
                notes.append((start_sec * 1000.0, now_sec * 1000.0, msg.note))

    notes.sort(key=lambda n: (n[0], -n[2]))
    return notes


def _reduce_to_melody(notes: list[tuple[float, float, int]]) -> list[tuple[float, float, int]]:
    melody: list[tuple[float, float, int]] = []
    for start, end, pitch in notes:
        if melody:
            prev_start, prev_end, prev_pitch = melody[-1]
            if round(start) == round(prev_start):
                continue
            if prev_end > start:
                melody[-1] = (prev_start, start, prev_pitch)
        melody.append((start, end, pitch))
    return melody
