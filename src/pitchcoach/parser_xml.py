"""MusicXML score loading using music21."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from music21 import chord, converter, key, note, stream, tempo

from .exceptions import ParseError
from .models import Measure, Note, Song

if TYPE_CHECKING:
    from music21.base import Music21Object

logger = logging.getLogger(__name__)

DEFAULT_TEMPO = 120


def parse_musicxml(path: str | Path) -> Song:
    """
    Parse a MusicXML file into a Song.

    Only the first part is read. Chords are reduced to their highest pitch,
    tied notes are merged into one note, grace notes are skipped and rests
    only advance time. Measures are renumbered 1..N in document order.

    Args:
        path: Path to .xml, .musicxml or .mxl file

    Returns:
        Parsed Song with absolute note times in milliseconds

    Raises:
        FileNotFoundError: If file doesn't exist
        ParseError: If file is not valid MusicXML or has no parts
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"MusicXML file not found: {path}")

    try:
        score = converter.parse(str(path))
    except Exception as e:
        raise ParseError(f"Failed to parse MusicXML: {e}", "xml") from e

    parts = list(score.parts)  # type: ignore[union-attr]
    if not parts:
        raise ParseError("No parts found in MusicXML", "xml")
    part = parts[0]

    title, composer = _extract_credits(score, path)
    default_tempo = _first_tempo(score)
    time_signature = _first_time_signature(part)

    measures = _extract_measures(part, default_tempo, time_signature)
    song = Song(
        id=path.stem,
        title=title,
        composer=composer,
        default_tempo=default_tempo,
        default_time_signature=time_signature,
        key=_key_name(part),
        measures=tuple(measures),
    )
    logger.info("Parsed %s: %d measures, %d notes", path.name, len(song.measures), song.total_note_count)
    return song


def _extract_credits(score: Music21Object, path: Path) -> tuple[str, str]:
    title = path.stem
    composer = "Unknown"
    md = getattr(score, "metadata", None)
    if md is not None:
        if md.title:
            title = str(md.title)
        if md.composer:
            composer = str(md.composer)
    return title, composer


def _first_tempo(score: Music21Object) -> int:
    marks = list(score.flatten().getElementsByClass(tempo.MetronomeMark))  # type: ignore[attr-defined]
    for mark in marks:
        if mark.number:
            return max(1, int(round(float(mark.number))))
    return DEFAULT_TEMPO


def _first_time_signature(part: stream.Part) -> str:
    sigs = list(part.flatten().getElementsByClass("TimeSignature"))
    if not sigs:
        return "4/4"
    return f"{sigs[0].numerator}/{sigs[0].denominator}"


def _key_name(part: stream.Part) -> str:
    sigs = list(part.flatten().getElementsByClass(key.KeySignature))
    if not sigs:
        return "C"
    ks = sigs[0]
    k = ks if isinstance(ks, key.Key) else ks.asKey("major")
    name = k.tonic.name.replace("-", "b")
    return name if k.mode == "major" else f"{name}m"


def _top_pitch_midi(element: note.NotRest) -> int:
    if isinstance(element, chord.Chord):
        return max(p.midi for p in element.pitches)
    return element.pitch.midi


def _extract_measures(part: stream.Part, default_tempo: int, default_time_signature: str) -> list[Measure]:
    """Walk measures accumulating absolute time; tempo changes apply from their measure on."""
    current_tempo = default_tempo
    current_ts = default_time_signature
    measure_start_ms = 0.0

    # Mutable note records so a tie continuation can extend a note from an earlier measure.
    built: list[tuple[int, str, int, list[dict]]] = []
    open_ties: dict[int, dict] = {}

    for number, m in enumerate(part.getElementsByClass(stream.Measure), start=1):
        marks = list(m.recurse().getElementsByClass(tempo.MetronomeMark))
        if marks and marks[0].number:
            current_tempo = max(1, int(round(float(marks[0].number))))
        if m.timeSignature is not None:
            current_ts = f"{m.timeSignature.numerator}/{m.timeSignature.denominator}"

        ms_per_quarter = 60000.0 / current_tempo
        records: list[dict] = []

        for element in m.flatten().notes:
            if element.duration.isGrace:
                continue
            midi = _top_pitch_midi(element)
            start_ms = measure_start_ms + float(element.offset) * ms_per_quarter
            duration_ms = float(element.duration.quarterLength) * ms_per_quarter
            tie_type = element.tie.type if element.tie is not None else None

            if tie_type in ("stop", "continue") and midi in open_ties:
                record = open_ties[midi]
                record["duration_ms"] += duration_ms
                if tie_type == "stop":
                    del open_ties[midi]
                continue

            record = {
                "midi": midi,
                "start_ms": start_ms,
                "duration_ms": duration_ms,
                "notation_type": element.duration.type,
            }
            records.append(record)
            if tie_type == "start":
                open_ties[midi] = record

        built.append((number, current_ts, current_tempo, records))
        measure_start_ms += float(m.duration.quarterLength) * ms_per_quarter

    return [
        Measure(
            measure_number=number,
            time_signature=ts,
            tempo_bpm=bpm,
            notes=tuple(
                Note.from_midi(
                    r["midi"],
                    int(round(r["start_ms"])),
                    int(round(r["duration_ms"])),
                    notation_type=r["notation_type"],
                )
                for r in records
            ),
        )
        for number, ts, bpm, records in built
    ]
