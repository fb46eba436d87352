"""Standard MIDI export of a song, used as the reference playback track."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import mido
from mido.midifiles.meta import encode_variable_int

from .models import Song

logger = logging.getLogger(__name__)

TICKS_PER_QUARTER = 480
NOTE_VELOCITY = 100
VIOLIN_PROGRAM = 40  # General MIDI, zero-based
MIDI_CHANNEL = 0


def ms_to_ticks(ms: int, tempo_bpm: int) -> int:
    """Convert milliseconds to ticks at 480 ticks per quarter note."""
    return int(ms) * int(tempo_bpm) * TICKS_PER_QUARTER // 60000


def encode_variable_length(value: int) -> bytes:
    """
    Encode a delta time as a MIDI variable-length quantity.

    7 bits per byte, most significant group first, high bit set on every
    byte except the last (0 -> 00, 128 -> 81 00).
    """
    return bytes(encode_variable_int(value))


def parse_time_signature(time_signature: str) -> tuple[int, int]:
    """Parse 'N/D'; anything malformed, or a denominator that is not a power of two, gives 4/4."""
    try:
        numerator_text, denominator_text = time_signature.split("/")
        numerator, denominator = int(numerator_text), int(denominator_text)
    except ValueError:
        return 4, 4
    if numerator <= 0 or denominator <= 0 or denominator & (denominator - 1):
        return 4, 4
    return numerator, denominator


def build_midi_file(song: Song, program: int = VIOLIN_PROGRAM) -> mido.MidiFile:
    """
    Build a format-1 MIDI file with a single track for the song's melody.

    Track layout: name, tempo, time signature, program change, then one
    note_on/note_off pair per note in start order, then end of track.
    Overlapping notes get a zero delta rather than a negative one.
    """
    tempo = song.default_tempo
    numerator, denominator = parse_time_signature(song.default_time_signature)

    track = mido.MidiTrack()
    # mido writes text meta events as latin-1; pass UTF-8 bytes through unchanged.
    track.append(mido.MetaMessage("track_name", name=song.title.encode("utf-8").decode("latin-1")))
    track.append(mido.MetaMessage("set_tempo", tempo=int(60_000_000 / tempo)))
    track.append(
        mido.MetaMessage(
            "time_signature",
            numerator=numerator,
            denominator=denominator,
            clocks_per_click=24,
            notated_32nd_notes_per_beat=8,
        )
    )
    track.append(mido.Message("program_change", channel=MIDI_CHANNEL, program=program))

    last_tick = 0
    for note in sorted(song.all_notes(), key=lambda n: n.start_time_ms):
        start = ms_to_ticks(note.start_time_ms, tempo)
        duration = ms_to_ticks(note.duration_ms, tempo)
        track.append(
            mido.Message(
                "note_on",
                channel=MIDI_CHANNEL,
                note=note.midi,
                velocity=NOTE_VELOCITY,
                time=max(0, start - last_tick),
            )
        )
        track.append(
            mido.Message("note_off", channel=MIDI_CHANNEL, note=note.midi, velocity=0, time=duration)
        )
        last_tick = max(last_tick, start) + duration

    track.append(mido.MetaMessage("end_of_track"))

    mid = mido.MidiFile(type=1, ticks_per_beat=TICKS_PER_QUARTER)
    mid.tracks.append(track)
    return mid


def song_to_midi_bytes(song: Song, program: int = VIOLIN_PROGRAM) -> bytes:
    buffer = io.BytesIO()
    build_midi_file(song, program).save(file=buffer)
    return buffer.getvalue()


def export_midi(song: Song, path: str | Path, program: int = VIOLIN_PROGRAM) -> Path:
    """Write the song as a .mid file and return its path."""
    path = Path(path)
    data = song_to_midi_bytes(song, program)
    path.write_bytes(data)
    logger.info("Exported %d notes to %s (%d bytes)", song.total_note_count, path, len(data))
    return path
