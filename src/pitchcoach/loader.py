"""Pick a score parser by file extension."""

from __future__ import annotations

from pathlib import Path

from .exceptions import ParseError
from .models import Song
from .parser_midi import parse_midi
from .parser_xml import parse_musicxml

XML_SUFFIXES = {".xml", ".musicxml", ".mxl"}
MIDI_SUFFIXES = {".mid", ".midi"}


def load_song(path: str | Path) -> Song:
    """
    Load a score file as a Song.

    Raises:
        FileNotFoundError: If file doesn't exist
        ParseError: If the extension is unsupported or the file is invalid
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in XML_SUFFIXES:
        return parse_musicxml(path)
    if suffix in MIDI_SUFFIXES:
        return parse_midi(path)
    raise ParseError(f"Unsupported score format: {path.suffix or path.name}", "score")
