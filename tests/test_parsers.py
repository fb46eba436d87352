"""Tests for MusicXML and MIDI score loading."""

from pathlib import Path

import mido
import pytest

from pitchcoach.exceptions import ParseError
from pitchcoach.loader import load_song
from pitchcoach.parser_midi import parse_midi
from pitchcoach.parser_xml import parse_musicxml

ETUDE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE score-partwise PUBLIC "-//Recordare//DTD MusicXML 3.1 Partwise//EN"
  "http://www.musicxml.org/dtds/partwise.dtd">
<score-partwise version="3.1">
  <work><work-title>Etude</work-title></work>
  <identification><creator type="composer">Kreutzer</creator></identification>
  <part-list>
    <score-part id="P1"><part-name>Violin</part-name></score-part>
  </part-list>
  <part id="P1">
    <measure number="1">
      <attributes>
        <divisions>1</divisions>
        <key><fifths>1</fifths><mode>major</mode></key>
        <time><beats>4</beats><beat-type>4</beat-type></time>
        <clef><sign>G</sign><line>2</line></clef>
      </attributes>
      <direction placement="above">
        <direction-type>
          <metronome><beat-unit>quarter</beat-unit><per-minute>60</per-minute></metronome>
        </direction-type>
        <sound tempo="60"/>
      </direction>
      <note><pitch><step>C</step><octave>4</octave></pitch><duration>1</duration><type>quarter</type></note>
      <note><pitch><step>D</step><octave>4</octave></pitch><duration>1</duration><type>quarter</type></note>
      <note><rest/><duration>1</duration><type>quarter</type></note>
      <note><pitch><step>E</step><octave>4</octave></pitch><duration>1</duration><type>quarter</type></note>
      <note><chord/><pitch><step>G</step><octave>4</octave></pitch><duration>1</duration><type>quarter</type></note>
    </measure>
    <measure number="2">
      <note><pitch><step>B</step><octave>4</octave></pitch><duration>2</duration><type>half</type></note>
      <note>
        <pitch><step>C</step><octave>5</octave></pitch><duration>2</duration>
        <tie type="start"/><type>half</type><notations><tied type="start"/></notations>
      </note>
    </measure>
    <measure number="3">
      <note>
        <pitch><step>C</step><octave>5</octave></pitch><duration>4</duration>
        <tie type="stop"/><type>whole</type><notations><tied type="stop"/></notations>
      </note>
    </measure>
  </part>
</score-partwise>
"""


@pytest.fixture
def etude_xml(tmp_path: Path) -> Path:
    path = tmp_path / "etude.musicxml"
    path.write_text(ETUDE_XML, encoding="utf-8")
    return path


@pytest.fixture
def chord_midi(tmp_path: Path) -> Path:
    """Two-note chord at tick 0, then a note that overlaps the following one."""
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("track_name", name="Duet"))
    track.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(60)))
    track.append(mido.MetaMessage("time_signature", numerator=3, denominator=4))
    track.append(mido.Message("note_on", note=60, velocity=90, time=0))
    track.append(mido.Message("note_on", note=67, velocity=90, time=0))
    track.append(mido.Message("note_off", note=60, velocity=0, time=480))
    track.append(mido.Message("note_off", note=67, velocity=0, time=0))
    track.append(mido.Message("note_on", note=62, velocity=90, time=0))
    track.append(mido.Message("note_on", note=64, velocity=90, time=240))
    track.append(mido.Message("note_off", note=62, velocity=0, time=240))
    track.append(mido.Message("note_on", note=64, velocity=0, time=960))

    mid = mido.MidiFile(type=1, ticks_per_beat=480)
    mid.tracks.append(track)
    path = tmp_path / "duet.mid"
    mid.save(str(path))
    return path


class TestParseMusicXML:
    """MusicXML through music21."""

    def test_metadata(self, etude_xml) -> None:
        """Score metadata is read from the file."""
        song = parse_musicxml(etude_xml)
        assert song.id == "etude"
        assert song.title == "Etude"
        assert song.composer == "Kreutzer"
        assert song.default_tempo == 60
        assert song.default_time_signature == "4/4"
        assert song.key == "G"

    def test_notes(self, etude_xml) -> None:
        """Chords keep the top note, rests are skipped and ties merge."""
        song = parse_musicxml(etude_xml)
        notes = [(n.pitch_name, n.start_time_ms, n.duration_ms, n.notation_type) for n in song.all_notes()]
        assert notes == [
            ("C4", 0, 1000, "quarter"),
            ("D4", 1000, 1000, "quarter"),
            ("G4", 3000, 1000, "quarter"),  # top of the E4/G4 chord
            ("B4", 4000, 2000, "half"),
            ("C5", 6000, 6000, "half"),  # tied into measure 3
        ]

    def test_measures(self, etude_xml) -> None:
        """Every measure is kept, even one with only a tied-over note."""
        song = parse_musicxml(etude_xml)
        assert [m.measure_number for m in song.measures] == [1, 2, 3]
        assert song.measures[2].notes == ()
        assert song.measures[0].tempo_bpm == 60
        assert song.total_duration_ms == 12000

    def test_frequency_and_staff_position(self, etude_xml) -> None:
        """Notes carry frequency and staff position."""
        first = parse_musicxml(etude_xml).all_notes()[0]
        assert first.frequency_hz == pytest.approx(261.63, abs=0.01)
        assert first.staff_position == 0

    def test_missing_file(self, tmp_path) -> None:
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            parse_musicxml(tmp_path / "missing.musicxml")

    def test_invalid_file(self, tmp_path) -> None:
        """Malformed XML raises a MusicXML parse error."""
        path = tmp_path / "broken.musicxml"
        path.write_text("<score-partwise><part", encoding="utf-8")
        with pytest.raises(ParseError) as excinfo:
            parse_musicxml(path)
        assert excinfo.value.code == "E_XML_PARSE"


class TestParseMidi:
    """Standard MIDI files through mido."""

    def test_melody_reduction(self, chord_midi) -> None:
        """Simultaneous notes reduce to the highest one."""
        song = parse_midi(chord_midi)
        notes = [(n.pitch_name, n.start_time_ms, n.duration_ms) for n in song.all_notes()]
        assert notes == [
            ("G4", 0, 1000),  # highest pitch of the chord
            ("D4", 1000, 500),  # cut at the next onset
            ("E4", 1500, 2500),
        ]

    def test_metadata_and_measures(self, chord_midi) -> None:
        """Song metadata comes from the meta events."""
        song = parse_midi(chord_midi)
        assert song.title == "Duet"
        assert song.default_tempo == 60
        assert song.default_time_signature == "3/4"
        # 3000 ms bars: everything starts in bar 1
        assert [m.measure_number for m in song.measures] == [1]

    def test_missing_file(self, tmp_path) -> None:
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            parse_midi(tmp_path / "missing.mid")

    def test_invalid_file(self, tmp_path) -> None:
        """Bytes that are not MIDI raise a MIDI parse error."""
        path = tmp_path / "bad.mid"
        path.write_bytes(b"not a midi file")
        with pytest.raises(ParseError) as excinfo:
            parse_midi(path)
        assert excinfo.value.code == "E_MIDI_PARSE"


class TestLoadSong:
    def test_dispatch_by_suffix(self, etude_xml, chord_midi) -> None:
        """The file suffix picks the parser."""
        assert load_song(etude_xml).title == "Etude"
        assert load_song(chord_midi).title == "Duet"

    def test_unsupported_suffix(self, tmp_path) -> None:
        """Unknown suffixes raise a score parse error."""
        path = tmp_path / "song.txt"
        path.write_text("C D E", encoding="utf-8")
        with pytest.raises(ParseError) as excinfo:
            load_song(path)
        assert excinfo.value.code == "E_SCORE_PARSE"
