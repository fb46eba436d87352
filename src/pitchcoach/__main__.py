"""Main CLI entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import soundfile as sf

from .config import EngineConfig, load_config
from .engine import NoteHit, NoteMissed, PracticeEngine, PracticeEvent, SessionState
from .exceptions import PitchCoachError, ValidationError
from .loader import load_song
from .midi_export import VIOLIN_PROGRAM, export_midi
from .models import PracticeScore, PracticeSession, Song
from .offline import analyze_recording
from .playback import ClockPlayback
from .report import build_report, write_report
from .scoring import encouragement, grade_text
from .validate import validate_report_json

COMMANDS = ("practice", "analyze", "export-midi", "validate")


def _init_logging(verbose: bool) -> None:
    if logging.getLogger().handlers:
        return
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main() -> None:
    """Main CLI entrypoint."""
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        print(f"Usage: pitchcoach {{{','.join(COMMANDS)}}} [options]", file=sys.stderr)
        sys.exit(1)

    command, argv = sys.argv[1], sys.argv[2:]
    handlers = {
        "practice": _main_practice,
        "analyze": _main_analyze,
        "export-midi": _main_export_midi,
        "validate": _main_validate,
    }
    try:
        handlers[command](argv)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except PitchCoachError as e:
        print(f"Error [{e.code}]: {e}", file=sys.stderr)
        sys.exit(1)


def _common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--score", required=True, help="Path to MusicXML or MIDI score")
    parser.add_argument("--config", default=None, help="Path to engine config JSON")
    parser.add_argument("--out", default=None, help="Path to output report JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def _main_practice(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(
        description="PitchCoach - live practice against a score",
        prog="pitchcoach practice",
    )
    _common_args(parser)
    parser.add_argument(
        "--seconds",
        type=float,
        default=None,
        help="Stop after this many seconds (default: end of the song)",
    )
    args = parser.parse_args(argv)
    _init_logging(args.verbose)

    # PortAudio is only needed for live input.
    from .mic import SoundDeviceCapture

    song = load_song(args.score)
    config = load_config(args.config)
    engine = PracticeEngine(
        song,
        ClockPlayback(song.total_duration_ms),
        SoundDeviceCapture(config.capture),
        config=config,
        on_event=_print_event,
    )

    print(f"Practising '{song.title}' ({song.total_note_count} notes). Ctrl+C to finish early.")
    engine.start()
    deadline = time.monotonic() + args.seconds if args.seconds else None
    try:
        while engine.state in (SessionState.PRACTICING, SessionState.PAUSED):
            if deadline is not None and time.monotonic() >= deadline:
                break
            time.sleep(0.1)
    except KeyboardInterrupt:
        print()
    finally:
        if engine.state in (SessionState.PRACTICING, SessionState.PAUSED):
            engine.complete()
        engine.release()

    if engine.session is None or engine.score is None:
        print("Practice ended without a score", file=sys.stderr)
        sys.exit(1)
    _finish(song, engine.session, engine.score, args.out)


def _main_analyze(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(
        description="PitchCoach - score a recorded performance",
        prog="pitchcoach analyze",
    )
    _common_args(parser)
    parser.add_argument("--wav", required=True, help="Recording aligned to the start of the score")
    args = parser.parse_args(argv)
    _init_logging(args.verbose)

    song = load_song(args.score)
    config: EngineConfig = load_config(args.config)
    wav_path = Path(args.wav)
    if not wav_path.exists():
        raise FileNotFoundError(f"Recording not found: {wav_path}")
    samples, sample_rate = sf.read(str(wav_path), dtype="float32", always_2d=False)

    session, score = analyze_recording(song, samples, int(sample_rate), config)
    _finish(song, session, score, args.out)


def _main_export_midi(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(
        description="PitchCoach - export a score as a reference MIDI track",
        prog="pitchcoach export-midi",
    )
    parser.add_argument("--score", required=True, help="Path to MusicXML or MIDI score")
    parser.add_argument("--out", required=True, help="Path to output .mid file")
    parser.add_argument(
        "--program",
        type=int,
        choices=range(128),
        metavar="0-127",
        default=VIOLIN_PROGRAM,
        help=f"General MIDI program (default: {VIOLIN_PROGRAM}, violin)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)
    _init_logging(args.verbose)

    song = load_song(args.score)
    out_path = export_midi(song, args.out, args.program)
    print(f"Wrote MIDI to {out_path}")


def _main_validate(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(
        description="PitchCoach - validate a practice report",
        prog="pitchcoach validate",
    )
    parser.add_argument("report", help="Path to report JSON")
    args = parser.parse_args(argv)

    try:
        validate_report_json(args.report)
    except ValidationError as e:
        print(f"Invalid: {e}", file=sys.stderr)
        sys.exit(1)
    print("Valid")


def _print_event(event: PracticeEvent) -> None:
    if isinstance(event, NoteHit):
        r = event.result
        print(f"  {r.target_note.pitch_name:<4} {r.accuracy:<7} {r.deviation_cents:+6.1f} cents")
    elif isinstance(event, NoteMissed):
        print(f"  {event.note.pitch_name:<4} MISS")


def _finish(song: Song, session: PracticeSession, score: PracticeScore, out: str | None) -> None:
    print(f"Score: {score.total_score} ({grade_text(score.grade)})")
    print(f"  Pitch: {score.pitch_accuracy_score:.1f}  Timing: {score.timing_accuracy_score:.1f}"
          f"  Completion: {score.completion_score:.1f}")
    print(f"  {encouragement(score.grade)}")
    for line in score.suggestions:
        print(f"  - {line}")

    if out:
        out_path = write_report(build_report(session, score, song), out)
        print(f"Wrote report to {out_path}")


if __name__ == "__main__":
    main()
