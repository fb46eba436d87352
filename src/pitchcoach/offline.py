"""Run a recorded performance through the practice engine on simulated time."""

from __future__ import annotations

import logging

import numpy as np

from .audio import to_float_samples
from .capture import ArrayCapture
from .config import EngineConfig
from .engine import PracticeEngine, PracticeEvent, SessionState
from .models import PracticeScore, PracticeSession, Song
from .playback import ClockPlayback, ManualClock

logger = logging.getLogger(__name__)

# Extra time allowed after the longer of song and recording before forcing completion.
TAIL_MS = 1000


def analyze_recording(
    song: Song,
    samples: np.ndarray,
    sample_rate: int,
    config: EngineConfig | None = None,
    events: list[PracticeEvent] | None = None,
) -> tuple[PracticeSession, PracticeScore]:
    """
    Score a recording as if it had been played live along with the song.

    The recording is assumed to start exactly at song time 0. Audio blocks
    are delivered once simulated time has passed their end, and the engine
    is ticked at its configured interval, so the result matches what a live
    session would have produced with no capture latency.

    Args:
        song: Score to practise against
        samples: Mono (or frames x channels) recording, int16 or float
        sample_rate: Recording sample rate in Hz
        config: Engine configuration (defaults if None)
        events: Optional list that receives every emitted practice event

    Returns:
        Tuple of (sealed session, final score)
    """
    cfg = config or EngineConfig()
    clock = ManualClock()
    playback = ClockPlayback(song.total_duration_ms, clock=clock)
    capture = ArrayCapture(samples, sample_rate, block_size=cfg.capture.block_size)
    engine = PracticeEngine(
        song,
        playback,
        capture,
        config=cfg,
        on_event=events.append if events is not None else None,
        run_loop=False,
        wall_clock=clock,
    )

    audio_ms = len(to_float_samples(samples)) * 1000.0 / sample_rate
    deadline_ms = max(float(song.total_duration_ms), audio_ms) + TAIL_MS
    step_s = cfg.tick_interval_ms / 1000.0

    engine.start()
    elapsed_ms = 0.0
    while engine.state is SessionState.PRACTICING and elapsed_ms < deadline_ms:
        clock.advance(step_s)
        elapsed_ms += cfg.tick_interval_ms
        while capture.next_block_end_ms <= elapsed_ms and capture.pump():
            pass
        engine.tick()

    score = engine.score
    if score is None:
        score = engine.complete()
    session = engine.session
    if score is None or session is None:
        raise RuntimeError("Offline analysis did not produce a score")

    logger.info(
        "Analysed %.1f s of audio against %s: %d results",
        audio_ms / 1000.0,
        song.title,
        len(session.results),
    )
    return session, score
