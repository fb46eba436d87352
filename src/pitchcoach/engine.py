"""Practice session state machine and tick loop."""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from typing import Union

import numpy as np
from pydantic import BaseModel, ConfigDict

from .capture import AudioCapture
from .comparator import PitchComparator
from .config import EngineConfig
from .exceptions import CaptureError, SessionStateError
from .follower import FollowerEvent, ScoreFollower
from .models import ComparisonResult, Note, PracticeScore, PracticeSession, Song
from .pipeline import PitchPipeline
from .playback import Playback, PlaybackCompleted, PlaybackEvent, PlaybackFailed
from .scoring import PitchStatistics, ScoreCalculator
from .sync import SyncCoordinator

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    IDLE = "idle"
    PRACTICING = "practicing"
    PAUSED = "paused"
    COMPLETED = "completed"


class RealtimeFeedback(BaseModel):
    """Emitted every tick. result is None unless a note and a pitch were both present."""

    model_config = ConfigDict(frozen=True)

    position_ms: int
    note: Note | None
    detected_hz: float | None
    result: ComparisonResult | None


class NoteHit(BaseModel):
    model_config = ConfigDict(frozen=True)

    result: ComparisonResult


class NoteMissed(BaseModel):
    model_config = ConfigDict(frozen=True)

    note: Note
    result: ComparisonResult


class StateChanged(BaseModel):
    model_config = ConfigDict(frozen=True)

    old: SessionState
    new: SessionState


class PracticeCompleted(BaseModel):
    model_config = ConfigDict(frozen=True)

    session: PracticeSession
    score: PracticeScore


class PracticeError(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class CaptureFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


PracticeEvent = Union[
    RealtimeFeedback,
    NoteHit,
    NoteMissed,
    StateChanged,
    PracticeCompleted,
    PracticeError,
    CaptureFailed,
]


class PracticeEngine:
    """
    Runs one practice attempt at a song.

    States: IDLE -> PRACTICING <-> PAUSED -> COMPLETED (terminal). stop()
    abandons the attempt and returns to IDLE without scoring.

    Threading:
    - The capture thread only feeds the pitch pipeline, whose latest-pitch
      slot is the single handoff cell to the tick.
    - tick() is the only code that touches the score follower, the result
      list and the missed-note bookkeeping. Control methods and tick()
      serialise on one re-entrant lock.
    - With ``run_loop=False`` no thread is started and the caller drives
      tick() directly (offline analysis, tests).

    Illegal transitions log a warning and return False; only a capture
    device that cannot be opened raises, from start().
    """

    def __init__(
        self,
        song: Song,
        playback: Playback,
        capture: AudioCapture,
        *,
        config: EngineConfig | None = None,
        pipeline: PitchPipeline | None = None,
        on_event: Callable[[PracticeEvent], None] | None = None,
        on_score_event: Callable[[FollowerEvent], None] | None = None,
        run_loop: bool = True,
        wall_clock: Callable[[], float] = time.time,
        user_id: str | None = None,
    ) -> None:
        self._song = song
        self._cfg = config or EngineConfig()
        self._sync = SyncCoordinator(playback)
        self._capture = capture
        self._pipeline = pipeline or PitchPipeline(self._cfg.estimator, self._cfg.smoother)
        self._follower = ScoreFollower(song, on_event=on_score_event)
        self._comparator = PitchComparator(self._cfg.timing)
        self._calculator = ScoreCalculator()
        self._statistics = PitchStatistics()
        self._on_event = on_event
        self._run_loop = run_loop
        self._wall_clock = wall_clock
        self._user_id = user_id

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._state = SessionState.IDLE
        self._session: PracticeSession | None = None
        self._score: PracticeScore | None = None
        self._results: list[ComparisonResult] = []
        self._last_recorded_start: int | None = None
        self._active_note: Note | None = None
        self._pending_seek: int | None = None
        self._playback_completed = False
        self._capture_failed = False

        playback.set_event_sink(self._on_playback_event)

    # --- Accessors ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def song(self) -> Song:
        return self._song

    @property
    def session(self) -> PracticeSession | None:
        return self._session

    @property
    def score(self) -> PracticeScore | None:
        return self._score

    @property
    def results(self) -> tuple[ComparisonResult, ...]:
        with self._lock:
            return tuple(self._results)

    @property
    def statistics(self) -> PitchStatistics:
        return self._statistics

    @property
    def follower(self) -> ScoreFollower:
        return self._follower

    @property
    def sync(self) -> SyncCoordinator:
        return self._sync

    @property
    def pipeline(self) -> PitchPipeline:
        return self._pipeline

    # --- Lifecycle ---

    def start(self) -> bool:
        """
        Begin a practice attempt from IDLE.

        Returns:
            True if practice started, False if the engine was not idle

        Raises:
            CaptureError: If the audio input cannot be opened
        """
        with self._lock:
            if self._state is not SessionState.IDLE:
                logger.warning("Cannot start practice in state %s", self._state.value)
                return False

            self._results.clear()
            self._statistics.clear()
            self._last_recorded_start = None
            self._active_note = None
            self._pending_seek = None
            self._playback_completed = False
            self._capture_failed = False
            self._score = None
            self._pipeline.reset()
            self._follower.reset()

            self._capture.start(self._on_audio, self._on_capture_error)

            self._session = PracticeSession(
                song_id=self._song.id,
                user_id=self._user_id,
                start_time_ms=self._now_ms(),
            )
            self._sync.play()
            self._set_state(SessionState.PRACTICING)
            self._start_loop()
            logger.info("Practice started: %s (%d notes)", self._song.title, self._song.total_note_count)
            return True

    def pause(self) -> bool:
        with self._lock:
            if self._state is not SessionState.PRACTICING:
                logger.warning("Cannot pause in state %s", self._state.value)
                return False
            self._sync.pause()
            self._capture.stop()
            self._set_state(SessionState.PAUSED)
            return True

    def resume(self) -> bool:
        with self._lock:
            if self._state is not SessionState.PAUSED:
                logger.warning("Cannot resume in state %s", self._state.value)
                return False
            self._pipeline.reset()
            try:
                self._capture.start(self._on_audio, self._on_capture_error)
            except CaptureError as e:
                logger.error("Capture failed on resume: %s", e)
                thread = self._fail_capture(str(e))
                failed = True
            else:
                self._sync.play()
                self._set_state(SessionState.PRACTICING)
                failed = False
        if failed:
            self._join_loop(thread)
            return False
        return True

    def stop(self) -> bool:
        """Abandon the attempt without scoring and return to IDLE."""
        with self._lock:
            if self._state not in (SessionState.PRACTICING, SessionState.PAUSED):
                return False
            thread = self._detach_loop()
            self._teardown_io()
            self._active_note = None
            self._set_state(SessionState.IDLE)
        self._join_loop(thread)
        logger.info("Practice stopped")
        return True

    def complete(self) -> PracticeScore | None:
        """
        Finish the attempt: stop IO, score every recorded result once, seal the session.

        Returns:
            The final PracticeScore, or None if no attempt was running
        """
        with self._lock:
            if self._state not in (SessionState.PRACTICING, SessionState.PAUSED):
                logger.warning("Cannot complete in state %s", self._state.value)
                return None
            thread = self._detach_loop()
            self._teardown_io()
            self._settle(self._active_note)
            self._active_note = None

            score = self._calculator.calculate_score(self._results, self._song.total_note_count)
            session = self._session
            if session is None:
                raise SessionStateError("Practice is running without a session")
            self._session = session.seal(
                end_time_ms=self._now_ms(),
                results=tuple(self._results),
                total_score=score.total_score,
                accuracy_rate=score.statistics.accuracy_rate,
            )
            self._score = score
            self._set_state(SessionState.COMPLETED)
            self._emit(PracticeCompleted(session=self._session, score=score))
            logger.info("Practice completed: score %d, grade %s", score.total_score, score.grade)
        self._join_loop(thread)
        return score

    def release(self) -> None:
        self.stop()
        with self._lock:
            self._capture.stop()
            self._sync.stop()
            self._sync.playback.set_event_sink(None)

    # --- Transport ---

    def seek_to(self, position_ms: int) -> None:
        """Request a jump in score time; the next tick applies it."""
        with self._lock:
            self._pending_seek = max(0, int(position_ms))

    def set_speed(self, speed: float) -> None:
        self._sync.set_speed(speed)

    def set_loop_range(self, start_ms: int, end_ms: int) -> None:
        self._sync.set_loop_range(start_ms, end_ms)

    def clear_loop(self) -> None:
        self._sync.clear_loop()

    def set_sync_offset(self, offset_ms: int) -> None:
        self._sync.set_sync_offset(offset_ms)

    # --- Tick ---

    def tick(self) -> None:
        """Run one iteration: follow the score, compare, record. Failures are reported, not raised."""
        with self._lock:
            if self._state is not SessionState.PRACTICING:
                return
            try:
                self._tick_once()
            except Exception as e:
                logger.exception("Practice tick failed")
                self._emit(PracticeError(message=f"Practice error: {e}"))
            finished = self._playback_completed

        if finished and self._state is SessionState.PRACTICING:
            self.complete()

    def _tick_once(self) -> None:
        if self._pending_seek is not None:
            target = self._pending_seek
            self._pending_seek = None
            self._sync.seek_to(target)
            self._follower.seek_to(target)
            # A note left by seeking was not missed.
            self._active_note = None

        position = self._sync.current_position_ms()
        self._follower.update_position(position)
        note = self._follower.get_current_note()
        detected = self._pipeline.latest_pitch()

        if note != self._active_note:
            self._settle(self._active_note)
            self._active_note = note

        result: ComparisonResult | None = None
        if note is not None and detected is not None:
            result = self._comparator.compare(note, detected, position)
            if note.start_time_ms != self._last_recorded_start:
                self._record(result)
                if result.is_hit:
                    self._emit(NoteHit(result=result))

        self._emit(
            RealtimeFeedback(position_ms=position, note=note, detected_hz=detected, result=result)
        )

    def _record(self, result: ComparisonResult) -> None:
        self._results.append(result)
        self._statistics.add_result(result)
        self._last_recorded_start = result.target_note.start_time_ms

    def _settle(self, note: Note | None) -> None:
        """Record a MISS for a note that is being left without any comparison."""
        if note is None or not self._cfg.synthesize_missed_notes:
            return
        if note.start_time_ms == self._last_recorded_start:
            return
        result = self._comparator.miss(note)
        self._record(result)
        logger.debug("Missed %s at %d ms", note.pitch_name, note.start_time_ms)
        self._emit(NoteMissed(note=note, result=result))

    # --- Collaborator callbacks ---

    def _on_audio(self, samples: np.ndarray, sample_rate: int) -> None:
        self._pipeline.process_audio_block(samples, sample_rate)

    def _on_capture_error(self, message: str) -> None:
        with self._lock:
            if self._state not in (SessionState.PRACTICING, SessionState.PAUSED):
                return
            thread = self._fail_capture(message)
        self._join_loop(thread)

    def _fail_capture(self, message: str) -> threading.Thread | None:
        """Tear down after an input failure. Returns the tick thread for the caller to join once unlocked."""
        if self._capture_failed:
            return None
        self._capture_failed = True
        logger.error("Audio capture failed: %s", message)
        thread = self._detach_loop()
        self._teardown_io()
        self._active_note = None
        self._set_state(SessionState.IDLE)
        self._emit(CaptureFailed(message=message))
        return thread

    def _on_playback_event(self, event: PlaybackEvent) -> None:
        if isinstance(event, PlaybackCompleted):
            self._playback_completed = True
        elif isinstance(event, PlaybackFailed):
            logger.error("Playback failed: %s", event.message)
            self._emit(PracticeError(message=f"Playback error: {event.message}"))

    # --- Internals ---

    def _teardown_io(self) -> None:
        self._capture.stop()
        self._sync.stop()

    def _start_loop(self) -> None:
        if not self._run_loop:
            return
        # one stop event per loop
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name="pitchcoach-tick", daemon=True
        )
        self._thread.start()

    def _run(self, stop_event: threading.Event) -> None:
        interval = self._cfg.tick_interval_ms / 1000.0
        while not stop_event.wait(interval):
            with self._lock:
                if stop_event.is_set():
                    break
                self.tick()

    def _detach_loop(self) -> threading.Thread | None:
        """Signal the running tick loop to stop and hand back its thread. Caller holds the lock."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        return thread

    @staticmethod
    def _join_loop(thread: threading.Thread | None) -> None:
        if thread is None or thread is threading.current_thread():
            return
        thread.join()

    def _set_state(self, new: SessionState) -> None:
        old = self._state
        self._state = new
        logger.debug("State %s -> %s", old.value, new.value)
        self._emit(StateChanged(old=old, new=new))

    def _emit(self, event: PracticeEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Practice event handler failed for %s", type(event).__name__)

    def _now_ms(self) -> int:
        return int(self._wall_clock() * 1000)
