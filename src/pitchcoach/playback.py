"""Reference-track playback interface and a clock-driven player."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol, Union

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

MIN_SPEED = 0.5
MAX_SPEED = 2.0


class PositionChanged(BaseModel):
    model_config = ConfigDict(frozen=True)

    position_ms: int


class PlaybackStateChanged(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_playing: bool


class PlaybackCompleted(BaseModel):
    model_config = ConfigDict(frozen=True)


class PlaybackFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


PlaybackEvent = Union[PositionChanged, PlaybackStateChanged, PlaybackCompleted, PlaybackFailed]
PlaybackSink = Callable[[PlaybackEvent], None]


class Playback(Protocol):
    """What the practice engine needs from a reference-track player."""

    def get_current_position_ms(self) -> int: ...

    def get_duration_ms(self) -> int: ...

    def is_playing(self) -> bool: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def seek_to(self, position_ms: int) -> None: ...

    def set_speed(self, speed: float) -> None: ...

    def set_loop_range(self, start_ms: int, end_ms: int) -> None: ...

    def clear_loop(self) -> None: ...

    def set_event_sink(self, sink: PlaybackSink | None) -> None: ...


class ManualClock:
    """Clock for tests and offline runs; time only moves when advanced."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ClockPlayback:
    """
    Silent player whose position is derived from a clock.

    Position is computed lazily on each query, so no timer thread is
    needed. Reaching the duration stops playback and emits
    PlaybackStateChanged(False) followed by PlaybackCompleted. A zero
    duration means open-ended playback that never completes.
    """

    def __init__(self, duration_ms: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._duration_ms = max(0, int(duration_ms))
        self._clock = clock
        self._lock = threading.Lock()
        self._sink: PlaybackSink | None = None

        self._position_ms = 0.0
        self._started_at: float | None = None  # clock reading while playing
        self._speed = 1.0
        self._loop: tuple[int, int] | None = None

    def set_event_sink(self, sink: PlaybackSink | None) -> None:
        self._sink = sink

    def get_duration_ms(self) -> int:
        return self._duration_ms

    def is_playing(self) -> bool:
        with self._lock:
            return self._started_at is not None

    @property
    def speed(self) -> float:
        return self._speed

    def get_current_position_ms(self) -> int:
        events: list[PlaybackEvent] = []
        with self._lock:
            position = self._advance(events)
        self._deliver(events)
        return int(position)

    def play(self) -> None:
        events: list[PlaybackEvent] = []
        with self._lock:
            if self._started_at is not None:
                return
            if self._duration_ms > 0 and self._position_ms >= self._duration_ms:
                self._position_ms = 0.0
            self._started_at = self._clock()
            events.append(PlaybackStateChanged(is_playing=True))
        logger.debug("Playback started at %d ms", int(self._position_ms))
        self._deliver(events)

    def pause(self) -> None:
        events: list[PlaybackEvent] = []
        with self._lock:
            self._advance(events)
            if self._started_at is not None:
                self._started_at = None
                events.append(PlaybackStateChanged(is_playing=False))
        self._deliver(events)

    def stop(self) -> None:
        events: list[PlaybackEvent] = []
        with self._lock:
            if self._started_at is not None:
                events.append(PlaybackStateChanged(is_playing=False))
            self._started_at = None
            self._position_ms = 0.0
        self._deliver(events)

    def seek_to(self, position_ms: int) -> None:
        with self._lock:
            target = max(0.0, float(position_ms))
            if self._duration_ms > 0:
                target = min(target, float(self._duration_ms))
            self._position_ms = target
            if self._started_at is not None:
                self._started_at = self._clock()
        self._deliver([PositionChanged(position_ms=int(target))])

    def set_speed(self, speed: float) -> None:
        with self._lock:
            self._rebase()
            self._speed = min(MAX_SPEED, max(MIN_SPEED, float(speed)))
        logger.debug("Playback speed %.2fx", self._speed)

    def set_loop_range(self, start_ms: int, end_ms: int) -> None:
        if end_ms <= start_ms or start_ms < 0:
            logger.warning("Ignoring invalid loop range %d-%d ms", start_ms, end_ms)
            return
        with self._lock:
            self._rebase()
            self._loop = (int(start_ms), int(end_ms))

    def clear_loop(self) -> None:
        with self._lock:
            self._rebase()
            self._loop = None

    @property
    def loop_range(self) -> tuple[int, int] | None:
        return self._loop

    def release(self) -> None:
        self.stop()
        self._sink = None

    def _rebase(self) -> None:
        """Fold elapsed time into the stored position. Caller holds the lock."""
        if self._started_at is None:
            return
        now = self._clock()
        self._position_ms += (now - self._started_at) * 1000.0 * self._speed
        self._started_at = now

    def _advance(self, events: list[PlaybackEvent]) -> float:
        """Bring the position up to date, applying loop and completion. Caller holds the lock."""
        self._rebase()

        if self._loop is not None and self._started_at is not None:
            start, end = self._loop
            if self._position_ms >= end:
                self._position_ms = start + (self._position_ms - start) % (end - start)

        if (
            self._started_at is not None
            and self._duration_ms > 0
            and self._position_ms >= self._duration_ms
        ):
            self._position_ms = float(self._duration_ms)
            self._started_at = None
            events.append(PlaybackStateChanged(is_playing=False))
            events.append(PlaybackCompleted())
            logger.debug("Playback completed at %d ms", self._duration_ms)

        return self._position_ms

    def _deliver(self, events: list[PlaybackEvent]) -> None:
        sink = self._sink
        if sink is None:
            return
        for event in events:
            sink(event)
