"""Bridge between the reference-track player and score time."""

from __future__ import annotations

import logging

from .playback import Playback

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """
    Drives the player and converts between audio and score positions.

    A positive sync offset means the audio runs ahead of the score:
    score position = audio position - offset.
    """

    def __init__(self, playback: Playback, sync_offset_ms: int = 0) -> None:
        self._playback = playback
        self._sync_offset_ms = int(sync_offset_ms)

    @property
    def playback(self) -> Playback:
        return self._playback

    @property
    def sync_offset_ms(self) -> int:
        return self._sync_offset_ms

    def set_sync_offset(self, offset_ms: int) -> None:
        self._sync_offset_ms = int(offset_ms)
        logger.debug("Sync offset set to %d ms", offset_ms)

    def play(self) -> None:
        self._playback.play()

    def pause(self) -> None:
        self._playback.pause()

    def stop(self) -> None:
        self._playback.stop()

    def seek_to(self, score_position_ms: int) -> None:
        """Seek the player so that the score lands on ``score_position_ms``."""
        audio_position = score_position_ms + self._sync_offset_ms
        self._playback.seek_to(audio_position)
        logger.debug("Seek to %d ms (audio %d ms)", score_position_ms, audio_position)

    def set_speed(self, speed: float) -> None:
        self._playback.set_speed(speed)

    def set_loop_range(self, start_ms: int, end_ms: int) -> None:
        self._playback.set_loop_range(start_ms, end_ms)

    def clear_loop(self) -> None:
        self._playback.clear_loop()

    def audio_position_ms(self) -> int:
        return self._playback.get_current_position_ms()

    def current_position_ms(self) -> int:
        """Current position in score time."""
        return self.audio_position_ms() - self._sync_offset_ms

    def duration_ms(self) -> int:
        return self._playback.get_duration_ms()

    def is_playing(self) -> bool:
        return self._playback.is_playing()
