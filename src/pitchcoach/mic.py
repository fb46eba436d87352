"""Microphone capture through PortAudio (sounddevice)."""

from __future__ import annotations

import logging

import numpy as np
import sounddevice as sd

from .capture import AudioCallback, ErrorCallback
from .config import CaptureConfig
from .exceptions import CaptureError

logger = logging.getLogger(__name__)


class SoundDeviceCapture:
    """Microphone input through a PortAudio stream (sounddevice)."""

    def __init__(self, config: CaptureConfig | None = None) -> None:
        self._cfg = config or CaptureConfig()
        self._stream: sd.InputStream | None = None
        self._on_audio: AudioCallback | None = None
        self._on_error: ErrorCallback | None = None
        self._stopping = False

    @property
    def is_capturing(self) -> bool:
        return self._stream is not None and self._stream.active

    def start(self, on_audio: AudioCallback, on_error: ErrorCallback) -> None:
        """
        Open and start the input stream.

        Raises:
            CaptureError: If the device cannot be opened or started
        """
        if self._stream is not None:
            logger.warning("Capture already running")
            return

        self._on_audio = on_audio
        self._on_error = on_error
        self._stopping = False
        try:
            stream = sd.InputStream(
                samplerate=self._cfg.sample_rate,
                blocksize=self._cfg.block_size,
                channels=self._cfg.channels,
                device=self._cfg.device,
                dtype="float32",
                callback=self._callback,
                finished_callback=self._finished,
            )
            stream.start()
        except sd.PortAudioError as e:
            raise CaptureError(f"Could not open audio input: {e}") from e

        self._stream = stream
        logger.info(
            "Capture started: %d Hz, %d-sample blocks",
            self._cfg.sample_rate,
            self._cfg.block_size,
        )

    def stop(self) -> None:
        stream = self._stream
        if stream is None:
            return
        self._stopping = True
        self._stream = None
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning("Error closing audio input: %s", e)
        logger.info("Capture stopped")

    def _callback(self, indata: np.ndarray, frames: int, time_info, status: sd.CallbackFlags) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        on_audio = self._on_audio
        if on_audio is None:
            return
        try:
            on_audio(indata[:, 0].copy(), self._cfg.sample_rate)
        except Exception:
            # Raising here would abort the PortAudio stream.
            logger.exception("Audio block handler failed")

    def _finished(self) -> None:
        if self._stopping:
            return
        self._stream = None
        if self._on_error is not None:
            self._on_error("Audio input stream ended unexpectedly")
