"""Microphone recording into compressed clips for the library."""

from __future__ import annotations

import io
import logging
import threading
import time
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
import soundfile as sf

from ..audio.buffers import AudioSourceBlob
from ..common.constants import (
    RECORD_BLOCK_SIZE,
    RECORD_CHANNELS,
    RECORD_FORMAT,
    RECORD_SAMPLE_RATE,
)

if TYPE_CHECKING:
    import sounddevice as sd

logger = logging.getLogger(__name__)


class MicrophoneRecorder:
    """Captures microphone audio into memory.

    Blocks arrive on the sounddevice callback thread; while paused they are
    dropped rather than buffered.
    """

    def __init__(
        self,
        samplerate: int = RECORD_SAMPLE_RATE,
        channels: int = RECORD_CHANNELS,
    ) -> None:
        self.samplerate = samplerate
        self.channels = channels
        self.last_level = 0.0
        self._lock = threading.Lock()
        self._chunks: list[npt.NDArray[np.float32]] = []
        self._stream: sd.InputStream | None = None
        self._paused = False

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    @property
    def is_paused(self) -> bool:
        return self._paused

    def start(self) -> None:
        """Start a new recording, discarding anything captured before."""
        if self._stream is not None:
            raise RuntimeError("Recording already in progress")

        # Needs PortAudio at import time
        import sounddevice as sd

        with self._lock:
            self._chunks = []
        self._paused = False
        self._stream = sd.InputStream(
            samplerate=self.samplerate,
            channels=self.channels,
            dtype=np.float32,
            blocksize=RECORD_BLOCK_SIZE,
            callback=self._audio_callback,
        )
        self._stream.start()
        logger.info(f"Recording started ({self.samplerate}Hz, {self.channels}ch)")

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def stop(self) -> npt.NDArray[np.float32]:
        """Stop recording and return samples shaped (frames, channels)."""
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        self._paused = False

        with self._lock:
            chunks, self._chunks = self._chunks, []

        if not chunks:
            return np.zeros((0, self.channels), dtype=np.float32)
        samples = np.concatenate(chunks, axis=0)
        logger.info(f"Recording stopped: {len(samples)} frames")
        return samples

    def _audio_callback(
        self,
        indata: npt.NDArray[np.float32],
        frames: int,
        time_info: Any,
        status: sd.CallbackFlags,
    ) -> None:
        """sounddevice callback - runs in the audio thread."""
        if status:
            logger.debug(f"Input stream status: {status}")

        self.last_level = float(np.abs(indata).max()) if frames else 0.0
        if self._paused:
            return

        # indata is reused by PortAudio after the callback returns
        with self._lock:
            self._chunks.append(indata.copy())

    def record(self, seconds: float) -> npt.NDArray[np.float32]:
        """Blocking fixed-length recording."""
        self.start()
        try:
            time.sleep(seconds)
        finally:
            samples = self.stop()
        return samples

    def to_blob(
        self, samples: npt.NDArray[np.float32], name: str | None = None
    ) -> AudioSourceBlob:
        """Compress recorded samples to FLAC."""
        if name is None:
            name = f"recording-{time.time_ns() // 1_000_000}.{RECORD_FORMAT.lower()}"

        out = io.BytesIO()
        sf.write(out, samples, self.samplerate, format=RECORD_FORMAT, subtype="PCM_16")
        return AudioSourceBlob(data=out.getvalue(), name=name)
