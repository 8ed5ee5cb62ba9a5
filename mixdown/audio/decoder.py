"""Compressed audio decoding backends.

Provides a single decode contract with interchangeable implementations:
libsndfile (via soundfile) for WAV/FLAC/OGG/MP3 and ffmpeg (via PyAV)
for everything else a browser or Freesound might hand us (WebM/Opus, AAC).
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod

import av
import numpy as np
import numpy.typing as npt
import soundfile as sf

from ..common.errors import DecodeError
from .buffers import AudioSourceBlob, DecodedBuffer

logger = logging.getLogger(__name__)


class AudioDecoder(ABC):
    """Abstract base class for compressed audio decoders."""

    name = "abstract"

    def decode(self, blob: AudioSourceBlob) -> DecodedBuffer:
        """Decode a complete compressed clip into channel-major float samples.

        Raises:
            DecodeError: If the blob is empty, malformed or unsupported.
        """
        if not blob.data:
            raise DecodeError("audio data is empty", source=blob.name)
        buffer = self._decode_bytes(blob.data)
        logger.debug(
            f"{self.name}: decoded {blob.name!r} -> {buffer.channel_count}ch "
            f"{buffer.sample_rate}Hz {buffer.frame_count} frames"
        )
        return buffer

    @abstractmethod
    def _decode_bytes(self, data: bytes) -> DecodedBuffer:
        """Decode non-empty bytes. Must raise DecodeError on failure."""
        ...


class SoundFileDecoder(AudioDecoder):
    """Decoder backed by libsndfile."""

    name = "soundfile"

    def _decode_bytes(self, data: bytes) -> DecodedBuffer:
        try:
            samples, sample_rate = sf.read(
                io.BytesIO(data), dtype="float32", always_2d=True
            )
        except (RuntimeError, ValueError, TypeError) as e:
            raise DecodeError(str(e)) from e

        # soundfile returns (frames, channels)
        return DecodedBuffer.from_interleaved(samples, int(sample_rate))


def _normalize(arr: npt.NDArray[np.generic]) -> npt.NDArray[np.float32]:
    """Scale integer PCM to [-1.0, 1.0] float32."""
    if arr.dtype == np.int16:
        return arr.astype(np.float32) / 32768.0
    elif arr.dtype == np.int32:
        return arr.astype(np.float32) / 2147483648.0
    elif arr.dtype == np.uint8:
        return (arr.astype(np.float32) - 128.0) / 128.0
    return arr.astype(np.float32)


class PyAVDecoder(AudioDecoder):
    """Decoder backed by ffmpeg through PyAV."""

    name = "av"

    def _decode_bytes(self, data: bytes) -> DecodedBuffer:
        try:
            with av.open(io.BytesIO(data), mode="r") as container:
                if not container.streams.audio:
                    raise DecodeError("no audio stream found")
                audio_stream = container.streams.audio[0]
                sample_rate = audio_stream.codec_context.sample_rate
                channel_count = audio_stream.codec_context.channels

                chunks: list[npt.NDArray[np.float32]] = []
                for frame in container.decode(audio_stream):
                    chunks.append(self._frame_to_channels(frame))
                    if frame.sample_rate:
                        sample_rate = frame.sample_rate
        except av.error.FFmpegError as e:
            raise DecodeError(str(e)) from e

        if not sample_rate:
            raise DecodeError("stream has no sample rate")

        if chunks:
            channels = np.concatenate(chunks, axis=1)
        else:
            channels = np.zeros((max(channel_count, 1), 0), dtype=np.float32)
        return DecodedBuffer(sample_rate=int(sample_rate), channels=channels)

    @staticmethod
    def _frame_to_channels(frame: av.AudioFrame) -> npt.NDArray[np.float32]:
        arr = frame.to_ndarray()
        channel_count = len(frame.layout.channels)

        # Packed formats come back as a single interleaved row
        if not frame.format.is_planar:
            arr = arr.reshape(-1, channel_count).T

        return _normalize(arr)


class FallbackDecoder(AudioDecoder):
    """Try each decoder in turn, returning the first success."""

    name = "auto"

    def __init__(self, decoders: list[AudioDecoder]) -> None:
        if not decoders:
            raise ValueError("at least one decoder is required")
        self.decoders = decoders

    def _decode_bytes(self, data: bytes) -> DecodedBuffer:
        errors: list[str] = []
        for decoder in self.decoders:
            try:
                return decoder._decode_bytes(data)
            except DecodeError as e:
                logger.debug(f"{decoder.name} could not decode: {e}")
                errors.append(f"{decoder.name}: {e}")
        raise DecodeError("; ".join(errors))


def create_decoder(backend: str = "auto") -> AudioDecoder:
    """Create a decoder by backend name.

    Args:
        backend: "soundfile", "av", or "auto" (soundfile, then PyAV)

    Returns:
        An AudioDecoder instance
    """
    if backend == "soundfile":
        return SoundFileDecoder()
    elif backend == "av":
        return PyAVDecoder()
    elif backend == "auto":
        return FallbackDecoder([SoundFileDecoder(), PyAVDecoder()])
    else:
        raise ValueError(f"Unknown decoder backend: {backend!r}")
