"""16-bit PCM WAV container encoding.

Layout (little-endian):
    RIFF <chunk size> WAVE
    fmt  <16> <format=1> <channels> <rate> <byte rate> <block align> <bits=16>
    data <data size> <interleaved int16 samples>
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from ..common.constants import (
    BITS_PER_SAMPLE,
    BYTES_PER_SAMPLE,
    INT16_NEGATIVE_SCALE,
    INT16_POSITIVE_SCALE,
    OUTPUT_CHANNELS,
    WAV_FMT_CHUNK_SIZE,
    WAV_FORMAT_PCM,
    WAV_HEADER_SIZE,
)
from ..common.errors import DecodeError, EncodingError
from .buffers import DecodedBuffer, EncodedAudioFile, MixedBuffer

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_U32_MASK = 0xFFFFFFFF


@dataclass
class WavHeader:
    chunk_size: int
    audio_format: int
    channel_count: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def build_header(data_size: int, sample_rate: int, channel_count: int) -> bytes:
    """Build the 44-byte canonical header.

    Size fields are 32-bit and wrap for payloads of 4 GiB and above.
    """
    block_align = channel_count * BYTES_PER_SAMPLE
    byte_rate = sample_rate * block_align
    return _HEADER.pack(
        b"RIFF",
        (36 + data_size) & _U32_MASK,
        b"WAVE",
        b"fmt ",
        WAV_FMT_CHUNK_SIZE,
        WAV_FORMAT_PCM,
        channel_count,
        sample_rate,
        byte_rate & _U32_MASK,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_size & _U32_MASK,
    )


def parse_header(data: bytes) -> WavHeader:
    """Parse a canonical 44-byte header as written by :func:`build_header`."""
    if len(data) < WAV_HEADER_SIZE:
        raise DecodeError(f"WAV data too short: {len(data)} bytes")

    (
        riff,
        chunk_size,
        wave,
        fmt_id,
        fmt_size,
        audio_format,
        channel_count,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_id,
        data_size,
    ) = _HEADER.unpack_from(data)

    if riff != b"RIFF" or wave != b"WAVE":
        raise DecodeError("not a RIFF/WAVE container")
    if fmt_id != b"fmt " or fmt_size != WAV_FMT_CHUNK_SIZE or data_id != b"data":
        raise DecodeError("unsupported WAV chunk layout")
    if audio_format != WAV_FORMAT_PCM or bits_per_sample != BITS_PER_SAMPLE:
        raise DecodeError(
            f"unsupported sample format {audio_format}/{bits_per_sample}-bit"
        )

    return WavHeader(
        chunk_size=chunk_size,
        audio_format=audio_format,
        channel_count=channel_count,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )


def quantize(samples: npt.NDArray[np.floating]) -> npt.NDArray[np.int16]:
    """Clamp to [-1.0, 1.0] and round to int16.

    Negative values scale by 32768 and non-negative values by 32767, so both
    ends of the range map exactly onto the int16 limits.
    """
    clamped = np.clip(samples.astype(np.float64), -1.0, 1.0)
    scaled = np.where(
        clamped < 0, clamped * INT16_NEGATIVE_SCALE, clamped * INT16_POSITIVE_SCALE
    )
    return np.rint(scaled).astype(np.int16)


def dequantize(pcm: npt.NDArray[np.int16]) -> npt.NDArray[np.float32]:
    """Inverse of :func:`quantize` (up to rounding)."""
    values = pcm.astype(np.float32)
    return np.where(
        values < 0, values / INT16_NEGATIVE_SCALE, values / INT16_POSITIVE_SCALE
    ).astype(np.float32)


def encode(buffer: MixedBuffer) -> EncodedAudioFile:
    """Serialize a stereo mix to WAV bytes."""
    channels = buffer.channels
    if channels.ndim != 2 or channels.shape[0] != OUTPUT_CHANNELS:
        raise EncodingError(
            f"expected {OUTPUT_CHANNELS} channels of equal length, got shape {channels.shape}"
        )
    # Infinities clamp like any other out-of-range sample; NaN has no value to clamp to
    if np.any(np.isnan(channels)):
        raise EncodingError("buffer contains NaN samples")

    # Transpose to frame-major so tobytes() yields L, R, L, R, ...
    pcm = quantize(channels.T).astype("<i2")
    payload = pcm.tobytes()
    header = build_header(len(payload), buffer.sample_rate, OUTPUT_CHANNELS)

    return EncodedAudioFile(
        data=header + payload,
        sample_rate=buffer.sample_rate,
        channel_count=OUTPUT_CHANNELS,
        frame_count=buffer.frame_count,
    )


def decode_wav(data: bytes) -> DecodedBuffer:
    """Read back a canonical 16-bit PCM WAV into a decoded buffer."""
    header = parse_header(data)
    if header.channel_count < 1 or header.sample_rate < 1:
        raise DecodeError("WAV header declares no channels or no sample rate")

    payload = data[WAV_HEADER_SIZE : WAV_HEADER_SIZE + header.data_size]
    block_align = header.channel_count * BYTES_PER_SAMPLE
    usable = len(payload) - len(payload) % block_align

    pcm = np.frombuffer(payload[:usable], dtype="<i2")
    frames = pcm.reshape(-1, header.channel_count)
    return DecodedBuffer.from_interleaved(dequantize(frames), header.sample_rate)
