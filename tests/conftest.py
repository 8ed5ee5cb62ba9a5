"""Shared fixtures for mixdown tests."""

from __future__ import annotations

import io
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import pytest
import soundfile as sf

from mixdown.audio.buffers import AudioSourceBlob, DecodedBuffer

if TYPE_CHECKING:
    from collections.abc import Iterator

    from mixdown.library.storage import LibraryStorage


def sine(
    frame_count: int,
    sample_rate: int = 44100,
    frequency: float = 440.0,
    amplitude: float = 0.5,
) -> npt.NDArray[np.float32]:
    """Generate a sine wave."""
    t = np.arange(frame_count) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def make_buffer(
    frame_count: int,
    sample_rate: int = 44100,
    channel_count: int = 1,
    amplitude: float = 0.5,
) -> DecodedBuffer:
    """Decoded buffer with a distinct sine on each channel."""
    channels = np.stack(
        [
            sine(frame_count, sample_rate, 220.0 * (c + 1), amplitude)
            for c in range(channel_count)
        ]
    )
    return DecodedBuffer(sample_rate=sample_rate, channels=channels)


def encode_clip(
    samples: npt.NDArray[np.float32],
    sample_rate: int,
    fmt: str = "FLAC",
    subtype: str = "PCM_16",
) -> bytes:
    """Compress (frames, channels) samples with libsndfile."""
    out = io.BytesIO()
    sf.write(out, samples, sample_rate, format=fmt, subtype=subtype)
    return out.getvalue()


@pytest.fixture
def download_blob() -> AudioSourceBlob:
    """A 0.5s mono FLAC clip at 44.1kHz."""
    return AudioSourceBlob(
        data=encode_clip(sine(22050, 44100, 440.0), 44100), name="rain.flac"
    )


@pytest.fixture
def recording_blob() -> AudioSourceBlob:
    """A 0.25s stereo FLAC clip at 48kHz."""
    left = sine(12000, 48000, 300.0, 0.3)
    right = sine(12000, 48000, 600.0, 0.3)
    return AudioSourceBlob(
        data=encode_clip(np.stack([left, right], axis=1), 48000),
        name="voice.flac",
    )


@pytest.fixture
def library(tmp_path: Path) -> Iterator[LibraryStorage]:
    """An open library in a temporary directory."""
    from mixdown.library.storage import LibraryStorage

    with LibraryStorage(tmp_path / "data") as storage:
        yield storage
