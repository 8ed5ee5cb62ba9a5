"""Value objects passed between the decode, mix and encode stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np
import numpy.typing as npt

from ..common.constants import OUTPUT_CHANNELS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AudioSourceBlob:
    """Compressed audio bytes as they arrived from a download or recording."""

    data: bytes
    name: str
    created_at: datetime = field(default_factory=_utcnow)

    def __len__(self) -> int:
        return len(self.data)


def _freeze_channels(
    channels: npt.ArrayLike, sample_rate: int
) -> npt.NDArray[np.float32]:
    """Validate channel-major sample data and return a read-only float32 copy."""
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, np.integer)):
        raise ValueError(f"sample_rate must be an integer, got {sample_rate!r}")
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")

    array = np.array(channels, dtype=np.float32, copy=True)
    if array.ndim != 2:
        raise ValueError(
            f"channels must be shaped (channel_count, frame_count), got ndim={array.ndim}"
        )
    if array.shape[0] < 1:
        raise ValueError("at least one channel is required")

    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class DecodedBuffer:
    """Decoded signal, one row of samples per channel.

    A 2-D array guarantees every channel holds exactly ``frame_count`` samples.
    """

    sample_rate: int
    channels: npt.NDArray[np.float32]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "channels", _freeze_channels(self.channels, self.sample_rate)
        )
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def channel_count(self) -> int:
        return int(self.channels.shape[0])

    @property
    def frame_count(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return self.frame_count / self.sample_rate

    def channel(self, index: int) -> npt.NDArray[np.float32]:
        return self.channels[index]

    @classmethod
    def from_interleaved(
        cls, samples: npt.ArrayLike, sample_rate: int
    ) -> DecodedBuffer:
        """Build from a (frame_count, channel_count) or 1-D mono array."""
        array = np.asarray(samples, dtype=np.float32)
        if array.ndim == 1:
            array = array[np.newaxis, :]
        else:
            array = array.T
        return cls(sample_rate=sample_rate, channels=array)


@dataclass(frozen=True, eq=False)
class MixedBuffer:
    """Two-channel mix output. Samples are not clipped."""

    sample_rate: int
    channels: npt.NDArray[np.float32]

    def __post_init__(self) -> None:
        array = _freeze_channels(self.channels, self.sample_rate)
        if array.shape[0] != OUTPUT_CHANNELS:
            raise ValueError(
                f"mixed buffer must have {OUTPUT_CHANNELS} channels, got {array.shape[0]}"
            )
        object.__setattr__(self, "channels", array)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def channel_count(self) -> int:
        return OUTPUT_CHANNELS

    @property
    def frame_count(self) -> int:
        return int(self.channels.shape[1])

    def channel(self, index: int) -> npt.NDArray[np.float32]:
        return self.channels[index]


@dataclass(frozen=True)
class EncodedAudioFile:
    """Encoded WAV bytes.

    ``filename`` and ``created_at`` stay None until the file is handed to
    storage.
    """

    data: bytes
    sample_rate: int
    channel_count: int
    frame_count: int
    filename: str | None = None
    created_at: datetime | None = None

    def __len__(self) -> int:
        return len(self.data)
