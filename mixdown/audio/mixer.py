"""Two-source stereo mixer with per-source gain."""

from __future__ import annotations

import logging
import math

import numpy as np
import numpy.typing as npt

from ..common.constants import OUTPUT_CHANNELS
from ..common.errors import EmptyBufferError, InvalidGainError
from .buffers import DecodedBuffer, MixedBuffer

logger = logging.getLogger(__name__)

_FLOAT32_MAX = float(np.finfo(np.float32).max)


def validate_gain(name: str, value: float) -> float:
    """Return ``value`` as a float, rejecting NaN and infinities.

    Out-of-range finite gains (negative, above 1.0) are allowed.
    """
    try:
        gain = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidGainError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(gain):
        raise InvalidGainError(f"{name} must be finite, got {gain}")
    return gain


def resample(
    audio: npt.NDArray[np.float32], src_rate: int, dst_rate: int
) -> npt.NDArray[np.float32]:
    """Simple linear interpolation resampling of channel-major audio.

    Args:
        audio: Source audio shaped (channel_count, frame_count)
        src_rate: Source sample rate
        dst_rate: Destination sample rate

    Returns:
        Resampled audio data
    """
    if src_rate == dst_rate or audio.shape[1] == 0:
        return audio

    frame_count = audio.shape[1]
    new_length = int(frame_count * dst_rate / src_rate)
    old_indices = np.arange(frame_count)
    new_indices = np.linspace(0, frame_count - 1, new_length)
    return np.stack(
        [np.interp(new_indices, old_indices, channel) for channel in audio]
    ).astype(np.float32)


def _source_channels(
    buffer: DecodedBuffer, target_rate: int, do_resample: bool
) -> npt.NDArray[np.float32]:
    """Map a source onto the two output channels (mono reused for both)."""
    channels = buffer.channels
    if do_resample:
        channels = resample(channels, buffer.sample_rate, target_rate)

    # Clamp channel index: mono feeds both sides, extras beyond two are dropped
    index = [min(c, buffer.channel_count - 1) for c in range(OUTPUT_CHANNELS)]
    return channels[index]


def mix(
    a: DecodedBuffer,
    b: DecodedBuffer,
    gain_a: float,
    gain_b: float,
    *,
    resample: bool = False,
) -> MixedBuffer:
    """Sum two decoded sources into a stereo buffer.

    The output runs at the higher of the two sample rates and for the longer
    of the two lengths; the shorter source is silent past its end. Without
    ``resample`` samples are summed position by position even when rates
    differ, so the slower source plays back faster. Summed values are not
    clipped to [-1.0, 1.0]; anything beyond the float32 range saturates at
    its limit.

    Raises:
        InvalidGainError: If either gain is NaN or infinite.
        EmptyBufferError: If both sources have no frames.
    """
    gain_a = validate_gain("gain_a", gain_a)
    gain_b = validate_gain("gain_b", gain_b)

    if a.frame_count == 0 and b.frame_count == 0:
        raise EmptyBufferError("both sources are empty")

    sample_rate = max(a.sample_rate, b.sample_rate)
    if a.sample_rate != b.sample_rate:
        logger.debug(
            f"Sample rate mismatch {a.sample_rate}Hz vs {b.sample_rate}Hz "
            f"({'resampling' if resample else 'summing positionally'} "
            f"at {sample_rate}Hz)"
        )

    source_a = _source_channels(a, sample_rate, resample)
    source_b = _source_channels(b, sample_rate, resample)
    frame_count = max(source_a.shape[1], source_b.shape[1])

    # Accumulate in float64; large finite gains overflow float32 products
    mixed = np.zeros((OUTPUT_CHANNELS, frame_count), dtype=np.float64)
    with np.errstate(over="ignore"):
        mixed[:, : source_a.shape[1]] += source_a.astype(np.float64) * gain_a
        mixed[:, : source_b.shape[1]] += source_b.astype(np.float64) * gain_b
    np.clip(mixed, -_FLOAT32_MAX, _FLOAT32_MAX, out=mixed)

    return MixedBuffer(sample_rate=sample_rate, channels=mixed)
