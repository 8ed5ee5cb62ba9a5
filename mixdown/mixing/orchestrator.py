"""Decode -> mix -> encode -> store pipeline for a pair of sources."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from ..audio import mixer, wav_codec
from ..audio.buffers import AudioSourceBlob, DecodedBuffer, EncodedAudioFile
from ..audio.decoder import AudioDecoder
from ..common.constants import DEFAULT_GAIN
from ..common.errors import DecodeError, MixError

logger = logging.getLogger(__name__)


class AudioStore(Protocol):
    def store(self, data: bytes, filename: str) -> Any: ...


def mix_filename(a: AudioSourceBlob, b: AudioSourceBlob, timestamp_ms: int) -> str:
    return f"mix-{a.name}-{b.name}-{timestamp_ms}.wav"


class MixOrchestrator:
    """Runs one mix request end to end.

    Each call owns its buffers, so one orchestrator may serve concurrent
    requests. A failed mix stores nothing.
    """

    def __init__(self, decoder: AudioDecoder, store: AudioStore | None = None) -> None:
        self.decoder = decoder
        self.store = store

    async def _decode(self, blob: AudioSourceBlob, role: str) -> DecodedBuffer:
        try:
            return await asyncio.to_thread(self.decoder.decode, blob)
        except DecodeError as e:
            raise DecodeError(e.message, source=f"source {role} ({blob.name})") from e

    async def decode_pair(
        self, a: AudioSourceBlob, b: AudioSourceBlob
    ) -> tuple[DecodedBuffer, DecodedBuffer]:
        """Decode both sources concurrently.

        If both fail, source A's error is the one raised.
        """
        results = await asyncio.gather(
            self._decode(a, "a"), self._decode(b, "b"), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        decoded_a, decoded_b = results
        return decoded_a, decoded_b  # type: ignore[return-value]

    async def mix_sources(
        self,
        a: AudioSourceBlob,
        b: AudioSourceBlob,
        gain_a: float = DEFAULT_GAIN,
        gain_b: float = DEFAULT_GAIN,
        *,
        resample: bool = False,
    ) -> EncodedAudioFile:
        """Mix two compressed clips into a stereo WAV and hand it to storage.

        Raises:
            MixError: The first failing stage's error; ``stage`` names it.
        """
        try:
            gain_a = mixer.validate_gain("gain_a", gain_a)
            gain_b = mixer.validate_gain("gain_b", gain_b)

            decoded_a, decoded_b = await self.decode_pair(a, b)
            mixed = mixer.mix(decoded_a, decoded_b, gain_a, gain_b, resample=resample)
            encoded = wav_codec.encode(mixed)
        except MixError as e:
            logger.error(f"Mix of {a.name!r} + {b.name!r} failed at {e.stage}: {e}")
            raise

        created_at = datetime.now(timezone.utc)
        filename = mix_filename(a, b, int(created_at.timestamp() * 1000))
        encoded = dataclasses.replace(encoded, filename=filename, created_at=created_at)

        if self.store is not None:
            self.store.store(encoded.data, filename)

        logger.info(
            f"Mixed {a.name!r} + {b.name!r} -> {encoded.filename} "
            f"({encoded.frame_count} frames @ {encoded.sample_rate}Hz)"
        )
        return encoded


async def mix_sources(
    a: AudioSourceBlob,
    b: AudioSourceBlob,
    gain_a: float = DEFAULT_GAIN,
    gain_b: float = DEFAULT_GAIN,
    *,
    decoder: AudioDecoder,
    store: AudioStore | None = None,
    resample: bool = False,
) -> EncodedAudioFile:
    """One-shot convenience wrapper around :class:`MixOrchestrator`."""
    orchestrator = MixOrchestrator(decoder, store)
    return await orchestrator.mix_sources(a, b, gain_a, gain_b, resample=resample)
