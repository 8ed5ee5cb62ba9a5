"""Tests for 16-bit PCM WAV encoding."""

from __future__ import annotations

import io
import struct
import wave

import numpy as np
import pytest
import soundfile as sf
from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra.numpy import arrays

from mixdown.audio.buffers import DecodedBuffer, MixedBuffer
from mixdown.audio.mixer import mix
from mixdown.audio.wav_codec import (
    build_header,
    decode_wav,
    dequantize,
    encode,
    parse_header,
    quantize,
)
from mixdown.common.errors import DecodeError, EncodingError

QUANTIZATION_STEP = 1 / 32768


def stereo(left: list[float], right: list[float], sample_rate: int = 44100) -> MixedBuffer:
    return MixedBuffer(
        sample_rate=sample_rate, channels=np.array([left, right], dtype=np.float32)
    )


def read_with_wave(data: bytes) -> tuple[int, int, int, np.ndarray]:
    """Decode with the standard library reader."""
    with wave.open(io.BytesIO(data), "rb") as reader:
        pcm = np.frombuffer(reader.readframes(reader.getnframes()), dtype="<i2")
        return (
            reader.getframerate(),
            reader.getnchannels(),
            reader.getnframes(),
            pcm.reshape(-1, reader.getnchannels()),
        )


class TestHeader:
    """Tests for the 44-byte header layout."""

    def test_silence_container_size(self) -> None:
        """1000 silent frames at 44.1kHz -> 4044 bytes, data size 4000."""
        buffer = MixedBuffer(44100, np.zeros((2, 1000), dtype=np.float32))
        encoded = encode(buffer)

        assert len(encoded.data) == 4044
        assert struct.unpack("<I", encoded.data[40:44])[0] == 4000
        assert struct.unpack("<I", encoded.data[4:8])[0] == 4036

    def test_field_layout(self) -> None:
        header = build_header(4000, 44100, 2)
        assert len(header) == 44
        assert header[0:4] == b"RIFF"
        assert header[8:12] == b"WAVE"
        assert header[12:16] == b"fmt "
        assert struct.unpack("<I", header[16:20])[0] == 16
        assert struct.unpack("<H", header[20:22])[0] == 1
        assert struct.unpack("<H", header[22:24])[0] == 2
        assert struct.unpack("<I", header[24:28])[0] == 44100
        assert struct.unpack("<I", header[28:32])[0] == 44100 * 2 * 2
        assert struct.unpack("<H", header[32:34])[0] == 4
        assert struct.unpack("<H", header[34:36])[0] == 16
        assert header[36:40] == b"data"

    def test_size_fields_wrap(self) -> None:
        """Sizes that don't fit 32 bits wrap instead of raising."""
        data_size = 2**32 + 8
        header = build_header(data_size, 48000, 2)
        assert struct.unpack("<I", header[4:8])[0] == 44
        assert struct.unpack("<I", header[40:44])[0] == 8

    def test_parse_roundtrip(self) -> None:
        header = parse_header(build_header(1234 * 4, 22050, 2))
        assert header.sample_rate == 22050
        assert header.channel_count == 2
        assert header.data_size == 1234 * 4
        assert header.block_align == 4
        assert header.byte_rate == 22050 * 4

    def test_parse_rejects_short_data(self) -> None:
        with pytest.raises(DecodeError):
            parse_header(b"RIFF")

    def test_parse_rejects_non_riff(self) -> None:
        with pytest.raises(DecodeError):
            parse_header(b"OggS" + bytes(40))


class TestQuantize:
    """Tests for float -> int16 conversion."""

    def test_extremes(self) -> None:
        pcm = quantize(np.array([-1.0, 0.0, 1.0]))
        assert pcm.tolist() == [-32768, 0, 32767]

    def test_clamps_out_of_range(self) -> None:
        pcm = quantize(np.array([-3.0, 1.8]))
        assert pcm.tolist() == [-32768, 32767]

    def test_rounds_to_nearest(self) -> None:
        """0.6 / 32767 rounds up rather than truncating to 0."""
        pcm = quantize(np.array([0.6 / 32767, -0.6 / 32768]))
        assert pcm.tolist() == [1, -1]

    def test_dequantize_inverts_extremes(self) -> None:
        values = dequantize(np.array([-32768, 0, 32767], dtype=np.int16))
        np.testing.assert_array_equal(values, [-1.0, 0.0, 1.0])


class TestEncode:
    """Tests for encode()."""

    def test_interleaving(self) -> None:
        encoded = encode(stereo([1.0, 0.0], [-1.0, 0.5]))
        samples = struct.unpack("<4h", encoded.data[44:])
        assert samples == (32767, -32768, 0, 16384)

    def test_metadata(self) -> None:
        encoded = encode(stereo([0.1] * 7, [0.2] * 7, sample_rate=48000))
        assert encoded.sample_rate == 48000
        assert encoded.channel_count == 2
        assert encoded.frame_count == 7
        assert encoded.filename is None
        assert encoded.created_at is None

    def test_clips_headroom(self) -> None:
        encoded = encode(stereo([1.8, -2.0], [0.0, 0.0]))
        samples = struct.unpack("<4h", encoded.data[44:])
        assert samples == (32767, 0, -32768, 0)

    def test_empty_buffer(self) -> None:
        encoded = encode(MixedBuffer(44100, np.zeros((2, 0), dtype=np.float32)))
        assert len(encoded.data) == 44
        assert encoded.frame_count == 0

    def test_rejects_nan_samples(self) -> None:
        with pytest.raises(EncodingError) as exc_info:
            encode(stereo([np.nan], [0.0]))
        assert exc_info.value.stage == "encode"

    def test_infinite_samples_clamp(self) -> None:
        encoded = encode(stereo([np.inf, 0.25], [-np.inf, 0.0]))
        samples = struct.unpack("<4h", encoded.data[44:])
        assert samples == (32767, -32768, 8192, 0)

    def test_mix_with_huge_gain_encodes_full_scale(self) -> None:
        source = DecodedBuffer(44100, np.array([[0.5, -0.5]], dtype=np.float32))
        encoded = encode(mix(source, source, 1e39, 0.0))
        samples = struct.unpack("<4h", encoded.data[44:])
        assert samples == (32767, 32767, -32768, -32768)

    def test_standard_reader_recovers_format(self) -> None:
        """The wave module reads the header; samples use the encoder's own scale.

        With the matching asymmetric scale every sample is within one int16
        step of the input.
        """
        t = np.arange(2000) / 44100
        buffer = stereo(
            list(0.5 * np.sin(2 * np.pi * 440 * t)),
            list(0.25 * np.cos(2 * np.pi * 220 * t)),
        )
        rate, channels, frames, pcm = read_with_wave(encode(buffer).data)

        assert rate == 44100
        assert channels == 2
        assert frames == 2000
        np.testing.assert_allclose(
            dequantize(pcm).T, buffer.channels, atol=QUANTIZATION_STEP
        )

    def test_soundfile_reads_within_two_steps(self) -> None:
        """libsndfile divides every sample by 32768, so positive peaks land
        up to about 1.5 steps away from the input."""
        t = np.arange(2000) / 44100
        buffer = stereo(
            list(0.99 * np.sin(2 * np.pi * 440 * t)),
            list(-0.5 * np.cos(2 * np.pi * 220 * t)),
        )
        samples, rate = sf.read(
            io.BytesIO(encode(buffer).data), dtype="float32", always_2d=True
        )

        assert rate == 44100
        assert samples.shape == (2000, 2)
        np.testing.assert_allclose(samples.T, buffer.channels, atol=2 * QUANTIZATION_STEP)

    @given(
        arrays(
            np.float32,
            st.tuples(st.just(2), st.integers(min_value=0, max_value=200)),
            elements=st.floats(min_value=-1.0, max_value=1.0, width=32),
        ),
        st.sampled_from([8000, 22050, 44100, 48000, 96000]),
    )
    @settings(max_examples=50)
    def test_decode_within_quantization_step_hypothesis(
        self, channels: np.ndarray, sample_rate: int
    ) -> None:
        """Property-based test: every sample survives within one int16 step."""
        buffer = MixedBuffer(sample_rate, channels)
        decoded = decode_wav(encode(buffer).data)

        assert decoded.sample_rate == sample_rate
        assert decoded.channel_count == 2
        assert decoded.frame_count == buffer.frame_count
        np.testing.assert_allclose(
            decoded.channels, buffer.channels, atol=QUANTIZATION_STEP
        )


class TestDecodeWav:
    """Tests for reading back encoded WAV data."""

    def test_ignores_trailing_partial_frame(self) -> None:
        data = encode(stereo([0.5, 0.5], [0.5, 0.5])).data + b"\x01"
        decoded = decode_wav(data)
        assert decoded.frame_count == 2

    def test_rejects_float_format(self) -> None:
        header = bytearray(build_header(0, 44100, 2))
        header[20:22] = struct.pack("<H", 3)
        with pytest.raises(DecodeError):
            decode_wav(bytes(header))
