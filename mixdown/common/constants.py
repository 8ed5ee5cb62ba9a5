"""Shared constants for mixing, encoding and the sound library."""

# Mix output
OUTPUT_CHANNELS = 2  # Mixes are always stereo
DEFAULT_GAIN = 0.7  # Per-source gain used by the mix view

# WAV container
WAV_HEADER_SIZE = 44
WAV_FMT_CHUNK_SIZE = 16
WAV_FORMAT_PCM = 1
BITS_PER_SAMPLE = 16
BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8
INT16_NEGATIVE_SCALE = 32768  # -1.0 maps to -32768
INT16_POSITIVE_SCALE = 32767  # +1.0 maps to 32767

# Microphone recording
RECORD_SAMPLE_RATE = 48000  # Hz
RECORD_CHANNELS = 1
RECORD_BLOCK_SIZE = 960  # 20ms at 48kHz
RECORD_FORMAT = "FLAC"

# Freesound
FREESOUND_API_URL = "https://freesound.org/apiv2"
FREESOUND_SEARCH_FIELDS = "id,name,previews,username"
FREESOUND_TIMEOUT = 10.0  # seconds

# Library
DEFAULT_DATA_DIR = "./data"
