"""Error types raised by the mixing pipeline and its collaborators.

Every pipeline error carries the ``stage`` it failed in so callers can
present a message without inspecting the exception type.
"""


class MixError(Exception):
    """Base class for failures inside a mix operation."""

    stage = "mix"


class DecodeError(MixError):
    """Compressed audio could not be decoded (empty, malformed or unsupported)."""

    stage = "decode"

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source is None:
            return self.message
        return f"Failed to decode {self.source}: {self.message}"


class InvalidGainError(MixError, ValueError):
    """A gain parameter was NaN or infinite."""


class EmptyBufferError(MixError):
    """Both mix inputs were empty."""


class EncodingError(MixError):
    """A buffer reaching the encoder violated the output layout."""

    stage = "encode"


class PersistenceError(MixError):
    """The sound library could not read or write an entry."""

    stage = "persist"


class FreesoundError(Exception):
    """A Freesound API request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
