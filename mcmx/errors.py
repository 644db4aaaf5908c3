"""Error taxonomy shared by every mcmx module."""


class McmError(Exception):
    """Base class for all mcmx errors."""


class FormatError(McmError, ValueError):
    """Malformed input: bad header, bad line, truncated stream, bad image size."""


class RangeError(McmError, ValueError):
    """A character index, value or payload size is outside its bounds."""


class ConflictError(McmError):
    """Two sources claim the same character in incompatible ways."""

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message)
        self.index = index


class ConfigurationError(McmError):
    """Invalid generate configuration (missing fonts, cycles, missing files)."""
