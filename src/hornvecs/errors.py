"""Error taxonomy for hornvecs."""

from typing import Optional


class HornVecsError(Exception):
    """Base class for every error raised by hornvecs."""


class ConfigurationError(HornVecsError, ValueError):
    """A required option is missing or an option is out of range."""


class DataError(HornVecsError, ValueError):
    """The training data cannot produce a meaningful model."""


class ModelFormatError(HornVecsError, ValueError):
    """A model file has the wrong magic number or version."""


class ModelIOError(HornVecsError, OSError):
    """A corpus, model or vectors file cannot be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)
        self.path = path
