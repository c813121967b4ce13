"""Exception types raised by the audit components."""
from __future__ import annotations


class VmaError(Exception):
    """Base class for all auditor errors."""


class ConfigurationError(VmaError):
    """Bad input/output directories; fatal before any file is touched."""


class NotFoundError(VmaError):
    """The directory to scan does not exist."""


class PlaybackError(VmaError):
    """A file could not be opened, decoded or sent to the output device."""


class RecognitionError(VmaError):
    """The speech model or the microphone could not be started."""


class DispatchError(VmaError, OSError):
    """Moving or deleting a file failed."""

    def __init__(self, message: str, path: object = None) -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        msg = self.args[0] if self.args else ""
        if self.path is not None:
            return f"{msg}: {self.path}"
        return str(msg)
