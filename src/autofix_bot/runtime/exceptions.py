"""Exceptions for process supervision.

Note: names chosen to avoid collisions with stdlib exceptions
(TimeoutError, ProcessLookupError).
"""


class SupervisionError(Exception):
    """Base exception for process supervision."""


class ProcessNotFound(SupervisionError):
    """Raised when a kill target is not tracked or already exited."""


class SpawnFailure(SupervisionError):
    """Raised when a command could not be started."""


class CommandTimeout(SupervisionError):
    """Raised when a synchronous command exceeds its time bound."""

    def __init__(self, message: str, stdout: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class PreviewUnavailable(SupervisionError):
    """Raised when a preview server cannot be hosted."""
