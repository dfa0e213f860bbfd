"""Exceptions raised by the execution relay."""

from typing import Optional


class PlayboxError(Exception):
    """Base class for relay errors."""


class SubmissionInvalid(PlayboxError, ValueError):
    """The submitted code is missing, not a string, or too long."""


class EngineUnavailable(PlayboxError):
    """The container engine API is unreachable or not functional."""


class ImagePullFailed(PlayboxError):
    """The runtime image was absent and could not be pulled."""


class ExecutionTimeout(PlayboxError):
    """A run exceeded its wall-clock budget and was killed."""


class SpawnFailed(PlayboxError):
    """The container engine could not start the container."""


class ExecutionFailed(PlayboxError):
    """Uniform failure reported to callers of the session manager.

    The message is the underlying error's message; the original error is
    kept in ``reason`` and chained as ``__cause__``.
    """

    def __init__(self, message: str, reason: Optional[BaseException] = None):
        super().__init__(message)
        self.reason = reason
