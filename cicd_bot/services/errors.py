"""
Exceptions raised by the CI/CD configuration collaborators.

Every failure carries an ErrorKind so the orchestrator can record it in
structured form alongside the human-readable log line.
"""

from datetime import datetime, timezone
from typing import Optional

from cicd_bot.models.error import ErrorKind, ErrorRecord


class CiCdError(Exception):
    """Base exception for CI/CD configuration failures."""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step = step


class FilesystemError(CiCdError):
    """Working directory could not be created or removed."""

    kind = ErrorKind.FILESYSTEM


class RepositoryError(CiCdError):
    """A git operation (clone, branch, commit, push) failed."""

    kind = ErrorKind.REPOSITORY


class RemoteApiError(CiCdError):
    """A GitHub API call failed."""

    kind = ErrorKind.REMOTE_API

    def __init__(self, message: str, status_code: Optional[int] = None, step: Optional[str] = None):
        super().__init__(message, step=step)
        self.status_code = status_code


class GenerationError(CiCdError):
    """The CI/CD configuration generator failed."""

    kind = ErrorKind.GENERATION


def error_message(error: Exception) -> str:
    """Text of an error, or its type name when it carries no message."""
    return str(error) or type(error).__name__


def to_error_record(error: Exception, step: Optional[str] = None) -> ErrorRecord:
    """
    Convert any exception into an ErrorRecord.

    Args:
        error: Exception raised by a step
        step: Step that was running, used when the error does not carry one

    Returns:
        ErrorRecord with the error's kind, or UNEXPECTED for foreign errors
    """
    if isinstance(error, CiCdError):
        kind = error.kind
        step = error.step or step
    else:
        kind = ErrorKind.UNEXPECTED

    return ErrorRecord(
        kind=kind,
        step=step,
        error_type=type(error).__name__,
        message=error_message(error),
        timestamp=datetime.now(timezone.utc),
    )
