"""Data models for the CI/CD configuration service."""

from .api_response import CiCdAccepted, LogsResponse
from .ci_cd import (
    PULL_REQUEST_BODY,
    CiCdRequest,
    build_branch_name,
    build_commit_message,
    build_pull_request_title,
    capitalize,
)
from .error import ErrorKind, ErrorRecord
from .log_entry import LogEntry, LogEvent, LogStatus
from .user import User

__all__ = [
    # Request models
    "User",
    "CiCdRequest",
    "build_branch_name",
    "build_commit_message",
    "build_pull_request_title",
    "capitalize",
    "PULL_REQUEST_BODY",
    # Log stream models
    "LogEvent",
    "LogStatus",
    "LogEntry",
    # Error models
    "ErrorKind",
    "ErrorRecord",
    # API response models
    "CiCdAccepted",
    "LogsResponse",
]
