"""Error tracking data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Failure category of a CI/CD configuration run."""

    FILESYSTEM = "filesystem"
    REPOSITORY = "repository"
    REMOTE_API = "remote_api"
    GENERATION = "generation"
    UNEXPECTED = "unexpected"


class ErrorRecord(BaseModel):
    """Error record for tracking failures."""

    kind: ErrorKind
    step: Optional[str] = None
    error_type: str
    message: str
    timestamp: datetime
