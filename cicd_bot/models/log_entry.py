"""Log stream data models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .error import ErrorRecord


class LogEvent(str, Enum):
    """Kind of a log stream entry."""

    CLONE_STARTED = "clone_started"
    BRANCH_CREATING = "branch_creating"
    GENERATING = "generating"
    PUSHING = "pushing"
    PUSHED = "pushed"
    PULL_REQUEST_CREATING = "pull_request_creating"
    PULL_REQUEST_CREATED = "pull_request_created"
    FINISHED = "finished"
    ERROR = "error"
    FAILED = "failed"


class LogStatus(str, Enum):
    """Run status as observed from its log stream."""

    UNKNOWN = "unknown"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


class LogEntry(BaseModel):
    """One timestamped entry of a request's log stream."""

    entry_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event: LogEvent
    message: str
    fields: Dict[str, Any] = {}
    error: Optional[ErrorRecord] = None

    def render(self) -> str:
        """Render the entry as a human-readable line."""
        return f"{self.timestamp.isoformat()} {self.message}"
