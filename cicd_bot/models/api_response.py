"""API response data models."""

from typing import List

from pydantic import BaseModel

from .log_entry import LogEntry, LogStatus


class CiCdAccepted(BaseModel):
    """Response returned once a CI/CD configuration run is dispatched."""

    ci_cd_id: str
    status: str
    logs_url: str


class LogsResponse(BaseModel):
    """Log stream of a CI/CD configuration run."""

    ci_cd_id: str
    status: LogStatus
    entries: List[LogEntry] = []
