"""
Metrics collection and emission for observability.

This module provides metrics tracking for:
- CI/CD configuration run duration
- Per-step durations (clone, generate, push, pull request, ...)
- Run outcome
"""

import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

from cicd_bot.utils.logging import get_logger, log_step_transition

logger = get_logger(__name__)


class CiCdMetrics:
    """
    Collects timing metrics during one CI/CD configuration run.

    Durations are diagnostic only: they are written to the application log
    and never to the request's log stream.
    """

    def __init__(self, ci_cd_id: str, organization: str, project: str, ci_cd_tool: str):
        self.ci_cd_id = ci_cd_id
        self.organization = organization
        self.project = project
        self.ci_cd_tool = ci_cd_tool

        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None

        self.step_durations: Dict[str, float] = {}

        self.status: str = "pending"
        self.error_message: Optional[str] = None

    def start(self) -> None:
        """Mark run start."""
        self.start_time = datetime.now(timezone.utc)
        self.status = "running"

    def complete(self, status: str = "completed", error_message: Optional[str] = None) -> None:
        """
        Mark run completion and emit the run summary.

        Args:
            status: Final status ('completed' or 'failed')
            error_message: Error message if failed
        """
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self.error_message = error_message

        if self.start_time:
            duration = (self.end_time - self.start_time).total_seconds()
            self.duration_ms = int(duration * 1000)

        logger.info(
            f"CI/CD configuration {status} for {self.organization}/{self.project}",
            extra=self.get_metrics_summary(),
        )
        emit_metric(
            "ci_cd.run.duration_ms",
            self.duration_ms or 0,
            status=status,
            ci_cd_tool=self.ci_cd_tool,
        )

    def record_step(self, step: str, duration_ms: float) -> None:
        """
        Record the duration of one step.

        Args:
            step: Step name
            duration_ms: Step duration in milliseconds
        """
        self.step_durations[step] = round(duration_ms, 2)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        summary = {
            "ci_cd_id": self.ci_cd_id,
            "organization": self.organization,
            "project": self.project,
            "ci_cd_tool": self.ci_cd_tool,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "step_durations": dict(self.step_durations),
        }

        if self.error_message:
            summary["error_message"] = self.error_message

        return summary


@asynccontextmanager
async def track_step(metrics: Optional[CiCdMetrics], step: str, logger_adapter):
    """
    Context manager to time one orchestration step.

    Usage:
        async with track_step(metrics, "clone", logger):
            await git_service.clone_repository(...)

    Args:
        metrics: Metrics collector (optional)
        step: Step name
        logger_adapter: Logger for step transitions
    """
    ci_cd_id = metrics.ci_cd_id if metrics else ""
    start_time = time.perf_counter()
    log_step_transition(logger_adapter, ci_cd_id, step, "started")

    try:
        yield
    except Exception:
        log_step_transition(logger_adapter, ci_cd_id, step, "failed")
        raise
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        if metrics:
            metrics.record_step(step, duration_ms)

    log_step_transition(logger_adapter, ci_cd_id, step, "completed")


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric.

    Metrics are written to the structured application log; a monitoring
    backend can scrape them from there.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
