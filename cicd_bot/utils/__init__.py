"""
Utility modules for the CI/CD configuration service.
"""

from cicd_bot.utils.logging import (
    get_logger,
    setup_logging,
    log_step_transition,
    log_api_call,
    log_error_with_context,
)
from cicd_bot.utils.metrics import (
    CiCdMetrics,
    track_step,
    emit_metric,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_step_transition",
    "log_api_call",
    "log_error_with_context",
    "CiCdMetrics",
    "track_step",
    "emit_metric",
]
