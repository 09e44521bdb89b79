"""Metrics infrastructure package."""

from mindmate.infrastructure.metrics.prometheus_metrics import (
    metrics_router,
    track_escalation,
    track_llm_request,
    track_notification,
    track_parse_outcome,
    track_pipeline_run,
    track_support_provided,
    track_sweep_user,
    update_system_info,
)

__all__ = [
    "metrics_router",
    "track_escalation",
    "track_llm_request",
    "track_notification",
    "track_parse_outcome",
    "track_pipeline_run",
    "track_support_provided",
    "track_sweep_user",
    "update_system_info",
]
