"""
Prometheus Metrics

Metrics for the analysis pipeline and the support escalation flow.
Exposed at /metrics for Prometheus scraping.

ARCHITECTURE: Metrics are decoupled from business logic.
Only increment/observe; never block on metrics operations.
"""

import time
from functools import wraps
from typing import Callable

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

from mindmate import __version__

# =============================================================================
# ANALYSIS PIPELINE METRICS
# =============================================================================

PIPELINE_RUNS_TOTAL = Counter(
    "mindmate_pipeline_runs_total",
    "Analysis pipeline runs",
    ["analysis_type", "status"],  # mental health status, or "error"
)

PARSE_OUTCOMES_TOTAL = Counter(
    "mindmate_parse_outcomes_total",
    "Model responses by parse outcome",
    ["outcome"],  # strict, repaired, failed
)

SWEEP_USERS_TOTAL = Counter(
    "mindmate_daily_sweep_users_total",
    "Users processed by the daily sweep",
    ["result"],  # analyzed, failed
)

# =============================================================================
# LLM METRICS
# =============================================================================

LLM_REQUESTS_TOTAL = Counter(
    "mindmate_llm_requests_total",
    "Total LLM requests by provider",
    ["provider", "status"],  # success, error
)

LLM_LATENCY = Histogram(
    "mindmate_llm_latency_seconds",
    "LLM response latency",
    ["provider"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

# =============================================================================
# SUPPORT METRICS
# =============================================================================

ESCALATION_TRANSITIONS_TOTAL = Counter(
    "mindmate_escalation_transitions_total",
    "Support request status transitions",
    ["from_status", "to_status"],
)

SUPPORT_PROVIDED_TOTAL = Counter(
    "mindmate_support_provided_total",
    "Support provided, by credited tier",
    ["tier"],
)

NOTIFICATIONS_TOTAL = Counter(
    "mindmate_notifications_total",
    "Notification dispatch attempts",
    ["type", "result"],  # delivered, failed
)

# =============================================================================
# SYSTEM INFO
# =============================================================================

SYSTEM_INFO = Info(
    "mindmate_system",
    "MindMate system information",
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def track_llm_request(provider: str) -> Callable:
    """Decorator to track LLM request count and latency."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
                LLM_REQUESTS_TOTAL.labels(provider=provider, status="success").inc()
                return result
            except Exception:
                LLM_REQUESTS_TOTAL.labels(provider=provider, status="error").inc()
                raise
            finally:
                LLM_LATENCY.labels(provider=provider).observe(time.time() - start_time)
        return wrapper
    return decorator


def track_pipeline_run(analysis_type: str, status: str) -> None:
    PIPELINE_RUNS_TOTAL.labels(analysis_type=analysis_type, status=status).inc()


def track_parse_outcome(outcome: str) -> None:
    PARSE_OUTCOMES_TOTAL.labels(outcome=outcome).inc()


def track_escalation(from_status: str, to_status: str) -> None:
    """Record a support request status transition."""
    ESCALATION_TRANSITIONS_TOTAL.labels(from_status=from_status, to_status=to_status).inc()


def track_support_provided(tier: str) -> None:
    SUPPORT_PROVIDED_TOTAL.labels(tier=tier).inc()


def track_notification(notification_type: str, delivered: bool) -> None:
    NOTIFICATIONS_TOTAL.labels(
        type=notification_type,
        result="delivered" if delivered else "failed",
    ).inc()


def track_sweep_user(failed: bool) -> None:
    SWEEP_USERS_TOTAL.labels(result="failed" if failed else "analyzed").inc()


def update_system_info(environment: str, version: str = __version__) -> None:
    """Update system info metric with current environment."""
    SYSTEM_INFO.info({
        "version": version,
        "environment": environment,
    })


# =============================================================================
# METRICS ENDPOINT
# =============================================================================

metrics_router = APIRouter(tags=["metrics"])


@metrics_router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )
