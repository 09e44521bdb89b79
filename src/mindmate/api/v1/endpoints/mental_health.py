"""
Mental Health Endpoints

Thin adapters over the analysis pipeline, the escalation engine and the
support statistics service. The caller is identified by X-User-ID.

SAFETY_CRITICAL: provide-support is the only way a support request is
closed. It must stay idempotent: a second call for the same assessment
credits nobody and answers 404.
"""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mindmate.api.dependencies import (
    get_admin_user_id,
    get_current_user_id,
    get_escalation_engine,
    get_pipeline,
    get_statistics_service,
)
from mindmate.config.logging_config import get_logger
from mindmate.domain.enums import AnalysisType, SupportTier
from mindmate.domain.errors import parse_identifier
from mindmate.services.analysis.analysis_pipeline import AnalysisPipeline
from mindmate.services.support import EscalationEngine, SupportStatisticsService

logger = get_logger(__name__)
router = APIRouter()


# Request/Response Models

class CamelModel(BaseModel):
    """Serializes with the camelCase names the mobile client reads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReasoningSummary(CamelModel):
    sleep_quality: Optional[str] = None
    activity_level: Optional[str] = None
    average_mood: Optional[float] = None
    significant_changes: list[str] = Field(default_factory=list)


class AnalysisResponse(CamelModel):
    """Summary returned after a recent analysis."""

    message: str
    assessment_id: UUID
    status: str
    needs_support: bool
    confidence_score: float
    support_request_status: str
    baseline_comparison: Optional[dict[str, Optional[str]]] = None
    reasoning: ReasoningSummary
    analysis_type: str
    focus_period: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Recent mental health assessment completed",
                "assessmentId": "123e4567-e89b-12d3-a456-426614174000",
                "status": "declining",
                "needsSupport": True,
                "confidenceScore": 0.7,
                "supportRequestStatus": "buddyRequested",
                "baselineComparison": None,
                "reasoning": {
                    "sleepQuality": "poor",
                    "activityLevel": "low",
                    "averageMood": 2.5,
                    "significantChanges": [],
                },
                "analysisType": "recent",
                "focusPeriod": "3 days",
            }
        },
    )


class ProvideSupportResponse(CamelModel):
    message: str
    assessment_id: UUID


class SupportRequestsResponse(CamelModel):
    tier: str
    requests: list[dict[str, Any]]


class MessageResponse(BaseModel):
    message: str


# Analysis

@router.post(
    "/analyze-recent",
    response_model=AnalysisResponse,
    summary="Analyze the last few days",
)
async def analyze_recent(
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> AnalysisResponse:
    """
    Run a recent analysis for the caller.

    Opens a support request when the result needs support.
    """
    assessment = await pipeline.analyze_recent(user_id)
    reasoning = assessment.reasoning

    return AnalysisResponse(
        message="Recent mental health assessment completed",
        assessment_id=assessment.id,
        status=assessment.status.value,
        needs_support=assessment.needs_support,
        confidence_score=assessment.confidence_score,
        support_request_status=assessment.support_request_status.value,
        baseline_comparison=assessment.baseline_comparison,
        reasoning=ReasoningSummary(
            sleep_quality=reasoning.sleep_quality.value if reasoning.sleep_quality else None,
            activity_level=reasoning.activity_level.value if reasoning.activity_level else None,
            average_mood=reasoning.check_in_mood,
            significant_changes=list(reasoning.significant_changes or []),
        ),
        analysis_type=AnalysisType.RECENT.value,
        focus_period=f"{pipeline.recent_window_days} days",
    )


@router.post("/establish-baseline", summary="Establish a baseline from history")
async def establish_baseline(
    include_raw_data: bool = Query(default=False, alias="includeRawData"),
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> dict:
    outcome = await pipeline.establish_baseline(user_id)
    response = {"message": "Baseline analysis completed", **outcome.to_dict()}
    if include_raw_data:
        response["rawData"] = await pipeline.get_baseline_analyzed_data(user_id)
    return response


# Queries

@router.get("/assessment", summary="Latest assessment")
async def get_latest_assessment(
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> dict:
    assessment = await pipeline.get_latest_assessment(user_id)
    if assessment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No mental health assessment found",
        )
    return assessment.to_dict()


@router.get("/baseline", summary="Latest baseline")
async def get_latest_baseline(
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> dict:
    baseline = await pipeline.get_latest_baseline(user_id)
    if baseline is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No baseline found")
    return baseline.to_dict()


@router.get("/history", summary="Assessment history, newest first")
async def get_history(
    limit: int = Query(default=10, ge=1, le=100),
    include_support_details: bool = Query(default=False, alias="includeSupportDetails"),
    analysis_type: Optional[AnalysisType] = Query(default=None, alias="analysisType"),
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> list[dict]:
    history = await pipeline.get_assessment_history(user_id, limit=limit, analysis_type=analysis_type)
    return [a.to_dict(include_support_details=include_support_details) for a in history]


@router.get("/baseline/history", summary="Baseline history, newest first")
async def get_baseline_history(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> list[dict]:
    return [b.to_dict() for b in await pipeline.get_baseline_history(user_id, limit=limit)]


@router.get("/stats", summary="Assessment statistics")
async def get_stats(
    days: int = Query(default=30, ge=1, le=365),
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> dict:
    return await pipeline.get_assessment_stats(user_id, days=days)


@router.get("/baseline/analyzed-data", summary="Data behind the latest baseline")
async def get_baseline_analyzed_data(
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> dict:
    data = await pipeline.get_baseline_analyzed_data(user_id)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No baseline found")
    return data


@router.get("/recent/analyzed-data", summary="Data behind the latest recent analysis")
async def get_recent_analyzed_data(
    user_id: UUID = Depends(get_current_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> dict:
    data = await pipeline.get_recent_analyzed_data(user_id)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No recent assessment found")
    return data


# Support

@router.get("/support-statistics", summary="Caller's support statistics")
async def get_support_statistics(
    user_id: UUID = Depends(get_current_user_id),
    statistics: SupportStatisticsService = Depends(get_statistics_service),
) -> dict:
    return (await statistics.get_statistics(user_id)).to_dict()


@router.post(
    "/provide-support/{assessment_id}",
    response_model=ProvideSupportResponse,
    summary="Record that the caller helped",
)
async def provide_support(
    assessment_id: str,
    user_id: UUID = Depends(get_current_user_id),
    escalation: EscalationEngine = Depends(get_escalation_engine),
) -> ProvideSupportResponse:
    target = parse_identifier(assessment_id, "assessment id")
    credited = await escalation.record_support_provided(target, user_id)
    if not credited:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Assessment not found or support already provided",
        )
    return ProvideSupportResponse(message="Support marked as provided", assessment_id=target)


@router.get(
    "/support-requests/{tier}",
    response_model=SupportRequestsResponse,
    summary="Open requests the caller can answer",
)
async def get_support_requests(
    tier: SupportTier,
    user_id: UUID = Depends(get_current_user_id),
    statistics: SupportStatisticsService = Depends(get_statistics_service),
) -> SupportRequestsResponse:
    requests = await statistics.get_active_support_requests(tier, user_id)
    return SupportRequestsResponse(tier=tier.value, requests=[r.to_dict() for r in requests])


# Admin

@router.post("/admin/establish-baseline/{target_user_id}", response_model=MessageResponse)
async def admin_establish_baseline(
    target_user_id: str,
    user_id: UUID = Depends(get_admin_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> MessageResponse:
    target = parse_identifier(target_user_id, "user id")
    await pipeline.establish_baseline(target)
    logger.info("Admin baseline established", requested_by=str(user_id), user_id=str(target))
    return MessageResponse(message="Baseline establishment triggered")


@router.post("/admin/run-daily-analysis", response_model=MessageResponse)
async def admin_run_daily_analysis(
    background_tasks: BackgroundTasks,
    user_id: UUID = Depends(get_admin_user_id),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> MessageResponse:
    background_tasks.add_task(pipeline.run_daily_analysis)
    logger.info("Daily analysis queued", requested_by=str(user_id))
    return MessageResponse(message="Daily analysis started")
