"""
Analysis Pipeline

Orchestrates one mental-health analysis run:

    Collector -> Preprocessor -> Formatter -> Model -> Parser -> Merger
      -> Store -> (recent runs that need support) Escalation Engine

Two entry points share the flow and diverge downstream:

- analyze_recent: 3-day window, compared against the current baseline,
  writes an Assessment and opens a support request when needed.
- establish_baseline: full history (or a configured cap), never asks for
  support, writes a Baseline plus a baseline Assessment.

SAFETY_CRITICAL: A baseline run must never reach the escalation engine.

ARCHITECTURE: Every collaborator is injected. Nothing here reaches for
a process-wide singleton, so the model endpoint and the escalation
engine are replaced by fakes in tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
from uuid import UUID

from mindmate.config.logging_config import get_logger
from mindmate.config.settings import AnalysisSettings
from mindmate.domain.enums import (
    ActivityLevel,
    AnalysisType,
    MentalHealthStatus,
    SleepQuality,
)
from mindmate.domain.errors import NotFoundError
from mindmate.domain.models import (
    ALL_HISTORY,
    AnalysisResult,
    Assessment,
    Baseline,
    SignalWindow,
    SweepReport,
)
from mindmate.infrastructure.database.connection import DatabaseManager
from mindmate.infrastructure.database.repositories import (
    AssessmentRepository,
    BaselineRepository,
    HealthSignalRepository,
    UserRepository,
)
from mindmate.infrastructure.llm import LLMProvider, TransportError
from mindmate.infrastructure.metrics import (
    track_parse_outcome,
    track_pipeline_run,
    track_sweep_user,
)
from mindmate.infrastructure.monitoring import capture_exception_with_context
from mindmate.services.analysis.baseline_comparison import compare_to_baseline
from mindmate.services.analysis.heuristic_preprocessor import (
    HeuristicPreprocessor,
    count_data_points,
)
from mindmate.services.analysis.prompt_formatter import PromptFormatter
from mindmate.services.analysis.response_merger import ResponseMerger
from mindmate.services.analysis.response_parser import ParsedResponse, ResponseParser
from mindmate.services.analysis.signal_collector import SignalCollector
from mindmate.services.support.escalation_engine import EscalationEngine

logger = get_logger(__name__)

LIMITED_DATA_DAYS = 5
LIMITED_DATA_NOTE = (
    "Limited historical data available. For more accurate baselines, "
    "continue recording health data."
)
BASELINE_ESTABLISHED_NOTE = "Baseline established successfully"

TREND_LENGTH = 10


@dataclass
class BaselineOutcome:
    """What establish_baseline produced."""

    baseline: Baseline
    assessment: Assessment
    note: str

    def to_dict(self) -> dict:
        return {
            **self.baseline.to_dict(),
            "assessmentId": str(self.assessment.id),
            "analysisType": AnalysisType.BASELINE.value,
            "note": self.note,
        }


class AnalysisPipeline:
    """
    Runs analyses and answers queries about their results.

    Usage:
        pipeline = AnalysisPipeline(
            db=db,
            collector=SignalCollector(db),
            preprocessor=HeuristicPreprocessor(),
            formatter=PromptFormatter(),
            llm=create_llm_provider(settings.llm),
            parser=ResponseParser(),
            merger=ResponseMerger(),
            escalation=engine,
            settings=settings.analysis,
        )
        assessment = await pipeline.analyze_recent(user_id)
    """

    def __init__(
        self,
        db: DatabaseManager,
        collector: SignalCollector,
        preprocessor: HeuristicPreprocessor,
        formatter: PromptFormatter,
        llm: LLMProvider,
        parser: ResponseParser,
        merger: ResponseMerger,
        escalation: EscalationEngine,
        settings: AnalysisSettings,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._db = db
        self._collector = collector
        self._preprocessor = preprocessor
        self._formatter = formatter
        self._llm = llm
        self._parser = parser
        self._merger = merger
        self._escalation = escalation
        self._settings = settings
        self._clock = clock

    @property
    def recent_window_days(self) -> int:
        return self._settings.recent_window_days

    # =========================================================================
    # PIPELINE RUNS
    # =========================================================================

    async def analyze_recent(self, user_id: UUID) -> Assessment:
        """
        Assess the user's last few days and open a support request if needed.

        Raises:
            NotFoundError: If the user does not exist
            TransportError: If the model endpoint failed
        """
        await self._require_user(user_id)

        window = await self._collector.collect(
            user_id, self._settings.recent_window_days, AnalysisType.RECENT
        )
        async with self._db.session() as session:
            baseline = await BaselineRepository(session).get_latest(user_id)

        parsed, result = await self._run_model(window, baseline)

        comparison = compare_to_baseline(result.reasoning, baseline) if baseline else None
        result.reasoning.additional_factors["comparedToBaseline"] = baseline is not None

        assessment = self._to_assessment(user_id, AnalysisType.RECENT, parsed, result)
        assessment.baseline_comparison = comparison

        async with self._db.session() as session:
            await AssessmentRepository(session).add(assessment)

        track_pipeline_run(AnalysisType.RECENT.value, assessment.status.value)
        logger.info(
            "Recent analysis stored",
            user_id=str(user_id),
            assessment_id=str(assessment.id),
            status=assessment.status.value,
            needs_support=assessment.needs_support,
            parse_outcome=parsed.outcome.value,
            has_baseline=baseline is not None,
        )

        if not assessment.needs_support:
            return assessment

        await self._escalation.initiate_support_request(user_id, assessment.id)
        async with self._db.session() as session:
            return await AssessmentRepository(session).get(assessment.id) or assessment

    async def establish_baseline(self, user_id: UUID) -> BaselineOutcome:
        """
        Characterize the user's normal pattern from their history.

        Never requests support, whatever the data or the model say.

        Raises:
            NotFoundError: If the user does not exist
            TransportError: If the model endpoint failed
        """
        await self._require_user(user_id)

        window_days = self._settings.baseline_max_days or ALL_HISTORY
        window = await self._collector.collect(user_id, window_days, AnalysisType.BASELINE)

        parsed, result = await self._run_model(window, None)
        result.needs_support = False
        result.support_reason = None
        result.support_tips = None

        data_points = count_data_points(window)
        exercise_seconds = sum(sample.exercise_seconds for sample in window.samples)
        exercise_per_week = round(exercise_seconds / 60 / max(data_points.total_days, 1) * 7, 1)

        baseline = Baseline(
            user_id=user_id,
            metrics=result.reasoning,
            confidence_score=result.confidence_score,
            data_points=data_points,
            exercise_minutes_per_week=exercise_per_week,
            raw_assessment=result.to_dict(),
            parse_outcome=parsed.outcome,
            established_at=self._clock(),
        )
        assessment = self._to_assessment(user_id, AnalysisType.BASELINE, parsed, result)

        async with self._db.session() as session:
            await BaselineRepository(session).add(baseline)
            await AssessmentRepository(session).add(assessment)

        track_pipeline_run(AnalysisType.BASELINE.value, assessment.status.value)
        logger.info(
            "Baseline established",
            user_id=str(user_id),
            baseline_id=str(baseline.id),
            total_days=data_points.total_days,
            parse_outcome=parsed.outcome.value,
        )

        note = LIMITED_DATA_NOTE if data_points.total_days < LIMITED_DATA_DAYS else BASELINE_ESTABLISHED_NOTE
        return BaselineOutcome(baseline=baseline, assessment=assessment, note=note)

    async def run_daily_analysis(self) -> SweepReport:
        """
        Run analyze_recent for every active user, one at a time.

        A failure for one user is logged and skipped; the sweep always
        finishes.
        """
        async with self._db.session() as session:
            user_ids = await UserRepository(session).get_active_user_ids()

        logger.info("Daily analysis started", users=len(user_ids))
        report = SweepReport()

        for user_id in user_ids:
            try:
                assessment = await self.analyze_recent(user_id)
            except Exception as e:
                report.failed += 1
                track_sweep_user(failed=True)
                logger.error(
                    "Daily analysis failed for user",
                    user_id=str(user_id),
                    error_type=type(e).__name__,
                    error=str(e),
                )
                if not isinstance(e, TransportError):
                    capture_exception_with_context(e, user_id=str(user_id))
                continue

            report.analyzed += 1
            report.support_requested += int(assessment.needs_support)
            track_sweep_user(failed=False)

        logger.info("Daily analysis complete", **report.to_dict())
        return report

    async def _run_model(
        self,
        window: SignalWindow,
        baseline: Optional[Baseline],
    ) -> tuple[ParsedResponse, AnalysisResult]:
        draft = self._preprocessor.analyze(window)
        prompt = self._formatter.format(window, draft, baseline=baseline)

        try:
            response = await self._llm.generate(prompt)
        except TransportError:
            track_pipeline_run(window.analysis_type.value, "error")
            raise

        parsed = self._parser.parse(response.content)
        track_parse_outcome(parsed.outcome.value)
        if parsed.is_degraded:
            logger.warning(
                "Model response degraded",
                user_id=str(window.user_id),
                outcome=parsed.outcome.value,
                notes=parsed.notes,
            )

        return parsed, self._merger.merge(parsed, draft)

    def _to_assessment(
        self,
        user_id: UUID,
        analysis_type: AnalysisType,
        parsed: ParsedResponse,
        result: AnalysisResult,
    ) -> Assessment:
        return Assessment(
            user_id=user_id,
            status=result.status,
            confidence_score=result.confidence_score,
            analysis_type=analysis_type,
            reasoning=result.reasoning,
            needs_support=bool(result.needs_support),
            support_reason=result.support_reason,
            support_tips=list(result.support_tips or []),
            parse_outcome=parsed.outcome,
            timestamp=self._clock(),
        )

    async def _require_user(self, user_id: UUID) -> None:
        async with self._db.session() as session:
            if not await UserRepository(session).exists(user_id):
                raise NotFoundError("User", user_id)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_latest_assessment(self, user_id: UUID) -> Optional[Assessment]:
        async with self._db.session() as session:
            return await AssessmentRepository(session).get_latest(user_id)

    async def get_latest_baseline(self, user_id: UUID) -> Optional[Baseline]:
        async with self._db.session() as session:
            return await BaselineRepository(session).get_latest(user_id)

    async def get_assessment_history(
        self,
        user_id: UUID,
        limit: int = 10,
        analysis_type: Optional[AnalysisType] = None,
    ) -> list[Assessment]:
        async with self._db.session() as session:
            return await AssessmentRepository(session).get_history(
                user_id, limit=limit, analysis_type=analysis_type
            )

    async def get_baseline_history(self, user_id: UUID, limit: int = 10) -> list[Baseline]:
        async with self._db.session() as session:
            return await BaselineRepository(session).get_history(user_id, limit=limit)

    async def get_assessment_stats(self, user_id: UUID, days: int = 30) -> dict[str, Any]:
        """
        Distributions, averages and a short trend over the last ``days`` days.
        """
        end = self._clock()
        start = end - timedelta(days=days)

        async with self._db.session() as session:
            assessments = await AssessmentRepository(session).get_history(
                user_id, limit=10_000, since=start
            )
            baseline = await BaselineRepository(session).get_latest(user_id)
        assessments.reverse()

        status_counts = {s.value: 0 for s in MentalHealthStatus}
        sleep_counts = {q.value: 0 for q in SleepQuality}
        activity_counts = {a.value: 0 for a in ActivityLevel}
        type_counts = {t.value: 0 for t in AnalysisType}
        moods = []

        for assessment in assessments:
            reasoning = assessment.reasoning
            status_counts[assessment.status.value] += 1
            type_counts[assessment.analysis_type.value] += 1
            if reasoning.sleep_quality:
                sleep_counts[reasoning.sleep_quality.value] += 1
            if reasoning.activity_level:
                activity_counts[reasoning.activity_level.value] += 1
            if reasoning.check_in_mood is not None:
                moods.append(reasoning.check_in_mood)

        total = len(assessments)
        return {
            "totalAssessments": total,
            "statusDistribution": status_counts,
            "sleepQualityDistribution": sleep_counts,
            "activityLevelDistribution": activity_counts,
            "analysisTypeDistribution": type_counts,
            "averageConfidence": (
                round(sum(a.confidence_score for a in assessments) / total, 2) if total else 0
            ),
            "averageMood": round(sum(moods) / len(moods), 1) if moods else 0,
            "trends": [
                {
                    "date": a.timestamp.isoformat(),
                    "status": a.status.value,
                    "confidence": a.confidence_score,
                    "mood": a.reasoning.check_in_mood,
                    "analysisType": a.analysis_type.value,
                }
                for a in assessments[-TREND_LENGTH:]
            ],
            "baseline": {
                "establishedAt": baseline.established_at.isoformat(),
                "sleepQuality": baseline.metrics.sleep_quality.value if baseline.metrics.sleep_quality else None,
                "activityLevel": (
                    baseline.metrics.activity_level.value if baseline.metrics.activity_level else None
                ),
                "averageMoodScore": baseline.metrics.check_in_mood,
                "confidenceScore": baseline.confidence_score,
            } if baseline else None,
            "period": {
                "days": days,
                "startDate": start.isoformat(),
                "endDate": end.isoformat(),
            },
        }

    async def get_baseline_analyzed_data(self, user_id: UUID) -> Optional[dict[str, Any]]:
        """Samples and check-ins behind the latest baseline, newest first."""
        baseline = await self.get_latest_baseline(user_id)
        if baseline is None:
            return None

        total_days = baseline.data_points.total_days
        end = baseline.established_at
        start = end - timedelta(days=total_days)
        return await self._analyzed_data(user_id, AnalysisType.BASELINE, start, end, total_days)

    async def get_recent_analyzed_data(self, user_id: UUID) -> Optional[dict[str, Any]]:
        """Samples and check-ins behind the latest recent analysis, newest first."""
        async with self._db.session() as session:
            assessment = await AssessmentRepository(session).get_latest(user_id, AnalysisType.RECENT)
        if assessment is None:
            return None

        days = self._settings.recent_window_days
        end = assessment.timestamp
        start = end - timedelta(days=days)
        return await self._analyzed_data(user_id, AnalysisType.RECENT, start, end, days)

    async def _analyzed_data(
        self,
        user_id: UUID,
        analysis_type: AnalysisType,
        start: datetime,
        end: datetime,
        total_days: int,
    ) -> dict[str, Any]:
        async with self._db.session() as session:
            repo = HealthSignalRepository(session)
            samples = await repo.get_samples(user_id, start.date(), end.date())
            check_ins = await repo.get_check_ins(user_id, start, end)

        return {
            "analysisType": analysis_type.value,
            "period": {
                "startDate": start.isoformat(),
                "endDate": end.isoformat(),
                "totalDays": total_days,
            },
            "healthData": [sample.to_dict() for sample in reversed(samples)],
            "checkIns": [check_in.to_dict() for check_in in reversed(check_ins)],
        }
