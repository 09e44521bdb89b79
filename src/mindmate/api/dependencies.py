"""
API Dependencies

The service container and the FastAPI dependencies that read from it.

ARCHITECTURE: One ServiceContainer is built per application and stored
on ``app.state.container``. Endpoints never construct services.
Tests build a container around fakes and attach it the same way.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from mindmate.config.logging_config import get_logger
from mindmate.config.settings import Settings
from mindmate.domain.errors import parse_identifier
from mindmate.infrastructure.database import DatabaseManager
from mindmate.infrastructure.llm import LLMProvider, create_llm_provider
from mindmate.infrastructure.metrics import update_system_info
from mindmate.infrastructure.monitoring import init_sentry
from mindmate.infrastructure.notifications import NotificationDispatcher, NotificationSender
from mindmate.services.analysis.analysis_pipeline import AnalysisPipeline
from mindmate.services.analysis.heuristic_preprocessor import HeuristicPreprocessor
from mindmate.services.analysis.prompt_formatter import PromptFormatter
from mindmate.services.analysis.response_merger import ResponseMerger
from mindmate.services.analysis.response_parser import ResponseParser
from mindmate.services.analysis.signal_collector import SignalCollector
from mindmate.services.support import (
    EscalationEngine,
    SupportNetwork,
    SupportScheduler,
    SupportStatisticsService,
)

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Every long-lived service of one application instance."""

    settings: Settings
    db: DatabaseManager
    llm: LLMProvider
    notifier: NotificationSender
    network: SupportNetwork
    escalation: EscalationEngine
    statistics: SupportStatisticsService
    pipeline: AnalysisPipeline
    scheduler: Optional[SupportScheduler] = None

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        db: Optional[DatabaseManager] = None,
        llm: Optional[LLMProvider] = None,
        notifier: Optional[NotificationSender] = None,
    ) -> "ServiceContainer":
        """
        Wire the services together.

        ``db``, ``llm`` and ``notifier`` default to the configured
        implementations and can be replaced for tests.
        """
        db = db or DatabaseManager(settings.database, echo=settings.debug)
        llm = llm or create_llm_provider(settings.llm)
        notifier = notifier or NotificationDispatcher(db)

        network = SupportNetwork(db, global_pool_limit=settings.escalation.global_pool_limit)
        escalation = EscalationEngine(db, network, notifier, settings.escalation)
        pipeline = AnalysisPipeline(
            db=db,
            collector=SignalCollector(db),
            preprocessor=HeuristicPreprocessor(),
            formatter=PromptFormatter(
                temperature=settings.llm.temperature,
                max_tokens=settings.llm.max_tokens,
            ),
            llm=llm,
            parser=ResponseParser(),
            merger=ResponseMerger(),
            escalation=escalation,
            settings=settings.analysis,
        )

        scheduler = None
        if settings.escalation.scheduler_enabled:
            sweep_enabled = settings.analysis.daily_sweep_enabled
            scheduler = SupportScheduler(
                reconcile=escalation.process_due_escalations,
                reconcile_interval_seconds=settings.escalation.reconcile_interval_seconds,
                sweep=pipeline.run_daily_analysis if sweep_enabled else None,
                sweep_interval_seconds=settings.analysis.daily_sweep_interval_hours * 3600,
            )

        return cls(
            settings=settings,
            db=db,
            llm=llm,
            notifier=notifier,
            network=network,
            escalation=escalation,
            statistics=SupportStatisticsService(db, network),
            pipeline=pipeline,
            scheduler=scheduler,
        )

    async def start(self) -> None:
        """Connect to the database, enable monitoring, start background loops."""
        await self.db.initialize()
        if self.settings.database.async_url.startswith("sqlite"):
            # No migrations for local SQLite runs
            await self.db.create_all()

        init_sentry(
            dsn=self.settings.monitoring.sentry_dsn.get_secret_value(),
            environment=self.settings.env,
            traces_sample_rate=self.settings.monitoring.traces_sample_rate,
        )
        update_system_info(self.settings.env)

        if self.scheduler is not None:
            self.scheduler.start()

    async def shutdown(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()
        await self.llm.close()
        await self.db.close()


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Service container not initialized")
    return container


def get_pipeline(container: ServiceContainer = Depends(get_container)) -> AnalysisPipeline:
    return container.pipeline


def get_escalation_engine(container: ServiceContainer = Depends(get_container)) -> EscalationEngine:
    return container.escalation


def get_statistics_service(
    container: ServiceContainer = Depends(get_container),
) -> SupportStatisticsService:
    return container.statistics


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
) -> UUID:
    """
    Identify the caller.

    Authentication happens upstream; the gateway forwards the
    authenticated user's id in ``X-User-ID``.

    Raises:
        HTTPException: 401 when the header is missing
        ValidationError: When the header is not a valid id
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    return parse_identifier(x_user_id, "X-User-ID")


def get_admin_user_id(
    user_id: UUID = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> UUID:
    """
    Identify the caller and require them on the admin allow-list.

    Raises:
        HTTPException: 403 when the caller is not an admin
    """
    if user_id not in container.settings.admin_user_ids:
        logger.warning("Admin route refused", user_id=str(user_id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user_id
