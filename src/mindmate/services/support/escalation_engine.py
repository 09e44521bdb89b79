"""
Escalation Engine

Tiered support-request state machine:

    none -> buddyRequested -> communityRequested -> globalRequested
                                                  -> supportProvided

SAFETY-CRITICAL: This module decides who is told that a user may need
help. The assessment's support_request_status column is authoritative;
notifications are advisory.

ARCHITECTURE:
- Timers are durable. Entering a tier writes escalation_due_at in the
  same conditional UPDATE that sets the tier's status, and a periodic
  reconciliation pass (``process_due_escalations``) fires expired ones.
  Any number of instances may run the pass.
- Every transition re-reads the current status and then writes with a
  guard on that status. Losing the guard means another actor moved the
  request first; the loser does nothing further.
- A user without buddies skips the buddy tier. Community and global
  tiers always hold for their timeout, even if nobody could be told.
- When the global timer fires on a request that is still open, the
  global pool is reminded once and the timer is cleared.

Documented race: a tier notification can still go out just after
support was recorded. The status guard keeps the state correct.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from mindmate.config.logging_config import get_logger
from mindmate.config.settings import EscalationSettings
from mindmate.domain.enums import AnalysisType, SupportDirection, SupportRequestStatus, SupportTier
from mindmate.domain.errors import NotFoundError
from mindmate.domain.models import Notification, SupportHistoryEntry
from mindmate.infrastructure.database.connection import DatabaseManager
from mindmate.infrastructure.database.repositories import (
    AssessmentRepository,
    SupportState,
    SupportStatisticsRepository,
)
from mindmate.infrastructure.metrics import track_escalation, track_support_provided
from mindmate.infrastructure.monitoring import capture_exception_with_context, capture_support_event
from mindmate.infrastructure.notifications import (
    NotificationSender,
    build_support_received_notification,
    build_support_request_notification,
)
from mindmate.services.support.support_network import SupportNetwork

logger = get_logger(__name__)

# Re-read/retry budget when a concurrent transition beats recordSupportProvided
MAX_CREDIT_ATTEMPTS = 3


class EscalationEngine:
    """
    Drives support requests through the tiers.

    Usage:
        engine = EscalationEngine(db, network, notifier, settings.escalation)
        status = await engine.initiate_support_request(user_id, assessment_id)
        ...
        await engine.process_due_escalations()
        credited = await engine.record_support_provided(assessment_id, helper_id)
    """

    def __init__(
        self,
        db: DatabaseManager,
        network: SupportNetwork,
        notifier: NotificationSender,
        settings: EscalationSettings,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._db = db
        self._network = network
        self._notifier = notifier
        self._settings = settings
        self._clock = clock

    def tier_timeout(self, tier: SupportTier) -> timedelta:
        minutes = {
            SupportTier.BUDDY: self._settings.buddy_timeout_minutes,
            SupportTier.COMMUNITY: self._settings.community_timeout_minutes,
            SupportTier.GLOBAL: self._settings.global_timeout_minutes,
        }[tier]
        return timedelta(minutes=minutes)

    # =========================================================================
    # INITIATION
    # =========================================================================

    async def initiate_support_request(self, user_id: UUID, assessment_id: UUID) -> SupportRequestStatus:
        """
        Open a support request for an assessment.

        Buddies are asked first; a user with no buddies goes straight
        to the community tier without any buddy notification.

        Returns:
            The request status after initiation

        Raises:
            NotFoundError: If the assessment does not exist
        """
        state = await self._read_state(assessment_id)
        if state is None:
            raise NotFoundError("Assessment", assessment_id)

        if state.analysis_type == AnalysisType.BASELINE:
            logger.warning("Refusing to escalate a baseline assessment", assessment_id=str(assessment_id))
            return state.status

        if state.status != SupportRequestStatus.NONE:
            logger.info(
                "Support request already open",
                assessment_id=str(assessment_id),
                status=state.status.value,
            )
            return state.status

        entered = await self._enter_tier(assessment_id, user_id, SupportTier.BUDDY, SupportRequestStatus.NONE)
        if entered is not None:
            return entered

        current = await self._read_state(assessment_id)
        return current.status if current else SupportRequestStatus.NONE

    async def _enter_tier(
        self,
        assessment_id: UUID,
        user_id: UUID,
        tier: SupportTier,
        expected: SupportRequestStatus,
    ) -> Optional[SupportRequestStatus]:
        """
        Move the request from ``expected`` into ``tier`` and notify it.

        Returns:
            The new status, or None if another actor changed the status first
        """
        recipients = await self._network.recipients(tier, user_id)
        if tier == SupportTier.BUDDY and not recipients:
            logger.info("No buddy peers, skipping buddy tier", user_id=str(user_id))
            tier = SupportTier.COMMUNITY
            recipients = await self._network.recipients(tier, user_id)

        target = tier.requested_status
        now = self._clock()

        async with self._db.session() as session:
            won = await AssessmentRepository(session).transition_status(
                assessment_id,
                expected,
                target,
                support_request_time=now,
            )
            if won:
                await self.schedule_escalation(assessment_id, tier, session_repo=AssessmentRepository(session))

        if not won:
            logger.info(
                "Support status changed concurrently, not escalating",
                assessment_id=str(assessment_id),
                expected=expected.value,
            )
            return None

        track_escalation(expected.value, target.value)
        logger.info(
            "Support request escalated",
            assessment_id=str(assessment_id),
            from_status=expected.value,
            to_status=target.value,
            recipients=len(recipients),
        )

        if not recipients:
            logger.warning("No recipients in support tier", assessment_id=str(assessment_id), tier=tier.value)

        await self._notify_all([
            build_support_request_notification(recipient, tier, user_id, assessment_id)
            for recipient in recipients
        ])
        return target

    # =========================================================================
    # TIMERS
    # =========================================================================

    async def schedule_escalation(
        self,
        assessment_id: UUID,
        from_tier: SupportTier,
        *,
        delay: Optional[timedelta] = None,
        session_repo: Optional[AssessmentRepository] = None,
    ) -> Optional[datetime]:
        """
        Persist the time at which ``from_tier`` times out.

        The write is guarded on the tier's requested status, so a timer
        is never armed for a request that has already moved on.

        Args:
            delay: Override for the tier's configured timeout
            session_repo: Repository bound to an open transaction to
                join; a new transaction is used otherwise

        Returns:
            The due time, or None if the status no longer matched
        """
        due_at = self._clock() + (delay if delay is not None else self.tier_timeout(from_tier))

        if session_repo is not None:
            armed = await session_repo.set_escalation_due(assessment_id, from_tier.requested_status, due_at)
        else:
            async with self._db.session() as session:
                armed = await AssessmentRepository(session).set_escalation_due(
                    assessment_id, from_tier.requested_status, due_at
                )

        return due_at if armed else None

    async def escalate(self, assessment_id: UUID, from_tier: SupportTier) -> bool:
        """
        Fire the ``from_tier`` timer.

        Advances to the next tier only if the status still equals the
        tier's requested state. For the global tier, sends one reminder
        and clears the timer.

        Returns:
            True if this call advanced or reminded, False if the timer
            was stale
        """
        state = await self._read_state(assessment_id)
        if state is None:
            return False

        if state.status != from_tier.requested_status:
            logger.info(
                "Escalation timer stale",
                assessment_id=str(assessment_id),
                tier=from_tier.value,
                status=state.status.value,
            )
            return False

        next_tier = from_tier.next_tier
        if next_tier is not None:
            entered = await self._enter_tier(assessment_id, state.user_id, next_tier, state.status)
            return entered is not None

        return await self._remind_global(state)

    async def _remind_global(self, state: SupportState) -> bool:
        async with self._db.session() as session:
            cleared = await AssessmentRepository(session).set_escalation_due(
                state.assessment_id, SupportRequestStatus.GLOBAL_REQUESTED, None
            )
        if not cleared:
            return False

        recipients = await self._network.recipients(SupportTier.GLOBAL, state.user_id)
        logger.warning(
            "Support request unanswered after global tier, sending reminder",
            assessment_id=str(state.assessment_id),
            recipients=len(recipients),
        )
        capture_support_event(
            "Support request unanswered after global tier",
            extra={"assessment_id": str(state.assessment_id)},
        )
        await self._notify_all([
            build_support_request_notification(
                recipient, SupportTier.GLOBAL, state.user_id, state.assessment_id, reminder=True
            )
            for recipient in recipients
        ])
        return True

    async def process_due_escalations(self, now: Optional[datetime] = None) -> int:
        """
        Reconciliation pass: fire every expired tier timer.

        A failure on one assessment is logged and does not stop the pass.

        Returns:
            Number of requests advanced or reminded
        """
        now = now or self._clock()
        async with self._db.session() as session:
            due = await AssessmentRepository(session).get_due_escalations(now)

        fired = 0
        for state in due:
            tier = state.status.tier
            if tier is None:
                continue
            try:
                if await self.escalate(state.assessment_id, tier):
                    fired += 1
            except Exception as e:
                logger.error(
                    "Escalation failed",
                    assessment_id=str(state.assessment_id),
                    tier=tier.value,
                    error=str(e),
                )
                capture_exception_with_context(e, user_id=str(state.user_id))

        if due:
            logger.info("Escalation pass complete", due=len(due), fired=fired)
        return fired

    # =========================================================================
    # SUPPORT PROVIDED
    # =========================================================================

    async def record_support_provided(self, assessment_id: UUID, provider_id: UUID) -> bool:
        """
        Credit ``provider_id`` with answering a support request.

        The credited tier is derived from the status just before this
        call. The status change and all counter increments commit in one
        transaction, guarded on that status, so a request is credited at
        most once.

        Returns:
            False if the assessment does not exist, has no open request,
            was already answered, or belongs to the provider
        """
        for _ in range(MAX_CREDIT_ATTEMPTS):
            state = await self._read_state(assessment_id)
            if state is None:
                logger.info("Support target not found", assessment_id=str(assessment_id))
                return False

            tier = state.status.tier
            if tier is None:
                logger.info(
                    "No open support request",
                    assessment_id=str(assessment_id),
                    status=state.status.value,
                )
                return False

            if state.user_id == provider_id:
                logger.info("User cannot answer their own support request", assessment_id=str(assessment_id))
                return False

            now = self._clock()
            async with self._db.session() as session:
                won = await AssessmentRepository(session).transition_status(
                    assessment_id,
                    state.status,
                    SupportRequestStatus.SUPPORT_PROVIDED,
                    support_provided_by=provider_id,
                    support_provided_time=now,
                    escalation_due_at=None,
                )
                if won:
                    await self._credit(SupportStatisticsRepository(session), state, provider_id, tier, now)

            if won:
                track_escalation(state.status.value, SupportRequestStatus.SUPPORT_PROVIDED.value)
                track_support_provided(tier.value)
                logger.info(
                    "Support provided",
                    assessment_id=str(assessment_id),
                    provider_id=str(provider_id),
                    tier=tier.value,
                )
                await self._notify_all([
                    build_support_received_notification(state.user_id, provider_id, assessment_id, tier)
                ])
                return True

            logger.info("Support status changed concurrently, re-reading", assessment_id=str(assessment_id))

        return False

    async def _credit(
        self,
        session_stats: SupportStatisticsRepository,
        state: SupportState,
        provider_id: UUID,
        tier: SupportTier,
        at: datetime,
    ) -> None:
        await session_stats.increment(provider_id, SupportDirection.PROVIDED, tier, at)
        await session_stats.increment(state.user_id, SupportDirection.RECEIVED, tier, at)
        await session_stats.append_history(provider_id, SupportHistoryEntry(
            direction=SupportDirection.PROVIDED,
            tier=tier,
            timestamp=at,
            counterpart_id=state.user_id,
            assessment_id=state.assessment_id,
        ))
        await session_stats.append_history(state.user_id, SupportHistoryEntry(
            direction=SupportDirection.RECEIVED,
            tier=tier,
            timestamp=at,
            counterpart_id=provider_id,
            assessment_id=state.assessment_id,
        ))

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _read_state(self, assessment_id: UUID) -> Optional[SupportState]:
        async with self._db.session() as session:
            return await AssessmentRepository(session).get_support_state(assessment_id)

    async def _notify_all(self, notifications: list[Notification]) -> int:
        """Best-effort fan-out. One failure never stops the rest."""
        delivered = 0
        for notification in notifications:
            try:
                ok = await self._notifier.notify(notification)
            except Exception as e:
                logger.error(
                    "Notifier raised, continuing",
                    user_id=str(notification.user_id),
                    error=str(e),
                )
                ok = False
            delivered += int(ok)
        return delivered
