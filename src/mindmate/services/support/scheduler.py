"""
Support Scheduler

Background loops started with the application:

- Escalation reconciliation: every ``reconcile_interval_seconds``, fire
  expired tier timers. Timers live in the database, so a restart or a
  second instance never loses or duplicates an escalation.
- Daily sweep (optional): every ``daily_sweep_interval_hours``, run a
  recent analysis for every active user.

Poll, act, sleep. A failing pass is logged and the loop continues.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from mindmate.config.logging_config import get_logger
from mindmate.domain.models import SweepReport
from mindmate.infrastructure.monitoring import capture_exception_with_context

logger = get_logger(__name__)


class SupportScheduler:
    """
    Usage:
        scheduler = SupportScheduler(engine.process_due_escalations, 60)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        reconcile: Callable[[], Awaitable[int]],
        reconcile_interval_seconds: float,
        sweep: Optional[Callable[[], Awaitable[SweepReport]]] = None,
        sweep_interval_seconds: Optional[float] = None,
    ) -> None:
        self._reconcile = reconcile
        self._reconcile_interval = reconcile_interval_seconds
        self._sweep = sweep
        self._sweep_interval = sweep_interval_seconds
        self._tasks: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler already running")
            return

        self._tasks = [
            asyncio.create_task(
                self._loop("escalation_reconcile", self._reconcile, self._reconcile_interval)
            )
        ]
        if self._sweep is not None and self._sweep_interval:
            self._tasks.append(
                asyncio.create_task(self._loop("daily_sweep", self._sweep, self._sweep_interval))
            )
        logger.info("Scheduler started", loops=len(self._tasks))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Scheduler stopped")

    async def _loop(self, name: str, job: Callable[[], Awaitable], interval: float) -> None:
        while True:
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Scheduled job failed", job=name, error=str(e))
                capture_exception_with_context(e, extra={"job": name})
            await asyncio.sleep(interval)
