"""
Unit Tests for Support Scheduler

Loop lifecycle with in-process jobs; intervals are long so each job
runs exactly once per test.
"""

import asyncio

from mindmate.domain.models import SweepReport
from mindmate.services.support import SupportScheduler


class TestSupportScheduler:
    """Tests for the background loops."""

    async def test_runs_reconcile_and_sweep(self) -> None:
        """Test that both loops run their job and stop cleanly."""
        reconciled = asyncio.Event()
        swept = asyncio.Event()
        reports: list[SweepReport] = []

        async def reconcile() -> int:
            reconciled.set()
            return 0

        async def sweep() -> SweepReport:
            report = SweepReport(analyzed=2, failed=1)
            reports.append(report)
            swept.set()
            return report

        scheduler = SupportScheduler(reconcile, 3600, sweep=sweep, sweep_interval_seconds=3600)
        scheduler.start()
        await asyncio.wait_for(reconciled.wait(), timeout=1)
        await asyncio.wait_for(swept.wait(), timeout=1)

        assert scheduler.is_running
        await scheduler.stop()

        assert not scheduler.is_running
        assert reports[0].to_dict() == {"analyzed": 2, "failed": 1, "supportRequested": 0}

    async def test_sweep_loop_is_optional(self) -> None:
        """Test that only the reconcile loop starts without a sweep job."""
        async def reconcile() -> int:
            return 0

        scheduler = SupportScheduler(reconcile, 3600)
        scheduler.start()
        await asyncio.sleep(0)

        assert len(scheduler._tasks) == 1
        await scheduler.stop()

    async def test_failing_job_keeps_loop_alive(self) -> None:
        """Test that an exception in a job is logged and the loop continues."""
        attempts = 0
        second_attempt = asyncio.Event()

        async def reconcile() -> int:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("database unavailable")
            second_attempt.set()
            return 0

        scheduler = SupportScheduler(reconcile, 0.01)
        scheduler.start()
        await asyncio.wait_for(second_attempt.wait(), timeout=1)
        await scheduler.stop()

        assert attempts >= 2
