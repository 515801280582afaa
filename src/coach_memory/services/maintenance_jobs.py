import asyncio
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from coach_memory.core.logging import get_logger
from coach_memory.domain.models import MaintenanceReport
from coach_memory.services.summary_maintenance import SummaryMaintenanceWorker

logger = get_logger(__name__)


class MaintenanceScheduler:
    """Tracked background summary maintenance.

    At most one run per owner is in flight; submitting again while a run is
    active returns the running task. Periodic runs go through the same
    registry, so a slow run is never overlapped by the next interval.
    """

    def __init__(
        self,
        worker: SummaryMaintenanceWorker,
        scheduler: AsyncIOScheduler | None = None,
        interval_minutes: int = 60,
    ):
        self.worker = worker
        self.scheduler = scheduler or AsyncIOScheduler()
        self.interval_minutes = interval_minutes
        self._tasks: dict[str, asyncio.Task[MaintenanceReport]] = {}
        self._reports: dict[str, MaintenanceReport] = {}
        self._errors: dict[str, str] = {}

    def submit(self, owner_id: str) -> asyncio.Task[MaintenanceReport]:
        """Start a maintenance run for the owner, or return the one in flight."""
        running = self._tasks.get(owner_id)
        if running is not None and not running.done():
            logger.debug(f"Maintenance already running for owner {owner_id}")
            return running

        task = asyncio.create_task(self.worker.run(owner_id), name=f"summary-maintenance:{owner_id}")
        self._tasks[owner_id] = task
        task.add_done_callback(lambda t, owner=owner_id: self._on_done(owner, t))
        logger.info(f"Submitted summary maintenance for owner {owner_id}")
        return task

    def _on_done(self, owner_id: str, task: asyncio.Task[MaintenanceReport]) -> None:
        if self._tasks.get(owner_id) is task:
            del self._tasks[owner_id]
        if task.cancelled():
            logger.info(f"Summary maintenance cancelled for owner {owner_id}")
            return
        error = task.exception()
        if error is not None:
            self._errors[owner_id] = str(error)
            logger.error(
                f"Summary maintenance crashed for owner {owner_id}: {error!s}",
                error_type=type(error).__name__,
            )
            return
        self._errors.pop(owner_id, None)
        self._reports[owner_id] = task.result()

    async def wait(self, owner_id: str) -> MaintenanceReport | None:
        """Wait for the owner's in-flight run; the last report when none is running."""
        task = self._tasks.get(owner_id)
        if task is not None:
            return await task
        return self._reports.get(owner_id)

    async def cancel(self, owner_id: str) -> bool:
        task = self._tasks.get(owner_id)
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

    def last_report(self, owner_id: str) -> MaintenanceReport | None:
        return self._reports.get(owner_id)

    async def _scheduled_run(self, owner_id: str) -> None:
        try:
            await self.submit(owner_id)
        except Exception as e:
            # already recorded by the done callback
            logger.warning(f"Scheduled maintenance for owner {owner_id} failed: {e!s}")

    def schedule(self, owner_id: str, minutes: int | None = None) -> str:
        """Run maintenance for the owner every ``minutes`` (default ``interval_minutes``); returns the job id."""
        minutes = minutes or self.interval_minutes
        job_id = f"summary_maintenance:{owner_id}"
        self.scheduler.add_job(
            self._scheduled_run,
            "interval",
            minutes=minutes,
            args=[owner_id],
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Scheduled summary maintenance for owner {owner_id} every {minutes} minutes")
        return job_id

    def unschedule(self, owner_id: str) -> bool:
        job = self.scheduler.get_job(f"summary_maintenance:{owner_id}")
        if job is None:
            return False
        job.remove()
        return True

    async def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info("MaintenanceScheduler started - background summary maintenance active")

    async def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        for owner_id in list(self._tasks):
            await self.cancel(owner_id)
        logger.info("MaintenanceScheduler shutdown complete")

    def status(self) -> dict[str, Any]:
        """Scheduler, in-flight and last-run status."""
        return {
            "scheduler_running": self.scheduler.running,
            "jobs": [
                {
                    "id": job.id,
                    "next_run": job.next_run_time.isoformat()
                    if getattr(job, "next_run_time", None)
                    else None,
                }
                for job in self.scheduler.get_jobs()
            ],
            "running": sorted(owner for owner, task in self._tasks.items() if not task.done()),
            "last_reports": {
                owner: {"success": report.success, "updated": report.updated_count}
                for owner, report in self._reports.items()
            },
            "errors": dict(self._errors),
        }
