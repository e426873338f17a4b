"""Scheduler dispatcher - re-adds the failed task to an APScheduler instance."""

from apscheduler import AsyncScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queue_monitor.core.logging import get_logger
from queue_monitor.services.monitor_queries import get_by_job_uuid
from queue_monitor.services.tracker import MonitorTracker

from .base import BaseRetryDispatcher
from .models import DispatchResult

logger = get_logger(__name__)


class SchedulerRetryDispatcher(BaseRetryDispatcher):
    """
    Re-enqueue jobs on an APScheduler ``AsyncScheduler``.

    The monitor record for ``job_uuid`` supplies the task id (its ``name``);
    a new job for that task is added and picked up by the scheduler's
    workers like any other. The new job runs ad hoc, so it is linked on the
    tracker to the failed record's ``job_id`` to continue its attempts.
    """

    dispatcher_name = "scheduler"

    def __init__(
        self,
        scheduler: AsyncScheduler,
        session_factory: async_sessionmaker[AsyncSession],
        tracker: MonitorTracker | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.tracker = tracker
        self._session_factory = session_factory

    async def dispatch(self, job_uuid: str) -> DispatchResult:
        async with self._session_factory() as db:
            monitor = await get_by_job_uuid(db, job_uuid)

        if monitor is None or not monitor.name:
            return self._result(job_uuid, 1, f"No task recorded for job {job_uuid}")

        try:
            new_job_id = await self.scheduler.add_job(monitor.name)
        except LookupError as e:
            return self._result(job_uuid, 1, f"Unknown task {monitor.name}: {e}")

        if self.tracker is not None:
            await self.tracker.link_retry(str(new_job_id), monitor.job_id)

        logger.bind(
            job_uuid=job_uuid,
            job_id=monitor.job_id,
            task_id=monitor.name,
            new_job_id=str(new_job_id),
        ).info("scheduler_job_readded")
        return self._result(job_uuid, 0, f"Re-enqueued {monitor.name} as job {new_job_id}")

    def _result(self, job_uuid: str, exit_code: int, output: str) -> DispatchResult:
        return DispatchResult(
            job_uuid=job_uuid,
            dispatcher=self.dispatcher_name,
            exit_code=exit_code,
            output=output,
        )
