"""
Job runner integration.

The job runner calls these hooks as a job moves through the queue:
``job_queued`` when it is enqueued, ``job_started`` when a worker picks it
up, ``report_progress`` while it runs and ``job_succeeded``/``job_failed``
when it ends. Each hook runs in its own session and commits.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queue_monitor.config import get_config
from queue_monitor.core.datetime_utils import to_naive_utc, utc_now
from queue_monitor.core.exceptions import ClockSkew, MalformedTimestamp, MonitorNotFound
from queue_monitor.core.logging import get_logger
from queue_monitor.models.monitor import Monitor, MonitorStatus
from queue_monitor.services.monitor_queries import get_by_job_uuid, get_latest_attempt

logger = get_logger(__name__)


def _elapsed_for_log(monitor: Monitor) -> float | None:
    try:
        return round(monitor.get_elapsed_seconds(), 3)
    except (ClockSkew, MalformedTimestamp):
        return None


class MonitorTracker:
    """Writes job lifecycle transitions to monitor records."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        progress_cooldown_seconds: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        if progress_cooldown_seconds is None:
            progress_cooldown_seconds = get_config().monitor.progress_cooldown_seconds
        self.progress_cooldown_seconds = progress_cooldown_seconds
        self._last_progress_at: dict[str, datetime] = {}
        # Re-enqueued job_uuid -> job_id of the failed attempt it retries
        self._retry_job_ids: dict[str, str] = {}

    async def _require(self, db: AsyncSession, job_uuid: str) -> Monitor:
        monitor = await get_by_job_uuid(db, job_uuid)
        if monitor is None:
            raise MonitorNotFound(f"No monitor for job_uuid {job_uuid}")
        return monitor

    async def _next_attempt(self, db: AsyncSession, job_id: str, attempt: int | None) -> int:
        latest = await get_latest_attempt(db, job_id)
        if attempt is None:
            return latest + 1
        if attempt < latest:
            logger.bind(job_id=job_id, attempt=attempt, latest=latest).warning(
                "monitor_attempt_out_of_order"
            )
            return latest
        return attempt

    def _resolve_job_id(self, job_id: str, job_uuid: str | None) -> str:
        if job_uuid is None:
            return job_id
        return self._retry_job_ids.get(job_uuid, job_id)

    def _forget(self, job_uuid: str) -> None:
        self._last_progress_at.pop(job_uuid, None)
        self._retry_job_ids.pop(job_uuid, None)

    async def link_retry(self, job_uuid: str, job_id: str) -> Monitor | None:
        """
        Attribute a re-enqueued job to the logical job it retries.

        Backends that re-add a failed job as a new ad hoc job report it under
        a different identity; the link keeps its attempts counting under the
        original job_id. A record already created for job_uuid is moved over.

        Returns:
            The moved Monitor, or None if no record exists yet
        """
        self._retry_job_ids[job_uuid] = job_id

        async with self._session_factory() as db:
            monitor = await get_by_job_uuid(db, job_uuid)
            if monitor is None or monitor.job_id == job_id:
                return monitor
            latest = await get_latest_attempt(db, job_id)
            monitor.job_id = job_id
            monitor.attempt = latest + 1
            await db.commit()

        logger.bind(job_id=job_id, job_uuid=job_uuid, attempt=monitor.attempt).info(
            "monitor_retry_linked"
        )
        return monitor

    async def job_queued(
        self,
        job_id: str,
        job_uuid: str | None = None,
        name: str | None = None,
        queue: str | None = None,
        data: Mapping[str, Any] | None = None,
        at: datetime | None = None,
    ) -> Monitor:
        """Create a QUEUED record for a freshly enqueued job."""
        job_id = self._resolve_job_id(job_id, job_uuid)
        async with self._session_factory() as db:
            monitor = Monitor(
                job_id=job_id,
                job_uuid=job_uuid,
                name=name,
                queue=queue or get_config().monitor.default_queue,
                queued_at=to_naive_utc(at) if at is not None else utc_now(),
                status=MonitorStatus.QUEUED,
                attempt=await self._next_attempt(db, job_id, None),
            )
            if data:
                monitor.set_data(data)
            db.add(monitor)
            await db.commit()

        logger.bind(job_id=job_id, job_uuid=job_uuid, monitor_id=monitor.id).debug(
            "monitor_job_queued"
        )
        return monitor

    async def job_started(
        self,
        job_id: str,
        job_uuid: str | None = None,
        name: str | None = None,
        queue: str | None = None,
        attempt: int | None = None,
        at: datetime | None = None,
    ) -> Monitor:
        """Mark a job as running, reusing its QUEUED record when there is one."""
        job_id = self._resolve_job_id(job_id, job_uuid)
        async with self._session_factory() as db:
            monitor = await get_by_job_uuid(db, job_uuid) if job_uuid else None

            if monitor is None or monitor.status != MonitorStatus.QUEUED:
                monitor = Monitor(
                    job_id=job_id,
                    job_uuid=job_uuid,
                    name=name,
                    queue=queue or get_config().monitor.default_queue,
                    attempt=await self._next_attempt(db, job_id, attempt),
                )
                db.add(monitor)
            elif attempt is not None:
                monitor.attempt = max(attempt, monitor.attempt)

            monitor.name = name or monitor.name
            monitor.mark_running(at)
            await db.commit()

        logger.bind(
            job_id=job_id, job_uuid=job_uuid, attempt=monitor.attempt, monitor_id=monitor.id
        ).info("monitor_job_started")
        return monitor

    async def report_progress(
        self,
        job_uuid: str,
        progress: int | float,
        at: datetime | None = None,
    ) -> Monitor | None:
        """
        Record self-reported progress for a running job.

        Writes within the cooldown window of the previous write are skipped,
        except for 0 and 100 which are always recorded.

        Returns:
            The updated Monitor, or None if the write was skipped
        """
        now = to_naive_utc(at) if at is not None else utc_now()
        last = self._last_progress_at.get(job_uuid)
        if (
            self.progress_cooldown_seconds > 0
            and last is not None
            and 0 < progress < 100
            and (now - last).total_seconds() < self.progress_cooldown_seconds
        ):
            return None

        async with self._session_factory() as db:
            monitor = await self._require(db, job_uuid)
            monitor.set_progress(progress)
            await db.commit()

        self._last_progress_at[job_uuid] = now
        self._prune_progress(now)
        return monitor

    def _prune_progress(self, now: datetime) -> None:
        # Entries older than the cooldown no longer throttle anything
        self._last_progress_at = {
            job_uuid: at
            for job_uuid, at in self._last_progress_at.items()
            if (now - at).total_seconds() < self.progress_cooldown_seconds
        }

    async def merge_data(self, job_uuid: str, data: Mapping[str, Any]) -> Monitor:
        """Merge job-supplied key/values into the record payload."""
        async with self._session_factory() as db:
            monitor = await self._require(db, job_uuid)
            monitor.set_data(data, merge=True)
            await db.commit()
        return monitor

    async def job_succeeded(
        self,
        job_uuid: str,
        at: datetime | None = None,
        started_at: datetime | None = None,
    ) -> Monitor:
        """Finish a job successfully."""
        async with self._session_factory() as db:
            monitor = await self._require(db, job_uuid)
            if monitor.status == MonitorStatus.QUEUED:
                # Start event was missed, use the runner's start time if known
                monitor.mark_running(started_at or at)
            monitor.mark_succeeded(at)
            await db.commit()

        self._forget(job_uuid)
        logger.bind(
            job_id=monitor.job_id,
            job_uuid=job_uuid,
            elapsed_seconds=_elapsed_for_log(monitor),
        ).info("monitor_job_succeeded")
        return monitor

    async def job_failed(
        self,
        job_uuid: str,
        exc: BaseException | None = None,
        exception_class: str | None = None,
        exception_message: str | None = None,
        exception_trace: str | None = None,
        at: datetime | None = None,
    ) -> Monitor:
        """
        Finish a job as failed.

        Pass the live exception when the runner has it; runners that only
        see a serialized failure pass the class name, message and trace.
        """
        async with self._session_factory() as db:
            monitor = await self._require(db, job_uuid)
            monitor.mark_failed(at, exc)
            if exc is None:
                monitor.exception_class = exception_class
                monitor.exception_message = exception_message
                monitor.exception = exception_trace
            await db.commit()

        self._forget(job_uuid)
        logger.bind(
            job_id=monitor.job_id,
            job_uuid=job_uuid,
            exception_class=monitor.exception_class,
            error=monitor.exception_message,
        ).warning("monitor_job_failed")
        return monitor
