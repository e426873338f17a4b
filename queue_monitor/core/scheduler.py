"""
APScheduler integration.

Feeds monitor records from an application's ``AsyncScheduler`` events:

- JobAdded: a QUEUED record (job_id = schedule id, or task id for ad hoc jobs)
- JobAcquired: the record moves to RUNNING
- JobReleased: SUCCEEDED, or FAILED with the exception type, message and
  traceback carried by the event

The host application owns the scheduler; call ``attach_monitoring`` once it
has entered its context.
"""

from typing import Any

from apscheduler import AsyncScheduler, JobAcquired, JobAdded, JobOutcome, JobReleased

from queue_monitor.core.logging import get_logger
from queue_monitor.services.tracker import MonitorTracker

logger = get_logger(__name__)

# Scheduler being monitored, also used by the scheduler retry dispatcher
scheduler: AsyncScheduler | None = None
_tracker: MonitorTracker | None = None


def attach_monitoring(target: AsyncScheduler, tracker: MonitorTracker | None = None) -> None:
    """Subscribe monitor tracking to a scheduler's job events."""
    global scheduler, _tracker

    if tracker is None:
        from queue_monitor.core.database import AsyncSessionLocal

        tracker = MonitorTracker(AsyncSessionLocal)

    scheduler = target
    _tracker = tracker
    target.subscribe(_on_job_event, {JobAdded, JobAcquired, JobReleased})
    logger.info("scheduler_monitoring_attached")


def detach_monitoring() -> None:
    """Forget the monitored scheduler. Its subscription ends with its context."""
    global scheduler, _tracker
    scheduler = None
    _tracker = None


def get_tracker() -> MonitorTracker | None:
    """Get the tracker fed by the monitored scheduler, if one is attached."""
    return _tracker


def _logical_job_id(event: Any) -> str:
    return getattr(event, "schedule_id", None) or getattr(event, "task_id", None) or "unknown"


async def _on_job_event(event: Any) -> None:
    """Handle job lifecycle events."""
    if _tracker is None:
        return

    job_uuid = str(event.job_id)
    try:
        if isinstance(event, JobAdded):
            await _tracker.job_queued(
                job_id=_logical_job_id(event),
                job_uuid=job_uuid,
                name=getattr(event, "task_id", None),
            )
        elif isinstance(event, JobAcquired):
            await _tracker.job_started(
                job_id=_logical_job_id(event),
                job_uuid=job_uuid,
                name=getattr(event, "task_id", None),
            )
        elif isinstance(event, JobReleased):
            await _record_release(_tracker, event, job_uuid)
    except Exception as e:
        logger.bind(error=str(e), event=type(event).__name__, job_uuid=job_uuid).error(
            "failed_to_record_job_event"
        )


async def _record_release(tracker: MonitorTracker, event: JobReleased, job_uuid: str) -> None:
    started_at = getattr(event, "started_at", None)

    if event.outcome == JobOutcome.success:
        await tracker.job_succeeded(job_uuid, started_at=started_at)
        return

    traceback_lines = getattr(event, "exception_traceback", None) or []
    await tracker.job_failed(
        job_uuid,
        exception_class=getattr(event, "exception_type", None),
        exception_message=getattr(event, "exception_message", None)
        or f"Job outcome: {event.outcome.name}",
        exception_trace="".join(traceback_lines) or None,
    )
