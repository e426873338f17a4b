"""Monitor API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from queue_monitor.core.exceptions import ClockSkew, MalformedTimestamp
from queue_monitor.models.monitor import Monitor, MonitorStatus


class MonitorResponse(BaseModel):
    """A monitor record with its derived timing and status values."""

    id: int
    job_id: str
    job_uuid: str | None
    name: str | None
    basename: str | None
    queue: str | None
    status: MonitorStatus
    attempt: int
    progress: int | None
    queued_at: datetime | None
    started_at: datetime | None
    finished_at: datetime | None
    is_finished: bool
    has_succeeded: bool
    has_failed: bool
    can_be_retried: bool
    retried: bool
    elapsed_seconds: float | None
    remaining_seconds: float | None
    timing_error: str | None = None  # Corrupt timestamps or clock skew
    exception_class: str | None
    exception_message: str | None

    @classmethod
    def from_monitor(cls, monitor: Monitor, now: datetime | None = None, **extra: Any):
        elapsed = remaining = None
        timing_error = None
        try:
            elapsed = monitor.get_elapsed_seconds(None if monitor.is_finished() else now)
            remaining = monitor.get_remaining_seconds(now)
        except (MalformedTimestamp, ClockSkew) as e:
            timing_error = str(e)

        return cls(
            id=monitor.id,
            job_id=monitor.job_id,
            job_uuid=monitor.job_uuid,
            name=monitor.name,
            basename=monitor.get_basename(),
            queue=monitor.queue,
            status=monitor.status,
            attempt=monitor.attempt,
            progress=monitor.progress,
            queued_at=monitor.queued_at,
            started_at=monitor.started_at,
            finished_at=monitor.finished_at,
            is_finished=monitor.is_finished(),
            has_succeeded=monitor.has_succeeded(),
            has_failed=monitor.has_failed(),
            can_be_retried=monitor.can_be_retried(),
            retried=monitor.retried,
            elapsed_seconds=elapsed,
            remaining_seconds=remaining,
            timing_error=timing_error,
            exception_class=monitor.exception_class,
            exception_message=monitor.exception_message,
            **extra,
        )


class MonitorDetailResponse(MonitorResponse):
    """A monitor record including its payload and full exception trace."""

    started_at_exact: str | None
    finished_at_exact: str | None
    exception: str | None
    data: dict[str, Any]

    @classmethod
    def from_monitor(cls, monitor: Monitor, now: datetime | None = None, **extra: Any):
        return super().from_monitor(
            monitor,
            now,
            started_at_exact=monitor.started_at_exact,
            finished_at_exact=monitor.finished_at_exact,
            exception=monitor.exception,
            data=monitor.get_data(),
            **extra,
        )


class RetryResponse(BaseModel):
    """Result of a retry request."""

    monitor_id: int
    job_uuid: str
    dispatcher: str
    output: str
