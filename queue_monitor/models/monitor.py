"""Job monitor record model.

One row per execution attempt of a queued job. The job runner writes the
execution fields (timestamps, status, progress, exception); observers read
the derived values (elapsed and remaining time, status predicates, retry
eligibility) and may only flip ``retried``.
"""

import enum
import json
import re
import traceback
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Boolean, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from queue_monitor.config import get_settings
from queue_monitor.core.datetime_utils import (
    format_exact,
    parse_exact,
    to_naive_utc,
    truncate_to_second,
    utc_now,
)
from queue_monitor.core.exception_registry import qualified_name, reconstruct_exception
from queue_monitor.core.exceptions import (
    ClockSkew,
    ExceptionReconstructionFailed,
    InvalidTransition,
    MalformedTimestamp,
    PayloadDecodeFailed,
    RetryNotAllowed,
)
from queue_monitor.core.logging import get_logger
from queue_monitor.models.base import Base

logger = get_logger(__name__)

_NAMESPACE_SEPARATORS = re.compile(r"[.\\:]")


class MonitorStatus(str, enum.Enum):
    """Job lifecycle state."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MonitorStatus.SUCCEEDED, MonitorStatus.FAILED)


def decode_payload(raw: str | None) -> dict[str, Any]:
    """Decode a serialized job payload.

    Raises:
        PayloadDecodeFailed: If the payload is not a JSON object
    """
    if raw is None:
        return {}
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PayloadDecodeFailed(f"Invalid JSON payload: {e}") from e
    if not isinstance(payload, dict):
        raise PayloadDecodeFailed(f"Payload is a {type(payload).__name__}, expected an object")
    return payload


class Monitor(Base):
    """Records one execution attempt of one queued job."""

    __tablename__ = get_settings().monitor_table

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_uuid: Mapped[str | None] = mapped_column(String(64), index=True)
    job_id: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str | None] = mapped_column(String(255))
    queue: Mapped[str | None] = mapped_column(String(255))

    queued_at: Mapped[datetime | None] = mapped_column(DateTime)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, index=True)
    started_at_exact: Mapped[str | None] = mapped_column(String(32))
    finished_at: Mapped[datetime | None] = mapped_column(DateTime)
    finished_at_exact: Mapped[str | None] = mapped_column(String(32))

    status: Mapped[MonitorStatus] = mapped_column(
        Enum(
            MonitorStatus,
            values_callable=lambda e: [x.value for x in e],
            native_enum=False,
            length=16,
        ),
        default=MonitorStatus.QUEUED,
        index=True,
    )
    attempt: Mapped[int] = mapped_column(Integer, default=1)
    progress: Mapped[int | None] = mapped_column(Integer)

    # Failure capture, kept as text so records outlive the failing process
    exception_class: Mapped[str | None] = mapped_column(String(255))
    exception_message: Mapped[str | None] = mapped_column(Text)
    exception: Mapped[str | None] = mapped_column(Text)

    data: Mapped[str | None] = mapped_column(Text)
    retried: Mapped[bool] = mapped_column(Boolean, default=False)

    def __init__(self, **kwargs: Any) -> None:
        # Column defaults only apply at flush; unsaved records need them too
        kwargs.setdefault("status", MonitorStatus.QUEUED)
        kwargs.setdefault("attempt", 1)
        kwargs.setdefault("retried", False)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Monitor id={self.id} job_id={self.job_id!r} status={self.status}>"

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def is_finished(self) -> bool:
        """Check if the job is finished."""
        if self.has_failed():
            return True
        return self.finished_at is not None

    def has_failed(self) -> bool:
        """Check if the job has failed."""
        return self.status == MonitorStatus.FAILED

    def has_succeeded(self) -> bool:
        """Check if the job has succeeded."""
        if not self.is_finished():
            return False
        return not self.has_failed()

    def _ensure_not_finished(self, target: MonitorStatus | str) -> None:
        if self.is_finished():
            raise InvalidTransition(
                f"Monitor {self.id} for job {self.job_id} is already finished "
                f"({self.status.value}), cannot move to {target}"
            )

    def mark_running(self, at: datetime | None = None) -> None:
        """Move a queued job to running and stamp its start."""
        self._ensure_not_finished(MonitorStatus.RUNNING.value)
        at = to_naive_utc(at) if at is not None else utc_now()
        self.status = MonitorStatus.RUNNING
        self.started_at = truncate_to_second(at)
        self.started_at_exact = format_exact(at)

    def mark_succeeded(self, at: datetime | None = None) -> None:
        """Finish a running job successfully."""
        self._ensure_not_finished(MonitorStatus.SUCCEEDED.value)
        if self.status != MonitorStatus.RUNNING:
            raise InvalidTransition(
                f"Monitor {self.id} for job {self.job_id} never started, cannot succeed"
            )
        self._stamp_finished(at)
        self.status = MonitorStatus.SUCCEEDED
        self.progress = 100

    def mark_failed(self, at: datetime | None = None, exc: BaseException | None = None) -> None:
        """Finish a queued or running job as failed, capturing the exception."""
        self._ensure_not_finished(MonitorStatus.FAILED.value)
        self._stamp_finished(at)
        self.status = MonitorStatus.FAILED
        if exc is not None:
            self.capture_exception(exc)

    def _stamp_finished(self, at: datetime | None) -> None:
        at = to_naive_utc(at) if at is not None else utc_now()
        self.finished_at = truncate_to_second(at)
        self.finished_at_exact = format_exact(at)

    def set_progress(self, progress: int | float) -> int:
        """Record self-reported progress, clamped to 0-100."""
        self._ensure_not_finished("progress")
        self.progress = max(0, min(100, int(progress)))
        return self.progress

    # ------------------------------------------------------------------
    # Timing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_exact(field: str, value: str | None) -> datetime | None:
        if value is None:
            return None
        try:
            return parse_exact(value)
        except ValueError as e:
            raise MalformedTimestamp(field, value) from e

    def get_started_at_exact(self) -> datetime | None:
        return self._parse_exact("started_at_exact", self.started_at_exact)

    def get_finished_at_exact(self) -> datetime | None:
        return self._parse_exact("finished_at_exact", self.finished_at_exact)

    def get_elapsed_interval(self, end: datetime | None = None) -> timedelta:
        """
        Get the elapsed run time.

        The end defaults to the finish time, or now for running jobs. Exact
        timestamps are used in preference to the second-truncated columns.

        Raises:
            MalformedTimestamp: If an exact timestamp cannot be parsed
            ClockSkew: If the end lies before the start
        """
        if end is None:
            end = self.get_finished_at_exact() or self.finished_at or utc_now()
        else:
            end = to_naive_utc(end)

        started_at = self.get_started_at_exact() or self.started_at
        if started_at is None:
            return timedelta(0)

        if end < started_at:
            raise ClockSkew(started_at, end)
        return end - started_at

    def get_elapsed_seconds(self, end: datetime | None = None) -> float:
        return self.get_elapsed_interval(end).total_seconds()

    def get_remaining_interval(self, now: datetime | None = None) -> timedelta:
        """
        Estimate the remaining run time from the reported progress.

        This is a naive linear extrapolation: the throughput from start to
        now is assumed constant and projected forward, without smoothing or
        outlier rejection. Treat it as a rough ETA. Progress above 100 is not
        clamped and yields a negative interval.

        Raises:
            ClockSkew: If now lies before the start
        """
        now = to_naive_utc(now) if now is not None else utc_now()

        if not self.progress or self.started_at is None or self.is_finished():
            return timedelta(0)

        elapsed = (truncate_to_second(now) - truncate_to_second(self.started_at)).total_seconds()
        if elapsed == 0:
            return timedelta(0)
        if elapsed < 0:
            raise ClockSkew(self.started_at, now)

        rate = self.progress / elapsed
        return timedelta(seconds=(100 - self.progress) / rate)

    def get_remaining_seconds(self, now: datetime | None = None) -> float:
        """Get the estimated remaining seconds. Requires progress to be set."""
        return self.get_remaining_interval(now).total_seconds()

    # ------------------------------------------------------------------
    # Payload and exception
    # ------------------------------------------------------------------

    def get_data(self) -> dict[str, Any]:
        """Get the optional payload attached by the job, or {} if unusable."""
        try:
            return decode_payload(self.data)
        except PayloadDecodeFailed as e:
            logger.bind(monitor_id=self.id, error=str(e)).debug("monitor_payload_decode_failed")
            return {}

    def set_data(self, data: Mapping[str, Any], merge: bool = False) -> None:
        payload = {**self.get_data(), **data} if merge else dict(data)
        self.data = json.dumps(payload, default=str)

    def capture_exception(self, exc: BaseException) -> None:
        self.exception_class = qualified_name(type(exc))
        self.exception_message = str(exc)
        self.exception = "".join(traceback.format_exception(exc))

    def get_exception(self, rescue: bool = True) -> BaseException | None:
        """
        Recreate the captured exception.

        Args:
            rescue: Return None instead of raising when the type cannot be
                reconstructed in this process

        Raises:
            ExceptionReconstructionFailed: Only when rescue is False
        """
        if self.exception_class is None:
            return None

        if not rescue:
            return reconstruct_exception(self.exception_class, self.exception_message)

        try:
            return reconstruct_exception(self.exception_class, self.exception_message)
        except ExceptionReconstructionFailed:
            return None

    def get_basename(self) -> str | None:
        """Get the job type name without its module or namespace prefix."""
        if self.name is None:
            return None
        return _NAMESPACE_SEPARATORS.split(self.name)[-1]

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    def can_be_retried(self) -> bool:
        return (
            not self.retried
            and self.status == MonitorStatus.FAILED
            and self.job_uuid is not None
        )

    def mark_retried(self) -> None:
        """Flag that a retry has been triggered. The flag is never cleared."""
        if not self.can_be_retried():
            raise RetryNotAllowed(
                f"Monitor {self.id} for job {self.job_id} cannot be retried "
                f"(status={self.status.value}, retried={self.retried}, job_uuid={self.job_uuid})"
            )
        self.retried = True
