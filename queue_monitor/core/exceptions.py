"""Error taxonomy for monitor records and their collaborators."""

from datetime import datetime


class MonitorError(Exception):
    """Base class for queue monitor errors."""


class MalformedTimestamp(MonitorError):
    """An exact timestamp field is set but cannot be parsed."""

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Malformed timestamp in {field}: {value!r}")


class ClockSkew(MonitorError):
    """A duration computation produced a negative interval."""

    def __init__(self, start: datetime, end: datetime) -> None:
        self.start = start
        self.end = end
        super().__init__(f"End {end.isoformat()} is before start {start.isoformat()}")


class ExceptionReconstructionFailed(MonitorError):
    """A stored exception type could not be instantiated."""

    def __init__(self, exception_class: str, reason: str) -> None:
        self.exception_class = exception_class
        self.reason = reason
        super().__init__(f"Cannot reconstruct {exception_class}: {reason}")


class PayloadDecodeFailed(MonitorError):
    """The job payload is not a JSON object."""


class RetryNotAllowed(MonitorError):
    """Retry requested for a record that is not eligible."""


class RetryDispatchFailed(MonitorError):
    """The retry dispatcher reported a failure."""

    def __init__(self, job_uuid: str, output: str, exit_code: int | None = None) -> None:
        self.job_uuid = job_uuid
        self.output = output
        self.exit_code = exit_code
        super().__init__(output or f"Retry dispatch failed for job {job_uuid}")


class InvalidTransition(MonitorError):
    """A status change was requested out of a terminal state."""


class MonitorNotFound(MonitorError):
    """No monitor record matches the given identifier."""
