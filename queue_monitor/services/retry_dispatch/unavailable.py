"""Unavailable dispatcher - stands in for a misconfigured retry backend."""

from .base import BaseRetryDispatcher
from .models import DispatchResult

UNAVAILABLE_EXIT_CODE = 1


class UnavailableRetryDispatcher(BaseRetryDispatcher):
    """
    Dispatcher that always fails with the configuration problem as output.

    Used when the configured backend cannot run (no command template, no
    attached scheduler, unknown backend name), so retries surface as
    dispatch failures instead of silent successes.
    """

    dispatcher_name = "unavailable"

    def __init__(self, reason: str) -> None:
        self.reason = reason

    async def dispatch(self, job_uuid: str) -> DispatchResult:
        return DispatchResult(
            job_uuid=job_uuid,
            dispatcher=self.dispatcher_name,
            exit_code=UNAVAILABLE_EXIT_CODE,
            output=f"No retry dispatcher configured: {self.reason}",
        )
