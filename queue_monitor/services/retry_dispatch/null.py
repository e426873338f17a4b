"""Null dispatcher - accepts every retry without re-enqueueing anything."""

from .base import BaseRetryDispatcher
from .models import DispatchResult


class NullRetryDispatcher(BaseRetryDispatcher):
    """
    Dispatcher that always succeeds.

    Use when no queue is wired up for retries or for testing.
    """

    dispatcher_name = "null"

    async def dispatch(self, job_uuid: str) -> DispatchResult:
        """Always return a successful result."""
        return DispatchResult(
            job_uuid=job_uuid,
            dispatcher=self.dispatcher_name,
            exit_code=0,
            output="Retry dispatch disabled",
        )
