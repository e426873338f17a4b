"""Abstract base class for retry dispatchers."""

from abc import ABC, abstractmethod

from .models import DispatchResult


class BaseRetryDispatcher(ABC):
    """Re-enqueues a failed job identified by its execution handle."""

    dispatcher_name: str = "unknown"

    @abstractmethod
    async def dispatch(self, job_uuid: str) -> DispatchResult:
        """
        Re-enqueue the job identified by job_uuid.

        Args:
            job_uuid: Execution handle stored on the monitor record

        Returns:
            DispatchResult with a zero exit code on success and any
            diagnostic output from the underlying queue
        """
        pass
