"""Retry of failed jobs.

At most one dispatch per record: ``retried`` is persisted before the
dispatcher runs and is never rolled back, so a failed or interrupted
dispatch leaves the record marked and ``can_be_retried()`` false.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from queue_monitor.core.exceptions import RetryDispatchFailed
from queue_monitor.core.logging import get_logger
from queue_monitor.models.monitor import Monitor
from queue_monitor.services.monitor_queries import save_monitor
from queue_monitor.services.retry_dispatch import (
    BaseRetryDispatcher,
    DispatchResult,
    get_retry_dispatcher,
)

logger = get_logger(__name__)


async def retry_monitor(
    db: AsyncSession,
    monitor: Monitor,
    dispatcher: BaseRetryDispatcher | None = None,
) -> DispatchResult:
    """
    Mark a failed job as retried, persist it, then re-enqueue it.

    Args:
        db: Async database session
        monitor: Failed monitor record with a job_uuid
        dispatcher: Retry backend, defaults to the configured one

    Returns:
        The successful DispatchResult

    Raises:
        RetryNotAllowed: If the record is not eligible (nothing is dispatched)
        RetryDispatchFailed: If the dispatcher reports failure; the record
            stays marked as retried
    """
    dispatcher = dispatcher or get_retry_dispatcher()

    monitor.mark_retried()
    await save_monitor(db, monitor)

    result = await dispatcher.dispatch(monitor.job_uuid)

    log = logger.bind(
        monitor_id=monitor.id,
        job_id=monitor.job_id,
        job_uuid=monitor.job_uuid,
        dispatcher=result.dispatcher,
        exit_code=result.exit_code,
    )
    if not result.ok:
        log.bind(output=result.output).error("monitor_retry_dispatch_failed")
        raise RetryDispatchFailed(monitor.job_uuid, result.output, result.exit_code)

    log.info("monitor_retry_dispatched")
    return result
