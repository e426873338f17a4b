"""Job monitor API endpoints."""

from typing import Literal

from fastapi import APIRouter, HTTPException, Query, status

from queue_monitor.core.exceptions import MonitorNotFound, RetryDispatchFailed, RetryNotAllowed
from queue_monitor.dependencies import DBSession, RetryDispatcher
from queue_monitor.models.monitor import Monitor, MonitorStatus
from queue_monitor.schemas.monitor import MonitorDetailResponse, MonitorResponse, RetryResponse
from queue_monitor.services.monitor_queries import get_monitor, list_monitors
from queue_monitor.services.retry import retry_monitor

router = APIRouter()


async def _get_or_404(db: DBSession, monitor_id: int) -> Monitor:
    try:
        return await get_monitor(db, monitor_id)
    except MonitorNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/monitors", response_model=list[MonitorResponse])
async def list_monitor_records(
    db: DBSession,
    job_id: str | None = Query(default=None, description="Filter by logical job ID"),
    status_filter: MonitorStatus | None = Query(default=None, alias="status"),
    period: Literal["last_hour", "today"] | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[MonitorResponse]:
    """
    List job executions, most recently started first.

    Timing values that cannot be computed (corrupt exact timestamps, clock
    skew) are returned as null with the reason in timing_error.
    """
    monitors = await list_monitors(
        db,
        job_id=job_id,
        status=status_filter,
        period=period,
        limit=limit,
        offset=offset,
    )
    return [MonitorResponse.from_monitor(m) for m in monitors]


@router.get("/monitors/{monitor_id}", response_model=MonitorDetailResponse)
async def get_monitor_record(db: DBSession, monitor_id: int) -> MonitorDetailResponse:
    """Get a single job execution with payload and exception trace."""
    monitor = await _get_or_404(db, monitor_id)
    return MonitorDetailResponse.from_monitor(monitor)


@router.post("/monitors/{monitor_id}/retry", response_model=RetryResponse)
async def retry_monitor_record(
    db: DBSession,
    dispatcher: RetryDispatcher,
    monitor_id: int,
) -> RetryResponse:
    """
    Re-enqueue a failed job.

    A record can be retried once. A failed dispatch still counts as the
    retry and is reported as 502.
    """
    monitor = await _get_or_404(db, monitor_id)

    try:
        result = await retry_monitor(db, monitor, dispatcher)
    except RetryNotAllowed as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except RetryDispatchFailed as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.output) from e

    return RetryResponse(
        monitor_id=monitor.id,
        job_uuid=result.job_uuid,
        dispatcher=result.dispatcher,
        output=result.output,
    )
