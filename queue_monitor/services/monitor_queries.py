"""
Monitor persistence and query shapes.

Statement builders (``where_job``, ``ordered``, ``last_hour``, ``today``,
``failed``, ``succeeded``, ``with_status``) compose onto any
``select(Monitor)``; the async helpers below execute them.

Dependencies: sqlalchemy, queue_monitor.models.monitor
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Literal

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from queue_monitor.core.datetime_utils import day_bounds, get_cutoff, to_naive_utc, utc_now
from queue_monitor.core.exceptions import MonitorNotFound
from queue_monitor.models.monitor import Monitor, MonitorStatus

Period = Literal["last_hour", "today"]


def where_job(stmt: Select, job_id: str) -> Select:
    return stmt.where(Monitor.job_id == job_id)


def ordered(stmt: Select) -> Select:
    """Most recently started first."""
    return stmt.order_by(Monitor.started_at.desc(), Monitor.started_at_exact.desc())


def last_hour(stmt: Select, now: datetime | None = None) -> Select:
    return stmt.where(Monitor.started_at > get_cutoff(hours=1, now=now))


def today(stmt: Select, now: datetime | None = None) -> Select:
    """Jobs started on the calendar day (UTC) of one hour ago."""
    start, end = day_bounds(get_cutoff(hours=1, now=now).date())
    return stmt.where(Monitor.started_at >= start, Monitor.started_at < end)


def with_status(stmt: Select, status: MonitorStatus) -> Select:
    return stmt.where(Monitor.status == status)


def failed(stmt: Select) -> Select:
    return with_status(stmt, MonitorStatus.FAILED)


def succeeded(stmt: Select) -> Select:
    return with_status(stmt, MonitorStatus.SUCCEEDED)


async def get_monitor(db: AsyncSession, monitor_id: int) -> Monitor:
    """
    Get a monitor by primary key.

    Raises:
        MonitorNotFound: If no record has this id
    """
    monitor = await db.get(Monitor, monitor_id)
    if monitor is None:
        raise MonitorNotFound(f"No monitor with id {monitor_id}")
    return monitor


async def get_by_job_uuid(db: AsyncSession, job_uuid: str) -> Monitor | None:
    """Get the latest record for an execution handle."""
    stmt = (
        select(Monitor)
        .where(Monitor.job_uuid == job_uuid)
        .order_by(Monitor.attempt.desc(), Monitor.id.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_latest_attempt(db: AsyncSession, job_id: str) -> int:
    """Get the highest attempt number recorded for a job, 0 if none."""
    result = await db.execute(select(func.max(Monitor.attempt)).where(Monitor.job_id == job_id))
    return result.scalar() or 0


async def list_monitors(
    db: AsyncSession,
    job_id: str | None = None,
    status: MonitorStatus | None = None,
    period: Period | None = None,
    limit: int = 50,
    offset: int = 0,
    now: datetime | None = None,
) -> Sequence[Monitor]:
    """
    List monitor records, most recently started first.

    Args:
        db: Async database session
        job_id: Only attempts of this logical job
        status: Only records in this status
        period: "last_hour" or "today"
        limit: Maximum number of records
        offset: Records to skip
        now: Reference time for period filters

    Returns:
        Sequence of matching Monitors
    """
    stmt = ordered(select(Monitor))

    if job_id:
        stmt = where_job(stmt, job_id)
    if status is not None:
        stmt = with_status(stmt, status)

    now = to_naive_utc(now) if now is not None else utc_now()
    if period == "last_hour":
        stmt = last_hour(stmt, now)
    elif period == "today":
        stmt = today(stmt, now)

    stmt = stmt.offset(offset).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


async def save_monitor(db: AsyncSession, monitor: Monitor) -> Monitor:
    """Persist a monitor and commit."""
    db.add(monitor)
    await db.commit()
    return monitor
