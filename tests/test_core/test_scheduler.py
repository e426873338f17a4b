"""Tests for APScheduler event monitoring."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
from apscheduler import JobAcquired, JobAdded, JobOutcome, JobReleased

from queue_monitor.core import scheduler as scheduler_module
from queue_monitor.core.scheduler import (
    _on_job_event,
    attach_monitoring,
    detach_monitoring,
    get_tracker,
)
from queue_monitor.services.tracker import MonitorTracker

pytestmark = pytest.mark.asyncio

JOB_ID = UUID("5f0c9d2e-8a4b-4c71-9e3d-2b6a1f7c8e90")


def _event(event_type, **fields):
    event = MagicMock(spec=event_type)
    event.job_id = JOB_ID
    event.task_id = "reports:build_daily"
    event.schedule_id = "nightly-reports"
    for key, value in fields.items():
        setattr(event, key, value)
    return event


@pytest.fixture
def tracker():
    tracker = AsyncMock(spec=MonitorTracker)
    target = MagicMock()
    attach_monitoring(target, tracker)
    yield tracker
    detach_monitoring()


class TestAttachMonitoring:
    """Tests for attach_monitoring."""

    async def test_subscribes_to_job_events(self):
        target = MagicMock()
        tracker = AsyncMock(spec=MonitorTracker)
        attach_monitoring(target, tracker)
        try:
            target.subscribe.assert_called_once_with(
                _on_job_event, {JobAdded, JobAcquired, JobReleased}
            )
            assert scheduler_module.scheduler is target
            assert get_tracker() is tracker
        finally:
            detach_monitoring()

        assert scheduler_module.scheduler is None
        assert get_tracker() is None


class TestJobEvents:
    """Tests for translating scheduler events into tracker calls."""

    async def test_job_added(self, tracker):
        await _on_job_event(_event(JobAdded))

        tracker.job_queued.assert_awaited_once_with(
            job_id="nightly-reports", job_uuid=str(JOB_ID), name="reports:build_daily"
        )

    async def test_ad_hoc_job_uses_task_id(self, tracker):
        await _on_job_event(_event(JobAcquired, schedule_id=None))

        tracker.job_started.assert_awaited_once_with(
            job_id="reports:build_daily", job_uuid=str(JOB_ID), name="reports:build_daily"
        )

    async def test_job_released_success(self, tracker):
        started_at = datetime(2026, 3, 1, 2, 0, 0)
        await _on_job_event(
            _event(JobReleased, outcome=JobOutcome.success, started_at=started_at)
        )

        tracker.job_succeeded.assert_awaited_once_with(str(JOB_ID), started_at=started_at)
        tracker.job_failed.assert_not_awaited()

    async def test_job_released_error(self, tracker):
        await _on_job_event(
            _event(
                JobReleased,
                outcome=JobOutcome.error,
                started_at=None,
                exception_type="ValueError",
                exception_message="bad row 12",
                exception_traceback=["Traceback:\n", "  ...\n"],
            )
        )

        tracker.job_failed.assert_awaited_once_with(
            str(JOB_ID),
            exception_class="ValueError",
            exception_message="bad row 12",
            exception_trace="Traceback:\n  ...\n",
        )

    async def test_job_released_without_exception(self, tracker):
        await _on_job_event(
            _event(
                JobReleased,
                outcome=JobOutcome.error,
                started_at=None,
                exception_type=None,
                exception_message=None,
                exception_traceback=None,
            )
        )

        kwargs = tracker.job_failed.await_args.kwargs
        assert kwargs["exception_message"] == "Job outcome: error"
        assert kwargs["exception_trace"] is None

    async def test_tracker_errors_are_not_raised(self, tracker):
        tracker.job_queued.side_effect = RuntimeError("database is locked")

        await _on_job_event(_event(JobAdded))

        tracker.job_queued.assert_awaited_once()

    async def test_ignored_when_detached(self, tracker):
        detach_monitoring()

        await _on_job_event(_event(JobAdded))

        tracker.job_queued.assert_not_awaited()
