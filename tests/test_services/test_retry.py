"""Tests for retrying failed jobs."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from queue_monitor.core.exceptions import RetryDispatchFailed, RetryNotAllowed
from queue_monitor.models.monitor import MonitorStatus
from queue_monitor.services.monitor_queries import get_monitor
from queue_monitor.services.retry import retry_monitor
from queue_monitor.services.retry_dispatch import (
    DispatchResult,
    NullRetryDispatcher,
    reset_retry_dispatcher,
)

pytestmark = pytest.mark.asyncio

STARTED = datetime(2026, 3, 1, 12, 0, 0)
FINISHED = datetime(2026, 3, 1, 12, 0, 5)


def _dispatcher(exit_code: int, output: str = "") -> AsyncMock:
    dispatcher = AsyncMock()
    dispatcher.dispatch.side_effect = lambda job_uuid: DispatchResult(
        job_uuid=job_uuid, dispatcher="mock", exit_code=exit_code, output=output
    )
    return dispatcher


class TestRetryMonitor:
    """Tests for retry_monitor."""

    async def test_success_marks_and_dispatches(self, db_session, monitor_factory):
        monitor = await monitor_factory(
            status=MonitorStatus.FAILED, started_at=STARTED, finished_at=FINISHED
        )

        result = await retry_monitor(db_session, monitor, NullRetryDispatcher())

        assert result.ok
        assert result.job_uuid == monitor.job_uuid
        stored = await get_monitor(db_session, monitor.id)
        assert stored.retried is True
        assert stored.can_be_retried() is False

    async def test_dispatch_failure_keeps_retried(self, db_session, monitor_factory):
        monitor = await monitor_factory(
            status=MonitorStatus.FAILED, started_at=STARTED, finished_at=FINISHED
        )
        dispatcher = _dispatcher(3, "queue connection refused")

        with pytest.raises(RetryDispatchFailed) as exc_info:
            await retry_monitor(db_session, monitor, dispatcher)

        assert exc_info.value.output == "queue connection refused"
        assert exc_info.value.exit_code == 3
        assert monitor.retried is True
        assert monitor.can_be_retried() is False

    async def test_second_retry_is_rejected(self, db_session, monitor_factory):
        monitor = await monitor_factory(
            status=MonitorStatus.FAILED, started_at=STARTED, finished_at=FINISHED
        )
        dispatcher = _dispatcher(0)

        await retry_monitor(db_session, monitor, dispatcher)
        with pytest.raises(RetryNotAllowed):
            await retry_monitor(db_session, monitor, dispatcher)

        assert dispatcher.dispatch.await_count == 1

    async def test_ineligible_record_is_not_dispatched(self, db_session, monitor_factory):
        monitor = await monitor_factory(
            status=MonitorStatus.SUCCEEDED, started_at=STARTED, finished_at=FINISHED
        )
        dispatcher = _dispatcher(0)

        with pytest.raises(RetryNotAllowed):
            await retry_monitor(db_session, monitor, dispatcher)

        dispatcher.dispatch.assert_not_awaited()
        assert monitor.retried is False

    async def test_failed_without_handle_is_not_dispatched(self, db_session, monitor_factory):
        monitor = await monitor_factory(
            status=MonitorStatus.FAILED, job_uuid=None, finished_at=FINISHED
        )
        dispatcher = _dispatcher(0)

        with pytest.raises(RetryNotAllowed):
            await retry_monitor(db_session, monitor, dispatcher)

        dispatcher.dispatch.assert_not_awaited()

    async def test_unattached_scheduler_backend_fails(self, db_session, monitor_factory):
        """Should surface a missing scheduler as a dispatch failure, not a success."""
        monitor = await monitor_factory(
            status=MonitorStatus.FAILED, started_at=STARTED, finished_at=FINISHED
        )
        config = MagicMock()
        config.retry.dispatcher = "scheduler"

        reset_retry_dispatcher()
        try:
            with (
                patch("queue_monitor.services.retry_dispatch.get_config", return_value=config),
                patch("queue_monitor.core.scheduler.scheduler", None),
            ):
                with pytest.raises(RetryDispatchFailed) as exc_info:
                    await retry_monitor(db_session, monitor)
        finally:
            reset_retry_dispatcher()

        assert "no scheduler is attached" in exc_info.value.output
        assert monitor.retried is True
