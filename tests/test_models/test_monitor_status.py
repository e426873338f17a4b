"""Tests for monitor status predicates and transitions."""

from datetime import datetime

import pytest

from queue_monitor.core.exceptions import InvalidTransition, RetryNotAllowed
from queue_monitor.models.monitor import Monitor, MonitorStatus

T0 = datetime(2026, 3, 1, 12, 0, 0)


class TestStatusPredicates:
    """Tests for is_finished, has_failed and has_succeeded."""

    def test_new_record_defaults(self):
        """Unsaved records get status, attempt and retried defaults."""
        monitor = Monitor(job_id="job")
        assert monitor.status == MonitorStatus.QUEUED
        assert monitor.attempt == 1
        assert monitor.retried is False

    def test_failed_is_finished_without_finished_at(self):
        """FAILED counts as finished even before finished_at is stamped."""
        monitor = Monitor(job_id="job", status=MonitorStatus.FAILED)
        assert monitor.finished_at is None
        assert monitor.is_finished() is True
        assert monitor.has_failed() is True
        assert monitor.has_succeeded() is False

    def test_running_is_not_finished(self):
        monitor = Monitor(job_id="job", status=MonitorStatus.RUNNING, started_at=T0)
        assert monitor.is_finished() is False
        assert monitor.has_succeeded() is False
        assert monitor.has_failed() is False

    def test_finished_at_means_finished(self):
        monitor = Monitor(
            job_id="job", status=MonitorStatus.SUCCEEDED, started_at=T0, finished_at=T0
        )
        assert monitor.is_finished() is True
        assert monitor.has_succeeded() is True

    @pytest.mark.parametrize("status", list(MonitorStatus))
    @pytest.mark.parametrize("finished_at", [None, T0])
    def test_succeeded_implies_finished_and_not_failed(self, status, finished_at):
        """has_succeeded() implies is_finished() and not has_failed()."""
        monitor = Monitor(job_id="job", status=status, finished_at=finished_at)
        if monitor.has_succeeded():
            assert monitor.is_finished()
            assert not monitor.has_failed()


class TestTransitions:
    """Tests for the status state machine."""

    def test_queued_to_running_to_succeeded(self):
        monitor = Monitor(job_id="job")

        monitor.mark_running(datetime(2026, 3, 1, 12, 0, 0, 250000))
        assert monitor.status == MonitorStatus.RUNNING
        assert monitor.started_at == T0
        assert monitor.started_at_exact == "2026-03-01T12:00:00.250000"

        monitor.mark_succeeded(datetime(2026, 3, 1, 12, 0, 5, 750000))
        assert monitor.status == MonitorStatus.SUCCEEDED
        assert monitor.finished_at == datetime(2026, 3, 1, 12, 0, 5)
        assert monitor.progress == 100
        assert monitor.get_elapsed_seconds() == 5.5

    def test_queued_can_fail_directly(self):
        monitor = Monitor(job_id="job")
        monitor.mark_failed(T0, ValueError("bad input"))

        assert monitor.status == MonitorStatus.FAILED
        assert monitor.finished_at == T0
        assert monitor.exception_class == "ValueError"
        assert monitor.exception_message == "bad input"
        assert "ValueError: bad input" in monitor.exception

    def test_queued_cannot_succeed(self):
        monitor = Monitor(job_id="job")
        with pytest.raises(InvalidTransition):
            monitor.mark_succeeded(T0)

    @pytest.mark.parametrize("status", [MonitorStatus.SUCCEEDED, MonitorStatus.FAILED])
    def test_no_transition_out_of_terminal(self, status):
        monitor = Monitor(job_id="job", status=status, finished_at=T0)

        with pytest.raises(InvalidTransition):
            monitor.mark_running(T0)
        with pytest.raises(InvalidTransition):
            monitor.mark_failed(T0)
        with pytest.raises(InvalidTransition):
            monitor.set_progress(10)
        assert monitor.status == status

    def test_set_progress_clamps(self):
        monitor = Monitor(job_id="job", status=MonitorStatus.RUNNING)
        assert monitor.set_progress(150) == 100
        assert monitor.set_progress(-5) == 0
        assert monitor.set_progress(42.9) == 42


class TestRetryEligibility:
    """Tests for can_be_retried and mark_retried."""

    def test_failed_with_uuid_can_be_retried(self):
        monitor = Monitor(job_id="job", job_uuid="abc", status=MonitorStatus.FAILED)
        assert monitor.can_be_retried() is True

    def test_missing_uuid_cannot_be_retried(self):
        monitor = Monitor(job_id="job", status=MonitorStatus.FAILED)
        assert monitor.can_be_retried() is False

    @pytest.mark.parametrize(
        "status", [MonitorStatus.QUEUED, MonitorStatus.RUNNING, MonitorStatus.SUCCEEDED]
    )
    def test_non_failed_cannot_be_retried(self, status):
        monitor = Monitor(job_id="job", job_uuid="abc", status=status)
        assert monitor.can_be_retried() is False

    def test_mark_retried_is_one_way(self):
        monitor = Monitor(job_id="job", job_uuid="abc", status=MonitorStatus.FAILED)
        monitor.mark_retried()

        assert monitor.retried is True
        assert monitor.can_be_retried() is False
        with pytest.raises(RetryNotAllowed):
            monitor.mark_retried()

    def test_mark_retried_rejects_ineligible(self):
        monitor = Monitor(job_id="job", job_uuid="abc", status=MonitorStatus.RUNNING)
        with pytest.raises(RetryNotAllowed):
            monitor.mark_retried()
        assert monitor.retried is False
