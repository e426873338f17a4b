"""Tests for configuration loading."""

from queue_monitor.config import RetryConfig, Settings


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_unset_backend_stays_unset(self):
        config = RetryConfig({}, Settings(retry_dispatcher=""))
        assert config.dispatcher == ""
        assert config.timeout_seconds == 30.0

    def test_yaml_bare_null(self):
        config = RetryConfig({"dispatcher": None}, Settings(retry_dispatcher=""))
        assert config.dispatcher == "null"

    def test_environment_overrides_yaml(self):
        settings = Settings(
            retry_dispatcher="command",
            retry_command="worker retry {job_uuid}",
            retry_timeout_seconds=5.0,
        )
        config = RetryConfig(
            {"dispatcher": "scheduler", "command": "other {job_uuid}", "timeout_seconds": 60},
            settings,
        )

        assert config.dispatcher == "command"
        assert config.command == "worker retry {job_uuid}"
        assert config.timeout_seconds == 5.0
