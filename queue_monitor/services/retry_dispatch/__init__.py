"""Retry dispatch with pluggable queue backends."""

from queue_monitor.config import get_config
from queue_monitor.core.logging import get_logger

from .base import BaseRetryDispatcher
from .command import CommandRetryDispatcher
from .models import DispatchResult
from .null import NullRetryDispatcher
from .scheduler import SchedulerRetryDispatcher
from .unavailable import UnavailableRetryDispatcher

__all__ = [
    "BaseRetryDispatcher",
    "CommandRetryDispatcher",
    "DispatchResult",
    "NullRetryDispatcher",
    "SchedulerRetryDispatcher",
    "UnavailableRetryDispatcher",
    "get_retry_dispatcher",
    "reset_retry_dispatcher",
]

logger = get_logger(__name__)

_dispatcher_instance: BaseRetryDispatcher | None = None


def get_retry_dispatcher() -> BaseRetryDispatcher:
    """
    Get the configured retry dispatcher instance.

    Uses singleton pattern. Only an explicit ``null`` backend accepts
    retries without re-enqueueing; a backend that cannot run (none set,
    missing command, no attached scheduler, unknown name) yields an
    UnavailableRetryDispatcher whose dispatches fail.
    """
    global _dispatcher_instance
    if _dispatcher_instance is not None:
        return _dispatcher_instance

    retry_config = get_config().retry

    if retry_config.dispatcher == "null":
        _dispatcher_instance = NullRetryDispatcher()
    elif retry_config.dispatcher == "command":
        if not retry_config.command:
            logger.warning("retry_dispatcher_command_missing")
            return UnavailableRetryDispatcher("retry.command is not set")
        _dispatcher_instance = CommandRetryDispatcher(
            retry_config.command,
            timeout_seconds=retry_config.timeout_seconds,
        )
    elif retry_config.dispatcher == "scheduler":
        from queue_monitor.core import scheduler as scheduler_module
        from queue_monitor.core.database import AsyncSessionLocal

        # Not cached, the scheduler may be attached later in this process
        if scheduler_module.scheduler is None:
            logger.warning("retry_dispatcher_scheduler_not_running")
            return UnavailableRetryDispatcher("no scheduler is attached in this process")
        _dispatcher_instance = SchedulerRetryDispatcher(
            scheduler_module.scheduler,
            AsyncSessionLocal,
            tracker=scheduler_module.get_tracker(),
        )
    elif not retry_config.dispatcher:
        logger.warning("retry_dispatcher_not_configured")
        return UnavailableRetryDispatcher("retry.dispatcher is not set")
    else:
        logger.bind(dispatcher=retry_config.dispatcher).warning("retry_dispatcher_unknown")
        return UnavailableRetryDispatcher(
            f"unknown retry dispatcher {retry_config.dispatcher!r}"
        )

    return _dispatcher_instance


def reset_retry_dispatcher() -> None:
    """Reset the dispatcher instance. Useful for testing."""
    global _dispatcher_instance
    _dispatcher_instance = None
