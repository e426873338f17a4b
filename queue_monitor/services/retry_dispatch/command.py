"""Command dispatcher - runs the queue's own retry command."""

import asyncio
import shlex

from queue_monitor.core.logging import get_logger

from .base import BaseRetryDispatcher
from .models import DispatchResult

logger = get_logger(__name__)

TIMEOUT_EXIT_CODE = -1
CANNOT_EXECUTE_EXIT_CODE = 126
NOT_FOUND_EXIT_CODE = 127


class CommandRetryDispatcher(BaseRetryDispatcher):
    """
    Re-enqueue jobs by running an external command.

    The command is a template such as ``"worker retry {job_uuid}"``; it is
    split shell-style and ``{job_uuid}`` is substituted in each argument, so
    the handle is never interpreted by a shell. Exit code and combined
    stdout/stderr become the dispatch result.
    """

    dispatcher_name = "command"

    def __init__(self, command: str, timeout_seconds: float = 30.0) -> None:
        if "{job_uuid}" not in command:
            raise ValueError("Retry command must contain a {job_uuid} placeholder")
        self.command = command
        self.timeout_seconds = timeout_seconds

    def build_argv(self, job_uuid: str) -> list[str]:
        return [arg.replace("{job_uuid}", job_uuid) for arg in shlex.split(self.command)]

    async def dispatch(self, job_uuid: str) -> DispatchResult:
        argv = self.build_argv(job_uuid)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            return self._result(job_uuid, NOT_FOUND_EXIT_CODE, str(e))
        except OSError as e:
            logger.bind(job_uuid=job_uuid, error=str(e)).warning("retry_command_not_started")
            return self._result(job_uuid, CANNOT_EXECUTE_EXIT_CODE, str(e))

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.bind(job_uuid=job_uuid, timeout=self.timeout_seconds).warning(
                "retry_command_timeout"
            )
            return self._result(
                job_uuid,
                TIMEOUT_EXIT_CODE,
                f"Retry command timed out after {self.timeout_seconds}s",
            )

        output = stdout.decode(errors="replace").strip() if stdout else ""
        return self._result(job_uuid, proc.returncode or 0, output)

    def _result(self, job_uuid: str, exit_code: int, output: str) -> DispatchResult:
        return DispatchResult(
            job_uuid=job_uuid,
            dispatcher=self.dispatcher_name,
            exit_code=exit_code,
            output=output,
        )
