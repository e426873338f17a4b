"""
Queue Monitor CLI - Command line interface for inspecting job executions.

Usage:
    queue-monitor --help                Show all commands
    queue-monitor list                  Recent job executions
    queue-monitor list --status failed  Failed executions only
    queue-monitor show 42               Details of one execution
    queue-monitor retry 42              Re-enqueue a failed execution
    queue-monitor serve                 Start the API server
"""

import asyncio

import typer

from queue_monitor.core.exceptions import ClockSkew, MalformedTimestamp
from queue_monitor.models.monitor import Monitor, MonitorStatus

app = typer.Typer(
    name="queue-monitor",
    help="Queue Monitor CLI - inspect and retry background job executions",
    no_args_is_help=True,
)


# --- Output helpers ---


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _format_duration(seconds: float) -> str:
    """Render seconds as e.g. 1h 02m 03s."""
    seconds = int(round(seconds))
    sign = "-" if seconds < 0 else ""
    hours, rest = divmod(abs(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{sign}{minutes}m {secs:02d}s"
    return f"{sign}{secs}s"


def _elapsed_text(monitor: Monitor) -> str:
    try:
        return _format_duration(monitor.get_elapsed_seconds())
    except (ClockSkew, MalformedTimestamp) as e:
        return f"? ({e})"


def _remaining_text(monitor: Monitor) -> str:
    try:
        return f"~{_format_duration(monitor.get_remaining_seconds())}"
    except ClockSkew as e:
        return f"? ({e})"


def _format_row(monitor: Monitor) -> str:
    elapsed = _elapsed_text(monitor)
    progress = f"{monitor.progress}%" if monitor.progress is not None else "-"
    started = monitor.started_at.isoformat(sep=" ") if monitor.started_at else "-"
    return (
        f"{monitor.id:>6}  {monitor.status.value:<9}  {monitor.get_basename() or '-':<28}  "
        f"#{monitor.attempt:<3} {progress:>5}  {started:<19}  {elapsed}"
    )


@app.command("list")
def list_command(
    job_id: str | None = typer.Option(None, "--job-id", "-j", help="Only attempts of this job"),
    status: MonitorStatus | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    period: str | None = typer.Option(None, "--period", "-p", help="last_hour or today"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum rows"),
):
    """List recent job executions, newest first."""
    from queue_monitor.core.database import AsyncSessionLocal
    from queue_monitor.services.monitor_queries import list_monitors

    if period not in (None, "last_hour", "today"):
        _print_error(f"Unknown period: {period}")
        typer.echo("   Valid options: last_hour, today")
        raise typer.Exit(1)

    async def run() -> list[Monitor]:
        async with AsyncSessionLocal() as db:
            return list(
                await list_monitors(db, job_id=job_id, status=status, period=period, limit=limit)
            )

    monitors = asyncio.run(run())
    if not monitors:
        typer.echo("No job executions found.")
        return

    for monitor in monitors:
        typer.echo(_format_row(monitor))


@app.command()
def show(monitor_id: int = typer.Argument(..., help="Monitor record id")):
    """Show one job execution with timing, payload and exception."""
    from queue_monitor.core.database import AsyncSessionLocal
    from queue_monitor.core.exceptions import MonitorNotFound
    from queue_monitor.services.monitor_queries import get_monitor

    async def run() -> Monitor:
        async with AsyncSessionLocal() as db:
            return await get_monitor(db, monitor_id)

    try:
        monitor = asyncio.run(run())
    except MonitorNotFound as e:
        _print_error(str(e))
        raise typer.Exit(1)

    typer.echo(f"\n{monitor.name or monitor.job_id}")
    typer.echo(f"   Job ID:    {monitor.job_id} (attempt {monitor.attempt})")
    typer.echo(f"   Job UUID:  {monitor.job_uuid or '-'}")
    typer.echo(f"   Queue:     {monitor.queue or '-'}")
    typer.echo(f"   Status:    {monitor.status.value}")
    typer.echo(f"   Started:   {monitor.started_at_exact or monitor.started_at or '-'}")
    typer.echo(f"   Finished:  {monitor.finished_at_exact or monitor.finished_at or '-'}")
    typer.echo(f"   Elapsed:   {_elapsed_text(monitor)}")
    if not monitor.is_finished() and monitor.progress:
        typer.echo(f"   Progress:  {monitor.progress}%")
        typer.echo(f"   Remaining: {_remaining_text(monitor)}")

    data = monitor.get_data()
    if data:
        typer.echo("   Data:")
        for key, value in data.items():
            typer.echo(f"     {key}: {value}")

    if monitor.has_failed():
        typer.echo(f"\n   {monitor.exception_class}: {monitor.exception_message}")
        if monitor.exception:
            typer.echo(monitor.exception)
        if monitor.can_be_retried():
            typer.echo(f"\n   Retry with: queue-monitor retry {monitor.id}")
        elif monitor.retried:
            _print_warning("Already retried")


@app.command()
def retry(monitor_id: int = typer.Argument(..., help="Monitor record id")):
    """Re-enqueue a failed job execution."""
    from queue_monitor.core.database import AsyncSessionLocal
    from queue_monitor.core.exceptions import (
        MonitorNotFound,
        RetryDispatchFailed,
        RetryNotAllowed,
    )
    from queue_monitor.core.logging import setup_logging
    from queue_monitor.services.monitor_queries import get_monitor
    from queue_monitor.services.retry import retry_monitor

    setup_logging()

    async def run():
        async with AsyncSessionLocal() as db:
            monitor = await get_monitor(db, monitor_id)
            return await retry_monitor(db, monitor)

    try:
        result = asyncio.run(run())
    except (MonitorNotFound, RetryNotAllowed) as e:
        _print_error(str(e))
        raise typer.Exit(1)
    except RetryDispatchFailed as e:
        _print_error(f"Retry dispatch failed (record is marked as retried): {e.output}")
        raise typer.Exit(2)

    _print_success(f"Retried via {result.dispatcher}: {result.output}")


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
):
    """Start the API server."""
    import subprocess

    cmd = ["uvicorn", "queue_monitor.main:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")

    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()
