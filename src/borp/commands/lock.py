"""Lock commands: status, break and with-lock."""

import logging
import subprocess
import tomllib
from collections.abc import Iterable
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.markup import escape

from ..config import BorpConfig, load_config
from ..core import get_lock_status, lock_path_for, open_lock, process_alive
from ..core.locking import Lock
from ..errors import LockError
from ..models import ProcessId
from ..output import get_output_context

logger = logging.getLogger(__name__)

lock_app = typer.Typer(help="Inspect and manage Borg locks")


def load_settings() -> BorpConfig:
    """Load borp settings, exiting with an error message if they are invalid."""
    try:
        return load_config()
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        get_output_context().fail(f"Invalid borp config: {e}", exit_code=2)


def _require_directory(directory: Path) -> None:
    if not directory.is_dir():
        get_output_context().fail(f"Not a directory: {directory}", exit_code=2)


def _holders_json(holders: Iterable[ProcessId], host_id: str | None) -> list[dict[str, object]]:
    return [
        {
            "host": holder.host,
            "pid": holder.pid,
            "thread": holder.thread,
            "alive": process_alive(holder.host, holder.pid, holder.thread, host_id=host_id),
        }
        for holder in holders
    ]


def _describe(holder: ProcessId, host_id: str | None) -> str:
    alive = process_alive(holder.host, holder.pid, holder.thread, host_id=host_id)
    state = "[green]alive[/green]" if alive else "[yellow]stale[/yellow]"
    return f"{escape(holder.to_filename())} ({state})"


@lock_app.command("status")
def lock_status(
    directory: Path = typer.Argument(..., help="Repository or cache directory"),
) -> None:
    """Show who holds the lock of a repository or cache."""
    ctx = get_output_context()
    _require_directory(directory)

    host_id = load_settings().lock.host_id
    status = get_lock_status(directory)

    if ctx.json_mode:
        ctx.print_json(
            {
                "path": status.path,
                "locked": status.locked,
                "exclusive_holders": _holders_json(status.exclusive_holders, host_id),
                "unparsable": status.unparsable,
                "roster": {
                    "shared": _holders_json(sorted(status.roster.shared), host_id),
                    "exclusive": _holders_json(sorted(status.roster.exclusive), host_id),
                },
            }
        )
        return

    ctx.console.print(f"[bold]Lock:[/bold] {escape(status.path)}")
    if not status.locked and status.roster.is_empty("shared", "exclusive"):
        ctx.console.print("[green]Not locked[/green]")
        return

    if status.locked:
        ctx.console.print("[bold]Exclusive lock directory:[/bold] present")
        for holder in status.exclusive_holders:
            ctx.console.print(f"  {_describe(holder, host_id)}")
        for name in status.unparsable:
            ctx.console.print(f"  [red]unrecognised marker:[/red] {escape(name)}")

    if status.roster.exclusive:
        ctx.console.print("[bold]Exclusive holders:[/bold]")
        for holder in sorted(status.roster.exclusive):
            ctx.console.print(f"  {_describe(holder, host_id)}")
    if status.roster.shared:
        ctx.console.print("[bold]Shared holders:[/bold]")
        for holder in sorted(status.roster.shared):
            ctx.console.print(f"  {_describe(holder, host_id)}")


@lock_app.command("break")
def lock_break(
    directory: Path = typer.Argument(..., help="Repository or cache directory"),
) -> None:
    """Forcefully remove the lock of a repository or cache.

    Only use this when no borg or borp process is using the directory.
    """
    ctx = get_output_context()
    _require_directory(directory)

    base = lock_path_for(directory)
    Lock(base).break_lock()
    logger.info(f"Broke lock {base}")
    ctx.success(f"Lock removed: {base}", {"path": base})


def with_lock(
    directory: Path = typer.Argument(..., help="Repository or cache directory to lock"),
    command: list[str] = typer.Argument(..., help="Command to run while the lock is held"),
    lock_wait: float | None = typer.Option(
        None,
        "--lock-wait",
        help="Seconds to wait for the lock (default from settings)",
    ),
    shared: bool = typer.Option(
        False,
        "--shared",
        help="Take a shared lock instead of an exclusive one",
    ),
) -> None:
    """Run a command with the lock held; exit with its return code.

    If a copy of the directory is made while the lock is held, the copy
    contains the lock too; run 'borp lock break' on the copy.
    """
    ctx = get_output_context()
    _require_directory(directory)
    settings = load_settings()

    lock = open_lock(directory, exclusive=not shared, config=settings.lock, timeout=lock_wait)
    try:
        lock.acquire()
    except LockError as e:
        ctx.fail(e)

    try:
        logger.debug(f"Running {command} with lock {lock.path}")
        returncode = subprocess.call(command)
    except OSError as e:
        ctx.error(f"Could not run {command[0]}: {e}")
        returncode = 127
    finally:
        lock.release()

    raise typer.Exit(returncode)
