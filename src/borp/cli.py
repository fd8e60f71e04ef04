"""Borp CLI: Borg-compatible locking and config tools."""

import typer
from rich.console import Console

from borp import __version__

from .commands import config_app, init, lock_app, process_id, with_lock
from .logging import configure_logging
from .output import OutputContext, set_output_context


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"borp {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="borp",
    help="Borg-compatible repository locking and config tools",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v, -vv)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Debug logging with timestamps and source locations",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format for automation",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
) -> None:
    """Borp - Borg-compatible locking and config tools."""
    configure_logging(
        verbosity=verbose,
        quiet=quiet,
        no_color=no_color,
        debug=debug,
    )
    console = Console(no_color=no_color)
    set_output_context(OutputContext(console=console, json_mode=json_output))


app.command()(init)
app.command("process-id")(process_id)
app.command(
    "with-lock",
    context_settings={"allow_interspersed_args": False, "ignore_unknown_options": True},
)(with_lock)
app.add_typer(lock_app, name="lock")
app.add_typer(config_app, name="config")


if __name__ == "__main__":
    app()
