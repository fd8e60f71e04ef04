"""Output formatting for borp CLI.

Commands print through an OutputContext: rich markup for people, or a
single JSON document on stdout with ``--json``. Messages are escaped
before printing since Borg section names (``[repository]``) look like
rich markup.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from .errors import BorpError

# Exit code for usage problems not covered by a BorpError subclass
EXIT_NOT_FOUND = 1


@dataclass
class OutputContext:
    """Context for output formatting."""

    console: Console
    json_mode: bool = False

    def print(self, message: str, style: str | None = None) -> None:
        """Print rich markup, suppressed in JSON mode."""
        if not self.json_mode:
            self.console.print(message, style=style, highlight=False)

    def print_json(self, data: Any) -> None:
        """Print JSON data to stdout, bypassing rich."""
        if self.json_mode:
            print(json.dumps(data, indent=2, default=str))

    def fields(self, data: Mapping[str, Any]) -> None:
        """Print a flat mapping as ``name: value`` lines, or as a JSON object."""
        if self.json_mode:
            self.print_json(dict(data))
            return
        for name, value in data.items():
            line = f"[bold]{escape(name)}:[/bold] {escape(str(value))}"
            self.console.print(line, highlight=False)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print error in appropriate format."""
        if self.json_mode:
            self.print_json({"error": message, **(data or {})})
        else:
            self.console.print(f"[red]Error: {escape(message)}[/red]", highlight=False)

    def success(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print success message in appropriate format."""
        if self.json_mode:
            self.print_json({"success": message, **(data or {})})
        else:
            self.console.print(f"[green]{escape(message)}[/green]", highlight=False)

    def fail(self, error: BorpError | str, exit_code: int | None = None) -> NoReturn:
        """Report an error and exit the command.

        A BorpError exits with its own exit code (Borg's code for lock
        errors) unless exit_code is given.
        """
        if isinstance(error, BorpError):
            code = error.exit_code if exit_code is None else exit_code
            self.error(str(error), {"exit_code": code})
        else:
            code = EXIT_NOT_FOUND if exit_code is None else exit_code
            self.error(error)
        raise typer.Exit(code)


# Global output context (set by cli.py main callback)
_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Get the current output context.

    Returns a default OutputContext if not yet initialized by CLI.
    """
    if _ctx is None:
        return OutputContext(Console())
    return _ctx


def set_output_context(ctx: OutputContext | None) -> None:
    """Set the global output context. Called by CLI main callback."""
    global _ctx
    _ctx = ctx
