"""Logging configuration for borp CLI."""

import logging
from enum import IntEnum
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

# Acquire/release chatter; only shown from -vv on
LOCKING_LOGGER = "borp.core.locking"


class LogLevel(IntEnum):
    """Log level enumeration."""

    QUIET = logging.WARNING
    NORMAL = logging.INFO
    VERBOSE = logging.DEBUG


def _levels(verbosity: int, quiet: bool, debug: bool) -> tuple[int, int]:
    """Root level and locking level for the given flags."""
    if quiet:
        return LogLevel.QUIET, LogLevel.QUIET
    if debug or verbosity >= 2:
        return LogLevel.VERBOSE, LogLevel.VERBOSE
    if verbosity == 1:
        return LogLevel.VERBOSE, LogLevel.NORMAL
    return LogLevel.NORMAL, LogLevel.NORMAL


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    stream: TextIO | None = None,
    debug: bool = False,
) -> Console:
    """Configure logging based on CLI options.

    Stale lock warnings are logged at WARNING and stay visible with
    ``--quiet``.

    Args:
        verbosity: Number of -v flags (1=debug, 2+=also lock acquire/release)
        quiet: Only warnings and errors (takes precedence over debug/verbosity)
        no_color: Disable colored output
        stream: Output stream for logs, defaults to stderr
        debug: Same as -vv plus timestamps and source locations

    Returns:
        Configured Rich console for log output
    """
    level, locking_level = _levels(verbosity, quiet, debug)

    console = Console(
        file=stream,
        stderr=stream is None,
        force_terminal=False if no_color else None,
        no_color=no_color,
    )

    handler = RichHandler(
        console=console,
        show_time=debug,
        show_path=debug,
        markup=False,
    )

    # Replace handlers left by an earlier invocation
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    logging.getLogger(LOCKING_LOGGER).setLevel(locking_level)

    return console
