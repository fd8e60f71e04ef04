"""Init command implementation."""

from pathlib import Path

import typer

from ..config import get_config_path, write_config_template
from ..output import get_output_context


def init(
    path: Path | None = typer.Option(
        None, "--path", "-p", help="Where to write the settings file"
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing settings file"),
) -> None:
    """Write a borp settings template."""
    ctx = get_output_context()
    config_path = path or get_config_path()

    if config_path.exists() and not force:
        ctx.fail(f"Config already exists: {config_path} (use --force to overwrite)")

    write_config_template(config_path)
    ctx.success(f"Created config template: {config_path}", {"path": str(config_path)})
