"""Borg config file commands."""

import base64
from enum import Enum
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from ..constants import CONFIG_FILE
from ..core import (
    config_kind,
    load_cache_config,
    load_config_file,
    load_repository_config,
    open_lock,
    save_config_file,
)
from ..errors import ConfigError, LockError
from ..models import BorgConfig, ConfigValue, ValueKind, check_names
from ..output import get_output_context
from .lock import load_settings

config_app = typer.Typer(help="Read and edit Borg config files")


class ValueFormat(str, Enum):
    """How to read a value for `borp config get`."""

    AUTO = "auto"
    INT = "int"
    BOOL = "bool"
    TEXT = "text"
    HEX = "hex"
    BASE64 = "base64"


def _resolve_config_file(path: Path) -> Path:
    """Accept either a config file or the directory holding it."""
    return path / CONFIG_FILE if path.is_dir() else path


def _load(path: Path) -> BorgConfig:
    ctx = get_output_context()
    config_file = _resolve_config_file(path)
    if not config_file.exists():
        ctx.fail(f"Config file not found: {config_file}")
    try:
        return load_config_file(config_file)
    except ConfigError as e:
        ctx.fail(f"{config_file}: {e}", exit_code=e.exit_code)


def _json_value(value: ConfigValue) -> object:
    if value.kind == ValueKind.BASE64:
        # Bytes aren't JSON; keep the single-line encoding
        return base64.b64encode(value.as_bytes()).decode("ascii")
    return value.value


def _display_value(value: ConfigValue) -> str:
    if value.kind == ValueKind.BASE64:
        return f"<{len(value.as_bytes())} bytes, base64>"
    return escape(value.raw)


@config_app.command("show")
def config_show(
    path: Path = typer.Argument(..., help="Config file, or the directory containing it"),
) -> None:
    """Show all sections and values of a Borg config file."""
    ctx = get_output_context()
    config = _load(path)

    if ctx.json_mode:
        ctx.print_json(
            {
                name: {
                    key: {"kind": value.kind.value, "value": _json_value(value)}
                    for key, value in section.entries.items()
                }
                for name, section in config.sections.items()
            }
        )
        return

    kind = config_kind(config)
    if kind:
        ctx.console.print(f"[bold]Borg {kind} config:[/bold] {escape(str(path))}")
    for name, section in config.sections.items():
        table = Table(title=escape(f"[{name}]"), title_justify="left")
        table.add_column("Key", style="cyan")
        table.add_column("Kind")
        table.add_column("Value", overflow="fold")
        for key, value in section.entries.items():
            table.add_row(key, value.kind.value, _display_value(value))
        ctx.console.print(table)


@config_app.command("get")
def config_get(
    path: Path = typer.Argument(..., help="Config file, or the directory containing it"),
    section: str = typer.Argument(..., help="Section name, e.g. repository"),
    key: str = typer.Argument(..., help="Key name, e.g. segments_per_dir"),
    as_format: ValueFormat = typer.Option(
        ValueFormat.AUTO, "--as", help="Read the value as this type"
    ),
) -> None:
    """Print a single value."""
    ctx = get_output_context()
    config = _load(path)

    value = config.get(section, key)
    if value is None:
        ctx.fail(f"No value for [{section}] {key}")

    try:
        if as_format == ValueFormat.INT:
            result: object = value.as_int()
        elif as_format == ValueFormat.BOOL:
            result = value.as_bool()
        elif as_format == ValueFormat.TEXT:
            result = value.as_text()
        elif as_format == ValueFormat.HEX:
            result = value.as_hex_bytes().hex()
        elif as_format == ValueFormat.BASE64:
            result = base64.b64encode(value.as_bytes()).decode("ascii")
        else:
            result = _json_value(value)
    except ConfigError as e:
        ctx.fail(e)

    if ctx.json_mode:
        ctx.print_json({"section": section, "key": key, "value": result})
    else:
        ctx.console.print(escape(str(result)), highlight=False, soft_wrap=True)


@config_app.command("set")
def config_set(
    path: Path = typer.Argument(..., help="Config file, or the directory containing it"),
    section: str = typer.Argument(..., help="Section name"),
    key: str = typer.Argument(..., help="Key name"),
    value: str = typer.Argument(..., help="New value; digits are stored as an integer"),
    no_lock: bool = typer.Option(
        False, "--no-lock", help="Don't take the directory's exclusive lock while writing"
    ),
    lock_wait: float | None = typer.Option(
        None, "--lock-wait", help="Seconds to wait for the lock (default from settings)"
    ),
) -> None:
    """Set a value, holding the directory's exclusive lock while writing."""
    ctx = get_output_context()
    config_file = _resolve_config_file(path)
    config = _load(path)
    try:
        check_names(section, key)
        new_value = ConfigValue.from_python(value)
    except ConfigError as e:
        ctx.fail(e)

    def write() -> None:
        config.set(section, key, new_value)
        save_config_file(config, config_file)

    if no_lock:
        write()
    else:
        settings = load_settings()
        lock = open_lock(
            config_file.parent, exclusive=True, config=settings.lock, timeout=lock_wait
        )
        try:
            with lock:
                # Re-read under the lock so concurrent edits aren't lost
                config = load_config_file(config_file)
                write()
        except LockError as e:
            ctx.fail(e)
        except ConfigError as e:
            ctx.fail(f"{config_file}: {e}", exit_code=e.exit_code)

    ctx.success(
        f"Set [{section}] {key} = {new_value.raw}",
        {"section": section, "key": key, "value": _json_value(new_value)},
    )


@config_app.command("repository")
def config_repository(
    directory: Path = typer.Argument(..., help="Borg repository directory"),
) -> None:
    """Show the settings of a Borg repository."""
    ctx = get_output_context()
    try:
        repo = load_repository_config(directory)
    except FileNotFoundError:
        ctx.fail(f"Not a Borg repository (no config file): {directory}")
    except ConfigError as e:
        ctx.fail(e)

    data = repo.model_dump(exclude={"key"})
    data["key"] = "present" if repo.key else None
    ctx.fields(data)


@config_app.command("cache")
def config_cache(
    directory: Path = typer.Argument(..., help="Borg cache directory"),
) -> None:
    """Show the settings of a Borg cache."""
    ctx = get_output_context()
    try:
        cache = load_cache_config(directory)
    except FileNotFoundError:
        ctx.fail(f"Not a Borg cache (no config file): {directory}")
    except ConfigError as e:
        ctx.fail(e)

    ctx.fields(cache.model_dump())
