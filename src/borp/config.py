"""Configuration management for borp.

These are borp's own settings, stored as TOML. They are unrelated to the
Borg config files handled by :mod:`borp.core.config_parser`.
"""

import os
import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field

from .constants import DEFAULT_LOCK_WAIT, DEFAULT_READER_SLEEP, DEFAULT_TIMER_SLEEP

CONFIG_ENV_VAR = "BORP_CONFIG"


class LockConfig(BaseModel):
    """Configuration for lock acquisition."""

    wait: float = Field(
        default=DEFAULT_LOCK_WAIT, ge=0, description="Seconds to wait for a busy lock"
    )
    sleep: float = Field(
        default=DEFAULT_TIMER_SLEEP, ge=0, description="Seconds between lock attempts"
    )
    reader_sleep: float = Field(
        default=DEFAULT_READER_SLEEP,
        ge=0,
        description="Seconds between checks while waiting for shared holders to leave",
    )
    kill_stale_locks: bool | None = Field(
        default=None,
        description="Remove locks of dead local processes. None: follow BORG_HOSTNAME_IS_UNIQUE",
    )
    host_id: str | None = None  # Override host part of the process id (BORG_HOST_ID wins)


class BorpConfig(BaseModel):
    """Root configuration for borp."""

    lock: LockConfig = Field(default_factory=LockConfig)


def get_config_path() -> Path:
    """Resolve the settings file location.

    ``$BORP_CONFIG`` wins, then ``$XDG_CONFIG_HOME/borp/config.toml``,
    then ``~/.config/borp/config.toml``.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "borp" / "config.toml"


def load_config(config_path: Path | None = None) -> BorpConfig:
    """Load borp settings.

    Args:
        config_path: Settings file, defaults to :func:`get_config_path`

    Returns:
        Loaded configuration, or defaults if the file doesn't exist
    """
    if config_path is None:
        config_path = get_config_path()
    if not config_path.exists():
        return BorpConfig()
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return BorpConfig.model_validate(data)


def write_config_template(config_path: Path | None = None) -> Path:
    """Write default config.toml template.

    Args:
        config_path: Where to write, defaults to :func:`get_config_path`

    Returns:
        Path to the written config file
    """
    if config_path is None:
        config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    template = {
        "lock": {
            "wait": DEFAULT_LOCK_WAIT,
            "sleep": DEFAULT_TIMER_SLEEP,
            "reader_sleep": DEFAULT_READER_SLEEP,
            # kill_stale_locks and host_id are unset: Borg's environment
            # variables decide
        },
    }
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path
