"""CLI command implementations for borp.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .config import (
    config_app,
    config_cache,
    config_get,
    config_repository,
    config_set,
    config_show,
)
from .init import init
from .lock import lock_app, lock_break, lock_status, with_lock
from .process_id import process_id

__all__ = [
    "config_app",
    "config_cache",
    "config_get",
    "config_repository",
    "config_set",
    "config_show",
    "init",
    "lock_app",
    "lock_break",
    "lock_status",
    "process_id",
    "with_lock",
]
