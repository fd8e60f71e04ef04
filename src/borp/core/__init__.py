"""Core logic for borp.

- platform: process identity and liveness checks
- timer: timeout timer for retry loops
- locking: Borg-compatible exclusive/shared locks and the lock roster
- config_parser: Borg config file parsing and writing
"""

from .config_parser import (
    classify_value,
    config_kind,
    dump_config,
    load_cache_config,
    load_config_file,
    load_repository_config,
    parse_config,
    parse_entries,
    save_config_file,
)
from .locking import (
    ExclusiveLock,
    Lock,
    LockRoster,
    get_lock_status,
    lock_path_for,
    open_lock,
)
from .platform import get_host_id, get_process_id, hostname_is_unique, process_alive
from .timer import TimeoutTimer

__all__ = [
    "ExclusiveLock",
    "Lock",
    "LockRoster",
    "TimeoutTimer",
    "classify_value",
    "config_kind",
    "dump_config",
    "get_host_id",
    "get_lock_status",
    "get_process_id",
    "hostname_is_unique",
    "load_cache_config",
    "load_config_file",
    "load_repository_config",
    "lock_path_for",
    "open_lock",
    "parse_config",
    "parse_entries",
    "process_alive",
    "save_config_file",
]
