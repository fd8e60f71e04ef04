"""Data models for borp.

This package defines the data structures shared by the lock manager and
the config parser:
- Lock ownership (ProcessId, Roster, LockStatus)
- Borg config files (ConfigValue, ConfigSection, BorgConfig)
- Well-known config sections (RepositoryConfig, CacheConfig)

Example:
    >>> from borp.models import ProcessId
    >>> ProcessId("myhost", 1234, 0).to_filename()
    'myhost.1234-0'
"""

from .borg_config import (
    BorgConfig,
    CacheConfig,
    ConfigSection,
    ConfigValue,
    RepositoryConfig,
    ValueKind,
    check_names,
    classify_value,
    format_base64,
)
from .lock_status import LockStatus
from .process_id import ProcessId
from .roster import Roster

__all__ = [
    "BorgConfig",
    "CacheConfig",
    "ConfigSection",
    "ConfigValue",
    "LockStatus",
    "ProcessId",
    "RepositoryConfig",
    "Roster",
    "ValueKind",
    "check_names",
    "classify_value",
    "format_base64",
]
