"""Lock roster model.

The roster is a JSON file next to the exclusive lock directory that
tracks every shared and exclusive holder of a Borg lock.
"""

from pydantic import BaseModel, Field

from ..constants import EXCLUSIVE, SHARED
from .process_id import ProcessId


class Roster(BaseModel):
    """Contents of a ``lock.roster`` file.

    Attributes:
        shared: Processes holding a shared (read) lock.
        exclusive: Processes holding the exclusive (write) lock.
    """

    shared: set[ProcessId] = Field(default_factory=set)
    exclusive: set[ProcessId] = Field(default_factory=set)

    def get(self, key: str) -> set[ProcessId]:
        """Get holders registered under ``shared`` or ``exclusive``."""
        if key not in (SHARED, EXCLUSIVE):
            raise ValueError(f"Unknown roster key {key!r}")
        return getattr(self, key)

    def is_empty(self, *keys: str) -> bool:
        """Return True if no holders are registered under any of keys."""
        return all(not self.get(key) for key in keys)
