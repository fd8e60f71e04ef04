"""Read-only snapshot of a lock's on-disk state."""

from pydantic import BaseModel, Field

from .process_id import ProcessId
from .roster import Roster


class LockStatus(BaseModel):
    """What is currently recorded for a Borg lock.

    Attributes:
        path: Lock base path (``<dir>/lock``).
        locked: Whether the exclusive lock directory exists.
        exclusive_holders: Marker files found in the exclusive lock directory.
        unparsable: Marker names that are not valid process ids.
        roster: Registered shared and exclusive holders.
    """

    path: str
    locked: bool = False
    exclusive_holders: list[ProcessId] = Field(default_factory=list)
    unparsable: list[str] = Field(default_factory=list)
    roster: Roster = Field(default_factory=Roster)
