"""Process identity used to mark lock ownership."""

from typing import NamedTuple


class ProcessId(NamedTuple):
    """Identifies a lock holder as (host, pid, thread).

    Serializes to JSON as a 3-element array, which is how Borg stores
    holders in its lock roster.
    """

    host: str
    pid: int
    thread: int = 0

    def to_filename(self) -> str:
        """Render as a marker file name, e.g. ``myhost.1234-0``."""
        return f"{self.host}.{self.pid}-{self.thread:x}"

    @classmethod
    def from_filename(cls, name: str) -> "ProcessId":
        """Parse a marker file name produced by :meth:`to_filename`.

        Raises:
            ValueError: If the name is not of the form ``host.pid-thread``
        """
        host_pid, thread_str = name.rsplit("-", 1)
        host, pid_str = host_pid.rsplit(".", 1)
        return cls(host, int(pid_str), int(thread_str, 16))
