"""Process identity and liveness checks.

A lock holder is identified by (host id, pid, thread). The host id uses
the same scheme as Borg so that both tools recognise each other's locks:
``$BORG_HOST_ID`` if set, otherwise ``<fqdn>@<node id>``.
"""

import logging
import os
import socket
import uuid
from functools import lru_cache

from ..models import ProcessId

logger = logging.getLogger(__name__)

HOST_ID_ENV_VAR = "BORG_HOST_ID"
HOSTNAME_IS_UNIQUE_ENV_VAR = "BORG_HOSTNAME_IS_UNIQUE"


@lru_cache(maxsize=1)
def _default_host_id() -> str:
    fqdn = socket.getfqdn()
    # getfqdn falls back to the short name; localhost would collide across machines
    if fqdn in ("localhost", "localhost.localdomain"):
        fqdn = socket.gethostname()
    return f"{fqdn}@{uuid.getnode()}"


def get_host_id(override: str | None = None) -> str:
    """Get the host part of process ids for this machine.

    Args:
        override: Host id from borp settings, used when BORG_HOST_ID is unset
    """
    return os.environ.get(HOST_ID_ENV_VAR) or override or _default_host_id()


def get_process_id(host_id: str | None = None) -> ProcessId:
    """Get the ProcessId of the current process.

    The thread id is always zero; locks are held per process.
    """
    return ProcessId(get_host_id(host_id), os.getpid(), 0)


def hostname_is_unique() -> bool:
    """Whether stale locks of dead local processes may be removed.

    Mirrors Borg's BORG_HOSTNAME_IS_UNIQUE, which defaults to yes.
    """
    value = os.environ.get(HOSTNAME_IS_UNIQUE_ENV_VAR, "yes")
    return value.strip().lower() in ("yes", "true", "1", "on")


def local_pid_alive(pid: int) -> bool:
    """Check if a process with given PID is running on this host."""
    try:
        os.kill(pid, 0)  # Signal 0 doesn't kill, just checks
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by another user
        return True
    except OSError as e:
        logger.debug(f"Could not check pid {pid}: {e}")
        return True
    return True


def process_alive(host: str, pid: int, thread: int, host_id: str | None = None) -> bool:
    """Check if the process identified by (host, pid, thread) is alive.

    Processes on other hosts cannot be checked and are assumed alive, as
    are non-zero thread ids.
    """
    if host != get_host_id(host_id):
        return True
    if thread != 0:
        return True
    return local_pid_alive(pid)
