"""Borg-compatible locking.

Borg locks a repository or cache directory with two files next to each
other, derived from a base path (normally ``<dir>/lock``):

- ``lock.exclusive``: a directory created atomically by renaming a fully
  prepared temp directory onto it. It holds one empty marker file named
  after the owner's ProcessId (``host.pid-thread``).
- ``lock.roster``: a JSON file listing the shared and exclusive holders.

The exclusive directory serializes access to the roster and is also kept
for as long as a process holds the lock exclusively. Shared holders only
appear in the roster.

Locks of dead processes on this host are detected and removed ("stale
lock killing") unless disabled, matching Borg's BORG_HOSTNAME_IS_UNIQUE.
"""

import errno
import logging
import os
import shutil
import tempfile
from pathlib import Path

from ..config import LockConfig
from ..constants import (
    ADD,
    DEFAULT_READER_SLEEP,
    EXCLUSIVE,
    EXCLUSIVE_SUFFIX,
    LOCK_NAME,
    REMOVE,
    ROSTER_SUFFIX,
    SHARED,
)
from ..errors import LockFailed, LockTimeout, NotLocked, NotMyLock
from ..models import LockStatus, ProcessId, Roster
from .platform import get_process_id, hostname_is_unique, process_alive
from .timer import TimeoutTimer

logger = logging.getLogger(__name__)


def _resolve_kill_stale_locks(kill_stale_locks: bool | None) -> bool:
    return hostname_is_unique() if kill_stale_locks is None else kill_stale_locks


class ExclusiveLock:
    """An exclusive lock based on atomic directory rename.

    Only one process can rename its temp directory onto ``path``; everyone
    else gets EEXIST/ENOTEMPTY and waits.

    Usable as a context manager::

        with ExclusiveLock("/repo/lock.exclusive", timeout=1):
            ...
    """

    def __init__(
        self,
        path: str | Path,
        timeout: float | None = None,
        sleep: float | None = None,
        id: ProcessId | None = None,
        kill_stale_locks: bool | None = None,
    ) -> None:
        self.timeout = timeout
        self.sleep = sleep
        self.path = os.path.abspath(path)
        self.id = id or get_process_id()
        self.unique_name = os.path.join(self.path, self.id.to_filename())
        self.kill_stale_locks = _resolve_kill_stale_locks(kill_stale_locks)
        self.stale_warning_printed = False

    def __enter__(self) -> "ExclusiveLock":
        return self.acquire()

    def __exit__(self, *exc: object) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.unique_name!r}>"

    def acquire(self, timeout: float | None = None, sleep: float | None = None) -> "ExclusiveLock":
        """Acquire the lock, waiting up to timeout seconds.

        Raises:
            LockTimeout: If another process still holds the lock at timeout
            LockFailed: If the lock directory cannot be created at all
        """
        if timeout is None:
            timeout = self.timeout
        if sleep is None:
            sleep = self.sleep
        parent_path, base_name = os.path.split(self.path)
        unique_base_name = os.path.basename(self.unique_name)

        temp_path: str | None = None
        try:
            temp_path = tempfile.mkdtemp(".tmp", base_name + ".", parent_path)
        except OSError as e:
            raise LockFailed(self.path, str(e)) from None

        try:
            with open(os.path.join(temp_path, unique_base_name), "wb"):
                pass
            timer = TimeoutTimer(timeout, sleep).start()
            while True:
                try:
                    os.rename(temp_path, self.path)
                except OSError as e:
                    if e.errno not in (errno.EEXIST, errno.ENOTEMPTY):
                        raise LockFailed(self.path, str(e)) from None
                    if self.by_me():
                        return self
                    self.kill_stale_lock()
                    if timer.timed_out_or_sleep():
                        raise LockTimeout(self.path) from None
                else:
                    temp_path = None  # Renamed into place, nothing to clean up
                    logger.debug(f"Acquired exclusive lock {self.unique_name}")
                    return self
        except OSError as e:
            raise LockFailed(self.path, str(e)) from None
        finally:
            if temp_path is not None:
                shutil.rmtree(temp_path, ignore_errors=True)

    def release(self) -> None:
        """Release the lock.

        Raises:
            NotLocked: If nobody holds the lock
            NotMyLock: If another process holds the lock
        """
        if not self.is_locked():
            raise NotLocked(self.path)
        if not self.by_me():
            raise NotMyLock(self.path)
        os.unlink(self.unique_name)
        try:
            os.rmdir(self.path)
        except OSError as e:
            if e.errno not in (errno.ENOTEMPTY, errno.EEXIST, errno.ENOENT):
                raise
        logger.debug(f"Released exclusive lock {self.unique_name}")

    def is_locked(self) -> bool:
        return os.path.exists(self.path)

    def by_me(self) -> bool:
        return os.path.exists(self.unique_name)

    def kill_stale_lock(self) -> bool:
        """Remove the lock if every holder is a dead process on this host.

        Returns:
            True if the lock directory was removed
        """
        try:
            names = os.listdir(self.path)
        except (FileNotFoundError, PermissionError):
            return False

        for name in names:
            try:
                holder = ProcessId.from_filename(name)
            except ValueError:
                # Not a marker we understand; leave it alone
                return False

            if process_alive(holder.host, holder.pid, holder.thread, host_id=self.id.host):
                return False

            if not self.kill_stale_locks:
                if not self.stale_warning_printed:
                    logger.error(
                        f"Found stale lock {name}, but not deleting because "
                        "stale lock killing is disabled (BORG_HOSTNAME_IS_UNIQUE)."
                    )
                    self.stale_warning_printed = True
                return False

            try:
                os.unlink(os.path.join(self.path, name))
                logger.warning(f"Killed stale lock {name}.")
            except OSError as e:
                logger.warning(f"Failed to kill stale lock {name}: {e}")
                return False

        try:
            os.rmdir(self.path)
        except OSError as e:
            if e.errno in (errno.ENOTEMPTY, errno.EEXIST, errno.ENOENT):
                # Somebody else just took or cleared it
                return False
            raise
        return True

    def break_lock(self) -> None:
        """Forcefully remove the lock, whoever holds it."""
        if self.is_locked():
            for name in os.listdir(self.path):
                os.unlink(os.path.join(self.path, name))
            os.rmdir(self.path)

    def migrate_lock(self, old_id: ProcessId, new_id: ProcessId) -> None:
        """Move lock ownership from old_id to new_id, e.g. after a fork."""
        if self.id != old_id:
            raise ValueError(f"Lock is owned by {self.id}, not {old_id}")
        new_unique_name = os.path.join(self.path, new_id.to_filename())
        if self.is_locked() and self.by_me():
            with open(new_unique_name, "wb"):
                pass
            os.unlink(self.unique_name)
        self.id, self.unique_name = new_id, new_unique_name


class LockRoster:
    """Tracks shared and exclusive holders in a JSON roster file.

    Callers should hold the matching ExclusiveLock while modifying the
    roster, so concurrent processes don't overwrite each other's changes.
    """

    def __init__(
        self,
        path: str | Path,
        id: ProcessId | None = None,
        kill_stale_locks: bool | None = None,
    ) -> None:
        self.path = os.fspath(path)
        self.id = id or get_process_id()
        self.kill_stale_locks = _resolve_kill_stale_locks(kill_stale_locks)

    def load(self) -> Roster:
        """Read the roster, dropping entries of dead processes.

        A missing or corrupt roster file reads as an empty roster.
        """
        try:
            with open(self.path, encoding="utf-8") as f:
                roster = Roster.model_validate_json(f.read())
        except (FileNotFoundError, ValueError):
            return Roster()

        if self.kill_stale_locks:
            for key in (SHARED, EXCLUSIVE):
                elements = roster.get(key)
                for holder in list(elements):
                    if not process_alive(
                        holder.host, holder.pid, holder.thread, host_id=self.id.host
                    ):
                        elements.discard(holder)
                        logger.warning(
                            f"Removed stale {key} roster lock for host {holder.host} "
                            f"pid {holder.pid} thread {holder.thread}."
                        )
        return roster

    def save(self, roster: Roster) -> None:
        """Write the roster atomically."""
        directory, base_name = os.path.split(os.path.abspath(self.path))
        fd, temp_path = tempfile.mkstemp(".tmp", base_name + ".", directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(roster.model_dump_json())
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def remove(self) -> None:
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass

    def get(self, key: str) -> set[ProcessId]:
        return set(self.load().get(key))

    def empty(self, *keys: str) -> bool:
        return self.load().is_empty(*keys)

    def modify(self, key: str, op: str) -> None:
        """Add or remove our id under key.

        Removing an id that is not registered is a no-op; teardown paths
        can release twice.
        """
        roster = self.load()
        elements = roster.get(key)
        if op == ADD:
            elements.add(self.id)
        elif op == REMOVE:
            elements.discard(self.id)
        else:
            raise ValueError(f"Unknown LockRoster op {op!r}")
        self.save(roster)

    def migrate_lock(self, key: str, old_id: ProcessId, new_id: ProcessId) -> None:
        """Move a roster entry from old_id to new_id."""
        if self.id != old_id:
            raise ValueError(f"Roster entry is owned by {self.id}, not {old_id}")
        # old_id may already look dead (e.g. after a fork); migrate it, don't kill it
        killing, self.kill_stale_locks = self.kill_stale_locks, False
        try:
            self.modify(key, REMOVE)
            self.id = new_id
            self.modify(key, ADD)
        finally:
            self.kill_stale_locks = killing


class Lock:
    """A lock for a resource that can be held shared or exclusively.

    Write access needs an exclusive lock (one writer, no readers); read
    access needs a shared lock (any number of readers). Prefer the context
    manager, which releases the lock however the block is left::

        with Lock("/repo/lock", exclusive=True, timeout=1) as lock:
            ...

    ``sleep`` is the poll interval while a writer waits for readers to
    leave; ``lock_sleep`` is the one for retrying ``lock.exclusive``.
    """

    def __init__(
        self,
        path: str | Path,
        exclusive: bool = False,
        sleep: float | None = None,
        timeout: float | None = None,
        id: ProcessId | None = None,
        kill_stale_locks: bool | None = None,
        lock_sleep: float | None = None,
    ) -> None:
        self.path = os.fspath(path)
        self.is_exclusive = exclusive
        self.sleep = sleep
        self.lock_sleep = lock_sleep
        self.timeout = timeout
        self.id = id or get_process_id()
        self._roster = LockRoster(
            self.path + ROSTER_SUFFIX, id=self.id, kill_stale_locks=kill_stale_locks
        )
        # Held while reading/updating the roster, and for as long as
        # this Lock is exclusive
        self._lock = ExclusiveLock(
            self.path + EXCLUSIVE_SUFFIX,
            timeout=timeout,
            sleep=lock_sleep,
            id=self.id,
            kill_stale_locks=kill_stale_locks,
        )

    def __enter__(self) -> "Lock":
        return self.acquire()

    def __exit__(self, *exc: object) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(exclusive={self.is_exclusive!r}): {self.path!r}>"

    def acquire(
        self,
        exclusive: bool | None = None,
        remove: str | None = None,
        sleep: float | None = None,
    ) -> "Lock":
        """Acquire the lock shared or exclusively.

        Args:
            exclusive: Mode to acquire in, defaults to the mode given at init
            remove: Roster key to drop our entry from first (lock conversion)
            sleep: Seconds between attempts while waiting for readers

        Raises:
            LockTimeout: If the lock could not be acquired in time
        """
        if exclusive is None:
            exclusive = self.is_exclusive
        sleep = sleep or self.sleep or DEFAULT_READER_SLEEP
        if exclusive:
            self._wait_for_readers_finishing(remove, sleep)
            self._roster.modify(EXCLUSIVE, ADD)
        else:
            with self._lock:
                if remove is not None:
                    self._roster.modify(remove, REMOVE)
                self._roster.modify(SHARED, ADD)
        self.is_exclusive = exclusive
        logger.debug(f"Acquired {'exclusive' if exclusive else 'shared'} lock {self.path}")
        return self

    def _wait_for_readers_finishing(self, remove: str | None, sleep: float) -> None:
        timer = TimeoutTimer(self.timeout, sleep).start()
        while True:
            self._lock.acquire()
            try:
                if remove is not None:
                    self._roster.modify(remove, REMOVE)
                if not self._roster.get(SHARED):
                    return  # No readers left; keep the exclusive lock
                # Undo our roster change before giving others a chance
                if remove is not None:
                    self._roster.modify(remove, ADD)
            except BaseException:
                self._lock.release()
                raise
            self._lock.release()
            if timer.timed_out_or_sleep():
                raise LockTimeout(self.path)

    def release(self) -> None:
        if self.is_exclusive:
            self._roster.modify(EXCLUSIVE, REMOVE)
            if self._roster.empty(EXCLUSIVE, SHARED):
                self._roster.remove()
            self._lock.release()
        else:
            with self._lock:
                self._roster.modify(SHARED, REMOVE)
                if self._roster.empty(EXCLUSIVE, SHARED):
                    self._roster.remove()
        logger.debug(f"Released lock {self.path}")

    def upgrade(self) -> None:
        """Convert a shared lock into an exclusive one.

        Two shared holders upgrading at once deadlock until one times out:
        each waits for the other's shared entry to disappear.
        """
        if not self.is_exclusive:
            self.acquire(exclusive=True, remove=SHARED)

    def downgrade(self) -> None:
        """Convert an exclusive lock into a shared one."""
        if self.is_exclusive:
            self.acquire(exclusive=False, remove=EXCLUSIVE)

    def got_exclusive_lock(self) -> bool:
        return self.is_exclusive and self._lock.is_locked() and self._lock.by_me()

    def break_lock(self) -> None:
        """Forcefully remove roster and exclusive lock."""
        self._roster.remove()
        self._lock.break_lock()

    def migrate_lock(self, old_id: ProcessId, new_id: ProcessId) -> None:
        """Move ownership of this lock from old_id to new_id."""
        if self.is_exclusive:
            self._lock.migrate_lock(old_id, new_id)
            self._roster.migrate_lock(EXCLUSIVE, old_id, new_id)
        else:
            with self._lock:
                self._lock.migrate_lock(old_id, new_id)
                self._roster.migrate_lock(SHARED, old_id, new_id)
        self.id = new_id


def lock_path_for(directory: str | Path) -> str:
    """Get the lock base path Borg uses for a repository or cache directory."""
    return os.path.join(os.path.abspath(directory), LOCK_NAME)


def open_lock(
    directory: str | Path,
    exclusive: bool = False,
    config: LockConfig | None = None,
    timeout: float | None = None,
) -> Lock:
    """Build a Lock for a repository/cache directory from borp settings.

    The lock is not acquired yet.

    Args:
        directory: Repository or cache directory
        exclusive: Whether to lock for writing
        config: Lock settings, defaults to LockConfig()
        timeout: Overrides ``config.wait`` when given
    """
    if config is None:
        config = LockConfig()
    return Lock(
        lock_path_for(directory),
        exclusive=exclusive,
        sleep=config.reader_sleep,
        timeout=config.wait if timeout is None else timeout,
        id=get_process_id(config.host_id),
        kill_stale_locks=config.kill_stale_locks,
        lock_sleep=config.sleep,
    )


def get_lock_status(directory: str | Path) -> LockStatus:
    """Inspect a directory's lock without acquiring or cleaning it."""
    base = lock_path_for(directory)
    exclusive_path = base + EXCLUSIVE_SUFFIX
    status = LockStatus(path=base, locked=os.path.isdir(exclusive_path))
    if status.locked:
        try:
            names = sorted(os.listdir(exclusive_path))
        except FileNotFoundError:
            names = []
            status.locked = False
        for name in names:
            try:
                status.exclusive_holders.append(ProcessId.from_filename(name))
            except ValueError:
                status.unparsable.append(name)
    # Read the roster without dropping stale entries
    status.roster = LockRoster(base + ROSTER_SUFFIX, kill_stale_locks=False).load()
    return status
