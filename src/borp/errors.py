"""Borp errors.

Lock error messages follow the wording Borg uses so that output from
borp and Borg reads the same when both touch one repository. Exit codes
match Borg's "modern" exit codes for the same errors.
"""


class BorpError(Exception):
    """Base exception for borp errors."""

    exit_code = 2


class LockError(BorpError):
    """Failed to acquire the lock."""

    message = "Failed to acquire the lock {path}."
    exit_code = 70

    def __init__(self, path: str, detail: str | None = None) -> None:
        self.path = path
        self.detail = detail
        super().__init__(self.message.format(path=path, detail=detail))


class LockErrorT(LockError):
    """Failed to acquire the lock, with a traceback worth showing."""

    exit_code = 71


class LockTimeout(LockError):
    """Lock could not be acquired before the timeout expired."""

    message = "Failed to create/acquire the lock {path} (timeout)."
    exit_code = 73


class LockFailed(LockErrorT):
    """Lock could not be created for a reason other than contention."""

    message = "Failed to create/acquire the lock {path} ({detail})."
    exit_code = 72


class NotLocked(LockErrorT):
    """Release was attempted on a lock that is not held by anybody."""

    message = "Failed to release the lock {path} (was not locked)."
    exit_code = 74


class NotMyLock(LockErrorT):
    """Release was attempted on a lock held by another process."""

    message = "Failed to release the lock {path} (was/is locked, but not by me)."
    exit_code = 75


class ConfigError(BorpError):
    """Base exception for Borg config file errors."""


class ConfigParseError(ConfigError):
    """Raised when a config file does not follow the expected line format."""

    def __init__(self, message: str, line_no: int | None = None) -> None:
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


class ConfigValueError(ConfigError):
    """Raised when a config value cannot be read as the requested type."""
