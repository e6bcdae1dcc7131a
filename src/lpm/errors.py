"""Exception types raised by lpm."""


class LpmError(Exception):
    """Base class for all lpm errors."""


class SnapshotUnavailable(LpmError):
    """The OS process table could not be read."""


class InvalidArgument(LpmError, ValueError):
    """A caller supplied value was rejected before touching the OS."""


class SignalFailed(LpmError):
    """The OS refused the kill signal or the process vanished first."""

    def __init__(self, pid: int, reason: str) -> None:
        super().__init__(f"could not signal PID {pid}: {reason}")
        self.pid = pid
        self.reason = reason


class AuditWriteFailed(LpmError):
    """A kill succeeded but its audit record could not be written."""

    def __init__(self, path: str, cause: Exception) -> None:
        super().__init__(f"could not write audit record to {path}: {cause}")
        self.path = path
        self.cause = cause
