"""Error taxonomy for lpm.

Collection errors are process-local: the collector swallows them and the
process is simply absent from the snapshot. Control errors are surfaced to
the operator as a status message by the session.
"""


class LpmError(Exception):
    """Base class for all lpm errors."""


class TransientAbsence(LpmError):
    """A process vanished between enumeration and read."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"process {pid} is gone")
        self.pid = pid


class MalformedRecord(LpmError):
    """A per-process record did not have the expected shape."""


class PermissionDenied(LpmError):
    """The OS rejected a control operation."""


class ProcessNotFound(LpmError):
    """A control operation targeted a pid that no longer exists."""


class InvalidArgument(LpmError):
    """An argument was rejected before reaching the OS."""
