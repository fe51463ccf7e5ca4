"""Process control surface: signal delivery and priority changes."""

import signal

import psutil
import structlog

from lpm.errors import InvalidArgument, PermissionDenied, ProcessNotFound

log = structlog.get_logger()

MIN_NICE = -20
MAX_NICE = 19

COMMON_SIGNALS: list[tuple[int, str]] = [
    (signal.SIGTERM, "Terminate gracefully"),
    (signal.SIGKILL, "Force kill"),
    (signal.SIGINT, "Interrupt"),
    (signal.SIGHUP, "Hangup"),
    (signal.SIGSTOP, "Stop process"),
    (signal.SIGCONT, "Continue process"),
    (signal.SIGUSR1, "User signal 1"),
    (signal.SIGUSR2, "User signal 2"),
]


def signal_name(sig: int) -> str:
    """Return the symbolic name of a signal number, e.g. ``SIGTERM``."""
    try:
        return signal.Signals(sig).name
    except ValueError:
        return "UNKNOWN"


def _check_pid(pid: int) -> None:
    if pid <= 0:
        raise InvalidArgument(f"invalid pid: {pid}")


class ProcessController:
    """
    Sends signals and priority changes to processes through psutil.

    Every call is synchronous and returns as soon as the OS accepted the
    request; nothing waits for the target to react. Failures raise an
    LpmError subclass.
    """

    def send_signal(self, pid: int, sig: int) -> None:
        """
        Deliver ``sig`` to ``pid``.

        Raises:
            InvalidArgument: pid is not positive.
            ProcessNotFound: No such process.
            PermissionDenied: The OS refused the signal.
        """
        _check_pid(pid)
        name = signal_name(sig)
        try:
            psutil.Process(pid).send_signal(sig)
        except psutil.NoSuchProcess:
            log.warning("signal_failed", pid=pid, signal=name, reason="no_such_process")
            raise ProcessNotFound(f"no process with pid {pid}") from None
        except psutil.AccessDenied:
            log.warning("signal_failed", pid=pid, signal=name, reason="access_denied")
            raise PermissionDenied(f"not permitted to send {name} to {pid}") from None
        log.info("signal_sent", pid=pid, signal=name)

    def terminate(self, pid: int) -> None:
        self.send_signal(pid, signal.SIGTERM)

    def kill(self, pid: int) -> None:
        self.send_signal(pid, signal.SIGKILL)

    def stop(self, pid: int) -> None:
        self.send_signal(pid, signal.SIGSTOP)

    def resume(self, pid: int) -> None:
        self.send_signal(pid, signal.SIGCONT)

    def interrupt(self, pid: int) -> None:
        self.send_signal(pid, signal.SIGINT)

    def set_priority(self, pid: int, niceness: int) -> None:
        """
        Change the nice value of ``pid``.

        The range check happens before any OS call.

        Raises:
            InvalidArgument: pid is not positive or niceness is outside [-20, 19].
            ProcessNotFound: No such process.
            PermissionDenied: The OS refused the change.
        """
        _check_pid(pid)
        if not MIN_NICE <= niceness <= MAX_NICE:
            raise InvalidArgument(f"priority must be in [{MIN_NICE}, {MAX_NICE}], got {niceness}")
        try:
            psutil.Process(pid).nice(niceness)
        except psutil.NoSuchProcess:
            raise ProcessNotFound(f"no process with pid {pid}") from None
        except psutil.AccessDenied:
            log.warning("renice_failed", pid=pid, nice=niceness, reason="access_denied")
            raise PermissionDenied(f"not permitted to renice {pid} to {niceness}") from None
        log.info("reniced", pid=pid, nice=niceness)

    def get_priority(self, pid: int) -> int:
        """
        Return the nice value of ``pid``.

        Raises:
            InvalidArgument: pid is not positive.
            ProcessNotFound: No such process.
            PermissionDenied: The OS refused the query.
        """
        _check_pid(pid)
        try:
            return psutil.Process(pid).nice()
        except psutil.NoSuchProcess:
            raise ProcessNotFound(f"no process with pid {pid}") from None
        except psutil.AccessDenied:
            raise PermissionDenied(f"not permitted to query {pid}") from None
