"""Tests for the process control surface."""

import os
import signal
import subprocess
import sys
import time

import psutil
import pytest

from lpm.control import COMMON_SIGNALS, ProcessController, signal_name
from lpm.errors import InvalidArgument, PermissionDenied, ProcessNotFound

# Above the kernel's pid_max ceiling, so never a live process.
MISSING_PID = 2**22 + 1


def wait_for(condition, timeout: float = 5.0) -> bool:
    """Poll until condition() holds or the timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.02)
    return condition()


@pytest.fixture
def sleeper():
    """A child process that sleeps until signalled."""
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    yield proc
    if proc.poll() is None:
        proc.kill()
    proc.wait(timeout=5)


def test_signal_name():
    """Test signal numbers map to their symbolic names."""
    assert signal_name(signal.SIGTERM) == "SIGTERM"
    assert signal_name(signal.SIGKILL) == "SIGKILL"
    assert signal_name(-1) == "UNKNOWN"


def test_common_signals():
    """Test the common signal list starts with SIGTERM."""
    assert COMMON_SIGNALS[0][0] == signal.SIGTERM
    assert {sig for sig, _ in COMMON_SIGNALS} >= {signal.SIGKILL, signal.SIGSTOP, signal.SIGCONT}


class TestProcessController:
    """Tests for ProcessController."""

    def test_terminate(self, sleeper):
        """Test SIGTERM reaches a live child."""
        ProcessController().terminate(sleeper.pid)
        assert sleeper.wait(timeout=5) == -signal.SIGTERM

    def test_kill(self, sleeper):
        """Test SIGKILL reaches a live child."""
        ProcessController().kill(sleeper.pid)
        assert sleeper.wait(timeout=5) == -signal.SIGKILL

    def test_stop_and_resume(self, sleeper):
        """Test SIGSTOP and SIGCONT change the child's state."""
        controller = ProcessController()
        child = psutil.Process(sleeper.pid)

        controller.stop(sleeper.pid)
        assert wait_for(lambda: child.status() == psutil.STATUS_STOPPED)

        controller.resume(sleeper.pid)
        assert wait_for(lambda: child.status() != psutil.STATUS_STOPPED)

    def test_interrupt(self, sleeper):
        """Test SIGINT reaches a live child."""
        ProcessController().interrupt(sleeper.pid)
        assert sleeper.wait(timeout=5) != 0

    def test_missing_process(self):
        """Test signalling a non-existent pid raises ProcessNotFound."""
        with pytest.raises(ProcessNotFound):
            ProcessController().terminate(MISSING_PID)

    @pytest.mark.parametrize("pid", [0, -1])
    def test_invalid_pid(self, pid):
        """Test non-positive pids are rejected before any OS call."""
        with pytest.raises(InvalidArgument):
            ProcessController().send_signal(pid, signal.SIGTERM)

    def test_access_denied(self, monkeypatch):
        """Test an OS refusal surfaces as PermissionDenied."""

        def refuse(self, sig):
            raise psutil.AccessDenied(pid=1)

        monkeypatch.setattr(psutil.Process, "send_signal", refuse)
        with pytest.raises(PermissionDenied):
            ProcessController().terminate(os.getpid())

    @pytest.mark.parametrize("value", [-21, 20, 100])
    def test_priority_out_of_range(self, monkeypatch, value):
        """Test out-of-range nice values never reach the OS."""

        def fail(*args, **kwargs):
            raise AssertionError("psutil must not be called")

        monkeypatch.setattr(psutil, "Process", fail)
        with pytest.raises(InvalidArgument):
            ProcessController().set_priority(os.getpid(), value)

    def test_get_and_set_priority(self, sleeper):
        """Test lowering a child's priority is visible through get_priority."""
        controller = ProcessController()
        current = controller.get_priority(sleeper.pid)
        target = min(19, current + 1)

        controller.set_priority(sleeper.pid, target)

        assert controller.get_priority(sleeper.pid) == target

    def test_set_priority_missing_process(self):
        """Test renicing a non-existent pid raises ProcessNotFound."""
        with pytest.raises(ProcessNotFound):
            ProcessController().set_priority(MISSING_PID, 5)

    def test_set_priority_access_denied(self, monkeypatch):
        """Test a refused renice surfaces as PermissionDenied."""

        def refuse(self, value=None):
            raise psutil.AccessDenied(pid=1)

        monkeypatch.setattr(psutil.Process, "nice", refuse)
        with pytest.raises(PermissionDenied):
            ProcessController().set_priority(os.getpid(), 10)
