"""Shared test fixtures for lpm."""

from pathlib import Path

import pytest

from lpm.models import Process, ProcessState, Snapshot


def stat_line(
    pid: int,
    name: str,
    state: str = "S",
    ppid: int = 1,
    utime: int = 0,
    stime: int = 0,
    threads: int = 1,
    start_tick: int = 100,
) -> str:
    """Build a /proc/<pid>/stat line with realistic filler fields."""
    return (
        f"{pid} ({name}) {state} {ppid} {pid} {pid} 0 -1 4194560 120 0 3 0 "
        f"{utime} {stime} 0 0 20 0 {threads} 0 {start_tick} 12345678 1024 "
        "18446744073709551615 1 1 0 0 0 0 0 0 0 0 0 0 17 3 0 0 0 0 0\n"
    )


def status_block(uid: int = 1000, vm_size: int | None = 2048, vm_rss: int | None = 512) -> str:
    """Build a /proc/<pid>/status block."""
    lines = ["Name:\tproc", "State:\tS (sleeping)", f"Uid:\t{uid}\t{uid}\t{uid}\t{uid}"]
    if vm_size is not None:
        lines.append(f"VmSize:\t{vm_size:>8} kB")
    if vm_rss is not None:
        lines.append(f"VmRSS:\t{vm_rss:>8} kB")
    lines.append("Threads:\t1")
    return "\n".join(lines) + "\n"


class FakeProc:
    """A throwaway procfs tree under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.set_cpu_ticks(1000)

    def set_cpu_ticks(self, total: int) -> None:
        # user nice system idle iowait irq softirq steal guest guest_nice
        (self.root / "stat").write_text(
            f"cpu  {total} 0 0 0 0 0 0 0 50 50\ncpu0 {total} 0 0 0 0 0 0 0 0 0\nintr 1 2 3\n"
        )

    def add(self, pid: int, name: str, *, uid: int = 1000, vm_rss: int = 512, **stat_fields) -> Path:
        proc_dir = self.root / str(pid)
        proc_dir.mkdir(exist_ok=True)
        (proc_dir / "stat").write_text(stat_line(pid, name, **stat_fields))
        (proc_dir / "status").write_text(status_block(uid=uid, vm_rss=vm_rss))
        return proc_dir


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    """An empty fake /proc with a cpu line."""
    root = tmp_path / "proc"
    root.mkdir()
    return FakeProc(root)


@pytest.fixture
def make_process():
    """Factory for Process values with sensible defaults."""

    def factory(pid: int, **overrides) -> Process:
        fields = {
            "pid": pid,
            "ppid": 1,
            "name": f"proc{pid}",
            "state": ProcessState.SLEEPING,
            "user": "user",
            "vm_size": 2048,
            "vm_rss": 512,
            "utime": 0,
            "stime": 0,
            "threads": 1,
            "start_tick": 100,
            "cpu_percent": 0.0,
        }
        fields.update(overrides)
        return Process(**fields)

    return factory


@pytest.fixture
def make_snapshot():
    """Factory wrapping processes in a Snapshot."""

    def factory(processes, total_cpu_ticks: int = 1000, monotonic: float = 0.0) -> Snapshot:
        return Snapshot(
            processes=tuple(processes),
            captured_at=1_700_000_000.0 + monotonic,
            monotonic=monotonic,
            total_cpu_ticks=total_cpu_ticks,
        )

    return factory
