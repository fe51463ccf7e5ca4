"""Data models for lpm."""

from dataclasses import dataclass
from enum import Enum


class ProcessState(Enum):
    """Single-character scheduler state reported by the kernel."""

    RUNNING = "R"
    SLEEPING = "S"
    DISK_WAIT = "D"
    ZOMBIE = "Z"
    STOPPED = "T"
    TRACE_STOP = "t"
    DEAD = "X"
    UNKNOWN = "?"

    @classmethod
    def from_code(cls, code: str) -> "ProcessState":
        """Map a raw state code to a member, falling back to UNKNOWN."""
        try:
            return cls(code)
        except ValueError:
            return _EXTRA_CODES.get(code, cls.UNKNOWN)

    @property
    def code(self) -> str:
        """Single-character kernel code."""
        return self.value

    @property
    def description(self) -> str:
        """Human-readable label, e.g. "Disk Sleep"."""
        return _DESCRIPTIONS[self]


# Newer kernels report a few extra codes; fold them into the base set.
_EXTRA_CODES = {
    "I": ProcessState.SLEEPING,  # idle kernel thread
    "x": ProcessState.DEAD,
}

_DESCRIPTIONS = {
    ProcessState.RUNNING: "Running",
    ProcessState.SLEEPING: "Sleeping",
    ProcessState.DISK_WAIT: "Disk Sleep",
    ProcessState.ZOMBIE: "Zombie",
    ProcessState.STOPPED: "Stopped",
    ProcessState.TRACE_STOP: "Tracing",
    ProcessState.DEAD: "Dead",
    ProcessState.UNKNOWN: "Unknown",
}


@dataclass(slots=True, frozen=True)
class Process:
    """Immutable snapshot of one process at one instant."""

    pid: int
    ppid: int  # 0 = no parent
    name: str
    state: ProcessState
    user: str  # resolved login name, or the numeric uid as text
    vm_size: int  # kB
    vm_rss: int  # kB
    utime: int  # ticks
    stime: int  # ticks
    threads: int
    start_tick: int
    cpu_percent: float = 0.0

    @property
    def cpu_ticks(self) -> int:
        """Total user + kernel ticks consumed so far."""
        return self.utime + self.stime


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Processes captured together, with the clock and CPU-tick total at capture."""

    processes: tuple[Process, ...]
    captured_at: float  # wall clock, seconds since the epoch
    monotonic: float
    total_cpu_ticks: int

    def __len__(self) -> int:
        return len(self.processes)

    def by_pid(self) -> dict[int, Process]:
        """Index the snapshot's processes by pid."""
        return {proc.pid: proc for proc in self.processes}

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls(processes=(), captured_at=0.0, monotonic=0.0, total_cpu_ticks=0)
