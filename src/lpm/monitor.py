"""Snapshot engine for lpm: reads the live process table from /proc."""

import os
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import structlog

from lpm.errors import MalformedRecord, TransientAbsence
from lpm.models import Process, Snapshot
from lpm.parser import UserResolver, lookup_user, parse_record

log = structlog.get_logger()

# user nice system idle iowait irq softirq steal; guest time is already
# folded into user/nice by the kernel.
_CPU_FIELDS = 8


class ProcSource:
    """
    Raw record source backed by a procfs mount.

    Every method reads the filesystem afresh; nothing is cached.
    """

    def __init__(self, root: str | Path = "/proc") -> None:
        """
        Initialize the ProcSource.

        Args:
            root: Mount point of procfs. Tests point this at a fake tree.
        """
        self._root = Path(root)

    @property
    def root(self) -> Path:
        """Mount point of procfs."""
        return self._root

    def pids(self) -> list[int]:
        """Return the pids of every all-digit directory under the root."""
        pids: list[int] = []
        with os.scandir(self._root) as entries:
            for entry in entries:
                if not (entry.name.isascii() and entry.name.isdigit()):
                    continue
                try:
                    if not entry.is_dir():
                        continue
                except OSError:
                    continue  # Vanished while scanning
                pids.append(int(entry.name))
        return pids

    def _read(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except (FileNotFoundError, ProcessLookupError):
            return None

    def read_record(self, pid: int) -> tuple[str, str]:
        """
        Read the stat line and status block of ``pid``.

        Raises:
            TransientAbsence: Both files are gone.
            MalformedRecord: Only the stat file is gone.
        """
        base = self._root / str(pid)
        stat = self._read(base / "stat")
        status = self._read(base / "status")
        if stat is None and status is None:
            raise TransientAbsence(pid)
        if stat is None:
            raise MalformedRecord(f"stat missing for pid {pid}")
        return stat, status or ""

    def total_cpu_ticks(self) -> int:
        """Sum the accounted CPU-time categories of the aggregate ``cpu`` line."""
        with open(self._root / "stat", encoding="utf-8") as f:
            for line in f:
                fields = line.split()
                if fields and fields[0] == "cpu":
                    try:
                        return sum(int(value) for value in fields[1 : 1 + _CPU_FIELDS])
                    except ValueError:
                        raise MalformedRecord(f"bad cpu line in stat: {line.strip()!r}") from None
        raise MalformedRecord("no aggregate cpu line in stat")


class SnapshotCollector:
    """
    Builds Snapshots from a record source.

    Per-process failures are swallowed: a vanished or malformed process is
    left out and the rest of the batch is still collected.
    """

    def __init__(
        self,
        source: ProcSource | None = None,
        resolve_user: UserResolver = lookup_user,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source or ProcSource()
        self._resolve_user = resolve_user
        self._clock = clock
        self._monotonic = monotonic

    @property
    def source(self) -> ProcSource:
        """Record source snapshots are read from."""
        return self._source

    def collect(self) -> Snapshot:
        """
        Capture one Snapshot, processes ordered by ascending pid.

        Raises:
            OSError: The process table itself could not be enumerated.
        """
        total_ticks = self._source.total_cpu_ticks()
        processes: list[Process] = []
        skipped = 0

        for pid in sorted(self._source.pids()):
            try:
                stat, status = self._source.read_record(pid)
                processes.append(parse_record(pid, stat, status, self._resolve_user))
            except TransientAbsence:
                continue
            except (MalformedRecord, OSError) as e:
                skipped += 1
                log.debug("record_skipped", pid=pid, error=str(e))

        if skipped:
            log.debug("collect_skipped_records", skipped=skipped)

        return Snapshot(
            processes=tuple(processes),
            captured_at=self._clock(),
            monotonic=self._monotonic(),
            total_cpu_ticks=total_ticks,
        )


def cpu_percent(previous: Process, current: Process, total_delta: int) -> float:
    """
    Share of all CPU time spent by one process between two samples.

    Returns 0.0 when no ticks elapsed or when the pid was reused by a new
    process in between.
    """
    if total_delta <= 0 or previous.start_tick != current.start_tick:
        return 0.0
    percent = 100.0 * (current.cpu_ticks - previous.cpu_ticks) / total_delta
    return min(100.0, max(0.0, percent))


def with_cpu_percent(previous: Snapshot | None, current: Snapshot) -> Snapshot:
    """
    Return ``current`` with CPU-percent filled in against ``previous``.

    Processes without a prior sample stay at 0.0. Neither input is mutated.
    """
    if previous is None or not previous.processes:
        return current

    total_delta = current.total_cpu_ticks - previous.total_cpu_ticks
    before = previous.by_pid()
    processes = []
    for proc in current.processes:
        prior = before.get(proc.pid)
        if prior is None:
            processes.append(proc)
        else:
            processes.append(replace(proc, cpu_percent=cpu_percent(prior, proc, total_delta)))

    return replace(current, processes=tuple(processes))
