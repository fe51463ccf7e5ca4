"""Parsing of raw per-process records into Process values.

A record is two text blobs read from ``/proc/<pid>``:

* ``stat``: ``pid (comm) state ppid ...`` on a single line.
* ``status``: ``Key:<whitespace>value`` lines.

The executable name sits between the first ``(`` and the last ``)`` of the
stat line. Names may contain parentheses themselves, so scanning for the
first ``)`` is wrong.
"""

import pwd
from collections.abc import Callable
from functools import lru_cache

from lpm.errors import MalformedRecord
from lpm.models import Process, ProcessState

# Positions within the fields that follow the closing parenthesis.
_STATE = 0
_PPID = 1
_UTIME = 11
_STIME = 12
_THREADS = 17
_START_TICK = 19
_MIN_FIELDS = _START_TICK + 1

_STATUS_KEYS = {"VmSize": "vm_size", "VmRSS": "vm_rss", "Uid": "uid"}

UserResolver = Callable[[int], str | None]


@lru_cache(maxsize=1024)
def lookup_user(uid: int) -> str | None:
    """Resolve a numeric uid to a login name, or None when unknown."""
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return None


def _to_int(value: str, field: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise MalformedRecord(f"{field} is not numeric: {value!r}") from None
    if number < 0:
        raise MalformedRecord(f"{field} is negative: {number}")
    return number


def split_stat(stat: str) -> tuple[str, str, list[str]]:
    """Split a stat line into (pid text, name, fields after the name)."""
    start = stat.find("(")
    end = stat.rfind(")")
    if start == -1 or end == -1 or end < start:
        raise MalformedRecord("stat line has no (name) span")
    return stat[:start].strip(), stat[start + 1 : end], stat[end + 1 :].split()


def parse_status(status: str) -> dict[str, int]:
    """
    Extract VmSize, VmRSS and the real uid from a status block.

    Unknown keys are ignored and a repeated key keeps its last value.
    Memory values lose their trailing ``kB`` unit.
    """
    values: dict[str, int] = {}
    for line in status.splitlines():
        key, sep, rest = line.partition(":")
        if not sep or key not in _STATUS_KEYS:
            continue
        tokens = rest.split()
        if not tokens:
            raise MalformedRecord(f"{key} has no value")
        # Uid lists real, effective, saved and fs uids; the first is the owner.
        values[_STATUS_KEYS[key]] = _to_int(tokens[0], key)
    return values


def parse_record(
    pid: int,
    stat: str,
    status: str,
    resolve_user: UserResolver = lookup_user,
) -> Process:
    """
    Build a Process from the raw stat line and status block of ``pid``.

    Raises:
        MalformedRecord: The stat line is truncated, carries non-numeric
            values where numbers are expected, or belongs to another pid.
    """
    pid_text, name, fields = split_stat(stat.strip())
    if pid_text and _to_int(pid_text, "pid") != pid:
        raise MalformedRecord(f"stat line is for pid {pid_text}, expected {pid}")
    if len(fields) < _MIN_FIELDS:
        raise MalformedRecord(f"stat line has {len(fields)} fields, need {_MIN_FIELDS}")
    if len(fields[_STATE]) != 1:
        raise MalformedRecord(f"bad state code: {fields[_STATE]!r}")

    threads = _to_int(fields[_THREADS], "num_threads")
    if threads < 1:
        raise MalformedRecord(f"thread count must be positive, got {threads}")

    info = parse_status(status)
    uid = info.get("uid")
    if uid is None:
        user = "?"
    else:
        user = resolve_user(uid) or str(uid)

    return Process(
        pid=pid,
        ppid=_to_int(fields[_PPID], "ppid"),
        name=name,
        state=ProcessState.from_code(fields[_STATE]),
        user=user,
        vm_size=info.get("vm_size", 0),
        vm_rss=info.get("vm_rss", 0),
        utime=_to_int(fields[_UTIME], "utime"),
        stime=_to_int(fields[_STIME], "stime"),
        threads=threads,
        start_tick=_to_int(fields[_START_TICK], "starttime"),
    )
