"""Filtering and sorting of process collections.

Predicates are plain callables ``Process -> bool`` so they chain freely;
``Pipeline`` applies a set of them and then one sort, always in that order.
Every function returns a new list and leaves its input untouched.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum

from lpm.models import Process, ProcessState

Predicate = Callable[[Process], bool]


class SortField(Enum):
    """Sort keys for the process list."""

    PID = "pid"
    NAME = "name"
    USER = "user"
    CPU = "cpu"
    MEMORY = "mem"
    STATE = "state"
    PPID = "ppid"


_SORT_KEYS: dict[SortField, Callable[[Process], object]] = {
    SortField.PID: lambda p: p.pid,
    SortField.NAME: lambda p: p.name,
    SortField.USER: lambda p: p.user,
    SortField.CPU: lambda p: p.cpu_percent,
    SortField.MEMORY: lambda p: p.vm_rss,
    SortField.STATE: lambda p: p.state.code,
    SortField.PPID: lambda p: p.ppid,
}


# Predicates


def by_name(pattern: str) -> Predicate:
    """Case-insensitive substring match on the executable name."""
    needle = pattern.casefold()
    return lambda p: needle in p.name.casefold()


def by_user(user: str) -> Predicate:
    """Exact match on the resolved owner name."""
    return lambda p: p.user == user


def by_state(state: ProcessState | str) -> Predicate:
    """Exact match on the state code."""
    if isinstance(state, str):
        state = ProcessState.from_code(state)
    return lambda p: p.state is state


def pid_range(low: int, high: int) -> Predicate:
    """Inclusive pid range."""
    return lambda p: low <= p.pid <= high


def memory_range(low: int, high: int) -> Predicate:
    """Inclusive resident-memory range in kB."""
    return lambda p: low <= p.vm_rss <= high


def cpu_range(low: float, high: float) -> Predicate:
    """Inclusive CPU-percent range."""
    return lambda p: low <= p.cpu_percent <= high


def by_parent(ppid: int) -> Predicate:
    """Exact match on parent pid."""
    return lambda p: p.ppid == ppid


# "children of X" is the parent-id predicate under another name.
children_of = by_parent


def search(query: str) -> Predicate:
    """Case-insensitive substring match on either the name or the owner."""
    needle = query.casefold()
    return lambda p: needle in p.name.casefold() or needle in p.user.casefold()


# Operations


def filter_processes(processes: Iterable[Process], *predicates: Predicate) -> list[Process]:
    """Keep the processes that satisfy every predicate, in input order."""
    return [p for p in processes if all(pred(p) for pred in predicates)]


def sort_processes(
    processes: Iterable[Process],
    sort_field: SortField,
    ascending: bool = True,
) -> list[Process]:
    """
    Sort by one field.

    The sort is stable in both directions: processes with equal keys keep
    their input order.
    """
    return sorted(processes, key=_SORT_KEYS[sort_field], reverse=not ascending)


def top_by_cpu(processes: Iterable[Process], count: int) -> list[Process]:
    """The ``count`` busiest processes, or all of them if there are fewer."""
    return sort_processes(processes, SortField.CPU, ascending=False)[: max(0, count)]


def top_by_memory(processes: Iterable[Process], count: int) -> list[Process]:
    """The ``count`` largest processes by RSS, or all of them if there are fewer."""
    return sort_processes(processes, SortField.MEMORY, ascending=False)[: max(0, count)]


@dataclass(frozen=True)
class Pipeline:
    """An ordered set of filters followed by one sort."""

    filters: tuple[Predicate, ...] = ()
    sort_field: SortField = SortField.PID
    ascending: bool = True
    limit: int | None = None

    def where(self, *predicates: Predicate) -> "Pipeline":
        return replace(self, filters=self.filters + predicates)

    def sorted_by(self, sort_field: SortField, ascending: bool = True) -> "Pipeline":
        return replace(self, sort_field=sort_field, ascending=ascending)

    def take(self, count: int) -> "Pipeline":
        return replace(self, limit=max(0, count))

    def apply(self, processes: Iterable[Process]) -> list[Process]:
        result = sort_processes(
            filter_processes(processes, *self.filters), self.sort_field, self.ascending
        )
        if self.limit is not None:
            result = result[: self.limit]
        return result
