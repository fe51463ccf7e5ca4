"""Process forest built from a Snapshot."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

import structlog

from lpm.models import Process, Snapshot

log = structlog.get_logger()

# ppid of init and kthreadd; never a real process
NO_PARENT = 0


@dataclass(slots=True, eq=False)
class ProcessTreeNode:
    """One process in the forest, owning its children."""

    process: Process
    children: list["ProcessTreeNode"] = field(default_factory=list)
    depth: int = 0

    @property
    def pid(self) -> int:
        """Pid of the wrapped process."""
        return self.process.pid


class ProcessTree:
    """
    Forest of processes keyed by pid.

    Every process of the input appears exactly once: either as a root or as
    the child of exactly one other node. Parents are looked up by key; nodes
    never hold references to their parent. Roots and every children list
    are ordered by ascending pid.
    """

    def __init__(self, processes: Iterable[Process] = ()) -> None:
        self._nodes: dict[int, ProcessTreeNode] = {}
        self.roots: list[ProcessTreeNode] = []
        self.anomalies: list[int] = []
        self._build(processes)

    def _build(self, processes: Iterable[Process]) -> None:
        for proc in processes:
            self._nodes[proc.pid] = ProcessTreeNode(proc)

        for node in self._nodes.values():
            if node.process.ppid == node.pid:
                self._report_cycle(node)
            parent = self._parent_node(node)
            if parent is None:
                self.roots.append(node)
            else:
                parent.children.append(node)

        for node in self._nodes.values():
            node.children.sort(key=lambda child: child.pid)
        self.roots.sort(key=lambda root: root.pid)

        visited: set[int] = set()
        for root in self.roots:
            self._assign_depths(root, visited)

        # Anything not reachable from a root hangs off a parent cycle.
        for pid in sorted(self._nodes):
            if pid in visited:
                continue
            node = self._nodes[pid]
            parent = self._parent_node(node)
            if parent is not None:
                parent.children.remove(node)
            self._insert_root(node)
            self._report_cycle(node)
            self._assign_depths(node, visited)
        self.anomalies.sort()

    def _report_cycle(self, node: ProcessTreeNode) -> None:
        self.anomalies.append(node.pid)
        log.warning("process_tree_cycle", pid=node.pid, ppid=node.process.ppid)

    def _parent_node(self, node: ProcessTreeNode) -> ProcessTreeNode | None:
        ppid = node.process.ppid
        if ppid == NO_PARENT or ppid == node.pid:
            return None
        return self._nodes.get(ppid)

    def _insert_root(self, node: ProcessTreeNode) -> None:
        index = 0
        while index < len(self.roots) and self.roots[index].pid < node.pid:
            index += 1
        self.roots.insert(index, node)

    @staticmethod
    def _assign_depths(root: ProcessTreeNode, visited: set[int]) -> None:
        root.depth = 0
        visited.add(root.pid)
        stack = [root]
        while stack:
            node = stack.pop()
            for child in node.children:
                if child.pid in visited:
                    continue
                visited.add(child.pid)
                child.depth = node.depth + 1
                stack.append(child)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, pid: int) -> bool:
        return pid in self._nodes

    def find_by_pid(self, pid: int) -> ProcessTreeNode | None:
        """Return the node for ``pid``, or None if it is not in the forest."""
        return self._nodes.get(pid)

    def parent_of(self, pid: int) -> ProcessTreeNode | None:
        """Return the parent node of ``pid``; None for roots and unknown pids."""
        node = self._nodes.get(pid)
        if node is None or node in self.roots:
            return None
        return self._parent_node(node)

    def walk(self, start: ProcessTreeNode | None = None) -> Iterator[ProcessTreeNode]:
        """Yield nodes depth-first, pre-order, children by ascending pid."""
        stack = list(reversed(self.roots)) if start is None else [start]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def descendants_of(self, pid: int) -> list[int]:
        """All transitive children of ``pid`` in pre-order; empty if unknown."""
        node = self._nodes.get(pid)
        if node is None:
            return []
        walker = self.walk(node)
        next(walker)  # skip the node itself
        return [descendant.pid for descendant in walker]

    def lines(self, show_threads: bool = False) -> list[str]:
        """Render the forest with box-drawing connectors, one line per process."""
        out: list[str] = []
        # (node, prefix, is_last)
        stack = [(root, "", i == len(self.roots) - 1) for i, root in enumerate(self.roots)]
        stack.reverse()
        while stack:
            node, prefix, is_last = stack.pop()
            out.append(prefix + ("└── " if is_last else "├── ") + describe(node.process, show_threads))
            child_prefix = prefix + ("    " if is_last else "│   ")
            count = len(node.children)
            for i in range(count - 1, -1, -1):
                stack.append((node.children[i], child_prefix, i == count - 1))
        return out


def describe(proc: Process, show_threads: bool = False) -> str:
    """One-line tree label: pid, name, optional threads, state and RSS."""
    text = f"{proc.pid} {proc.name}"
    if show_threads and proc.threads > 1:
        text += f" [{proc.threads} threads]"
    text += f" ({proc.state.code})"
    if proc.vm_rss > 0:
        text += f" {proc.vm_rss}kB"
    return text


def build_tree(snapshot: Snapshot) -> ProcessTree:
    """Build the forest for one snapshot."""
    return ProcessTree(snapshot.processes)
