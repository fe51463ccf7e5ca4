"""Interactive session: the live view and the keystroke state machine.

The session owns everything the operator sees: the latest Snapshot, its
filtered and sorted projection, the selection and scroll position, and the
modal sub-state. It consumes key names and timer ticks and produces a
RenderRequest for whatever draws the screen. It never touches the terminal.

Keys are Textual-style names: single printable characters for text keys
("k", "N", "/"), and names such as "up", "pagedown", "enter", "escape",
"backspace" or "ctrl+c" for everything else.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from lpm.config import Settings
from lpm.control import ProcessController
from lpm.errors import LpmError
from lpm.formatting import COLUMN_HEADER, format_details, format_row
from lpm.models import Process, Snapshot
from lpm.monitor import SnapshotCollector, with_cpu_percent
from lpm.pipeline import Pipeline, SortField, search
from lpm.tree import build_tree

log = structlog.get_logger()

TITLE = "Linux Process Manager (LPM)"


# Modes. Keystrokes are routed by the type of the current mode.


@dataclass(slots=True, frozen=True)
class Idle:
    """Normal browsing."""


@dataclass(slots=True, frozen=True)
class ConfirmingKill:
    """Waiting for yes/no before terminating ``pid``."""

    pid: int
    name: str


@dataclass(slots=True, frozen=True)
class Help:
    """Help screen; any key dismisses it."""


@dataclass(slots=True, frozen=True)
class EditingFilter:
    """Typing a search query."""

    text: str = ""


@dataclass(slots=True, frozen=True)
class EditingPriority:
    """Typing a new nice value for ``pid``."""

    pid: int
    text: str = ""


Mode = Idle | ConfirmingKill | Help | EditingFilter | EditingPriority

QUIT_KEYS = frozenset({"q", "Q"})
FORCE_QUIT_KEY = "ctrl+c"
YES_KEYS = frozenset({"y", "Y"})

SORT_KEYS = {
    "P": SortField.PID,
    "N": SortField.NAME,
    "U": SortField.USER,
    "C": SortField.CPU,
    "M": SortField.MEMORY,
    "S": SortField.STATE,
    "O": SortField.PPID,
}

HELP_LINES = [
    "=== LPM Help ===",
    "",
    "Navigation:",
    "  Up/Down        Move selection",
    "  PgUp/PgDn      Page up/down",
    "  Home/End       First/last process",
    "",
    "Actions:",
    "  r   Refresh now",
    "  k   Kill process (SIGTERM, asks for confirmation)",
    "  n   Change priority (nice)",
    "  /   Search by name or user (Esc clears)",
    "  t   Toggle tree view",
    "  Enter  Process details",
    "",
    "Sorting (same key again reverses the order):",
    "  P PID   N Name   U User   C CPU   M Memory   S State   O Parent",
    "",
    "q - Quit",
    "",
    "Press any key to continue...",
]


@dataclass(frozen=True)
class RenderRequest:
    """Everything the drawing collaborator needs for one frame."""

    header: str
    column_header: str
    rows: list[str]
    highlighted: int  # index into rows, -1 when nothing is selected
    status: str
    help: bool


@dataclass
class SessionView:
    """Mutable state of one interactive session."""

    snapshot: Snapshot = field(default_factory=Snapshot.empty)
    projection: list[Process] = field(default_factory=list)
    depths: dict[int, int] = field(default_factory=dict)  # tree view only
    selected: int = -1
    scroll: int = 0
    page_size: int = 20
    sort_field: SortField = SortField.PID
    ascending: bool = True
    filter_text: str = ""
    tree_view: bool = False
    mode: Mode = field(default_factory=Idle)
    status: str = ""
    last_refresh: float | None = None

    @property
    def selected_process(self) -> Process | None:
        """The highlighted process, or None when nothing is selected."""
        if 0 <= self.selected < len(self.projection):
            return self.projection[self.selected]
        return None


class Session:
    """
    The session state machine.

    A single control loop drives it: call ``tick()`` on every poll and
    ``handle_key()`` for every keystroke, then draw ``render()``.
    """

    def __init__(
        self,
        collector: SnapshotCollector,
        controller: ProcessController,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._collector = collector
        self._controller = controller
        self._settings = settings or Settings()
        self._clock = clock
        self.view = SessionView()
        self.running = True

    @property
    def mode(self) -> Mode:
        """Current modal sub-state."""
        return self.view.mode

    def start(self) -> None:
        """Take the first snapshot."""
        self.refresh()
        self.view.status = "LPM started - press 'h' for help"

    # Refresh

    def tick(self, now: float | None = None) -> bool:
        """Refresh if the interval has elapsed and the session is idle."""
        now = self._clock() if now is None else now
        if not isinstance(self.view.mode, Idle):
            return False
        last = self.view.last_refresh
        if last is not None and now - last < self._settings.refresh_interval:
            return False
        return self.refresh(now)

    def refresh(self, now: float | None = None) -> bool:
        """
        Replace the snapshot and rebuild the projection.

        On a failed collection the previous snapshot and projection stay.
        """
        now = self._clock() if now is None else now
        self.view.last_refresh = now
        try:
            fresh = self._collector.collect()
        except (OSError, LpmError) as e:
            log.warning("refresh_failed", error=str(e))
            self.view.status = f"Refresh failed: {e}"
            return False

        self.view.snapshot = with_cpu_percent(self.view.snapshot, fresh)
        self._reproject()
        return True

    def resize(self, page_size: int) -> None:
        """Set the number of visible rows."""
        self.view.page_size = max(1, page_size)
        self._scroll_to_selection()

    # Projection and selection

    def _project(self) -> tuple[list[Process], dict[int, int]]:
        view = self.view
        predicates = (search(view.filter_text),) if view.filter_text else ()
        if not view.tree_view:
            pipeline = Pipeline(filters=predicates, sort_field=view.sort_field, ascending=view.ascending)
            return pipeline.apply(view.snapshot.processes), {}

        rows: list[Process] = []
        depths: dict[int, int] = {}
        for node in build_tree(view.snapshot).walk():
            if all(pred(node.process) for pred in predicates):
                rows.append(node.process)
                depths[node.pid] = node.depth
        return rows, depths

    def _reproject(self) -> None:
        previous = self.view.selected_process
        previous_index = self.view.selected
        self.view.projection, self.view.depths = self._project()
        self._reselect(previous.pid if previous else None, previous_index)

    def _reselect(self, pid: int | None, index: int) -> None:
        """Point the selection at ``pid`` if still shown, else near ``index``."""
        view = self.view
        count = len(view.projection)
        if count == 0:
            view.selected = -1
            view.scroll = 0
            return

        new_index = None
        if pid is not None:
            new_index = next((i for i, proc in enumerate(view.projection) if proc.pid == pid), None)
        if new_index is None:
            if index < 0:
                new_index = 0
            elif index < count:
                new_index = index
            else:
                new_index = count - 1
        view.selected = new_index
        self._scroll_to_selection()

    def _scroll_to_selection(self) -> None:
        view = self.view
        if view.selected < 0:
            view.scroll = 0
            return
        if view.selected < view.scroll:
            view.scroll = view.selected
        elif view.selected >= view.scroll + view.page_size:
            view.scroll = view.selected - view.page_size + 1
        view.scroll = max(0, min(view.scroll, len(view.projection) - view.page_size))

    def _move_to(self, index: int) -> None:
        count = len(self.view.projection)
        if count == 0:
            return
        self.view.selected = max(0, min(index, count - 1))
        self._scroll_to_selection()

    # Keystrokes

    def handle_key(self, key: str) -> bool:
        """
        Feed one keystroke to the state machine.

        Returns False once the session has quit.
        """
        mode = self.view.mode
        text_entry = isinstance(mode, (EditingFilter, EditingPriority))
        if key == FORCE_QUIT_KEY or (key in QUIT_KEYS and not text_entry):
            self.running = False
            return False

        if isinstance(mode, Idle):
            self._handle_idle(key)
        elif isinstance(mode, ConfirmingKill):
            self._handle_confirm_kill(mode, key)
        elif isinstance(mode, Help):
            self._set_mode(Idle())
        elif isinstance(mode, EditingFilter):
            self._handle_filter_input(mode, key)
        elif isinstance(mode, EditingPriority):
            self._handle_priority_input(mode, key)
        return True

    def _set_mode(self, mode: Mode) -> None:
        log.debug("session_mode", mode=type(mode).__name__)
        self.view.mode = mode

    def _handle_idle(self, key: str) -> None:
        view = self.view
        page = view.page_size

        if key == "up":
            self._move_to(view.selected - 1)
        elif key == "down":
            self._move_to(view.selected + 1)
        elif key == "pageup":
            self._move_to(view.selected - page)
        elif key == "pagedown":
            self._move_to(view.selected + page)
        elif key == "home":
            self._move_to(0)
        elif key == "end":
            self._move_to(len(view.projection) - 1)
        elif key in ("r", "R"):
            if self.refresh():
                view.status = "Processes refreshed"
        elif key in ("k", "K"):
            proc = view.selected_process
            if proc is None:
                view.status = "No process selected"
            else:
                self._set_mode(ConfirmingKill(proc.pid, proc.name))
        elif key == "n":
            proc = view.selected_process
            if proc is None:
                view.status = "No process selected"
            else:
                self._set_mode(EditingPriority(proc.pid))
        elif key == "/":
            self._set_mode(EditingFilter(view.filter_text))
        elif key == "escape":
            if view.filter_text:
                self._apply_filter("")
        elif key in ("t", "T"):
            view.tree_view = not view.tree_view
            self._reproject()
            view.status = "Tree view enabled" if view.tree_view else "List view enabled"
        elif key in ("h", "H", "?", "f1"):
            self._set_mode(Help())
        elif key == "enter":
            proc = view.selected_process
            view.status = format_details(proc) if proc else "No process selected"
        elif key in SORT_KEYS:
            self._sort(SORT_KEYS[key])

    def _sort(self, sort_field: SortField) -> None:
        view = self.view
        if sort_field is view.sort_field:
            view.ascending = not view.ascending
        else:
            view.sort_field = sort_field
            view.ascending = True

        direction = "ascending" if view.ascending else "descending"
        if view.tree_view:
            view.status = f"Sort by {sort_field.value} {direction} (applies to list view)"
            return

        self._reproject()
        view.status = f"Sorted by {sort_field.value} {direction}"

    def _handle_confirm_kill(self, mode: ConfirmingKill, key: str) -> None:
        self._set_mode(Idle())
        if key not in YES_KEYS:
            return
        try:
            self._controller.terminate(mode.pid)
        except LpmError as e:
            self.view.status = f"Failed to kill process {mode.pid}: {e}"
        else:
            self.view.status = f"Process {mode.pid} terminated"
        self.refresh()

    def _apply_filter(self, text: str) -> None:
        self.view.filter_text = text
        self._reproject()
        self.view.status = f"Filter: {text}" if text else "Filter cleared"

    def _handle_filter_input(self, mode: EditingFilter, key: str) -> None:
        if key == "enter":
            self._set_mode(Idle())
            self._apply_filter(mode.text.strip())
        elif key == "escape":
            self._set_mode(Idle())
        elif key == "backspace":
            self.view.mode = EditingFilter(mode.text[:-1])
        elif len(key) == 1 and key.isprintable():
            self.view.mode = EditingFilter(mode.text + key)

    def _handle_priority_input(self, mode: EditingPriority, key: str) -> None:
        if key == "enter":
            self._set_mode(Idle())
            self._renice(mode.pid, mode.text)
        elif key == "escape":
            self._set_mode(Idle())
        elif key == "backspace":
            self.view.mode = EditingPriority(mode.pid, mode.text[:-1])
        elif key.isdigit() or key == "-":
            self.view.mode = EditingPriority(mode.pid, mode.text + key)

    def _renice(self, pid: int, text: str) -> None:
        try:
            niceness = int(text)
        except ValueError:
            self.view.status = f"Invalid priority: {text!r}"
            return
        try:
            self._controller.set_priority(pid, niceness)
        except LpmError as e:
            self.view.status = f"Failed to renice process {pid}: {e}"
        else:
            self.view.status = f"Process {pid} priority set to {niceness}"

    # Rendering

    def _status_line(self) -> str:
        mode = self.view.mode
        if isinstance(mode, ConfirmingKill):
            return f"Kill process {mode.pid} ({mode.name})? (y/n)"
        if isinstance(mode, EditingFilter):
            return f"Search: {mode.text}_"
        if isinstance(mode, EditingPriority):
            return f"Nice value for {mode.pid} (-20..19): {mode.text}_"
        return self.view.status

    def render(self) -> RenderRequest:
        view = self.view
        header = f"{TITLE}  Processes: {len(view.projection)}/{len(view.snapshot)}"
        if view.tree_view:
            header += "  [tree]"
        else:
            header += f"  Sort: {view.sort_field.value} {'asc' if view.ascending else 'desc'}"
        if view.filter_text:
            header += f"  Filter: {view.filter_text}"

        visible = view.projection[view.scroll : view.scroll + view.page_size]
        rows = [
            format_row(proc, view.depths.get(proc.pid, 0) if view.tree_view else None)
            for proc in visible
        ]
        highlighted = view.selected - view.scroll if view.selected >= 0 else -1

        return RenderRequest(
            header=header,
            column_header=COLUMN_HEADER,
            rows=rows,
            highlighted=highlighted,
            status=self._status_line(),
            help=isinstance(view.mode, Help),
        )
