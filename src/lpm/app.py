"""lpm - Main Textual application.

Textual is only the drawing collaborator here: it shows the Session's
RenderRequest and forwards keystrokes, resizes and timer ticks to it.
"""

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.css.query import NoMatches
from textual.widgets import Static

from lpm.config import Settings
from lpm.control import ProcessController
from lpm.logging import configure
from lpm.monitor import ProcSource, SnapshotCollector
from lpm.session import HELP_LINES, RenderRequest, Session

# Header, column header, status line and key hint bar.
CHROME_LINES = 4

KEY_HINTS = "[q]Quit [r]Refresh [k]Kill [n]Nice [/]Search [P/N/U/C/M/S/O]Sort [t]Tree [h]Help"


def key_name(event: events.Key) -> str:
    """Translate a Textual key event into the Session's key vocabulary."""
    char = event.character
    if char is not None and len(char) == 1 and char.isprintable():
        return char
    return event.key


class ProcessList(Static):
    """The visible slice of the projection, with the selection highlighted."""

    DEFAULT_CSS = """
    ProcessList {
        height: 1fr;
    }
    """

    def show(self, request: RenderRequest) -> None:
        """Draw the rows of a render request."""
        text = Text(no_wrap=True, overflow="ellipsis")
        text.append(request.column_header, style="bold")
        for i, row in enumerate(request.rows):
            text.append("\n")
            text.append(row, style="reverse bold" if i == request.highlighted else "")
        self.update(text)


class LpmApp(App):
    """Main lpm application."""

    TITLE = "lpm"
    SUB_TITLE = "Linux Process Manager"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header {
        height: 1;
        background: $primary;
        color: $text;
        text-style: bold;
    }

    #help {
        height: 1fr;
        padding: 1 2;
        display: none;
    }

    #status {
        height: 1;
        color: $success;
    }

    #hints {
        height: 1;
        background: $primary;
    }
    """

    def __init__(self, settings: Settings | None = None, session: Session | None = None) -> None:
        """Initialize the LpmApp."""
        super().__init__()
        self._settings = settings or Settings()
        self._session = session or Session(
            SnapshotCollector(ProcSource(self._settings.proc_root)),
            ProcessController(),
            self._settings,
        )

    @property
    def session(self) -> Session:
        """The session this app draws."""
        return self._session

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Static(id="header")
        yield ProcessList(id="process-list")
        yield Static(Text("\n".join(HELP_LINES)), id="help")
        yield Static(id="status")
        yield Static(Text(KEY_HINTS), id="hints")

    def on_mount(self) -> None:
        """Take the first snapshot and start polling."""
        self._session.resize(max(1, self.size.height - CHROME_LINES))
        self._session.start()
        self._draw()
        self.set_interval(self._settings.poll_interval, self._poll)

    def on_resize(self, event: events.Resize) -> None:
        self._session.resize(max(1, event.size.height - CHROME_LINES))
        self._draw()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        if not self._session.handle_key(key_name(event)):
            self.exit()
            return
        self._draw()

    def _poll(self) -> None:
        """Refresh the snapshot when due and redraw."""
        if self._session.tick():
            self._draw()

    def _draw(self) -> None:
        request = self._session.render()
        try:
            header = self.query_one("#header", Static)
            status = self.query_one("#status", Static)
            process_list = self.query_one(ProcessList)
            help_panel = self.query_one("#help", Static)
        except NoMatches:
            return  # Not composed yet
        header.update(Text(request.header))
        status.update(Text(request.status))
        process_list.display = not request.help
        help_panel.display = request.help
        process_list.show(request)


def main() -> None:
    """Entry point for lpm application."""
    settings = Settings.from_env()
    configure(settings)
    app = LpmApp(settings)
    app.run()


if __name__ == "__main__":
    main()
