"""TUI dashboard for mussh."""

from __future__ import annotations

from typing import Sequence

from textual.app import App, ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, RichLog, Static
from textual.worker import Worker, WorkerState

from .dispatcher import Dispatcher
from .models import HostSpec, HostStatus, WorkItem
from .report import RunReport

STATUS_ICONS = {
    HostStatus.PENDING: ("○", "dim"),
    HostStatus.CONNECTING: ("◌", "yellow"),
    HostStatus.RUNNING: ("●", "yellow"),
    HostStatus.SUCCESS: ("✓", "green"),
    HostStatus.SKIPPED: ("-", "cyan"),
    HostStatus.FAILURE: ("✗", "red"),
    HostStatus.CONNECTION_ERROR: ("✗", "red"),
    HostStatus.TIMEOUT: ("⏱", "red"),
    HostStatus.CANCELLED: ("✗", "dim"),
}


def panel_header(host: HostSpec, status: HostStatus) -> str:
    """Markup for a host panel's title line."""
    icon, color = STATUS_ICONS.get(status, ("?", "white"))
    return (
        f"[{color}]{icon}[/] [{color}][bold]{host.name}[/bold][/] "
        f"[{color}]{host.address}[/] [dim]{status.value}[/]"
    )


class HostPanel(Static):
    """A panel displaying output for a single host."""

    status: reactive[HostStatus] = reactive(HostStatus.PENDING)

    def __init__(self, item: WorkItem, **kwargs) -> None:
        super().__init__(**kwargs)
        self.item = item

    def compose(self) -> ComposeResult:
        yield Label(panel_header(self.item.host, self.status), classes="host-header")
        yield RichLog(highlight=True, markup=False, wrap=True, auto_scroll=True)

    def on_mount(self) -> None:
        self.query_one(RichLog).write(f"$ {self.item.command}")

    def watch_status(self, status: HostStatus) -> None:
        """Update header when status changes."""
        if not self.is_mounted:
            return
        self.query_one(Label).update(panel_header(self.item.host, status))

    def append_output(self, line: str, is_stderr: bool) -> None:
        """Append a line of output to this panel."""
        self.query_one(RichLog).write(f"STDERR: {line}" if is_stderr else line)


class StatusBar(Static):
    """Bottom status bar showing overall progress."""

    completed: reactive[int] = reactive(0)
    total: reactive[int] = reactive(0)
    running: reactive[bool] = reactive(True)

    def render(self) -> str:
        status = "Running..." if self.running else "Complete"
        return f"Progress: {self.completed}/{self.total} hosts complete | {status} | Press 'q' to quit"


class HostOutput(Message):
    """Message for host output."""

    def __init__(self, host_name: str, line: str, is_stderr: bool) -> None:
        super().__init__()
        self.host_name = host_name
        self.line = line
        self.is_stderr = is_stderr


class HostStatusChange(Message):
    """Message for host status change."""

    def __init__(self, host_name: str, status: HostStatus) -> None:
        super().__init__()
        self.host_name = host_name
        self.status = status


class Dashboard(App):
    """Live view of a run, one panel per host."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
        grid-gutter: 1;
    }

    HostPanel {
        border: solid $primary;
        height: 100%;
        min-height: 10;
    }

    HostPanel Label {
        dock: top;
        padding: 0 1;
        background: $surface;
    }

    HostPanel RichLog {
        height: 1fr;
        padding: 0 1;
    }

    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
    ]

    def __init__(self, work_items: Sequence[WorkItem], dispatcher: Dispatcher, **kwargs) -> None:
        super().__init__(**kwargs)
        self.work_items = list(work_items)
        self.dispatcher = dispatcher
        self.dispatcher.on_output = self._on_output
        self.dispatcher.on_status = self._on_status
        self.panels: dict[str, HostPanel] = {}
        self.report: RunReport | None = None
        self._worker: Worker | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        for item in self.work_items:
            panel = HostPanel(item)
            self.panels[item.host.name] = panel
            yield panel

        yield StatusBar()
        yield Footer()

    def on_mount(self) -> None:
        """Start execution when the app mounts."""
        self.query_one(StatusBar).total = len(self.work_items)
        self._worker = self.run_worker(self._run_dispatch(), exclusive=True)

    async def _run_dispatch(self) -> None:
        self.report = await self.dispatcher.run(self.work_items)

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        """Handle worker completion."""
        if event.worker is self._worker and event.state in (
            WorkerState.SUCCESS,
            WorkerState.CANCELLED,
            WorkerState.ERROR,
        ):
            self.query_one(StatusBar).running = False

    def _on_output(self, host_name: str, line: str, is_stderr: bool) -> None:
        self.post_message(HostOutput(host_name, line, is_stderr))

    def _on_status(self, host_name: str, status: HostStatus) -> None:
        self.post_message(HostStatusChange(host_name, status))

    def on_host_output(self, message: HostOutput) -> None:
        if message.host_name in self.panels:
            self.panels[message.host_name].append_output(message.line, message.is_stderr)

    def on_host_status_change(self, message: HostStatusChange) -> None:
        if message.host_name in self.panels:
            self.panels[message.host_name].status = message.status

        if message.status.terminal:
            self.query_one(StatusBar).completed += 1

    async def action_quit(self) -> None:
        """Cancel running sessions and quit."""
        if self._worker and self._worker.is_running:
            self.dispatcher.cancel()
            await self._worker.wait()
        self.exit()
