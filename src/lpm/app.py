"""lpm - Interactive Textual shell."""

import concurrent.futures
import logging
import math
import threading
from queue import Empty, Queue

from rich.markup import escape
from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Input, Label, Static

from lpm.audit import AuditLog
from lpm.config import Settings
from lpm.control import TerminationController, TerminationOutcome, TerminationResult, parse_pid
from lpm.errors import InvalidArgument, LpmError
from lpm.models import ProcessInfo, Snapshot
from lpm.monitor import SystemMonitor, SystemSnapshot
from lpm.ranking import above_threshold, count_above_threshold, top_n
from lpm.source import ProcessSource, PsutilProcessSource

logger = logging.getLogger(__name__)


def format_cpu(usage: float) -> str:
    """Format a CPU percentage for a table cell."""
    if math.isnan(usage):
        return "  n/a"
    return f"{usage:6.2f}"


class StatusBar(Static):
    """One-line summary of the latest snapshot."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    summary = ""

    def show(self, snapshot: Snapshot | None, top: int, threshold: float) -> None:
        """Render the summary for ``snapshot``."""
        if snapshot is None:
            self.summary = "Loading processes..."
            self.update(self.summary)
            return
        alerts = count_above_threshold(snapshot, threshold)
        if alerts:
            alert_text = f"[red]{alerts} above {threshold:.1f}%[/red]"
        else:
            alert_text = f"none above {threshold:.1f}%"
        self.summary = (
            f"{len(snapshot)} processes | showing top {top} | {alert_text} | "
            f"taken {snapshot.taken_at:%H:%M:%S}"
        )
        self.update(self.summary)


class ProcessTable(Container):
    """Container for the top-N process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._listed: list[ProcessInfo] = []
        self._current_pids: set[int] = set()

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("!", key="alert", width=2)
        table.add_column("Name", key="name")

    def update_processes(self, processes: list[ProcessInfo], threshold: float) -> None:
        """
        Show ``processes``, already in display order.

        Rows are keyed by PID: rows of processes that left the list are
        removed, listed ones are updated with update_cell and new ones added,
        then the table is re-sorted into display order. The cursor stays on
        the same PID when that process is still listed.
        """
        table = self.query_one("#process-table", DataTable)
        selected = self.selected_process()

        new_pids = {proc.pid for proc in processes}
        for pid in self._current_pids - new_pids:
            table.remove_row(str(pid))

        for proc in processes:
            row_key = str(proc.pid)
            flag = Text("!", style="bold red") if proc.cpu_percent > threshold else Text("")
            if proc.pid in self._current_pids:
                table.update_cell(row_key, "cpu", format_cpu(proc.cpu_percent))
                table.update_cell(row_key, "alert", flag)
                table.update_cell(row_key, "name", Text(proc.name))
            else:
                table.add_row(
                    row_key,
                    format_cpu(proc.cpu_percent),
                    flag,
                    Text(proc.name),
                    key=row_key,
                )

        rank = {str(proc.pid): index for index, proc in enumerate(processes)}
        if rank:
            table.sort("pid", key=lambda pid: rank[pid])

        self._listed = list(processes)
        self._current_pids = new_pids

        if selected is not None and selected.pid in self._current_pids:
            index = next(i for i, proc in enumerate(self._listed) if proc.pid == selected.pid)
            table.move_cursor(row=index)

    def selected_process(self) -> ProcessInfo | None:
        """The process under the cursor, as of the last update."""
        if not self._listed:
            return None
        table = self.query_one("#process-table", DataTable)
        row = table.cursor_row
        if 0 <= row < len(self._listed):
            return self._listed[row]
        return None


class ConfirmScreen(ModalScreen[bool]):
    """Yes/No dialog used before killing a process."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 60;
        height: auto;
        border: thick $error;
        background: $surface;
        padding: 1 2;
    }

    #confirm-buttons {
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [
        ("y", "answer(True)", "Yes"),
        ("n", "answer(False)", "No"),
        ("escape", "answer(False)", "Cancel"),
    ]

    def __init__(self, prompt: str) -> None:
        super().__init__()
        self._prompt = prompt

    @property
    def prompt(self) -> str:
        return self._prompt

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(Text(self._prompt), id="confirm-prompt"),
            Horizontal(
                Button("Yes", variant="error", id="yes"),
                Button("No", variant="primary", id="no"),
                id="confirm-buttons",
            ),
            id="confirm-dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_answer(self, answer: bool) -> None:
        self.dismiss(answer)


class PidScreen(ModalScreen[int | None]):
    """Asks the operator for a PID to kill."""

    DEFAULT_CSS = """
    PidScreen {
        align: center middle;
    }

    #pid-dialog {
        width: 50;
        height: auto;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label("Enter the PID of the process to kill"),
            Input(placeholder="PID", id="pid-input"),
            id="pid-dialog",
        )

    def on_input_submitted(self, event: Input.Submitted) -> None:
        try:
            pid = parse_pid(event.value)
        except InvalidArgument as exc:
            self.notify(str(exc), severity="error")
            return
        self.dismiss(pid)

    def action_cancel(self) -> None:
        self.dismiss(None)


class LpmApp(App):
    """Main lpm application."""

    TITLE = "lpm"
    SUB_TITLE = "Process Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("k", "kill", "Kill"),
        ("p", "kill_pid", "Kill PID"),
        ("c", "check", "High CPU"),
        ("r", "refresh", "Refresh"),
        Binding("plus", "more", "More"),
        Binding("minus", "fewer", "Fewer"),
    ]

    def __init__(
        self,
        settings: Settings | None = None,
        source: ProcessSource | None = None,
    ) -> None:
        """Initialize the LpmApp."""
        super().__init__()
        self._app_settings = settings or Settings()
        self._top_n = self._app_settings.top_n
        self._threshold = self._app_settings.threshold
        self._source = source if source is not None else PsutilProcessSource()
        self._snapshotter = SystemSnapshot(self._source)
        self._controller = TerminationController(
            self._snapshotter, AuditLog(self._app_settings.audit_log)
        )
        self._update_queue: Queue[Snapshot] = Queue()
        self._monitor = SystemMonitor(
            self._snapshotter, self._update_queue, poll_rate=self._app_settings.poll_rate
        )
        self._latest: Snapshot | None = None
        self._shutting_down = threading.Event()

    @property
    def top_n(self) -> int:
        return self._top_n

    @property
    def latest_snapshot(self) -> Snapshot | None:
        return self._latest

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatusBar("Loading processes...", id="status-bar")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def on_unmount(self) -> None:
        """Stop the monitor however the app exits."""
        self._shutting_down.set()
        self._monitor.stop()

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self.apply_snapshot(snapshot)

    def apply_snapshot(self, snapshot: Snapshot) -> None:
        """Show ``snapshot`` in the status bar and process table."""
        self._latest = snapshot
        self._render_latest()

    def _render_latest(self) -> None:
        snapshot = self._latest
        self.query_one(StatusBar).show(snapshot, self._top_n, self._threshold)
        if snapshot is not None:
            self.query_one(ProcessTable).update_processes(
                top_n(snapshot, self._top_n), self._threshold
            )

    def action_more(self) -> None:
        self._top_n += 1
        self._render_latest()

    def action_fewer(self) -> None:
        self._top_n = max(0, self._top_n - 1)
        self._render_latest()

    def action_refresh(self) -> None:
        self._monitor.refresh()

    def action_check(self) -> None:
        """Report every process above the CPU threshold."""
        if self._latest is None:
            self.notify("No snapshot yet", severity="warning")
            return
        hot = above_threshold(self._latest, self._threshold)
        if not hot:
            self.notify(f"No process above {self._threshold:.1f}% CPU")
            return
        lines = [
            f"[PID: {proc.pid}] {escape(proc.name)} - {proc.cpu_percent:.2f}% CPU" for proc in hot
        ]
        self.notify("\n".join(lines), title="High CPU Usage Detected", severity="warning")

    def _termination_running(self) -> bool:
        """True while a termination worker has not finished."""
        busy = any(
            worker.group == "terminate" and not worker.is_finished for worker in self.workers
        )
        if busy:
            self.notify("A kill is already waiting for an answer", severity="warning")
        return busy

    def action_kill(self) -> None:
        """Kill the highlighted process after confirmation."""
        if self._termination_running():
            return
        proc = self.query_one(ProcessTable).selected_process()
        if proc is None:
            self.notify("No process selected", severity="warning")
            return
        self.run_termination(proc.pid, proc.name)

    def action_kill_pid(self) -> None:
        """Ask for a PID, then kill it after confirmation."""
        if self._termination_running():
            return

        def on_pid(pid: int | None) -> None:
            if pid is not None and not self._termination_running():
                self.run_termination(pid, None)

        self.push_screen(PidScreen(), on_pid)

    @work(thread=True, group="terminate")
    def run_termination(self, pid: int, name_hint: str | None) -> None:
        """Run the termination sequence off the event loop."""
        try:
            result = self._controller.terminate(pid, name_hint, self._confirm_from_thread)
        except LpmError as exc:
            logger.warning("Termination of PID %d aborted: %s", pid, exc)
            if not self._shutting_down.is_set():
                self.call_from_thread(self.notify, escape(str(exc)), severity="error")
            return
        if not self._shutting_down.is_set():
            self.call_from_thread(self._show_result, result)

    def _confirm_from_thread(self, prompt: str) -> bool:
        """Show a ConfirmScreen and block the worker thread until it closes."""
        answer: concurrent.futures.Future[bool] = concurrent.futures.Future()

        def on_dismiss(result: bool | None) -> None:
            answer.set_result(bool(result))

        def show() -> object:
            return self.push_screen(ConfirmScreen(prompt), on_dismiss)

        self.call_from_thread(show)
        while True:
            try:
                return bool(answer.result(timeout=0.2))
            except concurrent.futures.TimeoutError:
                if self._shutting_down.is_set():
                    return False

    def _show_result(self, result: TerminationResult) -> None:
        if result.outcome is TerminationOutcome.KILLED:
            severity = "warning" if result.audit_error is not None else "information"
        elif result.outcome is TerminationOutcome.SIGNAL_FAILED:
            severity = "error"
        else:
            severity = "warning"
        self.notify(escape(result.message), severity=severity)
        if result.succeeded:
            self._monitor.refresh()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._shutting_down.set()
        self._monitor.stop()
        self.exit()
