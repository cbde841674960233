"""procsnap - Textual process table viewer."""

import resource
from enum import Enum
from queue import Empty, Queue

import structlog
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static
from textual.widgets.data_table import CellDoesNotExist, DuplicateKey, RowDoesNotExist

from procsnap import logging as procsnap_logging
from procsnap.config import Config
from procsnap.filters import FilterKind
from procsnap.formatting import format_bytes
from procsnap.models import ProcessDescriptor
from procsnap.monitor import ScanMonitor, ScanSnapshot
from procsnap.scanner import ProcessScanner

log = structlog.get_logger()

PAGE_SIZE = resource.getpagesize()

# Order the "s" binding walks through, narrowest first
SCOPE_CYCLE = [FilterKind.USER, FilterKind.GLOBAL, FilterKind.SYSTEM, FilterKind.ALL]


class SortKey(Enum):
    """Sort keys for the process table."""

    PID = "pid"
    USER = "user"
    OOM = "oom"
    THREADS = "threads"


def next_scope(scope: str) -> str:
    """Return the scope after ``scope`` in the viewer's cycle."""
    scopes = [kind.scope for kind in SCOPE_CYCLE]
    try:
        index = scopes.index(scope)
    except ValueError:
        return scopes[0]
    return scopes[(index + 1) % len(scopes)]


class ScanSummary(Static):
    """Header widget describing the latest scan."""

    DEFAULT_CSS = """
    ScanSummary {
        height: auto;
        min-height: 3;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__("Scanning...", *args, **kwargs)

    def update_summary(self, snapshot: ScanSnapshot) -> None:
        """Update the header from a scan snapshot."""
        if snapshot.error:
            self.update(f"[bold red]{snapshot.error}[/]")
            return
        self.update(
            f"Scope: [bold]{snapshot.scope}[/] ({snapshot.description})\n"
            f"Processes: {len(snapshot.processes)}  "
            f"Scan: {snapshot.elapsed * 1000:.0f} ms on {snapshot.workers} workers"
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, command_width: int = 50, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._current_order: list[int] = []
        self._processes: list[ProcessDescriptor] = []
        self._sort_key: SortKey = SortKey.PID
        self._sort_reverse: bool = False
        self._command_width = command_width

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        self._sort_reverse = self._sort_key in (SortKey.OOM, SortKey.THREADS)
        return self._sort_key

    def compose(self) -> ComposeResult:
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("PPID", key="ppid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("S", key="state", width=2)
        table.add_column("PRI", key="priority", width=4)
        table.add_column("NI", key="nice", width=4)
        table.add_column("THR", key="threads", width=5)
        table.add_column("SCHED", key="sched", width=12)
        table.add_column("IO", key="io", width=16)
        table.add_column("OOM", key="oom", width=6)
        table.add_column("RES", key="rss", width=8)
        table.add_column("SLICE", key="slice", width=14)
        table.add_column("Command", key="command")

    def update_processes(self, processes: list[ProcessDescriptor]) -> None:
        """
        Update the process table with new data.

        Rows are rebuilt whenever the row set or its sorted order changes,
        and updated in place otherwise.
        """
        self._processes = processes
        table = self.query_one("#process-table", DataTable)
        sorted_processes = self.sort_processes(processes)
        new_order = [proc.pid for proc in sorted_processes]

        if new_order == self._current_order:
            for proc in sorted_processes:
                self._update_row(table, proc)
            return

        table.clear()
        for proc in sorted_processes:
            self._add_row(table, proc)
        self._current_order = new_order

    def resort(self) -> None:
        """Re-render the last processes shown under the current sort key."""
        self.update_processes(self._processes)

    def sort_processes(self, processes: list[ProcessDescriptor]) -> list[ProcessDescriptor]:
        """Sort processes based on the current sort key."""
        key_func = {
            SortKey.PID: lambda p: p.pid,
            SortKey.USER: lambda p: p.username.lower(),
            SortKey.OOM: lambda p: p.oom_score_adj,
            SortKey.THREADS: lambda p: p.num_threads,
        }
        return sorted(processes, key=key_func[self._sort_key], reverse=self._sort_reverse)

    def _cells(self, proc: ProcessDescriptor) -> dict[str, str]:
        return {
            "pid": str(proc.pid),
            "ppid": str(proc.ppid),
            "user": (proc.username or str(proc.uid))[:10],
            "state": proc.state,
            "priority": str(proc.priority),
            "nice": str(proc.nice),
            "threads": str(proc.num_threads),
            "sched": proc.cpu_sched_info,
            "io": proc.io_sched_info,
            "oom": str(proc.oom_score_adj),
            "rss": format_bytes(max(proc.stat.rss, 0) * PAGE_SIZE),
            "slice": proc.cgroup.top,
            "command": proc.comm[: self._command_width],
        }

    def _update_row(self, table: DataTable, proc: ProcessDescriptor) -> None:
        try:
            for column, value in self._cells(proc).items():
                table.update_cell(str(proc.pid), column, value)
        except (CellDoesNotExist, RowDoesNotExist):
            pass  # Row may have been removed

    def _add_row(self, table: DataTable, proc: ProcessDescriptor) -> None:
        try:
            table.add_row(*self._cells(proc).values(), key=str(proc.pid))
        except DuplicateKey:
            pass


class ProcsnapApp(App):
    """Main procsnap application."""

    TITLE = "procsnap"
    SUB_TITLE = "Process Snapshot Viewer"

    CSS = """
    Screen {
        layout: vertical;
    }

    #scan-summary {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("s", "scope", "Scope"),
    ]

    def __init__(self, config: Config | None = None) -> None:
        super().__init__()
        self._config = config or Config()
        scanner = ProcessScanner(
            proc_root=self._config.scan.proc_root,
            workers=self._config.scan.workers or None,
        )
        self._update_queue: Queue[ScanSnapshot] = Queue()
        self._monitor = ScanMonitor(
            self._update_queue,
            scanner=scanner,
            scope=self._config.scan.scope,
            poll_rate=self._config.tui.refresh_interval,
        )

    def compose(self) -> ComposeResult:
        yield ScanSummary(id="scan-summary")
        yield ProcessTable(command_width=self._config.tui.command_truncate_length)
        yield Footer()

    def on_mount(self) -> None:
        """Start the scan monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: ScanSnapshot) -> None:
        try:
            self.query_one("#scan-summary", ScanSummary).update_summary(snapshot)
            self.query_one(ProcessTable).update_processes(snapshot.processes)
        except NoMatches:
            pass  # Not mounted yet

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        process_table = self.query_one(ProcessTable)
        new_sort_key = process_table.cycle_sort()
        process_table.resort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_scope(self) -> None:
        """Cycle through filter scopes."""
        self._monitor.scope = next_scope(self._monitor.scope)
        self.notify(f"Scope: {self._monitor.process_filter}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for the procsnap viewer."""
    config = Config.load()
    log_path = procsnap_logging.configure(config)
    log.info("viewer_started", scope=config.scan.scope, log_path=str(log_path))
    app = ProcsnapApp(config)
    app.run()


if __name__ == "__main__":
    main()
