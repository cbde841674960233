"""Periodic scanning engine for the procsnap viewer."""

import threading
import time
from dataclasses import dataclass, field
from queue import Queue

import structlog

from procsnap.errors import DiscoveryFailed, ScanCancelled
from procsnap.filters import Filter, get_filter
from procsnap.models import ProcessDescriptor
from procsnap.scanner import ProcessScanner

log = structlog.get_logger()


@dataclass(slots=True)
class ScanSnapshot:
    """Result of one periodic scan."""

    processes: list[ProcessDescriptor]
    scope: str
    description: str
    elapsed: float  # Seconds spent scanning
    workers: int
    taken_at: float = field(default_factory=time.time)
    error: str = ""  # Set when the process table could not be listed


class ScanMonitor:
    """
    Scans the process table on a background thread.

    Each completed scan is pushed to a thread-safe Queue as a ScanSnapshot.
    Stopping cancels an in-flight scan instead of waiting for it.
    """

    def __init__(
        self,
        update_queue: Queue[ScanSnapshot],
        scanner: ProcessScanner | None = None,
        scope: str = "user",
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the ScanMonitor.

        Args:
            update_queue: Thread-safe queue to push snapshots to.
            scanner: Scanner to run. Defaults to one over /proc.
            scope: Initial filter scope name.
            poll_rate: Seconds between scans. Default 2.0s.
        """
        self._queue = update_queue
        self._scanner = scanner or ProcessScanner()
        self._filter: Filter = get_filter(scope)
        self._poll_rate = poll_rate
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def process_filter(self) -> Filter:
        return self._filter

    @property
    def scope(self) -> str:
        return self._filter.scope

    @scope.setter
    def scope(self, value: str) -> None:
        """Switch scope; takes effect from the next scan."""
        self._filter = get_filter(value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ScanMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread, abandoning any scan in progress.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def scan_once(self) -> ScanSnapshot:
        """Run one scan with the current filter.

        Raises:
            ScanCancelled: The monitor was stopped mid-scan.
        """
        process_filter = self._filter
        started = time.monotonic()
        try:
            processes = self._scanner.scan(process_filter, cancel=self._stop_event)
            error = ""
        except DiscoveryFailed as exc:
            processes, error = [], str(exc)

        return ScanSnapshot(
            processes=processes,
            scope=process_filter.scope,
            description=str(process_filter),
            elapsed=time.monotonic() - started,
            workers=self._scanner.workers,
            error=error,
        )

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.scan_once())
            except ScanCancelled:
                break
            except Exception:
                # Keep polling; a broken scan must not kill the viewer
                log.exception("scan_failed")

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)
