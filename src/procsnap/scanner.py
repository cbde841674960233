"""Concurrent process table scanner.

A scan runs in four stages connected by queues:

    dispatcher ──records──▶ N workers ──descriptors──▶ caller
                                  ╰── closer joins them, then ends the stream

Both queues are sized up front from the number of discovered processes, so
no put ever blocks for long. Each record is owned by exactly one worker at
a time; workers share nothing but the queues.
"""

import os
import threading
import time
from operator import attrgetter
from pathlib import Path
from queue import Queue
from typing import Callable

import psutil
import structlog

from procsnap.enricher import PROC_ROOT, ProcessEnricher
from procsnap.errors import DiscoveryFailed, MalformedRecord, ProcessVanished, ScanCancelled
from procsnap.filters import get_filter
from procsnap.models import ProcessDescriptor
from procsnap.parser import parse_stat

ProcessFilter = Callable[[ProcessDescriptor | None, Exception | None], bool]

log = structlog.get_logger()

# End-of-stream marker on both queues
_STOP = object()


def default_worker_count() -> int:
    """One worker per logical CPU."""
    return psutil.cpu_count(logical=True) or 1


class ProcessScanner:
    """
    Takes filtered, pid-ordered snapshots of the process table.

    Processes that exit mid-scan or whose records do not parse are dropped
    silently; only a failure to list the process table is reported.
    """

    def __init__(
        self,
        proc_root: Path | str = PROC_ROOT,
        workers: int | None = None,
        enricher: ProcessEnricher | None = None,
    ) -> None:
        """
        Initialize the ProcessScanner.

        Args:
            proc_root: Mount point of procfs.
            workers: Worker thread count. Defaults to the logical CPU count.
            enricher: Metadata enricher. Defaults to one reading proc_root.
        """
        self._proc_root = Path(proc_root)
        self._workers = max(1, workers or default_worker_count())
        self._enricher = enricher or ProcessEnricher(self._proc_root)

    @property
    def workers(self) -> int:
        return self._workers

    @property
    def proc_root(self) -> Path:
        return self._proc_root

    def discover(self) -> list[Path]:
        """
        List the stat files of all processes currently in the table.

        Raises:
            DiscoveryFailed: proc_root cannot be listed.
        """
        try:
            with os.scandir(self._proc_root) as entries:
                return [Path(entry.path) / "stat" for entry in entries if entry.name.isdigit()]
        except OSError as exc:
            log.error("discovery_failed", proc_root=str(self._proc_root), error=str(exc))
            raise DiscoveryFailed(
                f"cannot list processes in {self._proc_root}: {exc.strerror or exc}"
            ) from exc

    def read_record(self, path: Path) -> str:
        """
        Read one raw stat record.

        Raises:
            ProcessVanished: The file is gone or unreadable.
        """
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ProcessVanished(str(path), exc.strerror or str(exc)) from exc

    def scan(
        self,
        process_filter: ProcessFilter | None = None,
        cancel: threading.Event | None = None,
    ) -> list[ProcessDescriptor]:
        """
        Scan the process table once.

        Args:
            process_filter: Membership predicate. Defaults to the calling
                user's processes.
            cancel: When set, dispatch and workers stop taking new records;
                the scan joins its threads and raises ScanCancelled.

        Returns:
            Accepted descriptors sorted ascending by pid.

        Raises:
            DiscoveryFailed: The process table could not be listed.
            ScanCancelled: cancel was set before the scan completed.
        """
        process_filter = process_filter or get_filter("user")
        cancel = cancel or threading.Event()
        started = time.monotonic()

        paths = self.discover()
        size = len(paths)
        count = self._workers

        # One stop marker per worker rides behind the records
        records: Queue = Queue(maxsize=size + count)
        results: Queue = Queue(maxsize=size + 1)

        workers = [
            threading.Thread(
                target=self._work,
                args=(records, results, process_filter, cancel),
                daemon=True,
                name=f"ProcessScanner-worker-{index}",
            )
            for index in range(count)
        ]
        dispatcher = threading.Thread(
            target=self._dispatch,
            args=(paths, records, count, cancel),
            daemon=True,
            name="ProcessScanner-dispatch",
        )
        closer = threading.Thread(
            target=self._close_when_done,
            args=(workers, results),
            daemon=True,
            name="ProcessScanner-closer",
        )

        for worker in workers:
            worker.start()
        dispatcher.start()
        closer.start()

        collected: list[ProcessDescriptor] = []
        while True:
            item = results.get()
            if item is _STOP:
                break
            collected.append(item)

        dispatcher.join()
        closer.join()

        elapsed = time.monotonic() - started
        if cancel.is_set():
            log.info("scan_cancelled", discovered=size, collected=len(collected), elapsed=elapsed)
            raise ScanCancelled(f"scan cancelled after {len(collected)} of {size} processes")

        collected.sort(key=attrgetter("pid"))
        log.debug(
            "scan_complete",
            scope=str(process_filter),
            discovered=size,
            accepted=len(collected),
            workers=count,
            elapsed=elapsed,
        )
        return collected

    def _dispatch(
        self,
        paths: list[Path],
        records: Queue,
        count: int,
        cancel: threading.Event,
    ) -> None:
        """Read each stat file and hand the record to the workers."""
        try:
            for path in paths:
                if cancel.is_set():
                    break
                try:
                    records.put(self.read_record(path))
                except ProcessVanished as exc:
                    log.debug("process_vanished", path=exc.path, reason=exc.reason)
        finally:
            for _ in range(count):
                records.put(_STOP)

    def _work(
        self,
        records: Queue,
        results: Queue,
        process_filter: ProcessFilter,
        cancel: threading.Event,
    ) -> None:
        """Parse, enrich and filter records until the stop marker."""
        while True:
            record = records.get()
            if record is _STOP:
                return
            if cancel.is_set():
                continue

            descriptor: ProcessDescriptor | None = None
            error: MalformedRecord | None = None
            try:
                descriptor = self._enricher.enrich(parse_stat(record))
            except MalformedRecord as exc:
                log.debug("record_malformed", error=str(exc))
                error = exc
            except Exception:
                # One bad record must not take the worker down with it
                log.exception("record_failed")
                continue

            if process_filter(descriptor, error):
                results.put(descriptor)

    @staticmethod
    def _close_when_done(workers: list[threading.Thread], results: Queue) -> None:
        for worker in workers:
            worker.join()
        results.put(_STOP)


def filtered_processes(
    process_filter: ProcessFilter | str = "user",
    proc_root: Path | str = PROC_ROOT,
    workers: int | None = None,
) -> list[ProcessDescriptor]:
    """Scan once with a filter or a scope name."""
    if isinstance(process_filter, str):
        process_filter = get_filter(process_filter)
    return ProcessScanner(proc_root, workers).scan(process_filter)


def all_processes(
    proc_root: Path | str = PROC_ROOT,
    workers: int | None = None,
) -> list[ProcessDescriptor]:
    """Scan once, keeping every process that parsed."""
    return filtered_processes("all", proc_root, workers)
