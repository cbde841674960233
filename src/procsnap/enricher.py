"""Per-process metadata enrichment.

Each lookup reads one auxiliary kernel interface and fails independently:
a missing cgroup file must not cost a process its owner or OOM score.
"""

import os
import pwd
from pathlib import Path
from typing import Callable

import structlog

from procsnap.errors import EnrichmentUnavailable, ProcessVanished
from procsnap.models import CgroupInfo, ProcessDescriptor, ProcessStat
from procsnap.parser import parse_stat
from procsnap.sched import ioprio_get, split_ioprio

PROC_ROOT = Path("/proc")

log = structlog.get_logger()


class ProcessEnricher:
    """Resolve owner, cgroup, OOM score and I/O priority for a process."""

    def __init__(
        self,
        proc_root: Path | str = PROC_ROOT,
        ioprio_getter: Callable[[int], int] = ioprio_get,
    ) -> None:
        """
        Initialize the ProcessEnricher.

        Args:
            proc_root: Mount point of procfs. Tests point this at a fake tree.
            ioprio_getter: Returns the raw ioprio value for a pid, raising
                OSError on failure.
        """
        self._proc_root = Path(proc_root)
        self._ioprio_getter = ioprio_getter

    @property
    def proc_root(self) -> Path:
        return self._proc_root

    def _resource(self, pid: int, name: str) -> Path:
        return self._proc_root / str(pid) / name

    def lookup_uid(self, pid: int) -> int:
        """Owner uid, taken from the process directory itself."""
        try:
            return os.stat(self._proc_root / str(pid)).st_uid
        except OSError as exc:
            raise EnrichmentUnavailable(pid, "uid", exc.strerror or str(exc)) from exc

    def lookup_username(self, pid: int, uid: int) -> str:
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError as exc:
            raise EnrichmentUnavailable(pid, "username", f"no passwd entry for uid {uid}") from exc

    def lookup_cgroup(self, pid: int) -> CgroupInfo:
        try:
            text = self._resource(pid, "cgroup").read_text(encoding="utf-8")
        except OSError as exc:
            raise EnrichmentUnavailable(pid, "cgroup", exc.strerror or str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise EnrichmentUnavailable(pid, "cgroup", f"undecodable content: {exc.reason}") from exc
        return CgroupInfo.parse(text)

    def lookup_oom_score_adj(self, pid: int) -> int:
        try:
            text = self._resource(pid, "oom_score_adj").read_text(encoding="utf-8")
        except OSError as exc:
            raise EnrichmentUnavailable(pid, "oom_score_adj", exc.strerror or str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise EnrichmentUnavailable(
                pid, "oom_score_adj", f"undecodable content: {exc.reason}"
            ) from exc
        try:
            return int(text.strip())
        except ValueError as exc:
            raise EnrichmentUnavailable(pid, "oom_score_adj", f"bad value {text!r}") from exc

    def lookup_ioprio(self, pid: int) -> tuple[int, int]:
        """Return (class, level) of the process's I/O priority."""
        try:
            value = self._ioprio_getter(pid)
        except OSError as exc:
            raise EnrichmentUnavailable(pid, "ioprio", exc.strerror or str(exc)) from exc
        return split_ioprio(value)

    def enrich(self, stat: ProcessStat) -> ProcessDescriptor:
        """Build a descriptor, leaving defaults for every lookup that fails."""
        pid = stat.pid
        fields: dict = {}

        try:
            fields["uid"] = self.lookup_uid(pid)
        except EnrichmentUnavailable as exc:
            _log_unavailable(exc)
        else:
            try:
                fields["username"] = self.lookup_username(pid, fields["uid"])
            except EnrichmentUnavailable as exc:
                _log_unavailable(exc)

        try:
            fields["cgroup"] = self.lookup_cgroup(pid)
        except EnrichmentUnavailable as exc:
            _log_unavailable(exc)

        try:
            fields["oom_score_adj"] = self.lookup_oom_score_adj(pid)
        except EnrichmentUnavailable as exc:
            _log_unavailable(exc)

        try:
            fields["ioprio_class"], fields["ioprio_level"] = self.lookup_ioprio(pid)
        except EnrichmentUnavailable as exc:
            _log_unavailable(exc)

        return ProcessDescriptor(stat=stat, **fields)

    def describe(self, pid: int) -> ProcessDescriptor:
        """Read, parse and enrich a single process by pid.

        Raises:
            ProcessVanished: The stat file could not be read.
            MalformedRecord: The stat record did not parse.
        """
        path = self._resource(pid, "stat")
        try:
            record = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ProcessVanished(str(path), exc.strerror or str(exc)) from exc
        return self.enrich(parse_stat(record))


def _log_unavailable(exc: EnrichmentUnavailable) -> None:
    log.debug("enrichment_unavailable", pid=exc.pid, field=exc.field, reason=exc.reason)


def current_process(enricher: ProcessEnricher | None = None) -> ProcessDescriptor:
    """Describe the calling process."""
    enricher = enricher or ProcessEnricher()
    return enricher.describe(os.getpid())

