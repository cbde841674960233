"""Shared test fixtures for procsnap."""

import os
from pathlib import Path
from typing import Callable

import pytest

from procsnap.enricher import ProcessEnricher
from procsnap.scanner import ProcessScanner

# `cat /proc/$(pidof nvim)/stat` on a 32-bit machine
SAMPLE_RECORD = (
    "14066 (nvim) S 14064 14063 14063 0 -1 4194304 5898 6028 495 394 487 64 88 68 "
    "39 19 1 0 1256778 18685952 2655 4294967295 4620288 7319624 3219630688 0 0 0 0 "
    "2 536891909 1 0 0 17 0 0 0 0 0 0 8366744 8490776 38150144 3219638342 "
    "3219638506 3219638506 3219644398 0"
)

USER_CGROUP = "0::/user.slice/user-1000.slice/session-2.scope"
SYSTEM_CGROUP = "0::/system.slice/sshd.service"

# Best-effort class, level 4
BEST_EFFORT_4 = (2 << 13) | 4


def build_record(
    pid: int,
    comm: str = "proc",
    state: str = "S",
    ppid: int = 1,
    priority: int = 20,
    nice: int = 0,
    num_threads: int = 1,
    rt_priority: int = 0,
    policy: int = 0,
) -> str:
    """Build a 52-field stat record with the given key fields."""
    fields = [state, ppid, pid, pid, 0, -1, 4194304]  # (3)-(9)
    fields += [0] * 8  # (10)-(17) faults and times
    fields += [priority, nice, num_threads, 0]  # (18)-(21)
    fields += [1000, 4096000, 250, 18446744073709551615]  # (22)-(25)
    fields += [0] * 12  # (26)-(37) addresses and signals
    fields += [17, 0, rt_priority, policy]  # (38)-(41)
    fields += [0] * 11  # (42)-(52)
    return f"{pid} ({comm}) " + " ".join(str(field) for field in fields) + "\n"


class FakeProc:
    """A procfs-like tree under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def add(
        self,
        pid: int,
        comm: str = "proc",
        cgroup: str | None = USER_CGROUP,
        oom_score_adj: str | None = "0",
        record: str | None = None,
        **fields,
    ) -> Path:
        """Create /<pid>/ with stat, cgroup and oom_score_adj files.

        Passing None for cgroup or oom_score_adj leaves that file out.
        """
        pid_dir = self.root / str(pid)
        pid_dir.mkdir()
        stat = record if record is not None else build_record(pid, comm, **fields)
        (pid_dir / "stat").write_text(stat)
        if cgroup is not None:
            (pid_dir / "cgroup").write_text(cgroup + "\n")
        if oom_score_adj is not None:
            (pid_dir / "oom_score_adj").write_text(oom_score_adj + "\n")
        return pid_dir


@pytest.fixture
def sample_record() -> str:
    return SAMPLE_RECORD


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    """Create an empty fake procfs root."""
    root = tmp_path / "proc"
    root.mkdir()
    return FakeProc(root)


@pytest.fixture
def make_enricher(fake_proc: FakeProc) -> Callable[..., ProcessEnricher]:
    """Factory for enrichers over the fake tree with a fixed ioprio."""

    def factory(ioprio_getter: Callable[[int], int] = lambda pid: BEST_EFFORT_4) -> ProcessEnricher:
        return ProcessEnricher(fake_proc.root, ioprio_getter=ioprio_getter)

    return factory


@pytest.fixture
def make_scanner(fake_proc: FakeProc, make_enricher) -> Callable[..., ProcessScanner]:
    """Factory for scanners over the fake tree."""

    def factory(workers: int = 4, **kwargs) -> ProcessScanner:
        return ProcessScanner(fake_proc.root, workers=workers, enricher=make_enricher(**kwargs))

    return factory


@pytest.fixture
def my_uid() -> int:
    return os.getuid()
