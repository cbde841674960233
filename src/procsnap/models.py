"""Data models for procsnap."""

from dataclasses import asdict, dataclass, field, fields
from typing import Any

from procsnap.sched import CPU, IO, SCHED_SHORT_NAMES

USER_SLICE = "user.slice"
ROOT_CGROUP = "0::/"


@dataclass(slots=True, frozen=True)
class ProcessStat:
    """One decoded /proc/<pid>/stat record.

    Field names and order follow proc(5); the numbers in the comments are
    the 1-based positions in the record.
    """

    pid: int  # (1)
    comm: str  # (2)
    state: str  # (3) 'R', 'S', 'D', 'Z', 'T', ...
    ppid: int  # (4)
    pgrp: int  # (5)
    session: int  # (6)
    tty_nr: int  # (7)
    tpgid: int  # (8)
    flags: int  # (9)
    minflt: int  # (10)
    cminflt: int  # (11)
    majflt: int  # (12)
    cmajflt: int  # (13)
    utime: int  # (14) Clock ticks
    stime: int  # (15)
    cutime: int  # (16)
    cstime: int  # (17)
    priority: int  # (18)
    nice: int  # (19)
    num_threads: int  # (20)
    itrealvalue: int  # (21) Always 0 since 2.6.17
    starttime: int  # (22) Clock ticks after boot
    vsize: int  # (23) Bytes
    rss: int  # (24) Pages
    rsslim: int  # (25)
    startcode: int  # (26)
    endcode: int  # (27)
    startstack: int  # (28)
    kstkesp: int  # (29)
    kstkeip: int  # (30)
    signal: int  # (31)
    blocked: int  # (32)
    sigignore: int  # (33)
    sigcatch: int  # (34)
    wchan: int  # (35)
    nswap: int  # (36) Not maintained
    cnswap: int  # (37) Not maintained
    exit_signal: int  # (38)
    processor: int  # (39)
    rt_priority: int  # (40)
    policy: int  # (41)
    delayacct_blkio_ticks: int  # (42)
    guest_time: int  # (43)
    cguest_time: int  # (44)
    start_data: int  # (45)
    end_data: int  # (46)
    start_brk: int  # (47)
    arg_start: int  # (48)
    arg_end: int  # (49)
    env_start: int  # (50)
    env_end: int  # (51)
    exit_code: int  # (52)

    def __str__(self) -> str:
        body = ", ".join(f"{f.name}: {getattr(self, f.name)}" for f in fields(self))
        return "{" + body + "}"


@dataclass(slots=True, frozen=True)
class CgroupInfo:
    """Control-group membership of a process.

    ``top`` is the first path segment (e.g. ``user.slice``) and ``leaf``
    the last one. Both are empty for the root cgroup.
    """

    path: str = ""
    top: str = ""
    leaf: str = ""

    @classmethod
    def parse(cls, text: str) -> "CgroupInfo":
        """Classify the contents of /proc/<pid>/cgroup.

        On hybrid or v1 hierarchies the file has one line per controller;
        the unified ``0::`` line wins, otherwise the first line is used.
        """
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        if not lines:
            return cls()
        membership = next((line for line in lines if line.startswith("0::")), lines[0])

        if membership == ROOT_CGROUP:
            return cls(path=ROOT_CGROUP)

        parts = membership.split("/")
        if len(parts) < 2:
            return cls(path=membership)
        return cls(path=membership, top=parts[1], leaf=parts[-1])


@dataclass(slots=True, frozen=True)
class ProcessDescriptor:
    """A ProcessStat plus the metadata resolved for it during a scan.

    Enrichment fields keep their defaults when the lookup failed:
    uid -1, empty username, empty cgroup, zero OOM score and I/O priority.
    """

    stat: ProcessStat
    uid: int = -1
    username: str = ""
    cgroup: CgroupInfo = field(default_factory=CgroupInfo)
    oom_score_adj: int = 0
    ioprio_class: int = 0
    ioprio_level: int = 0

    @property
    def pid(self) -> int:
        return self.stat.pid

    @property
    def ppid(self) -> int:
        return self.stat.ppid

    @property
    def pgrp(self) -> int:
        return self.stat.pgrp

    @property
    def state(self) -> str:
        return self.stat.state

    @property
    def comm(self) -> str:
        return self.stat.comm

    @property
    def priority(self) -> int:
        return self.stat.priority

    @property
    def nice(self) -> int:
        return self.stat.nice

    @property
    def num_threads(self) -> int:
        return self.stat.num_threads

    @property
    def rt_priority(self) -> int:
        return self.stat.rt_priority

    @property
    def policy(self) -> int:
        return self.stat.policy

    @property
    def in_user_slice(self) -> bool:
        return self.cgroup.top == USER_SLICE

    @property
    def in_system_slice(self) -> bool:
        return not self.in_user_slice

    @property
    def sched_name(self) -> str:
        """Short scheduling policy name (``other``, ``fifo``, ...)."""
        return SCHED_SHORT_NAMES.get(self.policy, "")

    @property
    def sched_class_name(self) -> str:
        """Kernel scheduling policy name (``SCHED_OTHER``, ...)."""
        return CPU.name(self.policy)

    @property
    def cpu_sched_info(self) -> str:
        return f"{self.policy}:{self.sched_name}:{self.rt_priority}"

    @property
    def io_class_name(self) -> str:
        return IO.name(self.ioprio_class)

    @property
    def io_sched_info(self) -> str:
        return f"{self.ioprio_class}:{self.io_class_name}:{self.ioprio_level}"

    def to_dict(self) -> dict[str, Any]:
        """Flatten into a JSON-ready mapping."""
        data = asdict(self.stat)
        data.update(
            uid=self.uid,
            username=self.username,
            cgroup=[self.cgroup.path, self.cgroup.top, self.cgroup.leaf],
            oom_score_adj=self.oom_score_adj,
            ioprio_class=self.ioprio_class,
            ionice=self.ioprio_level,
        )
        return data

    def __str__(self) -> str:
        return (
            f"{{stat: {self.stat}, uid: {self.uid}, username: {self.username}, "
            f"cgroup: {self.cgroup.path}, rt_priority: {self.rt_priority}, "
            f"policy: {self.policy}, oom_score_adj: {self.oom_score_adj}, "
            f"ioprio_level: {self.ioprio_level}, ioprio_class: {self.ioprio_class}}}"
        )
