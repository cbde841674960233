"""CPU scheduling policy and I/O priority classification.

Static, read-only tables mapping the kernel's scheduling-policy and
I/O-priority-class integers to names, plus the ``ioprio_get`` syscall
binding used by the enricher.

The syscall goes through ctypes against libc since neither the standard
library nor psutil exposes the raw I/O priority value.
"""

import ctypes
import errno
import os
import platform
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

# CPU scheduling policies (include/uapi/linux/sched.h)
SCHED_OTHER = 0
SCHED_FIFO = 1
SCHED_RR = 2
SCHED_BATCH = 3
SCHED_ISO = 4  # Reserved, never implemented in mainline
SCHED_IDLE = 5
SCHED_DEADLINE = 6

# I/O priority classes (include/uapi/linux/ioprio.h)
IOPRIO_CLASS_NONE = 0
IOPRIO_CLASS_RT = 1
IOPRIO_CLASS_BE = 2
IOPRIO_CLASS_IDLE = 3

# ioprio_get "which" argument
IOPRIO_WHO_PROCESS = 1
IOPRIO_WHO_PGRP = 2
IOPRIO_WHO_USER = 3

IOPRIO_CLASS_SHIFT = 13
IOPRIO_LEVEL_MASK = 0xFF

# ioprio_get syscall number by machine (asm-generic covers the newer ports)
SYS_IOPRIO_GET = MappingProxyType(
    {
        "x86_64": 252,
        "amd64": 252,
        "i386": 290,
        "i686": 290,
        "armv6l": 315,
        "armv7l": 315,
        "aarch64": 31,
        "arm64": 31,
        "riscv64": 31,
        "loongarch64": 31,
        "ppc64": 274,
        "ppc64le": 274,
        "s390x": 283,
    }
)


# ─────────────────────────────────────────────────────────────────────────────
# Tables
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class SchedulingPolicy:
    """Classification table for one kind of kernel scheduling.

    Attributes:
        classes: Policy or class value to kernel name.
        need_priority: Values that take an explicit priority.
        need_credentials: Values that need elevated privilege to set.
        low: Lowest valid priority.
        high: Highest valid priority.
        none: Priority sentinel meaning "not set".
    """

    classes: Mapping[int, str]
    need_priority: frozenset[int]
    need_credentials: frozenset[int]
    low: int
    high: int
    none: int

    def name(self, value: int) -> str:
        """Return the name for a value, or an empty string if unknown."""
        return self.classes.get(value, "")

    def requires_priority(self, value: int) -> bool:
        return value in self.need_priority

    def requires_credentials(self, value: int) -> bool:
        return value in self.need_credentials


CPU = SchedulingPolicy(
    classes=MappingProxyType(
        {
            SCHED_OTHER: "SCHED_OTHER",
            SCHED_FIFO: "SCHED_FIFO",
            SCHED_RR: "SCHED_RR",
            SCHED_BATCH: "SCHED_BATCH",
            SCHED_IDLE: "SCHED_IDLE",
            SCHED_DEADLINE: "SCHED_DEADLINE",
        }
    ),
    need_priority=frozenset({SCHED_FIFO, SCHED_RR}),
    need_credentials=frozenset({SCHED_FIFO, SCHED_RR}),
    low=1,
    high=99,
    none=0,
)

IO = SchedulingPolicy(
    classes=MappingProxyType(
        {
            IOPRIO_CLASS_NONE: "none",
            IOPRIO_CLASS_RT: "realtime",
            IOPRIO_CLASS_BE: "best-effort",
            IOPRIO_CLASS_IDLE: "idle",
        }
    ),
    need_priority=frozenset({IOPRIO_CLASS_RT, IOPRIO_CLASS_BE}),
    need_credentials=frozenset({IOPRIO_CLASS_RT}),
    low=7,
    high=0,
    none=4,
)

# Short lowercase names, as printed by chrt-style tools
SCHED_SHORT_NAMES = MappingProxyType(
    {
        SCHED_OTHER: "other",
        SCHED_FIFO: "fifo",
        SCHED_RR: "rr",
        SCHED_BATCH: "batch",
        SCHED_IDLE: "idle",
        SCHED_DEADLINE: "deadline",
    }
)


# ─────────────────────────────────────────────────────────────────────────────
# I/O priority
# ─────────────────────────────────────────────────────────────────────────────


def split_ioprio(value: int) -> tuple[int, int]:
    """Split a raw ioprio value into (class, level).

    See https://www.kernel.org/doc/html/latest/block/ioprio.html
    """
    return value >> IOPRIO_CLASS_SHIFT, value & IOPRIO_LEVEL_MASK


@lru_cache(maxsize=1)
def _libc() -> ctypes.CDLL:
    libc = ctypes.CDLL(None, use_errno=True)
    libc.syscall.restype = ctypes.c_long
    return libc


def ioprio_get(pid: int) -> int:
    """Return the raw I/O priority of a process.

    Raises:
        OSError: The syscall failed (ESRCH for a gone process) or is not
            known for this machine.
    """
    number = SYS_IOPRIO_GET.get(platform.machine().lower())
    if number is None:
        raise OSError(errno.ENOSYS, f"ioprio_get unsupported on {platform.machine()}")

    result = _libc().syscall(
        ctypes.c_long(number),
        ctypes.c_int(IOPRIO_WHO_PROCESS),
        ctypes.c_int(pid),
    )
    if result < 0:
        err = ctypes.get_errno()
        raise OSError(err, os.strerror(err))
    return result
