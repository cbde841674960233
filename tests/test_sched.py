"""Tests for scheduling and I/O priority tables."""

import errno
import os
import platform

import pytest

from procsnap import sched
from procsnap.sched import CPU, IO, ioprio_get, split_ioprio


class TestTables:
    """Tests for the static classification tables."""

    def test_cpu_names(self):
        assert CPU.name(sched.SCHED_OTHER) == "SCHED_OTHER"
        assert CPU.name(sched.SCHED_FIFO) == "SCHED_FIFO"
        assert CPU.name(sched.SCHED_DEADLINE) == "SCHED_DEADLINE"

    def test_cpu_iso_is_not_listed(self):
        """Test the reserved SCHED_ISO value has no name."""
        assert CPU.name(sched.SCHED_ISO) == ""

    def test_cpu_metadata(self):
        assert CPU.requires_priority(sched.SCHED_FIFO)
        assert CPU.requires_priority(sched.SCHED_RR)
        assert not CPU.requires_priority(sched.SCHED_OTHER)
        assert CPU.requires_credentials(sched.SCHED_RR)
        assert (CPU.low, CPU.high, CPU.none) == (1, 99, 0)

    def test_io_names(self):
        assert [IO.name(value) for value in range(4)] == [
            "none",
            "realtime",
            "best-effort",
            "idle",
        ]

    def test_io_metadata(self):
        assert IO.requires_priority(sched.IOPRIO_CLASS_BE)
        assert not IO.requires_priority(sched.IOPRIO_CLASS_IDLE)
        assert IO.requires_credentials(sched.IOPRIO_CLASS_RT)
        assert not IO.requires_credentials(sched.IOPRIO_CLASS_BE)
        assert (IO.low, IO.high, IO.none) == (7, 0, 4)

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            CPU.classes[4] = "SCHED_ISO"
        with pytest.raises(AttributeError):
            IO.low = 3


class TestSplitIoprio:
    """Tests for the ioprio bit layout."""

    def test_best_effort(self):
        assert split_ioprio((2 << 13) | 4) == (2, 4)

    def test_idle(self):
        assert split_ioprio(3 << 13) == (3, 0)

    def test_none(self):
        """Test a process that never set its I/O priority."""
        assert split_ioprio(0) == (0, 0)

    def test_level_uses_low_eight_bits(self):
        assert split_ioprio((1 << 13) | 0x1FF) == (1, 0xFF)


class TestIoprioGet:
    """Tests for the ioprio_get syscall binding."""

    @pytest.mark.skipif(
        platform.system() != "Linux"
        or platform.machine().lower() not in sched.SYS_IOPRIO_GET,
        reason="ioprio_get needs a known Linux architecture",
    )
    def test_own_process(self):
        """Test querying the calling process returns a valid class."""
        io_class, level = split_ioprio(ioprio_get(os.getpid()))

        assert io_class in IO.classes
        assert 0 <= level <= 7

    @pytest.mark.skipif(
        platform.system() != "Linux"
        or platform.machine().lower() not in sched.SYS_IOPRIO_GET,
        reason="ioprio_get needs a known Linux architecture",
    )
    def test_missing_process(self):
        """Test a pid beyond pid_max fails with ESRCH."""
        with pytest.raises(OSError) as excinfo:
            ioprio_get(2**22 + 1)

        assert excinfo.value.errno == errno.ESRCH

    def test_unknown_architecture(self, monkeypatch):
        monkeypatch.setattr(platform, "machine", lambda: "vax")

        with pytest.raises(OSError) as excinfo:
            ioprio_get(1)

        assert excinfo.value.errno == errno.ENOSYS
