"""Tests for per-process metadata enrichment."""

import errno
import os
import pwd

import pytest

from conftest import SYSTEM_CGROUP, USER_CGROUP
from procsnap.enricher import ProcessEnricher, current_process
from procsnap.errors import EnrichmentUnavailable, MalformedRecord, ProcessVanished
from procsnap.models import CgroupInfo
from procsnap.parser import parse_stat


def failing_ioprio(pid: int) -> int:
    raise OSError(errno.ESRCH, os.strerror(errno.ESRCH))


def stat_for(fake_proc, pid):
    return parse_stat((fake_proc.root / str(pid) / "stat").read_text())


class TestLookups:
    """Tests for the individual lookups."""

    def test_uid_from_directory_owner(self, fake_proc, make_enricher, my_uid):
        fake_proc.add(10)

        assert make_enricher().lookup_uid(10) == my_uid

    def test_uid_missing_directory(self, make_enricher):
        with pytest.raises(EnrichmentUnavailable) as excinfo:
            make_enricher().lookup_uid(10)

        assert excinfo.value.pid == 10
        assert excinfo.value.field == "uid"

    def test_username(self, make_enricher, my_uid):
        try:
            expected = pwd.getpwuid(my_uid).pw_name
        except KeyError:
            pytest.skip("test runner uid has no passwd entry")

        assert make_enricher().lookup_username(10, my_uid) == expected

    def test_username_unknown_uid(self, make_enricher, monkeypatch):
        def no_entry(uid):
            raise KeyError(uid)

        monkeypatch.setattr(pwd, "getpwuid", no_entry)

        with pytest.raises(EnrichmentUnavailable, match="username"):
            make_enricher().lookup_username(10, 4242)

    def test_cgroup(self, fake_proc, make_enricher):
        fake_proc.add(10, cgroup=SYSTEM_CGROUP)

        assert make_enricher().lookup_cgroup(10) == CgroupInfo(
            SYSTEM_CGROUP, "system.slice", "sshd.service"
        )

    def test_oom_score_adj(self, fake_proc, make_enricher):
        fake_proc.add(10, oom_score_adj="-1000")

        assert make_enricher().lookup_oom_score_adj(10) == -1000

    def test_oom_score_adj_garbage(self, fake_proc, make_enricher):
        fake_proc.add(10, oom_score_adj="lots")

        with pytest.raises(EnrichmentUnavailable, match="oom_score_adj"):
            make_enricher().lookup_oom_score_adj(10)

    def test_cgroup_undecodable(self, fake_proc, make_enricher):
        pid_dir = fake_proc.add(10)
        (pid_dir / "cgroup").write_bytes(b"0::/user.slice/\xff\xfe.scope\n")

        with pytest.raises(EnrichmentUnavailable, match="cgroup"):
            make_enricher().lookup_cgroup(10)

    def test_oom_score_adj_undecodable(self, fake_proc, make_enricher):
        pid_dir = fake_proc.add(10)
        (pid_dir / "oom_score_adj").write_bytes(b"\xff\n")

        with pytest.raises(EnrichmentUnavailable, match="oom_score_adj"):
            make_enricher().lookup_oom_score_adj(10)

    def test_ioprio_split(self, make_enricher):
        assert make_enricher().lookup_ioprio(10) == (2, 4)

    def test_ioprio_failure(self, make_enricher):
        with pytest.raises(EnrichmentUnavailable, match="ioprio"):
            make_enricher(ioprio_getter=failing_ioprio).lookup_ioprio(10)


class TestEnrich:
    """Tests for building complete descriptors."""

    def test_fully_enriched(self, fake_proc, make_enricher, my_uid):
        fake_proc.add(10, comm="bash", cgroup=USER_CGROUP, oom_score_adj="100")

        descriptor = make_enricher().enrich(stat_for(fake_proc, 10))

        assert descriptor.pid == 10
        assert descriptor.comm == "bash"
        assert descriptor.uid == my_uid
        assert descriptor.cgroup.top == "user.slice"
        assert descriptor.cgroup.leaf == "session-2.scope"
        assert descriptor.oom_score_adj == 100
        assert (descriptor.ioprio_class, descriptor.ioprio_level) == (2, 4)

    def test_each_failure_is_independent(self, fake_proc, make_enricher, my_uid):
        """Test a missing cgroup file leaves the other fields populated."""
        fake_proc.add(10, cgroup=None, oom_score_adj="300")

        descriptor = make_enricher(ioprio_getter=failing_ioprio).enrich(stat_for(fake_proc, 10))

        assert descriptor.uid == my_uid
        assert descriptor.cgroup == CgroupInfo()
        assert descriptor.oom_score_adj == 300
        assert (descriptor.ioprio_class, descriptor.ioprio_level) == (0, 0)

    def test_everything_unavailable(self, fake_proc, sample_record):
        """Test a stat with no process directory gets every default."""
        enricher = ProcessEnricher(fake_proc.root, ioprio_getter=failing_ioprio)

        descriptor = enricher.enrich(parse_stat(sample_record))

        assert descriptor.pid == 14066
        assert descriptor.uid == -1
        assert descriptor.username == ""
        assert descriptor.cgroup == CgroupInfo()
        assert descriptor.oom_score_adj == 0
        assert (descriptor.ioprio_class, descriptor.ioprio_level) == (0, 0)

    def test_owner_failure_skips_username(self, fake_proc, make_enricher, monkeypatch):
        """Test a failed uid lookup never resolves a name for uid -1."""
        fake_proc.add(10)
        enricher = make_enricher()

        def no_uid(pid):
            raise EnrichmentUnavailable(pid, "uid", "simulated")

        monkeypatch.setattr(enricher, "lookup_uid", no_uid)
        descriptor = enricher.enrich(stat_for(fake_proc, 10))

        assert descriptor.uid == -1
        assert descriptor.username == ""
        assert descriptor.cgroup.top == "user.slice"


class TestDescribe:
    """Tests for describing a process by pid."""

    def test_describe(self, fake_proc, make_enricher):
        fake_proc.add(10, comm="sleep")

        assert make_enricher().describe(10).comm == "sleep"

    def test_describe_vanished(self, make_enricher):
        with pytest.raises(ProcessVanished):
            make_enricher().describe(10)

    def test_describe_malformed(self, fake_proc, make_enricher):
        fake_proc.add(10, record="10 (broken) S 1\n")

        with pytest.raises(MalformedRecord):
            make_enricher().describe(10)

    def test_current_process(self):
        """Test describing the test runner itself through the real /proc."""
        if not os.path.exists(f"/proc/{os.getpid()}/stat"):
            pytest.skip("requires Linux procfs")

        descriptor = current_process(ProcessEnricher(ioprio_getter=lambda pid: 0))

        assert descriptor.pid == os.getpid()
        assert descriptor.uid == os.getuid()
        assert descriptor.ppid == os.getppid()
