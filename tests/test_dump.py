"""Tests for jstack dump fetching."""

from pathlib import Path

import pytest

from busy_java_threads.commands import CommandResult
from busy_java_threads.config import DumpConfig
from busy_java_threads.dump import DumpFetcher
from busy_java_threads.errors import DumpFailure, PermissionFailure
from busy_java_threads.models import DumpVariant
from tests.conftest import FORCED_DUMP, PLAIN_DUMP, FakeRunner

JSTACK = Path("/opt/jdk/bin/jstack")


def make_fetcher(artifacts, runner, *, user="svc", privileged=False, **flags) -> DumpFetcher:
    """Create a DumpFetcher taking dumps through `runner`."""
    return DumpFetcher(
        JSTACK,
        DumpConfig(**flags),
        artifacts,
        "show-busy-java-threads -p 1234",
        runner,
        user=user,
        privileged=privileged,
    )


class TestJstackInvocation:
    """Tests for how jstack is run."""

    def test_same_user_runs_directly(self, artifacts):
        runner = FakeRunner(dumps={1234: PLAIN_DUMP})
        fetcher = make_fetcher(artifacts, runner)
        fetcher.start_round(1)

        record = fetcher.fetch(1234, "svc")

        assert runner.calls_of("jstack") == [(str(JSTACK), "1234")]
        assert record.raw_text == PLAIN_DUMP
        assert record.variant is DumpVariant.PLAIN

    def test_root_switches_user(self, artifacts):
        runner = FakeRunner(dumps={1234: PLAIN_DUMP})
        fetcher = make_fetcher(artifacts, runner, user="root", privileged=True)
        fetcher.start_round(1)

        fetcher.fetch(1234, "svc")

        assert runner.calls_of("jstack") == [("sudo", "-u", "svc", str(JSTACK), "1234")]

    def test_other_user_without_root(self, artifacts):
        runner = FakeRunner(dumps={1234: PLAIN_DUMP})
        fetcher = make_fetcher(artifacts, runner, user="alice")
        fetcher.start_round(1)

        with pytest.raises(PermissionFailure) as exc_info:
            fetcher.fetch(1234, "svc")

        assert exc_info.value.current_user == "alice"
        assert exc_info.value.rerun_hint == "sudo show-busy-java-threads -p 1234"
        assert runner.calls == []

    def test_flags(self, artifacts):
        fetcher = make_fetcher(
            artifacts, FakeRunner(), force=True, mix_native_frames=True, lock_info=True
        )
        assert fetcher.jstack_args(42) == [str(JSTACK), "-F", "-m", "-l", "42"]

    @pytest.mark.parametrize(
        ("flags", "variant"),
        [
            ({}, DumpVariant.PLAIN),
            ({"lock_info": True}, DumpVariant.PLAIN),
            ({"force": True}, DumpVariant.FORCED),
            ({"mix_native_frames": True}, DumpVariant.MIXED),
            ({"force": True, "mix_native_frames": True}, DumpVariant.MIXED),
        ],
    )
    def test_variant(self, artifacts, flags, variant):
        assert make_fetcher(artifacts, FakeRunner(), **flags).variant is variant


class TestRoundCache:
    """Tests for one dump per process per round."""

    def test_one_dump_per_process(self, artifacts):
        runner = FakeRunner(dumps={1234: PLAIN_DUMP})
        fetcher = make_fetcher(artifacts, runner)
        fetcher.start_round(1)

        first = fetcher.fetch(1234, "svc")
        second = fetcher.fetch(1234, "svc")

        assert first is second
        assert len(runner.calls_of("jstack")) == 1

    def test_new_round_dumps_again(self, artifacts):
        runner = FakeRunner(dumps={1234: PLAIN_DUMP})
        fetcher = make_fetcher(artifacts, runner)
        fetcher.start_round(1)
        fetcher.fetch(1234, "svc")
        fetcher.end_round()
        fetcher.start_round(2)
        fetcher.fetch(1234, "svc")

        assert len(runner.calls_of("jstack")) == 2

    def test_failure_is_cached(self, artifacts):
        """A process that cannot be dumped is not retried within the round."""
        runner = FakeRunner()
        fetcher = make_fetcher(artifacts, runner)
        fetcher.start_round(1)

        with pytest.raises(DumpFailure, match="No such process"):
            fetcher.fetch(1234, "svc")
        with pytest.raises(DumpFailure):
            fetcher.fetch(1234, "svc")

        assert len(runner.calls_of("jstack")) == 1

    def test_processes_are_independent(self, artifacts):
        runner = FakeRunner(dumps={1234: PLAIN_DUMP, 4321: FORCED_DUMP})
        fetcher = make_fetcher(artifacts, runner)
        fetcher.start_round(1)

        assert fetcher.fetch(1234, "svc").pid == 1234
        assert fetcher.fetch(4321, "svc").raw_text == FORCED_DUMP


class TestDumpFailures:
    """Tests for jstack failures."""

    def test_nonzero_exit_without_stderr(self, artifacts):
        runner = FakeRunner(dumps={1234: CommandResult(("jstack", "1234"), 3, "")})
        fetcher = make_fetcher(artifacts, runner)
        with pytest.raises(DumpFailure, match="exit status 3"):
            fetcher.fetch(1234, "svc")

    def test_empty_output(self, artifacts):
        runner = FakeRunner(dumps={1234: CommandResult(("jstack", "1234"), 0, "  \n")})
        fetcher = make_fetcher(artifacts, runner)
        with pytest.raises(DumpFailure, match="empty output"):
            fetcher.fetch(1234, "svc")

    def test_missing_executable(self, artifacts):
        def runner(args, *, env=None):
            raise FileNotFoundError(2, "No such file or directory", args[0])

        fetcher = make_fetcher(artifacts, runner)
        with pytest.raises(DumpFailure, match="No such file or directory"):
            fetcher.fetch(1234, "svc")


class TestDumpFiles:
    """Tests for the jstack output files."""

    def test_success_written_to_temp_dir(self, artifacts):
        fetcher = make_fetcher(artifacts, FakeRunner(dumps={1234: PLAIN_DUMP}))
        fetcher.start_round(2)
        fetcher.fetch(1234, "svc")

        path = artifacts.temp_dir / f"{artifacts.run_timestamp}_2_jstack_1234"
        assert path.read_text() == f"{JSTACK} 1234\n\n{PLAIN_DUMP}"

    def test_failure_leaves_no_file(self, artifacts):
        fetcher = make_fetcher(artifacts, FakeRunner())
        fetcher.start_round(1)
        with pytest.raises(DumpFailure):
            fetcher.fetch(1234, "svc")

        assert list(artifacts.temp_dir.glob("*jstack*")) == []
