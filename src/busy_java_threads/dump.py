"""jstack dumps of the processes owning busy threads.

One dump is taken per process per round, no matter how many of its threads
are busy. Failures are cached the same way, so the other samples of a
process that could not be dumped fail fast.
"""

import os
import pwd
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from busy_java_threads.commands import CommandRunner, run_command
from busy_java_threads.errors import DumpFailure, PermissionFailure
from busy_java_threads.models import DumpRecord, DumpVariant

if TYPE_CHECKING:
    from busy_java_threads.artifacts import ArtifactStore
    from busy_java_threads.config import DumpConfig

log = structlog.get_logger()


def current_user() -> str:
    """Name of the effective user.

    $USER is not reliable here: `sudo -u` leaves it inherited from outside.
    """
    return pwd.getpwuid(os.geteuid()).pw_name


def is_privileged() -> bool:
    return os.geteuid() == 0


class DumpFetcher:
    """Takes jstack dumps, directly or through `sudo -u`, memoized per round."""

    def __init__(
        self,
        jstack_path: Path,
        dump_config: "DumpConfig",
        artifacts: "ArtifactStore",
        command_line: str,
        runner: CommandRunner = run_command,
        *,
        user: str | None = None,
        privileged: bool | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            jstack_path: Resolved jstack executable
            dump_config: jstack flags
            artifacts: Where dump outputs are written
            command_line: Quoted calling command line, for the sudo rerun hint
            runner: Command runner
            user: Invoking user, defaults to the effective user
            privileged: Whether we may `sudo -u`, defaults to euid == 0
        """
        self._jstack_path = jstack_path
        self._config = dump_config
        self._artifacts = artifacts
        self._command_line = command_line
        self._runner = runner
        self.user = user if user is not None else current_user()
        self.privileged = privileged if privileged is not None else is_privileged()
        self._round = 0
        self._cache: dict[int, DumpRecord | DumpFailure] = {}

    @property
    def variant(self) -> DumpVariant:
        return DumpVariant.from_flags(self._config.force, self._config.mix_native_frames)

    def jstack_args(self, pid: int) -> list[str]:
        args = [str(self._jstack_path)]
        if self._config.force:
            args.append("-F")
        if self._config.mix_native_frames:
            args.append("-m")
        if self._config.lock_info:
            args.append("-l")
        args.append(str(pid))
        return args

    def start_round(self, round_number: int) -> None:
        """Forget every dump and failure of the previous round."""
        self._round = round_number
        self._cache.clear()

    def end_round(self) -> None:
        """Drop the round cache."""
        self._cache.clear()

    def fetch(self, pid: int, user: str) -> DumpRecord:
        """Return the dump of `pid`, taking it at most once per round.

        Raises:
            PermissionFailure: If `user` is someone else and we are not root
            DumpFailure: If jstack fails or prints nothing
        """
        cached = self._cache.get(pid)
        if cached is not None:
            log.debug("dump_cached", pid=pid, round=self._round)
            if isinstance(cached, DumpFailure):
                raise cached
            return cached

        try:
            record = self._dump(pid, user)
        except DumpFailure as e:
            self._cache[pid] = e
            log.info("dump_failed", pid=pid, user=user, reason=e.reason)
            raise
        self._cache[pid] = record
        return record

    def _dump(self, pid: int, user: str) -> DumpRecord:
        args = self.jstack_args(pid)
        if user == self.user:
            pass
        elif self.privileged:
            # The JVM attach mechanism only accepts the process owner
            args = ["sudo", "-u", user, *args]
        else:
            raise PermissionFailure(pid, user, self.user, f"sudo {self._command_line}")

        try:
            result = self._runner(args)
        except OSError as e:
            raise DumpFailure(pid, user, str(e)) from e

        if not result.ok:
            reason = result.stderr.strip() or f"exit status {result.returncode}"
            raise DumpFailure(pid, user, reason)
        if not result.stdout.strip():
            raise DumpFailure(pid, user, "empty output")

        path = self._artifacts.save_dump(self._round, pid, result)
        log.debug("dump_saved", pid=pid, path=str(path))
        return DumpRecord(pid=pid, raw_text=result.stdout, variant=self.variant)
