"""Per-thread CPU sampling of the selected java processes.

Two strategies produce the same ranked list of ThreadSample:

- LifetimeSampler reads %CPU from ps, which is averaged over the whole
  lifetime of each thread. A thread that was busy for one second of a
  ten hour uptime shows close to zero.
- IntervalSampler (the default) lets top refresh twice and reads the
  second refresh, i.e. the usage during the top delay. top does not know
  thread owners, so rows are correlated with a ps ownership table.

Each external tool has its own parser producing typed rows; ranking and
correlation only ever see those rows.
"""

import os
from dataclasses import dataclass
from operator import attrgetter
from typing import TYPE_CHECKING

import structlog

from busy_java_threads.commands import CommandRunner, run_command
from busy_java_threads.errors import NoTargetProcessError
from busy_java_threads.models import ThreadSample
from busy_java_threads.selector import ProcessSelector

if TYPE_CHECKING:
    from busy_java_threads.artifacts import ArtifactStore
    from busy_java_threads.config import Config

log = structlog.get_logger()


# --- Row types ---


@dataclass(slots=True, frozen=True)
class TopRow:
    """Thread id and its %CPU during the top delay."""

    thread_id: int
    cpu_percent: float


@dataclass(slots=True, frozen=True)
class OwnerRow:
    """Which process and user a thread belongs to."""

    pid: int
    thread_id: int
    user: str


# --- Parsers ---


def _parse_cpu(value: str) -> float:
    # Some locales make top print "87,5"
    return float(value.replace(",", "."))


def parse_ps_threads(text: str) -> list[ThreadSample]:
    """Parse `ps -wwLo pid,lwp,pcpu,user --no-headers` output."""
    samples: list[ThreadSample] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 4:
            continue
        try:
            samples.append(
                ThreadSample(
                    pid=int(parts[0]),
                    thread_id=int(parts[1]),
                    cpu_percent=_parse_cpu(parts[2]),
                    user=parts[3],
                )
            )
        except ValueError:
            continue
    return samples


def parse_ps_pids(text: str) -> list[int]:
    """Parse `ps -o pid --no-headers` output."""
    return [int(token) for token in text.split() if token.isdigit()]


def parse_ps_owners(text: str) -> list[OwnerRow]:
    """Parse `ps -wwLo pid,lwp,user --no-headers` output."""
    owners: list[OwnerRow] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 3 or not parts[0].isdigit() or not parts[1].isdigit():
            continue
        owners.append(OwnerRow(pid=int(parts[0]), thread_id=int(parts[1]), user=parts[2]))
    return owners


def split_top_snapshots(text: str) -> list[list[str]]:
    """Split `top -b` output into its refreshes.

    Every refresh starts with the "top - HH:MM:SS up ..." summary line.
    """
    snapshots: list[list[str]] = []
    for line in text.splitlines():
        if line.startswith("top - "):
            snapshots.append([])
        if snapshots:
            snapshots[-1].append(line)
    return snapshots


def parse_top_threads(text: str) -> list[TopRow]:
    """Parse the thread rows of the SECOND refresh of `top -H -b -n 2`.

    The first refresh reflects cumulative usage since each thread started,
    so it is never read. The %CPU column is located from the column header
    of the refresh.
    """
    snapshots = split_top_snapshots(text)
    if len(snapshots) < 2:
        return []

    rows: list[TopRow] = []
    cpu_column: int | None = None
    for line in snapshots[1]:
        fields = line.split()
        if not fields:
            continue
        if cpu_column is None:
            if fields[0] == "PID" and "%CPU" in fields:
                cpu_column = fields.index("%CPU")
            continue
        if not fields[0].isdigit() or len(fields) <= cpu_column:
            continue
        try:
            cpu_percent = _parse_cpu(fields[cpu_column])
        except ValueError:
            continue
        rows.append(TopRow(thread_id=int(fields[0]), cpu_percent=cpu_percent))
    return rows


# --- Ranking ---


def rank_by_cpu(rows: list) -> list:
    """Sort descending by cpu_percent; ties keep discovery order."""
    return sorted(rows, key=attrgetter("cpu_percent"), reverse=True)


def truncate(samples: list[ThreadSample], limit: int) -> list[ThreadSample]:
    """Keep the top `limit` samples, or all of them when limit is 0."""
    return samples[:limit] if limit > 0 else list(samples)


def correlate(pairs: list[TopRow], owners: list[OwnerRow], limit: int) -> list[ThreadSample]:
    """Attach pid and user to ranked top rows.

    Threads missing from the ownership table exited between the two captures.
    They are skipped and do not count toward `limit`; lower ranked rows fill
    their place.
    """
    by_thread: dict[int, OwnerRow] = {}
    for owner in owners:
        by_thread.setdefault(owner.thread_id, owner)

    batch: list[ThreadSample] = []
    for pair in pairs:
        if limit > 0 and len(batch) >= limit:
            break
        owner = by_thread.get(pair.thread_id)
        if owner is None:
            log.debug("thread_skipped", thread_id=pair.thread_id, cpu=pair.cpu_percent)
            continue
        batch.append(
            ThreadSample(
                pid=owner.pid,
                thread_id=pair.thread_id,
                cpu_percent=pair.cpu_percent,
                user=owner.user,
            )
        )
    return batch


# --- Strategies ---


class LifetimeSampler:
    """Rank threads by ps %CPU (lifetime average)."""

    def __init__(
        self,
        selector: ProcessSelector,
        limit: int,
        artifacts: "ArtifactStore",
        runner: CommandRunner = run_command,
    ) -> None:
        self._selector = selector
        self._limit = limit
        self._artifacts = artifacts
        self._runner = runner

    def sample(self, round_number: int) -> list[ThreadSample]:
        """Return the ranked batch for one round.

        Raises:
            NoTargetProcessError: If ps finds no thread of a selected process
        """
        # -ww keeps long user names from being cut to "username+"
        result = self._runner(
            [
                "ps",
                *self._selector.resolve(),
                "-wwLo",
                "pid,lwp,pcpu,user",
                "--sort",
                "-pcpu",
                "--no-headers",
            ]
        )
        samples = parse_ps_threads(result.stdout)
        if not samples:
            raise NoTargetProcessError(self._selector.not_found_message())
        self._artifacts.save_capture(round_number, "ps", result)

        return truncate(rank_by_cpu(samples), self._limit)


class IntervalSampler:
    """Rank threads by %CPU over a short top interval."""

    def __init__(
        self,
        selector: ProcessSelector,
        limit: int,
        top_delay: float,
        artifacts: "ArtifactStore",
        runner: CommandRunner = run_command,
    ) -> None:
        self._selector = selector
        self._limit = limit
        self._top_delay = top_delay
        self._artifacts = artifacts
        self._runner = runner

    def sample(self, round_number: int) -> list[ThreadSample]:
        """Return the ranked batch for one round.

        Raises:
            NoTargetProcessError: If no process matches or top reports no thread
        """
        pids = self._target_pids()
        pairs = self._top_threads(round_number, pids)
        owners = self._owners(round_number)
        return correlate(pairs, owners, self._limit)

    def _target_pids(self) -> list[int]:
        result = self._runner(["ps", *self._selector.resolve(), "-o", "pid", "--no-headers"])
        pids = parse_ps_pids(result.stdout)
        if not pids:
            raise NoTargetProcessError(self._selector.not_found_message())
        return pids

    def _top_threads(self, round_number: int, pids: list[int]) -> list[TopRow]:
        args = [
            "top",
            "-H",
            "-b",
            "-d",
            f"{self._top_delay:g}",
            "-n",
            "2",
            "-p",
            ",".join(str(pid) for pid in pids),
        ]
        # Private HOME so a user .toprc cannot change the batch layout
        env = {**os.environ, "HOME": str(self._artifacts.temp_dir)}
        result = self._runner(args, env=env)
        self._artifacts.save_capture(round_number, "top", result)

        pairs = parse_top_threads(result.stdout)
        if not pairs:
            raise NoTargetProcessError(self._selector.not_found_message())
        return rank_by_cpu(pairs)

    def _owners(self, round_number: int) -> list[OwnerRow]:
        result = self._runner(
            ["ps", *self._selector.resolve(), "-wwLo", "pid,lwp,user", "--no-headers"]
        )
        self._artifacts.save_capture(round_number, "ps", result)
        return parse_ps_owners(result.stdout)


def make_sampler(
    config: "Config",
    selector: ProcessSelector,
    artifacts: "ArtifactStore",
    runner: CommandRunner = run_command,
) -> LifetimeSampler | IntervalSampler:
    """Build the strategy selected in the configuration."""
    sampling = config.sampling
    if sampling.use_ps:
        return LifetimeSampler(selector, sampling.count, artifacts, runner)
    return IntervalSampler(selector, sampling.count, sampling.top_delay, artifacts, runner)
