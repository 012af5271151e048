"""Polling driver: runs sampling and reporting rounds."""

import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path

import structlog
from rich.console import Console

from busy_java_threads.artifacts import ArtifactStore
from busy_java_threads.commands import CommandRunner, run_command
from busy_java_threads.config import Config
from busy_java_threads.dump import DumpFetcher
from busy_java_threads.errors import DumpFailure
from busy_java_threads.extract import extract_stack
from busy_java_threads.models import ThreadSample
from busy_java_threads.report import Reporter
from busy_java_threads.sampler import IntervalSampler, LifetimeSampler, make_sampler
from busy_java_threads.selector import ProcessSelector

log = structlog.get_logger()


class DriverState(Enum):
    """Where the driver is in its round cycle."""

    IDLE = "idle"
    SAMPLING = "sampling"
    REPORTING = "reporting"
    SLEEPING = "sleeping"
    TERMINAL = "terminal"


class PollingDriver:
    """Repeats sample -> dump -> extract -> report rounds.

    A round count <= 0 runs until interrupted. The delay is slept between
    rounds, never before the first one.
    """

    def __init__(
        self,
        sampler: LifetimeSampler | IntervalSampler,
        fetcher: DumpFetcher,
        reporter: Reporter,
        *,
        round_count: int = 1,
        round_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._sampler = sampler
        self._fetcher = fetcher
        self._reporter = reporter
        self.round_count = round_count
        self.round_delay = round_delay
        self._sleep = sleep
        self.state = DriverState.IDLE
        self.rounds_completed = 0

    @property
    def unbounded(self) -> bool:
        return self.round_count <= 0

    def run(self) -> int:
        """Run all rounds and return how many completed.

        Raises:
            NoTargetProcessError: If a round finds nothing to sample
        """
        round_number = 0
        while self.unbounded or round_number < self.round_count:
            if round_number > 0:
                self.state = DriverState.SLEEPING
                self._sleep(self.round_delay)
            round_number += 1
            self.run_round(round_number)
            self.rounds_completed = round_number

        self.state = DriverState.TERMINAL
        return self.rounds_completed

    def run_round(self, round_number: int) -> None:
        """Sample once and report every thread of the ranked batch, in rank order."""
        log.debug("round_started", round=round_number, of=self.round_count)
        self._reporter.header(round_number, self.round_count, to_console=self.round_count != 1)

        self.state = DriverState.SAMPLING
        batch = self._sampler.sample(round_number)

        self.state = DriverState.REPORTING
        self._fetcher.start_round(round_number)
        try:
            for rank, sample in enumerate(batch, start=1):
                self._report_sample(rank, sample)
        finally:
            # Dumps are only valid within their round
            self._fetcher.end_round()

    def _report_sample(self, rank: int, sample: ThreadSample) -> None:
        try:
            record = self._fetcher.fetch(sample.pid, sample.user)
        except DumpFailure as e:
            self._reporter.dump_failed(rank, sample, e)
            return

        block = extract_stack(record, sample.thread_id)
        if block is None:
            log.info("stack_not_found", pid=sample.pid, thread_id=sample.thread_id)
            self._reporter.stack_not_found(rank, sample)
        else:
            self._reporter.thread_stack(rank, sample, block)


def run(
    config: Config,
    jstack_path: Path,
    command_line: str,
    *,
    runner: CommandRunner = run_command,
    user: str | None = None,
    privileged: bool | None = None,
    sleep: Callable[[float], None] = time.sleep,
    console: Console | None = None,
    tmp_root: Path | None = None,
) -> int:
    """Wire every component from the config and run all rounds.

    The private temp directory is removed however the run ends, Ctrl-C
    included.

    Returns:
        Number of completed rounds
    """
    selector = ProcessSelector.from_pids(config.pids, config.sampling.launchers)
    with ArtifactStore(config.output.store_dir, tmp_root=tmp_root) as artifacts:
        sampler = make_sampler(config, selector, artifacts, runner)
        fetcher = DumpFetcher(
            jstack_path,
            config.dump,
            artifacts,
            command_line,
            runner,
            user=user,
            privileged=privileged,
        )
        reporter = Reporter(
            command_line,
            append_file=config.output.append_file,
            store_file=artifacts.report_path,
            console=console,
        )
        driver = PollingDriver(
            sampler,
            fetcher,
            reporter,
            round_count=config.polling.count,
            round_delay=config.polling.delay,
            sleep=sleep,
        )
        return driver.run()
