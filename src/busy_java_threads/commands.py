"""Synchronous execution of the external inspection tools (ps, top, jstack)."""

import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return " ".join(self.args)


CommandRunner = Callable[..., CommandResult]


def run_command(args: Sequence[str], *, env: Mapping[str, str] | None = None) -> CommandResult:
    """Run a command to completion and capture its output.

    The child always exits before this returns; if the caller is interrupted
    while waiting, subprocess.run kills the child before re-raising.

    Raises:
        FileNotFoundError: If the executable does not exist.
    """
    completed = subprocess.run(
        list(args),
        stdin=subprocess.DEVNULL,  # No tty interaction
        capture_output=True,
        env=dict(env) if env is not None else None,
    )
    result = CommandResult(
        args=tuple(args),
        returncode=completed.returncode,
        stdout=completed.stdout.decode("utf-8", errors="replace"),
        stderr=completed.stderr.decode("utf-8", errors="replace"),
    )
    log.debug("command_run", args=result.command_line, returncode=result.returncode)
    return result
