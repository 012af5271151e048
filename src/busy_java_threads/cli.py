"""CLI entry point for show-busy-java-threads."""

import os
import re
import shlex
import sys
from pathlib import Path

import click
from click.core import ParameterSource

from busy_java_threads import PROG, __version__

EXAMPLES = f"""\b
Example:
  {PROG}        # show busy java threads info
  {PROG} 1      # update every 1 second, (stop by eg: CTRL+C)
  {PROG} 3 10   # update every 3 seconds, update 10 times

\b
delay/count arguments imitate the style of the vmstat command.
"""

_DELAY_PATTERN = re.compile(r"^[+]?[0-9]+\.?[0-9]*$")
_COUNT_PATTERN = re.compile(r"^[+]?[0-9]+$")


def parse_rounds(delay: str | None, count: str | None) -> tuple[float, int]:
    """Turn the vmstat style DELAY/COUNT arguments into (delay, round count).

    No DELAY runs one round; DELAY alone runs until interrupted (count 0).

    Raises:
        ValueError: If either argument is malformed
    """
    if delay is None:
        return 0.0, 1
    if not _DELAY_PATTERN.match(delay):
        raise ValueError(f"update delay({delay}) is not a positive float number!")
    count = count if count is not None else "0"
    if not _COUNT_PATTERN.match(count):
        raise ValueError(f"update count({count}) is not a natural number!")
    return float(delay), int(count)


def given(ctx: click.Context, name: str, value):
    """The value of a parameter set on the command line, else None.

    Flag defaults must not override values from the config file.
    """
    if ctx.get_parameter_source(name) is ParameterSource.COMMANDLINE:
        return value
    return None


def calling_command_line() -> str:
    """The quoted command line, safe to copy and paste to rerun."""
    return shlex.join(sys.argv)


@click.command(context_settings={"help_option_names": ["-h", "--help"]}, epilog=EXAMPLES)
@click.version_option(__version__, "-V", "--version", prog_name=PROG)
@click.argument("delay", required=False)
@click.argument("rounds", metavar="[COUNT]", required=False)
@click.option(
    "-p",
    "--pid",
    "pid_list",
    metavar="PIDS",
    help="Find the busiest threads of these java processes (eg: 42,99). "
    "Default: all java processes.",
)
@click.option(
    "-c",
    "--count",
    type=click.IntRange(min=0),
    help="Number of threads to show, default 5. 0 shows all threads.",
)
@click.option(
    "-a",
    "--append-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Append the output to this file as a log.",
)
@click.option(
    "-S",
    "--store-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Keep the intermediate ps/top/jstack files in this directory "
    "instead of a temp dir removed after the run.",
)
@click.option(
    "-s",
    "--jstack-path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path of the jstack command.",
)
@click.option(
    "-F", "--force/--no-force", default=False, help="jstack -F: force a dump of a hung process."
)
@click.option(
    "-m",
    "--mix-native-frames/--no-mix-native-frames",
    default=False,
    help="jstack -m: print both java and native frames.",
)
@click.option(
    "-l",
    "--lock-info/--no-lock-info",
    default=False,
    help="jstack -l: additional information about locks.",
)
@click.option(
    "-d",
    "--top-delay",
    type=float,
    help="Delay between the two top samples in seconds, default 0.5. "
    "Thread CPU usage is measured over this interval.",
)
@click.option(
    "-P",
    "--use-ps/--use-top",
    default=False,
    help="Use ps instead of top to find busy threads. ps reports CPU usage "
    "averaged over the entire lifetime of a thread.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="TOML file with default settings.",
)
@click.option("-v", "--verbose", is_flag=True, help="Print diagnostic events to stderr.")
@click.pass_context
def main(
    ctx: click.Context,
    delay: str | None,
    rounds: str | None,
    pid_list: str | None,
    count: int | None,
    append_file: Path | None,
    store_dir: Path | None,
    jstack_path: Path | None,
    force: bool,
    mix_native_frames: bool,
    lock_info: bool,
    top_delay: float | None,
    use_ps: bool,
    config_path: Path | None,
    verbose: bool,
) -> None:
    """Find out the highest cpu consumed threads of java processes,
    and print the stack of these threads.

    DELAY is the delay between updates in seconds, COUNT the number of updates.
    """
    from busy_java_threads import bootstrap
    from busy_java_threads import logging as console
    from busy_java_threads.config import Config
    from busy_java_threads.driver import run
    from busy_java_threads.errors import BusyThreadsError, SetupError
    from busy_java_threads.selector import parse_pid_list

    try:
        try:
            round_delay, round_count = parse_rounds(delay, rounds)
            pids = parse_pid_list(pid_list) if pid_list is not None else None
            config = Config.load(config_path).with_overrides(
                pids=pids,
                sampling={
                    "count": count,
                    "top_delay": top_delay,
                    "use_ps": given(ctx, "use_ps", use_ps),
                },
                dump={
                    "jstack_path": jstack_path,
                    "force": given(ctx, "force", force),
                    "mix_native_frames": given(ctx, "mix_native_frames", mix_native_frames),
                    "lock_info": given(ctx, "lock_info", lock_info),
                },
                polling={"delay": round_delay, "count": round_count},
                output={"append_file": append_file, "store_dir": store_dir},
                logging={"level": "debug" if verbose else None},
            )
        except ValueError as e:
            raise SetupError(str(e)) from e

        console.configure(config.logging)
        jstack = bootstrap.prepare(config, os.environ.get("JAVA_HOME"))
        run(config, jstack, calling_command_line())
    except BusyThreadsError as e:
        console.setup_failed(str(e))
        raise SystemExit(1)
    except KeyboardInterrupt:
        console.interrupted()
        raise SystemExit(130)

    if config.output.store_dir is not None:
        console.artifacts_kept(str(config.output.store_dir))


if __name__ == "__main__":
    main()
