"""Startup checks run before the first round.

Every check raises SetupError with a message naming the offending option.
"""

import os
import platform
import shutil
from pathlib import Path

import psutil

from busy_java_threads import PROG
from busy_java_threads.config import Config
from busy_java_threads.errors import SetupError


def check_os() -> None:
    """ps/top options and jstack thread ids used here are Linux specific."""
    if not psutil.LINUX:
        raise SetupError(f"{PROG} only support Linux, not support {platform.system()} yet!")


def check_tools(use_ps: bool) -> None:
    tools = ["ps"] if use_ps else ["ps", "top"]
    for tool in tools:
        if shutil.which(tool) is None:
            raise SetupError(f"{tool} command is NOT found on PATH!")


def _check_executable(path: Path, hint: str = "") -> Path:
    if not path.is_file():
        raise SetupError(f"{path} is NOT found!{hint}")
    if not os.access(path, os.X_OK):
        raise SetupError(f"{path} is NOT executable!{hint}")
    return path


def resolve_jstack_path(override: Path | None, java_home: str | None = None) -> Path:
    """Find jstack: explicit path, then PATH, then $JAVA_HOME/bin/jstack."""
    if override is not None:
        return _check_executable(override)

    found = shutil.which("jstack")
    if found:
        return Path(found)

    hint = " Use -s option set jstack path manually."
    if not java_home:
        raise SetupError(f"jstack not found on PATH and No JAVA_HOME setting!{hint}")
    jstack = Path(java_home) / "bin" / "jstack"
    return _check_executable(jstack, f" (jstack not found on PATH){hint}")


def prepare_append_file(path: Path) -> None:
    """Check the append file is writable, creating its directory if needed."""
    what = "(specified by option -a, for storing run output files)"
    if path.exists():
        if not path.is_file():
            raise SetupError(f"{path}{what} exists but is not a file!")
        if not os.access(path, os.W_OK):
            raise SetupError(f"file {path}{what} exists but is not writable!")
        return

    parent = path.parent
    if parent.exists():
        if not parent.is_dir():
            raise SetupError(f"directory {parent}{what} exists but is not a directory!")
        if not os.access(parent, os.W_OK):
            raise SetupError(f"directory {parent}{what} exists but is not writable!")
        return
    try:
        parent.mkdir(parents=True)
    except OSError as e:
        raise SetupError(f"fail to create directory {parent}{what}!") from e


def prepare_store_dir(path: Path) -> None:
    """Check the store directory is writable, creating it if needed."""
    what = "(specified by option -S, for storing output files)"
    if path.exists():
        if not path.is_dir():
            raise SetupError(f"{path}{what} exists but is not a directory!")
        if not os.access(path, os.W_OK):
            raise SetupError(f"directory {path}{what} exists but is not writable!")
        return
    try:
        path.mkdir(parents=True)
    except OSError as e:
        raise SetupError(f"fail to create directory {path}{what}!") from e


def prepare(config: Config, java_home: str | None = None) -> Path:
    """Run every startup check and return the jstack to use.

    Raises:
        SetupError: On the first failed check
    """
    check_os()
    check_tools(config.sampling.use_ps)
    if config.output.append_file is not None:
        prepare_append_file(config.output.append_file)
    if config.output.store_dir is not None:
        prepare_store_dir(config.output.store_dir)
    return resolve_jstack_path(config.dump.jstack_path, java_home)
