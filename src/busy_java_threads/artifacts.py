"""Intermediate capture files (ps/top/jstack output) and their cleanup.

Every run owns a private temp directory. It serves as HOME for top (so a user
.toprc cannot alter the batch layout) and holds the jstack outputs unless a
store directory is configured, in which case captures are kept there for later
review. The temp directory is always removed on exit.
"""

import shutil
import tempfile
from datetime import datetime
from pathlib import Path

import structlog

from busy_java_threads import PROG
from busy_java_threads.commands import CommandResult

log = structlog.get_logger()


class ArtifactStore:
    """Names, writes and cleans up the intermediate files of one run."""

    def __init__(
        self,
        store_dir: Path | None = None,
        *,
        run_timestamp: str | None = None,
        tmp_root: Path | None = None,
    ) -> None:
        """Create the private temp directory.

        Args:
            store_dir: Directory to keep captures in, or None to discard them
            run_timestamp: Prefix for file names, defaults to now
            tmp_root: Parent for the temp directory, defaults to the system one
        """
        self.run_timestamp = run_timestamp or datetime.now().strftime("%Y-%m-%d_%H:%M:%S.%f")
        self.store_dir = store_dir
        self.temp_dir = Path(
            tempfile.mkdtemp(prefix=f"{PROG}_{self.run_timestamp}_", dir=tmp_root)
        )
        log.debug("artifacts_temp_dir", path=str(self.temp_dir))

    @property
    def keeping(self) -> bool:
        """Whether captures outlive the run."""
        return self.store_dir is not None

    @property
    def prefix(self) -> str:
        base = self.store_dir if self.store_dir is not None else self.temp_dir
        return str(base / f"{self.run_timestamp}_")

    def path(self, name: str) -> Path:
        return Path(self.prefix + name)

    @property
    def report_path(self) -> Path | None:
        """Copy of the report stream, only kept with a store directory."""
        return self.path(PROG) if self.keeping else None

    def save_capture(self, round_number: int, kind: str, result: CommandResult) -> Path | None:
        """Keep raw ps/top output of a round, when storing."""
        if not self.keeping:
            return None
        return self._write(self.path(f"{round_number}_{kind}"), result)

    def save_dump(self, round_number: int, pid: int, result: CommandResult) -> Path:
        """Write a jstack output; always written, to the temp dir when not storing."""
        return self._write(self.path(f"{round_number}_jstack_{pid}"), result)

    def _write(self, path: Path, result: CommandResult) -> Path:
        # Command line first, so a stored file says how it was produced
        path.write_text(f"{result.command_line}\n\n{result.stdout}", encoding="utf-8")
        return path

    def cleanup(self) -> None:
        """Remove the private temp directory."""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            log.debug("artifacts_temp_cleanup", path=str(self.temp_dir))

    def __enter__(self) -> "ArtifactStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()
