"""Report stream: console output plus plain-text copies for the log files."""

from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from busy_java_threads.errors import DumpFailure, PermissionFailure
from busy_java_threads.models import ThreadSample

_RULE = "=" * 80


def describe_thread(sample: ThreadSample) -> str:
    """e.g. "busy(87.5%) thread(5678/0x162e)"."""
    return f"busy({sample.cpu_percent:.1f}%) thread({sample.thread_id}/{sample.thread_id_hex})"


class Reporter:
    """Writes one round's report.

    Console output is colored when stdout is a terminal. The append file and
    the store report file receive the same text without markup.
    """

    def __init__(
        self,
        command_line: str,
        *,
        append_file: Path | None = None,
        store_file: Path | None = None,
        console: Console | None = None,
    ) -> None:
        self._command_line = command_line
        self._sinks = [path for path in (append_file, store_file) if path is not None]
        self._console = console or Console(highlight=False)

    @property
    def persistent(self) -> bool:
        """Whether any file receives a copy of the report."""
        return bool(self._sinks)

    # --- Low level output ---

    def _write_sinks(self, text: str) -> None:
        for path in self._sinks:
            with open(path, "a", encoding="utf-8") as f:
                f.write(text + "\n")

    def _emit(self, markup: str = "") -> None:
        self._console.print(markup, soft_wrap=True)
        self._write_sinks(Text.from_markup(markup).plain)

    def _emit_text(self, text: str) -> None:
        # Raw write keeps the tabs of jstack frame lines
        self._console.file.write(text + "\n")
        self._write_sinks(text)

    # --- Report entries ---

    def header(self, round_number: int, round_count: int, *, to_console: bool) -> None:
        """Round header: timestamp, round index and the calling command line."""
        now = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")
        line = f"{now} [{round_number}/{round_count}]: {self._command_line}"
        if to_console:
            self._console.print(f"[blue on green]{_RULE}[/]")
            self._console.print(line, markup=False, emoji=False, highlight=False, soft_wrap=True)
            self._console.print(f"[blue on green]{_RULE}[/]")
            self._console.print()
        if self.persistent:
            self._write_sinks(f"{_RULE}\n{line}\n{_RULE}\n")

    def thread_stack(self, rank: int, sample: ThreadSample, block: str) -> None:
        """A busy thread and its stack block."""
        title = (
            f"[{rank}] Busy({sample.cpu_percent:.1f}%) "
            f"thread({sample.thread_id}/{sample.thread_id_hex}) "
            f"stack of java process({sample.pid}) under user({sample.user}):"
        )
        self._emit(f"[cyan]{escape(title)}[/]")
        self._emit_text(block)
        self._emit()

    def dump_failed(self, rank: int, sample: ThreadSample, failure: DumpFailure) -> None:
        """A busy thread whose process could not be dumped."""
        title = (
            f"[{rank}] Fail to jstack {describe_thread(sample)} "
            f"stack of java process({sample.pid}) under user({sample.user})."
        )
        self._emit(f"[red]{escape(title)}[/]")
        if isinstance(failure, PermissionFailure):
            self._emit(
                f"[red]User of java process({escape(failure.user)}) is not current "
                f"user({escape(failure.current_user)}), need sudo to rerun:[/]"
            )
            self._emit(f"[yellow]    {escape(failure.rerun_hint)}[/]")
        else:
            self._emit(f"[red]    {escape(failure.reason)}[/]")
        self._emit()

    def stack_not_found(self, rank: int, sample: ThreadSample) -> None:
        """A busy thread missing from its process dump."""
        title = (
            f"[{rank}] Busy({sample.cpu_percent:.1f}%) "
            f"thread({sample.thread_id}/{sample.thread_id_hex}) "
            f"of java process({sample.pid}) under user({sample.user}) is not found "
            "in jstack output, the thread or process may have exited."
        )
        self._emit(f"[yellow]{escape(title)}[/]")
        self._emit()
