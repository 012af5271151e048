"""Target process selection."""

import re
from dataclasses import dataclass

DEFAULT_LAUNCHERS: tuple[str, ...] = ("java", "jsvc")

_PID_LIST_PATTERN = re.compile(r"^([0-9]+)(,[0-9]+)*$")


def parse_pid_list(text: str) -> tuple[int, ...]:
    """Parse a pid list like "42,99" into sorted, deduplicated pids.

    Whitespace is ignored. Raises ValueError for anything else.
    """
    compact = re.sub(r"\s", "", text)
    if not _PID_LIST_PATTERN.match(compact):
        raise ValueError(f"pid(s)({compact}) is illegal! example: 42 or 42,99,67")
    pids = {int(part) for part in compact.split(",")}
    if 0 in pids:
        raise ValueError(f"pid(s)({compact}) is illegal! pid must be a positive number")
    return tuple(sorted(pids))


@dataclass(frozen=True)
class ProcessSelector:
    """Either an explicit pid set, or every process launched by a java launcher."""

    pids: frozenset[int] = frozenset()
    launchers: tuple[str, ...] = DEFAULT_LAUNCHERS

    @classmethod
    def from_pids(cls, pids, launchers: tuple[str, ...] = DEFAULT_LAUNCHERS) -> "ProcessSelector":
        return cls(pids=frozenset(pids), launchers=launchers)

    @property
    def explicit(self) -> bool:
        return bool(self.pids)

    @property
    def pid_list(self) -> str:
        """Explicit pids joined the way ps -p expects them."""
        return ",".join(str(pid) for pid in sorted(self.pids))

    def resolve(self) -> list[str]:
        """Return the ps process selection options for this selector."""
        if self.explicit:
            return ["-p", self.pid_list]
        args: list[str] = []
        for name in self.launchers:
            args.extend(["-C", name])
        return args

    def not_found_message(self) -> str:
        if self.explicit:
            return f"process({self.pid_list}) is not running, or not java process!"
        return "No java process found!"
