"""Data models for show-busy-java-threads."""

from dataclasses import dataclass
from enum import Enum


@dataclass(slots=True, frozen=True)
class ThreadSample:
    """One busy thread selected into a round's ranked batch."""

    pid: int
    thread_id: int  # OS thread id (lwp)
    cpu_percent: float
    user: str  # Owner of the java process

    @property
    def thread_id_hex(self) -> str:
        """Thread id as jstack prints it in nid=, e.g. 0x162e."""
        return hex(self.thread_id)


class DumpVariant(Enum):
    """Layout of a jstack dump, decided by the flags it was taken with."""

    PLAIN = "plain"
    FORCED = "forced"  # jstack -F
    MIXED = "mixed"  # jstack -m, java and native frames

    @classmethod
    def from_flags(cls, force: bool, mix_native_frames: bool) -> "DumpVariant":
        """Mixed mode wins over forced mode; lock info does not change the layout."""
        if mix_native_frames:
            return cls.MIXED
        if force:
            return cls.FORCED
        return cls.PLAIN


@dataclass(slots=True, frozen=True)
class DumpRecord:
    """Full jstack output for one process."""

    pid: int
    raw_text: str
    variant: DumpVariant
