"""Locate one thread's stack block inside a jstack dump.

Each dump layout marks threads differently:

- plain:  "main" #1 prio=5 os_prio=0 tid=0x00007f... nid=0x162e runnable
- forced: Thread 5678: (state = IN_JAVA)
- mixed:  ----------------- 5678 -----------------

The block is returned as opaque text.
"""

import re

from busy_java_threads.models import DumpRecord, DumpVariant

_MIXED_DELIMITER = "---------------"


def _until_blank_line(lines: list[str], start: int) -> str:
    end = start
    while end < len(lines) and lines[end] != "":
        end += 1
    return "\n".join(lines[start:end])


def extract_plain(text: str, thread_id: int) -> str | None:
    """Block from the line tagged nid=<hex thread id> to the next blank line."""
    pattern = re.compile(rf"\snid={hex(thread_id)}(\s|$)")
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if pattern.search(line):
            return _until_blank_line(lines, i)
    return None


def extract_forced(text: str, thread_id: int) -> str | None:
    """Block from the "Thread <id>:" line to the next blank line."""
    marker = f"Thread {thread_id}:"
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if line.startswith(marker):
            return _until_blank_line(lines, i)
    return None


def extract_mixed(text: str, thread_id: int) -> str | None:
    """Lines strictly between the thread's delimiter line and the next delimiter."""
    marker = f"{_MIXED_DELIMITER} {thread_id} {_MIXED_DELIMITER}"
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if marker in line:
            end = i + 1
            while end < len(lines) and not lines[end].startswith(_MIXED_DELIMITER):
                end += 1
            return "\n".join(lines[i + 1 : end])
    return None


_EXTRACTORS = {
    DumpVariant.PLAIN: extract_plain,
    DumpVariant.FORCED: extract_forced,
    DumpVariant.MIXED: extract_mixed,
}


def extract_stack(record: DumpRecord, thread_id: int) -> str | None:
    """Return the stack block of `thread_id`, or None when the dump lacks it.

    A missing block usually means the thread or the whole process exited
    between sampling and dumping.
    """
    return _EXTRACTORS[record.variant](record.raw_text, thread_id)
