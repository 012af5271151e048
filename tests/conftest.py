"""Shared test fixtures for show-busy-java-threads."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from busy_java_threads.artifacts import ArtifactStore
from busy_java_threads.commands import CommandResult
from busy_java_threads.models import ThreadSample

# Two refreshes of `top -H -b -n 2`: thread 1300 leads the first one,
# thread 5678 the second.
TOP_OUTPUT = """\
top - 14:05:01 up 10 days,  2:03,  1 user,  load average: 1.20, 1.05, 0.98
Threads:  42 total,   1 running,  41 sleeping,   0 stopped,   0 zombie
%Cpu(s): 12.5 us,  1.0 sy,  0.0 ni, 86.0 id,  0.5 wa,  0.0 hi,  0.0 si,  0.0 st
MiB Mem :  15890.2 total,   1021.3 free,   9876.5 used,   4992.4 buff/cache
MiB Swap:   2048.0 total,   2048.0 free,      0.0 used.   5678.9 avail Mem

    PID USER      PR  NI    VIRT    RES    SHR S  %CPU  %MEM     TIME+ COMMAND
   1300 svc       20   0 8123456 512340  23456 S  60.0   3.1  10:01.02 java
   5678 svc       20   0 8123456 512340  23456 R   5.0   3.1   0:12.34 java
   1301 svc       20   0 8123456 512340  23456 S   0.0   3.1   0:00.10 java

top - 14:05:01 up 10 days,  2:03,  1 user,  load average: 1.20, 1.05, 0.98
Threads:  42 total,   1 running,  41 sleeping,   0 stopped,   0 zombie
%Cpu(s): 14.0 us,  1.2 sy,  0.0 ni, 84.3 id,  0.5 wa,  0.0 hi,  0.0 si,  0.0 st
MiB Mem :  15890.2 total,   1021.1 free,   9876.7 used,   4992.4 buff/cache
MiB Swap:   2048.0 total,   2048.0 free,      0.0 used.   5678.7 avail Mem

    PID USER      PR  NI    VIRT    RES    SHR S  %CPU  %MEM     TIME+ COMMAND
   5678 svc       20   0 8123456 512340  23456 R  87.5   3.1   0:12.78 java
   1300 svc       20   0 8123456 512340  23456 S   2.0   3.1  10:01.03 java
   1301 svc       20   0 8123456 512340  23456 S   0.0   3.1   0:00.10 java
"""

# `ps -wwLo pid,lwp,user --no-headers`
PS_OWNERS = """\
 1234  1234 svc
 1234  1300 svc
 1234  1301 svc
 1234  5678 svc
"""

PLAIN_DUMP = """\
2026-10-19 14:05:02
Full thread dump OpenJDK 64-Bit Server VM (17.0.8+7 mixed mode, sharing):

"main" #1 prio=5 os_prio=0 cpu=12.30ms elapsed=3600.12s tid=0x00007f3c4c016800 nid=0x514 waiting on condition  [0x00007f3c52a5e000]
   java.lang.Thread.State: TIMED_WAITING (sleeping)
\tat java.lang.Thread.sleep(java.base@17.0.8/Native Method)
\tat com.example.Main.main(Main.java:42)

"worker-1" #12 prio=5 os_prio=0 cpu=87654.32ms elapsed=3600.10s tid=0x00007f3c4c2a1000 nid=0x162e runnable  [0x00007f3c1a7fe000]
   java.lang.Thread.State: RUNNABLE
\tat com.example.Hot.spin(Hot.java:17)
\tat com.example.Hot.run(Hot.java:9)

"GC Thread#0" os_prio=0 cpu=1.00ms elapsed=3600.12s tid=0x00007f3c4c02d000 nid=0x515 runnable

JNI global refs: 15, weak refs: 0
"""

PLAIN_WORKER_BLOCK = """\
"worker-1" #12 prio=5 os_prio=0 cpu=87654.32ms elapsed=3600.10s tid=0x00007f3c4c2a1000 nid=0x162e runnable  [0x00007f3c1a7fe000]
   java.lang.Thread.State: RUNNABLE
\tat com.example.Hot.spin(Hot.java:17)
\tat com.example.Hot.run(Hot.java:9)"""

FORCED_DUMP = """\
Attaching to process ID 1234, please wait...
Debugger attached successfully.
Server compiler detected.
JVM version is 25.372-b07
Deadlock Detection:

No deadlocks found.

Thread 5678: (state = IN_JAVA)
 - com.example.Hot.spin() @bci=12, line=17 (Compiled frame; information may be imprecise)
 - com.example.Hot.run() @bci=1, line=9 (Interpreted frame)

Thread 1300: (state = BLOCKED)
 - java.lang.Thread.sleep(long) @bci=0 (Interpreted frame)
 - com.example.Main.main(java.lang.String[]) @bci=5, line=42 (Interpreted frame)
"""

MIXED_DUMP = """\
Attaching to process ID 1234, please wait...
Debugger attached successfully.
Server compiler detected.
JVM version is 25.372-b07
Deadlock Detection:

No deadlocks found.

----------------- 5678 -----------------
0x00007f3c5b1c2d45\t__pthread_cond_wait + 0xc5
0x00007f3c3d0f1a2b\t* com.example.Hot.spin() bci:12 line:17 (Compiled frame)
0x00007f3c3d0e9c60\t* com.example.Hot.run() bci:1 line:9 (Interpreted frame)
----------------- 1300 -----------------
0x00007f3c5b1c3e12\t__pthread_cond_timedwait + 0x125
0x00007f3c3d0e9c60\t* java.lang.Thread.sleep(long) bci:0 (Interpreted frame)
"""


def _classify(args: tuple[str, ...]) -> str:
    """Which canned output a command asks for."""
    if args[0] == "top":
        return "top"
    if args[0] == "ps":
        if "pid,lwp,pcpu,user" in args:
            return "ps_threads"
        if "pid,lwp,user" in args:
            return "ps_owners"
        return "ps_pids"
    return "jstack"


class FakeRunner:
    """Command runner serving canned ps/top/jstack output and recording calls.

    jstack output is looked up by pid; an unknown pid fails like a dead process.
    """

    def __init__(
        self,
        *,
        ps_pids: str = "",
        ps_threads: str = "",
        ps_owners: str = "",
        top: str = "",
        dumps: dict[int, str | CommandResult] | None = None,
    ) -> None:
        self.outputs = {
            "ps_pids": ps_pids,
            "ps_threads": ps_threads,
            "ps_owners": ps_owners,
            "top": top,
        }
        self.dumps = dumps or {}
        self.calls: list[tuple[tuple[str, ...], dict | None]] = []

    def __call__(self, args, *, env=None) -> CommandResult:
        args = tuple(args)
        self.calls.append((args, env))
        kind = _classify(args)
        if kind == "jstack":
            out = self.dumps.get(int(args[-1]))
            if out is None:
                return CommandResult(args, 1, "", f"{args[-1]}: No such process")
        else:
            out = self.outputs[kind]
        if isinstance(out, CommandResult):
            return out
        # ps exits 1 when nothing matches
        return CommandResult(args, 0 if out else 1, out)

    def calls_of(self, kind: str) -> list[tuple[str, ...]]:
        return [args for args, _ in self.calls if _classify(args) == kind]


@pytest.fixture
def artifacts(tmp_path: Path) -> Iterator[ArtifactStore]:
    """ArtifactStore with its temp dir under tmp_path."""
    with ArtifactStore(tmp_root=tmp_path, run_timestamp="2026-10-19_14:05:00.000000") as store:
        yield store


def make_sample(
    pid: int = 1234,
    thread_id: int = 5678,
    cpu_percent: float = 87.5,
    user: str = "svc",
) -> ThreadSample:
    """Create a ThreadSample for testing."""
    return ThreadSample(pid=pid, thread_id=thread_id, cpu_percent=cpu_percent, user=user)
