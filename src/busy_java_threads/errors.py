"""Error taxonomy for show-busy-java-threads."""


class BusyThreadsError(Exception):
    """Base class for all errors raised by this package."""


class SetupError(BusyThreadsError):
    """Unrecoverable setup problem, raised before any round starts.

    Bad paths, missing tools, invalid numeric arguments, unsupported OS.
    """


class NoTargetProcessError(BusyThreadsError):
    """Nothing to sample: no process matched the selector."""


class DumpFailure(BusyThreadsError):
    """jstack could not produce a dump for one process in one round."""

    def __init__(self, pid: int, user: str, reason: str) -> None:
        super().__init__(f"jstack of process {pid} under user {user} failed: {reason}")
        self.pid = pid
        self.user = user
        self.reason = reason


class PermissionFailure(DumpFailure):
    """The process belongs to another user and we are not root."""

    def __init__(self, pid: int, user: str, current_user: str, rerun_hint: str) -> None:
        super().__init__(pid, user, f"user {user} is not current user {current_user}")
        self.current_user = current_user
        self.rerun_hint = rerun_hint
