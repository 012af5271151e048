"""Configuration system for show-busy-java-threads.

One immutable Config is built at startup, from dataclass defaults, an
optional TOML file and command line overrides, and passed to every
component.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path

import tomlkit

from busy_java_threads.selector import DEFAULT_LAUNCHERS

VALID_LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class SamplingConfig:
    """Busy thread sampling configuration."""

    count: int = 5  # Threads to show per round, 0 = all
    use_ps: bool = False  # Lifetime %CPU from ps instead of interval %CPU from top
    top_delay: float = 0.5  # Seconds between the two top refreshes
    launchers: tuple[str, ...] = DEFAULT_LAUNCHERS  # Command names matched without -p


@dataclass(frozen=True)
class DumpConfig:
    """jstack configuration."""

    jstack_path: Path | None = None  # None = PATH, then $JAVA_HOME/bin/jstack
    force: bool = False  # jstack -F, for hung processes
    mix_native_frames: bool = False  # jstack -m
    lock_info: bool = False  # jstack -l


@dataclass(frozen=True)
class PollingConfig:
    """Round scheduling."""

    delay: float = 0.0  # Seconds between rounds
    count: int = 1  # Rounds to run, <= 0 = until interrupted


@dataclass(frozen=True)
class OutputConfig:
    """Persistent output."""

    append_file: Path | None = None  # Plain text copy of the report
    store_dir: Path | None = None  # Keep intermediate ps/top/jstack files here


@dataclass(frozen=True)
class LoggingConfig:
    """Diagnostic logging."""

    level: str = "warning"
    log_file: Path | None = None  # JSON lines file, off by default
    log_max_bytes: int = 5 * 1024 * 1024
    log_backup_count: int = 3


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    pids: tuple[int, ...] = ()  # Empty = all java processes
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    dump: DumpConfig = field(default_factory=DumpConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @staticmethod
    def default_path() -> Path:
        """Path of the optional defaults file."""
        return Path.home() / ".config" / "busy-java-threads" / "config.toml"

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values
        """
        defaults = cls()
        path = path or cls.default_path()
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_sampling_config(_section(data, "sampling")),
            dump=_load_dump_config(_section(data, "dump")),
            output=_load_output_config(_section(data, "output")),
            logging=_load_logging_config(_section(data, "logging")),
        )

    def with_overrides(
        self,
        *,
        pids: tuple[int, ...] | None = None,
        sampling: dict | None = None,
        dump: dict | None = None,
        polling: dict | None = None,
        output: dict | None = None,
        logging: dict | None = None,
    ) -> "Config":
        """Return a copy with command line values applied.

        None values in the dicts mean "not given" and keep the current value.
        """

        def merged(section, values: dict | None):
            given = {k: v for k, v in (values or {}).items() if v is not None}
            return replace(section, **given) if given else section

        result = replace(
            self,
            sampling=merged(self.sampling, sampling),
            dump=merged(self.dump, dump),
            polling=merged(self.polling, polling),
            output=merged(self.output, output),
            logging=merged(self.logging, logging),
        )
        if pids is not None:
            result = replace(result, pids=pids)
        validate(result)
        return result


def validate(config: Config) -> None:
    """Check value ranges.

    Raises:
        ValueError: On the first invalid value
    """
    sampling = config.sampling
    if sampling.count < 0:
        raise ValueError(f"thread count({sampling.count}) must be >= 0")
    if sampling.top_delay <= 0:
        raise ValueError(f"top delay({sampling.top_delay}) must be a positive number")
    if not sampling.launchers:
        raise ValueError("launchers must name at least one command")
    if config.polling.delay < 0:
        raise ValueError(f"update delay({config.polling.delay}) is not a positive float number!")
    if config.logging.level not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {config.logging.level!r}. Must be one of {VALID_LOG_LEVELS}"
        )
    if any(pid <= 0 for pid in config.pids):
        raise ValueError(f"pid(s)({config.pids}) is illegal! pid must be a positive number")


def _section(data: dict, name: str) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"[{name}] in config file must be a table")
    return section


def _get(data: dict, section: str, key: str, default, kind: type | tuple[type, ...]):
    """Return data[key] or the default, checking the TOML value's type.

    bool is rejected where a number is expected.
    """
    if key not in data:
        return default
    value = data[key]
    kinds = kind if isinstance(kind, tuple) else (kind,)
    if not isinstance(value, kinds) or (isinstance(value, bool) and bool not in kinds):
        raise ValueError(f"{section}.{key} in config file has wrong type: {value!r}")
    return value


def _get_path(data: dict, section: str, key: str) -> Path | None:
    value = _get(data, section, key, None, str)
    return Path(value).expanduser() if value else None


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config from TOML data, using dataclass defaults for missing fields."""
    d = SamplingConfig()
    launchers = _get(data, "sampling", "launchers", list(d.launchers), list)
    if not all(isinstance(name, str) for name in launchers):
        raise ValueError(
            f"sampling.launchers in config file must be a list of strings: {launchers!r}"
        )
    config = SamplingConfig(
        count=_get(data, "sampling", "count", d.count, int),
        use_ps=_get(data, "sampling", "use_ps", d.use_ps, bool),
        top_delay=float(_get(data, "sampling", "top_delay", d.top_delay, (int, float))),
        launchers=tuple(launchers),
    )
    validate(Config(sampling=config))
    return config


def _load_dump_config(data: dict) -> DumpConfig:
    """Load jstack config from TOML data."""
    d = DumpConfig()
    return DumpConfig(
        jstack_path=_get_path(data, "dump", "jstack_path") or d.jstack_path,
        force=_get(data, "dump", "force", d.force, bool),
        mix_native_frames=_get(data, "dump", "mix_native_frames", d.mix_native_frames, bool),
        lock_info=_get(data, "dump", "lock_info", d.lock_info, bool),
    )


def _load_output_config(data: dict) -> OutputConfig:
    """Load output config from TOML data."""
    return OutputConfig(
        append_file=_get_path(data, "output", "append_file"),
        store_dir=_get_path(data, "output", "store_dir"),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    config = LoggingConfig(
        level=_get(data, "logging", "level", d.level, str).lower(),
        log_file=_get_path(data, "logging", "log_file"),
        log_max_bytes=_get(data, "logging", "log_max_bytes", d.log_max_bytes, int),
        log_backup_count=_get(data, "logging", "log_backup_count", d.log_backup_count, int),
    )
    validate(Config(logging=config))
    return config
