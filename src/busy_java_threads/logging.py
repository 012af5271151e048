"""Centralized diagnostics: Rich console messages and structlog configuration.

This module provides:
1. Level-based styling and core log functions (log, info, error)
2. Domain-specific helpers (setup_failed, interrupted, artifacts_kept, ...)
3. Structlog configuration (configure)

Diagnostics go to stderr so they never mix with the report on stdout.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from busy_java_threads.config import LoggingConfig

_console = Console(stderr=True, highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]Info:[/]",
    "error": "[bold red]Error:[/]",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str) -> None:
    """Print a message to stderr with a level prefix.

    Args:
        level: Log level (info, error)
        msg: Message to print (can include Rich markup)
    """
    lvl = _LEVEL_STYLES.get(level, f"{level}:")
    _console.print(f"{lvl} {msg}", soft_wrap=True)


def info(msg: str) -> None:
    """Log an info message."""
    log("info", msg)


def error(msg: str) -> None:
    """Log an error message."""
    log("error", msg)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def setup_failed(reason: str) -> None:
    """Log an unrecoverable setup or sampling failure."""
    error(f"[red]{escape(reason)}[/]")


def interrupted() -> None:
    """Log operator interrupt."""
    info("Interrupted")


def artifacts_kept(store_dir: str) -> None:
    """Log where intermediate files were kept."""
    info(f"Intermediate files kept in [cyan]{escape(store_dir)}[/]")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure(config: LoggingConfig) -> None:
    """Configure structlog on top of stdlib logging.

    Events render human-readable on stderr at the configured level; when a
    log file is configured they are also written as JSON lines.

    Args:
        config: Logging section of the application config
    """
    level = getattr(logging, config.level.upper())

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.DEBUG if config.log_file else level)
    stdlib_root.handlers.clear()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=[
                *shared_processors,
                structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            ],
        )
    )
    stdlib_root.addHandler(console_handler)

    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=[
                    *shared_processors,
                    structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                ],
            )
        )
        stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

