"""Structured logging with sync-cycle correlation and multi-output support.

Supports:
- Separate console vs file log levels
- Sync cycle correlation IDs (one per processed change notification)
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from sheetsync.config.models import LoggingConfig

_cycle_id: ContextVar[str | None] = ContextVar("cycle_id", default=None)


def get_cycle_id() -> str | None:
    return _cycle_id.get()


def set_cycle_id(cycle_id: str | None = None) -> str:
    """Set or generate the sync cycle correlation ID."""
    cid = cycle_id or uuid4().hex[:12]
    _cycle_id.set(cid)
    return cid


def clear_cycle_id() -> None:
    _cycle_id.set(None)


def _add_cycle_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if cid := get_cycle_id():
        event_dict["cycle_id"] = cid
    return event_dict


_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog. Pass config for console + file output, or use simple params.

    Args:
        config: Logging configuration (level, optional file, renderer)
        json_format: Use JSON format for simple setup
        level: Default log level
    """
    from sheetsync.config.models import LoggingConfig

    if config is None:
        config = LoggingConfig(level=level, format="json" if json_format else "console")

    default_level = _LEVEL_MAP.get(config.level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_cycle_id,  # type: ignore[list-item]
    ]

    _configure_stdlib_logging(config, shared_processors, default_level)


def _create_handler(destination: str) -> logging.Handler:
    """Create handler for stderr, stdout, or file path."""
    if destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    if destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a")


def _make_formatter(
    fmt: str,
    shared_processors: list[structlog.types.Processor],
    *,
    colors: bool,
) -> logging.Formatter:
    renderer: structlog.types.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors, pad_event_to=0, pad_level=False)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )


def _configure_stdlib_logging(
    config: LoggingConfig,
    shared_processors: list[structlog.types.Processor],
    default_level: int,
) -> None:
    """Configure logging via stdlib (proper file handle management)."""
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(default_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Don't cache - allows reconfiguration and respects level changes
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(default_level)

    # watchfiles logs every raw change at DEBUG
    logging.getLogger("watchfiles.main").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

    console = _create_handler("stderr")
    console.setLevel(default_level)
    console.setFormatter(
        _make_formatter(config.format, shared_processors, colors=sys.stderr.isatty())
    )
    root_logger.addHandler(console)

    if config.file:
        file_level = _LEVEL_MAP.get((config.file_level or config.level).upper(), default_level)
        file_handler = _create_handler(config.file)
        file_handler.setLevel(file_level)
        file_handler.setFormatter(_make_formatter("json", shared_processors, colors=False))
        root_logger.addHandler(file_handler)
        # Let DEBUG records reach the file even when the console is at INFO
        root_logger.setLevel(min(default_level, file_level))
        structlog.configure(
            wrapper_class=structlog.make_filtering_bound_logger(min(default_level, file_level))
        )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
