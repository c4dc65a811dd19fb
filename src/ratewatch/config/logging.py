"""structlog setup shared by the service, the CLI and the tests."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

_SIZE_UNITS = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}


def setup_logging(
    level: str = "INFO",
    format_type: str = "structured",
    file_enabled: bool = True,
    file_path: str = "data/ratewatch.log",
    max_file_size: str = "10MB",
    backup_count: int = 5,
) -> None:
    """
    Route structlog through the standard library root logger.

    Events go to stdout and, when `file_enabled`, to a rotating file as well.
    `format_type` picks between machine-readable ("structured") and
    coloured console ("plain") output.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    structlog.configure(
        processors=[*_event_processors(), _renderer(format_type, file_enabled)],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if file_enabled:
        _setup_file_logging(file_path, max_file_size, backup_count, log_level)


def _event_processors() -> list[Processor]:
    return [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(format_type: str, file_enabled: bool) -> Processor:
    """Final processor: JSON lines for files, console rendering otherwise."""
    if format_type != "structured":
        return structlog.dev.ConsoleRenderer(colors=True)
    if file_enabled:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _setup_file_logging(
    file_path: str,
    max_file_size: str,
    backup_count: int,
    log_level: int,
) -> None:
    log_file = Path(file_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=_parse_file_size(max_file_size),
        backupCount=backup_count,
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.getLogger().addHandler(handler)


def _parse_file_size(size_str: str) -> int:
    """Bytes for a size such as "512", "10KB" or "1gb"."""
    size_str = size_str.strip().upper()
    for suffix, multiplier in _SIZE_UNITS.items():
        if size_str.endswith(suffix):
            return int(size_str[: -len(suffix)]) * multiplier
    return int(size_str)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_performance(operation: str, duration_ms: float, **context: Any) -> None:
    """Emit a timing event on the "performance" logger."""
    get_logger("performance").info(
        "Performance metric",
        operation=operation,
        duration_ms=duration_ms,
        **context,
    )
