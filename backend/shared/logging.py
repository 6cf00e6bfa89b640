"""Structured logging for the portal with structlog.

Environment variables:
- LOG_FORMAT: "json" for production log aggregation, "console" or unset for
  human-readable colored output.
- LOG_LEVEL: "DEBUG", "INFO" (default), "WARNING", "ERROR", or "CRITICAL".

Values under SENSITIVE_KEYS are masked before any renderer sees them.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Collection, MutableMapping
    from typing import Any

    from structlog.typing import Processor

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

LOG_FORMATS = frozenset({"json", "console", ""})
LOG_LEVELS = frozenset({"debug", "info", "warning", "error", "critical"})

# Event keys whose values must never reach a log sink.
SENSITIVE_KEYS = frozenset({"code", "cookie", "secret", "signature", "state", "token", "totp_secret", "api_key"})
REDACTED = "[redacted]"

# Loggers of outbound HTTP clients; request lines would include OAuth codes.
QUIET_LOGGERS = ("httpx", "httpcore", "stripe")


def _plain_enums(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Log StrEnum values (subscription states, error codes) as their plain value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def redact_sensitive(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Mask values logged under sensitive keys (magic-link codes, OAuth state, secrets)."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def event_processors(*, timestamps: bool = True) -> list[Processor]:
    """Processor chain shared by the app and the test suite, up to the stdlib hand-off."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]
    if timestamps:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        _plain_enums,
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    return processors


def configure_structlog(*, timestamps: bool = True) -> None:
    """Route structlog through stdlib logging; rendering happens in handler formatters."""
    structlog.configure(
        processors=event_processors(timestamps=timestamps),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _env_choice(name: str, default: str, allowed: Collection[str]) -> str:
    """Read an env var case-insensitively and fail startup on values outside ``allowed``."""
    value = os.environ.get(name, default).lower()
    if value not in allowed:
        choices = ", ".join(repr(choice) for choice in sorted(allowed) if choice)
        msg = f"Invalid {name}={value!r}. Expected one of {choices}."
        raise ValueError(msg)
    return value


def _formatter(*, json_mode: bool, colors: bool) -> logging.Formatter:
    renderer: Processor = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def setup_logging(log_dir: Path | str | None = None, level: int | None = None) -> Path | None:
    """Configure structlog with stdout and an optional timestamped log file.

    Returns the log file path when one was opened.
    """
    json_mode = _env_choice("LOG_FORMAT", "", LOG_FORMATS) == "json"
    if level is None:
        level = logging.getLevelNamesMapping()[_env_choice("LOG_LEVEL", "info", LOG_LEVELS).upper()]

    configure_structlog()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(_formatter(json_mode=json_mode, colors=sys.stdout.isatty()))
    root_logger.addHandler(stdout_handler)

    if log_dir is None:
        return None

    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    file_path = dir_path / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    file_handler = logging.FileHandler(file_path)
    file_handler.setFormatter(_formatter(json_mode=json_mode, colors=False))
    root_logger.addHandler(file_handler)
    return file_path
