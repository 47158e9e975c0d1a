"""Logging setup for engine runs: console and rotating file output."""

import json
import logging
import logging.handlers
import os
from pathlib import Path
from typing import List, Optional

# Attributes of a bare LogRecord; anything else came from extra={} or LogContext
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

STANDARD_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
STANDARD_DATEFMT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Context fields such as ``user_id`` become top-level keys. Decimal hours
    and other non-JSON values are written with str().
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )
        return json.dumps(payload, default=str)


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


class LoggingConfig:
    """
    Where and how engine logs are written.

    Attributes:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (case-insensitive)
        log_format: ``standard`` text lines or ``json`` objects
        log_file: Target path for file output
        enable_console: Write to stderr
        enable_file: Write to a rotating file (requires log_file)
        max_file_size: Rotation size in bytes
        backup_count: Rotated files to keep
    """

    VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    VALID_FORMATS = {"standard", "json"}

    def __init__(
        self,
        log_level: str = "INFO",
        log_format: str = "standard",
        log_file: Optional[str] = None,
        enable_console: bool = True,
        enable_file: bool = False,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        backup_count: int = 5,
    ):
        level = log_level.upper()
        if level not in self.VALID_LEVELS:
            raise ValueError(
                f"Invalid log level: {log_level}. "
                f"Must be one of {', '.join(sorted(self.VALID_LEVELS))}"
            )
        if log_format not in self.VALID_FORMATS:
            raise ValueError(
                f"Invalid log format: {log_format}. "
                f"Must be one of {', '.join(sorted(self.VALID_FORMATS))}"
            )
        if enable_file and not log_file:
            raise ValueError("log_file must be specified when enable_file is True")

        self.log_level = level
        self.log_format = log_format
        self.log_file = log_file
        self.enable_console = enable_console
        self.enable_file = enable_file
        self.max_file_size = max_file_size
        self.backup_count = backup_count

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """Read the ``OTPLUS_LOG_*`` variables.

        LEVEL, FORMAT and FILE map to the matching attributes; CONSOLE and
        FILE_ENABLED take ``true``/``false``; MAX_FILE_SIZE and
        BACKUP_COUNT take integers.
        """
        return cls(
            log_level=os.getenv("OTPLUS_LOG_LEVEL", "INFO"),
            log_format=os.getenv("OTPLUS_LOG_FORMAT", "standard"),
            log_file=os.getenv("OTPLUS_LOG_FILE"),
            enable_console=_env_flag("OTPLUS_LOG_CONSOLE", True),
            enable_file=_env_flag("OTPLUS_LOG_FILE_ENABLED", False),
            max_file_size=int(
                os.getenv("OTPLUS_LOG_MAX_FILE_SIZE", str(DEFAULT_MAX_FILE_SIZE))
            ),
            backup_count=int(os.getenv("OTPLUS_LOG_BACKUP_COUNT", "5")),
        )


def _clear_root_handlers() -> logging.Logger:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    return root


def configure_logging(config: LoggingConfig) -> None:
    """
    Install handlers on the root logger, replacing any existing ones.

    Each handler carries the LogContext filter so per-user fields reach
    the output.
    """
    from otplus.utils.logging_utils import _ContextFilter

    root = _clear_root_handlers()
    level = getattr(logging, config.log_level)
    root.setLevel(level)

    handlers: List[logging.Handler] = []
    if config.enable_console:
        handlers.append(logging.StreamHandler())
    if config.enable_file and config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=config.log_file,
                maxBytes=config.max_file_size,
                backupCount=config.backup_count,
            )
        )

    formatter = (
        JSONFormatter()
        if config.log_format == "json"
        else logging.Formatter(fmt=STANDARD_FORMAT, datefmt=STANDARD_DATEFMT)
    )
    context_filter = _ContextFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root.addHandler(handler)


def reset_logging() -> None:
    """Remove all root handlers and restore the WARNING level."""
    _clear_root_handlers().setLevel(logging.WARNING)
