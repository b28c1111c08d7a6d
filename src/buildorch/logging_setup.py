# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging setup for the build orchestrator."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

DEFAULT_LOG_DIR_NAME = ".buildorch_logs"

# Third-party loggers that flood DEBUG output with filesystem and git chatter
QUIET_LOGGERS = {
    "watchdog": logging.WARNING,
    "git": logging.WARNING,
}

LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Marks handlers installed here so repeated setup replaces only its own
_HANDLER_FLAG = "_buildorch_handler"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add any extra fields
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
) -> Path:
    """Set up structured logging for the application.

    Calling it again replaces the handlers installed by the previous call and
    leaves handlers installed by anything else in place.

    Args:
        log_dir: Directory for log files. If None, uses .buildorch_logs/
        log_level: Logging level (default: INFO)
        console_output: Whether to also output to console (default: True)

    Returns:
        Path of the JSON log file.
    """
    if log_dir is None:
        log_dir = Path.cwd() / DEFAULT_LOG_DIR_NAME

    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in [h for h in root_logger.handlers if getattr(h, _HANDLER_FLAG, False)]:
        root_logger.removeHandler(handler)
        handler.close()

    # File handler with structured JSON logging
    log_file = log_dir / f"buildorch_{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(StructuredFormatter())
    _install(root_logger, file_handler)

    # Console handler with human-readable format (if enabled)
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        console_handler.setFormatter(console_formatter)
        _install(root_logger, console_handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logging.info(f"Logging initialized. Log directory: {log_dir}")
    return log_file


def set_logger_levels(levels: Mapping[str, str]) -> None:
    """Apply per-logger levels, e.g. {"buildorch.dependency_graph": "WARNING"}.

    Raises:
        ValueError: If a level is not one of LEVEL_NAMES.
    """
    for name, level in levels.items():
        level_name = level.upper()
        if level_name not in LEVEL_NAMES:
            raise ValueError(f"Unknown log level {level!r} for logger {name!r}")
        logging.getLogger(name).setLevel(level_name)
        logging.debug(f"Log level of {name} set to {level_name}")


def _install(root_logger: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_FLAG, True)
    root_logger.addHandler(handler)
