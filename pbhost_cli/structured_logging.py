"""
Structured logging support.

JSON-formatted logging is enabled via PBHOST_LOG_FORMAT=json. Diagnostics go
to stderr so they never mix with command output such as `pbhost list --json`.
"""

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any

DEFAULT_LEVEL = "WARNING"

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_FIELDS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
    "command",
}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Outputs one JSON object per line with:
    - timestamp: ISO 8601 timestamp
    - level: Log level
    - logger: Logger name
    - message: Log message
    - command: pbhost command being run, when known
    - any extra fields passed to the logger
    """

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z"

        log_entry: dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        command = getattr(record, "command", None)
        if command:
            log_entry["command"] = command

        if record.pathname:
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_FIELDS and not key.startswith("_"):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class CommandContextFilter(logging.Filter):
    """Stamps every record with the pbhost command being run"""

    def __init__(self, command: str | None = None):
        super().__init__()
        self.command = command

    def filter(self, record: logging.LogRecord) -> bool:
        if self.command and not hasattr(record, "command"):
            record.command = self.command
        return True


def is_json_logging_enabled() -> bool:
    """True if PBHOST_LOG_FORMAT=json"""
    return os.getenv("PBHOST_LOG_FORMAT", "text").lower() == "json"


def level_for_verbosity(verbosity: int) -> str:
    """Map -v count to a level name: 0 → WARNING, 1 → INFO, 2+ → DEBUG"""
    if verbosity >= 2:
        return "DEBUG"
    if verbosity == 1:
        return "INFO"
    return DEFAULT_LEVEL


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    command: str | None = None,
    force: bool = True,
) -> None:
    """
    Setup logging based on environment variables.

    Environment variables:
    - PBHOST_LOG_FORMAT: "json" or "text" (default: text)
    - PBHOST_LOG_LEVEL: Log level (default: WARNING)
    - PBHOST_LOG_FILE: Optional log file path

    Args:
        level: Override log level (uses PBHOST_LOG_LEVEL if None)
        log_file: Override log file (uses PBHOST_LOG_FILE if None)
        command: Command name attached to every record
        force: Force reconfiguration of root logger
    """
    if level is None:
        level = os.getenv("PBHOST_LOG_LEVEL", DEFAULT_LEVEL)
    if log_file is None:
        log_file = os.getenv("PBHOST_LOG_FILE")

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            print(f"Warning: Could not open log file {log_file}: {e}", file=sys.stderr)

    if is_json_logging_enabled():
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    context = CommandContextFilter(command)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context)

    logging.basicConfig(level=level.upper(), handlers=handlers, force=force)
