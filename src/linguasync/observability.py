from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional


LOGGER_NAME = "linguasync"

# Environment variables for configuration
ENV_LOG_DIR = "LINGUASYNC_LOG_DIR"
ENV_LOG_LEVEL = "LINGUASYNC_LOG_LEVEL"
ENV_LOG_MAX_BYTES = "LINGUASYNC_LOG_MAX_BYTES"
ENV_LOG_BACKUP_COUNT = "LINGUASYNC_LOG_BACKUP_COUNT"
ENV_LOG_DISABLE_FILE = "LINGUASYNC_LOG_DISABLE_FILE"

# Defaults
DEFAULT_LOG_DIR = Path.home() / ".linguasync" / "logs"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5

_logger_initialized = False
_session_start = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")

_FORMATTER = logging.Formatter(
    "[%(levelname)s %(asctime)s] %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)


def _get_log_level(level_name: Optional[str] = None) -> int:
    """Get log level from the argument or environment, defaulting to INFO."""
    level_name = (level_name or os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
    return getattr(logging, level_name, logging.INFO)


def _file_logging_disabled() -> bool:
    return os.getenv(ENV_LOG_DISABLE_FILE, "").lower() in ("1", "true", "yes")


def _get_log_file_path(log_dir: Optional[str] = None) -> Optional[Path]:
    """Get the log file path, creating directories if needed.

    Returns None if file logging is disabled via LINGUASYNC_LOG_DISABLE_FILE=1.
    """
    if _file_logging_disabled():
        return None

    directory = Path(log_dir or os.getenv(ENV_LOG_DIR) or DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)

    # Session-based filename: linguasync_2024-01-15_143022.log
    return directory / f"linguasync_{_session_start}.log"


def _install_handlers(
    logger: logging.Logger,
    *,
    level: int,
    log_dir: Optional[str],
    disable_file: bool,
    max_bytes: int,
    backup_count: int,
    stream_level: int,
) -> None:
    logger.handlers.clear()
    logger.setLevel(level)

    log_file = None if disable_file else _get_log_file_path(log_dir)
    if log_file:
        file_handler = RotatingFileHandler(
            str(log_file),
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(_FORMATTER)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(_FORMATTER)
    stream_handler.setLevel(stream_level)
    logger.addHandler(stream_handler)


def _get_logger() -> logging.Logger:
    """Get or initialize the linguasync logger.

    By default, logs to ~/.linguasync/logs/linguasync_<session>.log

    Configuration via environment variables:
    - LINGUASYNC_LOG_DIR: Directory for log files (default: ~/.linguasync/logs/)
    - LINGUASYNC_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - LINGUASYNC_LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
    - LINGUASYNC_LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    - LINGUASYNC_LOG_DISABLE_FILE: Set to 1 to disable file logging (stderr only)
    """
    global _logger_initialized
    logger = logging.getLogger(LOGGER_NAME)

    if not _logger_initialized:
        _logger_initialized = True
        level = _get_log_level()
        _install_handlers(
            logger,
            level=level,
            log_dir=None,
            disable_file=_file_logging_disabled(),
            max_bytes=int(os.getenv(ENV_LOG_MAX_BYTES, DEFAULT_MAX_BYTES)),
            backup_count=int(os.getenv(ENV_LOG_BACKUP_COUNT, DEFAULT_BACKUP_COUNT)),
            # Only warnings and above reach stderr by default
            stream_level=max(level, logging.WARNING),
        )

    return logger


def configure_logging(
    *,
    level: Optional[str] = None,
    log_dir: Optional[str] = None,
    disable_file: bool = False,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    verbose: bool = False,
) -> logging.Logger:
    """(Re)configure the package logger from resolved configuration.

    ``verbose`` mirrors INFO progress to stderr, which the CLI uses for
    interactive runs.
    """
    global _logger_initialized
    _logger_initialized = True
    logger = logging.getLogger(LOGGER_NAME)
    resolved = _get_log_level(level)
    stream_level = min(resolved, logging.INFO) if verbose else max(resolved, logging.WARNING)
    if verbose and resolved > logging.INFO:
        resolved = logging.INFO
    _install_handlers(
        logger,
        level=resolved,
        log_dir=log_dir,
        disable_file=disable_file or _file_logging_disabled(),
        max_bytes=max_bytes,
        backup_count=backup_count,
        stream_level=stream_level,
    )
    return logger


def _with_fields(message: str, fields: Dict[str, Any]) -> str:
    if not fields:
        return message
    return f"{message} {json.dumps(fields, separators=(',', ':'), sort_keys=True, default=str)}"


def log_action(
    action: str,
    *,
    outcome: str = "ok",
    duration_ms: Optional[float] = None,
    **fields: Any,
) -> None:
    """Emit a structured log line for an action.

    Fields are serialized to JSON for safety. Keep schema lightweight.

    Args:
        action: Name of the action being logged (e.g. "create_file", "fetch")
        outcome: Result status ("ok", "error", "skipped", ...)
        duration_ms: How long the action took in milliseconds
        **fields: Additional fields to include
    """
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "outcome": outcome,
    }
    if duration_ms is not None:
        payload["duration_ms"] = round(duration_ms, 2)
    if fields:
        payload.update(fields)

    _get_logger().info(json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str))


def log_info(message: str, **fields: Any) -> None:
    """Log a progress message with optional structured fields."""
    _get_logger().info(_with_fields(message, fields))


def log_debug(message: str, **fields: Any) -> None:
    """Log a debug message with optional structured fields.

    Only emitted when log level is DEBUG.
    """
    logger = _get_logger()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(_with_fields(message, fields))


def log_warning(message: str, **fields: Any) -> None:
    """Log a warning message with optional structured fields."""
    _get_logger().warning(_with_fields(message, fields))


def log_error(message: str, **fields: Any) -> None:
    """Log an error message with optional structured fields."""
    _get_logger().error(_with_fields(message, fields))


@contextmanager
def timeit(action: str, **fields: Any):
    """Time a block and emit a structured log on exit.

    On exception, logs outcome="error" and re-raises.

    Yields:
        A dict the block can fill with extra result fields
    """
    start = time.perf_counter()
    result_info: Dict[str, Any] = {}
    try:
        yield result_info
    except Exception as exc:
        duration_ms = (time.perf_counter() - start) * 1000.0
        log_action(
            action,
            outcome="error",
            duration_ms=duration_ms,
            error=type(exc).__name__,
            **fields,
        )
        raise
    duration_ms = (time.perf_counter() - start) * 1000.0
    log_action(action, outcome="ok", duration_ms=duration_ms, **{**fields, **result_info})
