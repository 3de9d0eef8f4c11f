"""
Request Context and Configuration State for Logging.

The request ID lives in a ContextVar so that log lines emitted while
rendering one pronunciation (cache lookup, backend call, persist) can be
correlated, including lines emitted from job worker threads that set
their own ID.

Environment Variables:
    - PHONOS_LOG_LEVEL: Override log level (1-4 or name)
    - PHONOS_LOG_DIR: Directory for the JSONL log file
    - PHONOS_JSONL_FILE: JSONL filename (default phonos-ms.jsonl)
    - PHONOS_LOG_ROTATE_BYTES: Max log file size before rotation
    - PHONOS_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request ID for the current context, or "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request ID to the current context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging configuration.

    Priority (highest first):
        1. PHONOS_LOG_* environment variables
        2. ``logging`` section of the settings file (PHONOS_SETTINGS)
        3. Defaults applied by configure_logging()

    Returns:
        Dictionary with any of: level, log_dir, jsonl_file,
        rotate_max_bytes, rotate_backup_count.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("PHONOS_SETTINGS", "config/settings.yaml")
    if os.path.exists(settings_path):
        from phonos_ms.core.config import ConfigValidationError, load_settings
        try:
            settings = load_settings(settings_path)
        except (OSError, ConfigValidationError):
            settings = None
        if settings is not None:
            cfg.update(settings.raw.get("logging", {}) or {})

    if os.getenv("PHONOS_LOG_LEVEL"):
        cfg["level"] = os.environ["PHONOS_LOG_LEVEL"]
    if os.getenv("PHONOS_LOG_DIR"):
        cfg["log_dir"] = os.environ["PHONOS_LOG_DIR"]
    if os.getenv("PHONOS_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["PHONOS_JSONL_FILE"]

    rotate_bytes = _env_int("PHONOS_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _env_int("PHONOS_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
