"""
Request correlation and shared logging state.

The request id lives in a ContextVar so concurrent requests on the same
event loop each see their own id, including inside the per-chunk tasks
spawned by the batch orchestrator (tasks copy the current context).

Environment Variables:
    - TTS_RELAY_LOG_LEVEL: Override log level (1-4 or name)
    - TTS_RELAY_LOG_DIR: Enable JSONL file output in this directory
    - TTS_RELAY_JSONL_FILE: JSONL filename (default tts-relay.jsonl)
    - TTS_RELAY_LOG_ROTATE_BYTES: Max log file size
    - TTS_RELAY_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """
    Get the request id of the current context.

    Returns:
        The id set by set_request_id(), or "-" outside a request.
    """
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """
    Bind a request id to the current context.

    Called once per speech request (HTTP or CLI item); chunk tasks
    created afterwards inherit the id.

    Args:
        rid: Short request identifier (a uuid4 prefix).
    """
    _request_id.set(rid)


def get_level() -> LogLevel:
    """
    Get the active numeric log level.

    Returns:
        LogLevel (1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG).
    """
    return _current_level


def set_level(level: LogLevel) -> None:
    """
    Change the active log level.

    Args:
        level: New level; already coerced by the caller.
    """
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """
    Get the active log level as a name.

    Returns:
        "MINIMAL", "NORMAL", "VERBOSE" or "DEBUG".
    """
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    """
    Check whether configure_logging() has installed its handlers.

    Returns:
        True once handlers are in place.
    """
    return _configured


def set_configured(value: bool) -> None:
    """
    Mark logging as configured (or not, to force reconfiguration).

    Args:
        value: New configured flag.
    """
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    """
    Get the logging options resolved at configuration time.

    Returns:
        Dictionary from read_logging_config(); empty before configuration.
    """
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    """
    Store the resolved logging options.

    Args:
        config: Dictionary with level, log_dir, jsonl_file and rotation keys.
    """
    global _log_config
    _log_config = config


def _int_env(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from settings.yaml and the environment.

    The settings file is read directly (not through core.config) so that
    logging can be configured before anything else is imported. A missing
    or unreadable file simply contributes nothing.

    Returns:
        Dictionary with level, log_dir, jsonl_file and rotation options.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("TTS_RELAY_SETTINGS", "config/settings.yaml")
    if os.path.exists(settings_path):
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            cfg.update(raw.get("logging", {}) or {})
        except (OSError, yaml.YAMLError, AttributeError):
            pass

    if os.getenv("TTS_RELAY_LOG_LEVEL"):
        cfg["level"] = os.environ["TTS_RELAY_LOG_LEVEL"]
    if os.getenv("TTS_RELAY_LOG_DIR"):
        cfg["log_dir"] = os.environ["TTS_RELAY_LOG_DIR"]
    if os.getenv("TTS_RELAY_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["TTS_RELAY_JSONL_FILE"]

    rotate_bytes = _int_env("TTS_RELAY_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _int_env("TTS_RELAY_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
