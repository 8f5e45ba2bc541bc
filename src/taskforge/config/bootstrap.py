"""Environment reads needed before ``AppConfig`` can be built.

Logging is configured while the settings module is still importing, so the
log level, log format and home directory are read straight from the
environment here. Invalid values fall back to defaults instead of raising;
``AppConfig`` validates the same variables strictly later on.

This module must not import telemetry.
"""

import os
from collections.abc import Callable
from pathlib import Path

from taskforge.config.validators import resolve_home_path, validate_log_format, validate_log_level

DEFAULT_HOME = "~/.taskforge"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_LOG_FORMAT = "console"


def _env_or_default(name: str, default: str, validate: Callable[[str], str]) -> str:
    try:
        return validate(os.getenv(name) or default)
    except ValueError:
        return validate(default)


def get_bootstrap_log_level(default: str = DEFAULT_LOG_LEVEL) -> str:
    """Console log level from ``TASKFORGE_LOG_LEVEL``, uppercased."""
    return _env_or_default("TASKFORGE_LOG_LEVEL", default, validate_log_level)


def get_bootstrap_log_format(default: str = DEFAULT_LOG_FORMAT) -> str:
    """Console log format (``console`` or ``json``) from ``TASKFORGE_LOG_FORMAT``."""
    return _env_or_default("TASKFORGE_LOG_FORMAT", default, validate_log_format)


def get_bootstrap_home() -> Path:
    """Absolute ``TASKFORGE_HOME``, ``~/.taskforge`` when unset."""
    return resolve_home_path(os.getenv("TASKFORGE_HOME") or DEFAULT_HOME)
