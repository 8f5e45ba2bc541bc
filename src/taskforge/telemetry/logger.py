"""Structured logging configuration using structlog.

Two sinks share one processor chain:
- ``<home>/logs/taskforge.jsonl``: JSON lines at INFO and above, rotated
- stderr: human-readable or JSON (``TASKFORGE_LOG_FORMAT``) at the configured level

Every entry carries a UTC timestamp and the ``component`` (last segment of
the logger name), so ``task_started`` from ``taskforge.orchestrator.pipeline``
is filed under ``pipeline``.
"""

import logging
import logging.handlers
import pathlib
import sys
from typing import Any

import structlog

LOG_FILE_NAME = "taskforge.jsonl"
LOG_FILE_MAX_BYTES = 20 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Third-party loggers that are chatty at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def _get_log_level() -> str:
    # Bootstrap from environment to avoid circular imports during startup.
    from taskforge.config.bootstrap import get_bootstrap_log_level  # noqa: PLC0415

    return get_bootstrap_log_level()


def _get_log_format() -> str:
    from taskforge.config.bootstrap import get_bootstrap_log_format  # noqa: PLC0415

    return get_bootstrap_log_format()


def _get_log_dir() -> pathlib.Path:
    from taskforge.config.bootstrap import get_bootstrap_home  # noqa: PLC0415

    return get_bootstrap_home() / "logs"


def _add_component(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Derive ``component`` from the logger name.

    Works for structlog events (name stored by ``add_logger_name``) and for
    foreign stdlib records, whose logger may be None during interpreter
    shutdown.
    """
    name = event_dict.get("logger") or getattr(logger, "name", None) or ""
    event_dict["component"] = name.rsplit(".", 1)[-1] or "unknown"
    return event_dict


def _foreign_pre_chain() -> list[Any]:
    """Processors applied to records from plain ``logging`` loggers."""
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        _add_component,
    ]


def _renderer(log_format: str) -> Any:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _configure_file_handler(log_dir: pathlib.Path) -> logging.Handler | None:
    """Rotating JSON-lines handler in ``log_dir``.

    Returns:
        The handler, or None when the directory cannot be created or written.
    """
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename=str(log_dir / LOG_FILE_NAME),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
    except OSError:
        return None

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer("json"),
            foreign_pre_chain=_foreign_pre_chain(),
        )
    )
    handler.setLevel(logging.INFO)
    return handler


def _configure_console_handler(log_level: str, log_format: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=_foreign_pre_chain(),
        )
    )
    handler.setLevel(getattr(logging, log_level, logging.WARNING))
    return handler


def configure_logging() -> None:
    """Configure structlog and the root logger.

    Called by the CLI at startup; ``get_logger`` calls it lazily when nothing
    has configured structlog yet. The file sink always records INFO so the
    ledger-relevant events survive a quiet console.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    file_handler = _configure_file_handler(_get_log_dir())
    if file_handler is not None:
        root_logger.addHandler(file_handler)
    root_logger.addHandler(_configure_console_handler(_get_log_level(), _get_log_format()))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _add_component,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:  # Returns structlog.stdlib.BoundLogger
    """Get a structured logger, configuring logging on first use.

    Args:
        name: Logger name (typically ``__name__`` of the calling module).

    Example:
        >>> from taskforge.telemetry import get_logger
        >>> log = get_logger(__name__)
        >>> log.info("task_started", command="build", trace_id="abc")
    """
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name)
