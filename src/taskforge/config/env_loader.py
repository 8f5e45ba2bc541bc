"""``.env`` files from the directory the CLI was started in.

A project can pin its own cost thresholds or backend hosts next to its code.
Files are layered by ``TASKFORGE_ENV`` and never override variables that are
already exported.
"""

import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from taskforge.telemetry import get_logger

log = get_logger(__name__)


class Environment(str, Enum):
    """Deployment flavour selecting which ``.env.<name>`` files apply."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


_ALIASES = {"prod": Environment.PRODUCTION}


def get_environment() -> Environment:
    """``TASKFORGE_ENV`` as an Environment; ``prod`` is accepted, anything else is development."""
    raw = os.getenv("TASKFORGE_ENV", "").strip().lower()
    if raw in _ALIASES:
        return _ALIASES[raw]
    try:
        return Environment(raw)
    except ValueError:
        return Environment.DEVELOPMENT


def _candidates(directory: Path, env_name: str) -> list[Path]:
    # Most specific first; python-dotenv keeps the first value it sets.
    return [
        directory / f".env.{env_name}.local",
        directory / f".env.{env_name}",
        directory / ".env.local",
        directory / ".env",
    ]


def load_env_files(project_root: Path | None = None) -> list[Path]:
    """Export variables from the ``.env`` layers present in ``project_root``.

    Args:
        project_root: Directory to look in; the working directory when None.

    Returns:
        Files actually read, least specific first.
    """
    directory = project_root or Path.cwd()
    env_name = get_environment().value

    present = [path for path in _candidates(directory, env_name) if path.is_file()]
    for path in present:
        load_dotenv(path, override=False)

    present.reverse()
    log.debug(
        "env_files_loaded" if present else "no_env_files_found",
        environment=env_name,
        files=[path.name for path in present],
        directory=str(directory),
    )
    return present
