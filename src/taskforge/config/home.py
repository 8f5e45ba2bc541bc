"""Home directory layout and first-run seeding."""

from pathlib import Path

from taskforge.config.defaults import (
    DEFAULT_BRAIN_YAML,
    DEFAULT_INTENT,
    DEFAULT_MODELS_YAML,
    NOTEBOOK_SEEDS,
)
from taskforge.config.settings import AppConfig
from taskforge.telemetry import get_logger

log = get_logger(__name__)


def _write_if_missing(path: Path, contents: str) -> bool:
    if path.exists():
        return False
    path.write_text(contents, encoding="utf-8")
    return True


def ensure_home(config: AppConfig) -> Path:
    """Create the home directory tree and seed missing configuration files.

    Existing files are never overwritten.

    Args:
        config: Settings naming the home directory.

    Returns:
        The home directory.
    """
    for directory in (
        config.home,
        config.sessions_dir,
        config.worktrees_dir,
        config.notebooks_dir,
        config.reports_dir,
        config.logs_dir,
    ):
        directory.mkdir(parents=True, exist_ok=True)

    seeded = [
        path.name
        for path, contents in (
            (config.models_path, DEFAULT_MODELS_YAML),
            (config.brain_path, DEFAULT_BRAIN_YAML),
            (config.intent_path, DEFAULT_INTENT),
        )
        if _write_if_missing(path, contents)
    ]
    seeded.extend(
        name
        for name, contents in NOTEBOOK_SEEDS.items()
        if _write_if_missing(config.notebooks_dir / name, contents)
    )

    if seeded:
        log.info("home_seeded", home=str(config.home), files=seeded)
    return config.home
