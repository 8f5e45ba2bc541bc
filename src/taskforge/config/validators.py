"""Field validators shared by ``AppConfig`` and the bootstrap readers."""

from pathlib import Path

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "console")
SKIP_POLICIES = ("continue", "abort")


def validate_choice(field: str, value: str, choices: tuple[str, ...]) -> str:
    """Match ``value`` case-insensitively against ``choices``.

    Args:
        field: Setting name used in the error message.
        value: Raw value from the environment or a ``.env`` file.
        choices: Accepted values in canonical case.

    Returns:
        The matching choice in its canonical case.

    Raises:
        ValueError: If nothing matches.
    """
    for choice in choices:
        if value.strip().lower() == choice.lower():
            return choice
    raise ValueError(f"{field} must be one of {', '.join(choices)}; got {value!r}")


def validate_log_level(value: str) -> str:
    """``debug`` → ``DEBUG``; raises ValueError on unknown levels."""
    return validate_choice("log_level", value, LOG_LEVELS)


def validate_log_format(value: str) -> str:
    return validate_choice("log_format", value, LOG_FORMATS)


def validate_skip_policy(value: str) -> str:
    """What a pipeline does after a declined checkpoint: ``continue`` or ``abort``."""
    return validate_choice("checkpoint_skip_policy", value, SKIP_POLICIES)


def resolve_home_path(value: Path | str) -> Path:
    """Expand ``~`` and make a relative home directory absolute against the cwd."""
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path.resolve()
