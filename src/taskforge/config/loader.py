"""YAML documents in the home directory, parsed into pydantic models.

``models.yaml`` and ``brain.yaml`` go through ``load_yaml_model``: read,
require a top-level mapping, validate, and report every problem as one
``ConfigLoadError`` (or a subclass) naming the file.
"""

from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from taskforge.telemetry import get_logger

log = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ConfigLoadError(Exception):
    """A configuration file is missing, unreadable or invalid."""

    pass


def load_yaml_file(
    file_path: Path, error_class: type[Exception] = ConfigLoadError
) -> dict[str, Any]:
    """Read a YAML mapping; an empty file yields ``{}``.

    Raises:
        error_class: Missing file, unreadable file, YAML syntax error, or a
            top-level value that is not a mapping.
    """
    try:
        text = file_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise error_class(f"Configuration file not found: {file_path}") from None
    except OSError as e:
        raise error_class(f"Cannot read {file_path}: {e}") from None

    try:
        content = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise error_class(f"Invalid YAML in {file_path}: {e}") from None

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise error_class(f"Expected a mapping at the top of {file_path}")
    return content


def format_validation_error(error: ValidationError) -> str:
    """One ``loc -> path: message`` line per validation error."""
    return "\n".join(
        f"{' -> '.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    )


def load_yaml_model(
    file_path: Path,
    model: type[ModelT],
    label: str,
    error_class: type[Exception] = ConfigLoadError,
) -> ModelT:
    """Parse ``file_path`` and validate it as ``model``.

    Args:
        file_path: YAML document.
        model: Pydantic model for the whole document.
        label: Human name used in messages, e.g. "Model registry".
        error_class: Exception raised on any failure.

    Returns:
        The validated document; an empty file gives ``model()``.
    """
    content = load_yaml_file(file_path, error_class=error_class)
    if not content:
        log.warning("config_file_empty", label=label, path=str(file_path))
        return model()
    try:
        return model.model_validate(content)
    except ValidationError as e:
        raise error_class(f"{label} validation failed:\n{format_validation_error(e)}") from None
