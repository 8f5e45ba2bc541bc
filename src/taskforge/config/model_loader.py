"""Load and validate the model capability registry from YAML.

- Loads ``<home>/models.yaml``
- Validates against the Pydantic schema
- Returns a typed ModelRegistry, cached by file mtime when a cache is given
"""

from pathlib import Path

import yaml

from taskforge.backends.models import ModelRegistry
from taskforge.config.cache import MtimeCache
from taskforge.config.defaults import DEFAULT_MODELS_YAML
from taskforge.config.loader import ConfigLoadError, load_yaml_model
from taskforge.telemetry import get_logger

log = get_logger(__name__)


class ModelConfigError(ConfigLoadError):
    """Raised when the model registry cannot be loaded or is invalid."""

    pass


def _parse_model_registry(config_path: Path) -> ModelRegistry:
    if not config_path.is_file():
        raise ModelConfigError(f"Model registry not found: {config_path}")

    registry = load_yaml_model(config_path, ModelRegistry, "Model registry", ModelConfigError)

    log.debug("model_registry_loaded", models_count=len(registry.models))
    return registry


def load_model_registry(config_path: Path, cache: MtimeCache | None = None) -> ModelRegistry:
    """Load and validate the model registry.

    Args:
        config_path: Path to models.yaml.
        cache: Optional mtime cache; a cached registry is reused until the
            file changes.

    Returns:
        Validated ModelRegistry.

    Raises:
        ModelConfigError: If the file is missing, unparsable or invalid.
    """
    if cache is None:
        return _parse_model_registry(config_path)
    return cache.get_or_load(config_path, _parse_model_registry)


def default_model_registry() -> ModelRegistry:
    """Registry parsed from the built-in models.yaml seed."""
    return ModelRegistry.model_validate(yaml.safe_load(DEFAULT_MODELS_YAML))
