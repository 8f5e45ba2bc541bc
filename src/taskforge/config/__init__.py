"""Unified configuration management for taskforge.

This module provides a single source of truth for all configuration,
integrating environment variables, ``.env`` files, the YAML registries and the
identity document in the home directory.
"""

from taskforge.config.settings import AppConfig, get_settings, load_app_config, reset_settings
from taskforge.config.env_loader import Environment, get_environment
from taskforge.config.cache import MtimeCache
from taskforge.config.loader import ConfigLoadError
from taskforge.config.home import ensure_home
from taskforge.config.identity_loader import (
    Department,
    Identity,
    IdentityLoadError,
    Owner,
    default_identity,
    load_identity,
    parse_intent,
)
from taskforge.config.model_loader import (
    ModelConfigError,
    default_model_registry,
    load_model_registry,
)

__all__ = [
    # App-level settings
    "AppConfig",
    "get_settings",
    "load_app_config",
    "reset_settings",
    "Environment",
    "get_environment",
    "ensure_home",
    "MtimeCache",
    # Configuration loaders
    "load_model_registry",
    "default_model_registry",
    "load_identity",
    "parse_intent",
    "default_identity",
    "Identity",
    "Owner",
    "Department",
    # Exception classes
    "ConfigLoadError",
    "ModelConfigError",
    "IdentityLoadError",
]
