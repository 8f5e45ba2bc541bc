"""Tests for the model registry loader."""

from pathlib import Path

import pytest

from taskforge.config import (
    ModelConfigError,
    MtimeCache,
    default_model_registry,
    load_model_registry,
)


@pytest.fixture
def models_file(tmp_path: Path) -> Path:
    path = tmp_path / "models.yaml"
    path.write_text(
        """
models:
  gemini-2.5-flash:
    provider: google
    access: cli
    context_window: 1048576
    cost: {input_per_1m: 0.15, output_per_1m: 0.6}
  ollama-qwen2.5-coder:
    provider: local
    access: http
    cost: {input_per_1m: 0.0, output_per_1m: 0.0}
routing_principles:
  - Try local first
"""
    )
    return path


def test_load_valid_registry(models_file: Path) -> None:
    registry = load_model_registry(models_file)

    flash = registry.get("gemini-2.5-flash")
    assert flash is not None
    assert flash.cost.input_per_1m == 0.15
    assert flash.context_window == 1048576
    assert registry.get("unknown") is None
    assert registry.routing_principles == ["Try local first"]


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ModelConfigError, match="not found"):
        load_model_registry(tmp_path / "models.yaml")


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    path = tmp_path / "models.yaml"
    path.write_text("models: [unterminated\n")
    with pytest.raises(ModelConfigError):
        load_model_registry(path)


def test_negative_price_rejected(tmp_path: Path) -> None:
    path = tmp_path / "models.yaml"
    path.write_text("models:\n  bad:\n    cost: {input_per_1m: -1}\n")
    with pytest.raises(ModelConfigError, match="validation failed"):
        load_model_registry(path)


def test_empty_file_is_empty_registry(tmp_path: Path) -> None:
    path = tmp_path / "models.yaml"
    path.write_text("")
    assert load_model_registry(path).models == {}


def test_cached_registry_reused(models_file: Path) -> None:
    cache = MtimeCache()
    first = load_model_registry(models_file, cache)
    assert load_model_registry(models_file, cache) is first
    assert models_file in cache


def test_default_registry_prices() -> None:
    registry = default_model_registry()
    claude = registry.get("claude-code")
    assert claude is not None
    assert claude.cost.input_per_1m == 3.0
    assert claude.cost.output_per_1m == 15.0
    jules = registry.get("jules-cli")
    assert jules is not None
    assert jules.cost.input_per_1m is None
