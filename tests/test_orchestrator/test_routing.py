"""Tests for Tier 1 and Tier 2 model routing."""

import pytest

from taskforge.config import default_identity
from taskforge.orchestrator.classifier import classify_task
from taskforge.orchestrator.routing import (
    Route,
    fallback_model_for_command,
    normalize_human_model_name,
    pick_department_model,
    resolve_tier_one_route,
    resolve_tier_two_route,
)


class TestFallback:
    """Test the per-command fallback table."""

    @pytest.mark.parametrize(
        ("command", "task", "model"),
        [
            ("commit", "", "ollama-qwen2.5-coder"),
            ("research", "x", "gemini-2.0-pro"),
            ("summarize", "notes", "gemini-2.0-flash"),
            ("debug", "flaky test", "ollama-deepseek-r1"),
            ("debug", "production outage", "claude-code"),
            ("ask", "hello", "ollama-qwen2.5-coder"),
        ],
    )
    def test_command_table(self, command: str, task: str, model: str) -> None:
        assert fallback_model_for_command(command, classify_task(command, task)) == model

    def test_explicit_model_wins(self) -> None:
        classification = classify_task("commit", "")
        assert fallback_model_for_command("commit", classification, "ollama", "claude") == (
            "claude-code"
        )

    def test_explicit_backend_default(self) -> None:
        classification = classify_task("ask", "hi")
        assert fallback_model_for_command("ask", classification, "openai") == "gpt-4.5"


def test_normalize_human_model_name() -> None:
    assert normalize_human_model_name("Claude Code") == "claude-code"
    assert normalize_human_model_name("Gemini  Flash") == "gemini-2.5-flash"
    assert normalize_human_model_name("") is None


class TestDepartmentModel:
    """Test department-driven model selection with the built-in identity."""

    def test_engineering_medium_prefers_complex(self) -> None:
        classification = classify_task("build", "add an endpoint")
        assert pick_department_model(default_identity(), classification) == "claude-code"

    def test_engineering_low_prefers_simple(self) -> None:
        classification = classify_task("ask", "hello", deep=True)
        assert pick_department_model(default_identity(), classification) == (
            "ollama-qwen2.5-coder"
        )

    def test_research_prefers_deep(self) -> None:
        classification = classify_task("research", "vector stores")
        assert pick_department_model(default_identity(), classification) == "gemini-2.5-pro"

    def test_summarization_prefers_quick(self) -> None:
        classification = classify_task("summarize", "meeting notes")
        assert pick_department_model(default_identity(), classification) == "gemini-2.5-flash"


class TestRoutes:
    """Test full route resolution."""

    def test_tier_one(self) -> None:
        route = resolve_tier_one_route("commit", classify_task("commit", ""))
        assert route == Route(model="ollama-qwen2.5-coder", backend="ollama")

    def test_tier_one_explicit_backend(self) -> None:
        route = resolve_tier_one_route("ask", classify_task("ask", "hi"), explicit_backend="gemini")
        assert route == Route(model="gemini-2.0-pro", backend="gemini")

    def test_tier_two_uses_department(self) -> None:
        classification = classify_task("research", "vector stores")
        route = resolve_tier_two_route("research", classification, default_identity())
        assert route == Route(model="gemini-2.5-pro", backend="gemini")

    def test_tier_two_pinned_backend_skips_department(self) -> None:
        classification = classify_task("build", "add an endpoint")
        route = resolve_tier_two_route(
            "build", classification, default_identity(), explicit_backend="ollama"
        )
        assert route == Route(model="ollama-qwen2.5-coder", backend="ollama")

    def test_tier_two_explicit_model(self) -> None:
        classification = classify_task("build", "add an endpoint")
        route = resolve_tier_two_route(
            "build", classification, default_identity(), explicit_model="o3-mini"
        )
        assert route == Route(model="o3-mini", backend="openai")
