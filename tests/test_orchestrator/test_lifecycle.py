"""Tests for post-task compression and summary storage."""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from conftest import LONG_ANSWER

from taskforge.brain import BrainService
from taskforge.config import AppConfig
from taskforge.orchestrator.classifier import classify_task
from taskforge.orchestrator.lifecycle import (
    compress_execution,
    extract_list,
    project_name,
    render_summary,
    store_summary,
)
from taskforge.orchestrator.types import CostEstimate, ExecutionResult


def test_extract_list_stops_at_next_heading() -> None:
    assert extract_list("decision", LONG_ANSWER) == [
        "Keep the endpoint unauthenticated",
        "Return build metadata alongside status",
    ]
    assert extract_list("prerequisite", LONG_ANSWER) == [
        "Add a readiness probe to the deployment manifest"
    ]
    assert extract_list("nothing", LONG_ANSWER) == []


def test_extract_list_caps_items() -> None:
    text = "## Decisions\n" + "\n".join(f"* item {i}" for i in range(10))
    assert len(extract_list("decision", text)) == 6


def test_project_name(tmp_path: Path) -> None:
    assert project_name(tmp_path / "billing") == "billing"


class TestCompress:
    """Test compress_execution and render_summary."""

    def test_extracts_sections(self) -> None:
        classification = classify_task("build", "add an endpoint", ["src/api.py"])
        result = ExecutionResult(
            text=LONG_ANSWER,
            model="claude-code",
            usage={"prompt_tokens": 100, "completion_tokens": 50},
        )

        summary = compress_execution(
            "build",
            "add an endpoint",
            result,
            "claude",
            classification,
            CostEstimate("claude-code", 10, 10, 0.25),
            "billing",
        )

        assert summary.task == "build: add an endpoint"
        assert summary.decisions[0] == "Keep the endpoint unauthenticated"
        assert summary.patterns == ["Thin handlers delegating to services"]
        assert summary.tags == ["engineering", "implementation", "medium", "api.py"]
        assert (summary.prompt_tokens, summary.completion_tokens) == (100, 50)
        assert summary.estimated_cost == 0.25

    def test_defaults_when_sections_missing(self) -> None:
        classification = classify_task("review", "check")
        result = ExecutionResult(text="Looks fine.", model="gemini-2.5-pro")

        summary = compress_execution(
            "review",
            "check",
            result,
            "gemini",
            classification,
            CostEstimate("gemini-2.5-pro", 40, 30, 0.0),
            "billing",
        )

        assert summary.decisions == ["Completed review workflow"]
        assert summary.patterns == ["Tier 2 routing used"]
        assert summary.prerequisites == []
        assert (summary.prompt_tokens, summary.completion_tokens) == (40, 30)

    def test_render_summary(self) -> None:
        classification = classify_task("review", "check")
        summary = compress_execution(
            "review",
            "check",
            ExecutionResult(text="Looks fine.", model="gemini-2.5-pro"),
            "gemini",
            classification,
            CostEstimate("gemini-2.5-pro", 1, 1, 0.0),
            "billing",
        )

        markdown = render_summary(summary, datetime(2026, 1, 2, tzinfo=timezone.utc))

        assert markdown.startswith("## Task: review: check\n**Date**: 2026-01-02T00:00:00+00:00")
        assert "### Prerequisites for Follow-up\n- None recorded" in markdown
        assert "**Project**: billing | **Dept**: engineering" in markdown
        assert markdown.endswith("### Tags\nengineering, code_review, medium")


class TestStoreSummary:
    """Test store_summary against the seeded notebooks."""

    @pytest.mark.asyncio
    async def test_appends_to_routed_notebooks(self, config: AppConfig) -> None:
        classification = classify_task("build", "add an endpoint")
        summary = compress_execution(
            "build",
            "add an endpoint",
            ExecutionResult(text=LONG_ANSWER, model="gemini-2.0-flash", escalated=True),
            "gemini",
            classification,
            CostEstimate("gemini-2.0-flash", 1, 1, 0.0),
            "taskforge",
        )

        stored = await store_summary(BrainService(config), summary)

        assert stored.notebooks == ["history-engineering", "project-taskforge", "models"]
        history = (config.notebooks_dir / "history-engineering.md").read_text()
        assert "## Task: build: add an endpoint" in history
        assert "- Add a readiness probe to the deployment manifest" in history

    @pytest.mark.asyncio
    async def test_unregistered_notebook_left_out(self, config: AppConfig) -> None:
        classification = classify_task("review", "check")
        summary = compress_execution(
            "review",
            "check",
            ExecutionResult(text="Looks fine.", model="claude-code"),
            "claude",
            classification,
            CostEstimate("claude-code", 1, 1, 0.0),
            "unknown-project",
        )

        stored = await store_summary(BrainService(config), summary)

        assert stored.notebooks == ["history-engineering"]

    @pytest.mark.asyncio
    async def test_malformed_registry_stores_nothing(self, config: AppConfig) -> None:
        config.brain_path.write_text("notebooks: [unclosed\n", encoding="utf-8")
        summary = compress_execution(
            "build",
            "add an endpoint",
            ExecutionResult(text=LONG_ANSWER, model="claude-code"),
            "claude",
            classify_task("build", "add an endpoint"),
            CostEstimate("claude-code", 1, 1, 0.0),
            "taskforge",
        )

        stored = await store_summary(BrainService(config), summary)

        assert stored.notebooks == []
        assert "## Task: build: add an endpoint" in stored.markdown
