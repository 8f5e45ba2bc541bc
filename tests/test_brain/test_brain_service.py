"""Tests for the notebook knowledge base service."""

import asyncio
import dataclasses

import pytest

from taskforge.brain import (
    BrainService,
    NotebookNotFoundError,
    bounded_gather,
    excerpt_content,
)
from taskforge.brain.service import extract_prerequisites
from taskforge.config import AppConfig, MtimeCache
from taskforge.config.loader import ConfigLoadError
from taskforge.orchestrator.classifier import classify_task

HISTORY = (
    "# History Engineering\n\n"
    "## Task: build: one\n"
    "### Prerequisites for Follow-up\n"
    "- alpha one\n"
    "- beta two\n\n"
    "### Tags\n"
    "- not a prerequisite\n\n"
    "## Task: build: two\n"
    "### Prerequisites for Follow-up\n"
    "* gamma three\n"
    "- None recorded\n"
)


class TestExcerpt:
    """Test excerpt_content."""

    def test_ranked_matches(self) -> None:
        content = "intro\nuse retry with backoff\nretry once\n\nnothing"
        assert excerpt_content("retry backoff", content) == "use retry with backoff\nretry once"

    def test_capped(self) -> None:
        content = "\n".join(f"retry {i}" for i in range(10))
        assert len(excerpt_content("retry", content).split("\n")) == 6

    def test_fallback_to_head(self) -> None:
        content = "\n".join(f"line {i}" for i in range(20))
        assert excerpt_content("zzz", content) == "\n".join(f"line {i}" for i in range(12))


def test_extract_prerequisites_newest_first() -> None:
    assert extract_prerequisites(HISTORY) == ["gamma three", "beta two", "alpha one"]
    assert extract_prerequisites("# Empty\n") == []


class TestRegistry:
    """Test loading brain.yaml."""

    def test_seeded_registry(self, config: AppConfig) -> None:
        registry = BrainService(config).load_registry()
        assert len(registry.notebooks) == 8
        assert registry.names[0] == "models"
        assert registry.get("errors") is not None
        assert registry.get("missing") is None

    def test_missing_registry_is_empty(self, config: AppConfig) -> None:
        config.brain_path.unlink()
        assert BrainService(config).load_registry().names == []

    def test_invalid_registry(self, config: AppConfig) -> None:
        config.brain_path.write_text("notebooks:\n  - kind: history\n")
        with pytest.raises(ConfigLoadError):
            BrainService(config).load_registry()

    def test_cached(self, config: AppConfig, cache: MtimeCache) -> None:
        service = BrainService(config, cache)
        first = service.load_registry()
        assert config.brain_path in cache
        assert service.load_registry() is first

    def test_relative_and_absolute_paths(self, config: AppConfig) -> None:
        service = BrainService(config)
        registry = service.load_registry()
        assert service.notebook_path(registry.get("errors")) == (  # type: ignore[arg-type]
            config.home / "notebooks" / "errors.md"
        )


class TestQuery:
    """Test BrainService.query."""

    @pytest.mark.asyncio
    async def test_routes_to_registered_notebooks(self, config: AppConfig) -> None:
        config.brain_path.write_text(
            "notebooks:\n"
            "  - name: reference\n"
            "    file: notebooks/reference.md\n"
            "  - name: history-research\n"
            "    kind: history\n"
            "    file: notebooks/history-research.md\n"
        )

        result = await BrainService(config).query("hello", classify_task("research", "hello"))

        assert result.notebooks == ["reference", "history-research"]
        assert [r.notebook for r in result.results] == ["reference", "history-research"]
        assert result.results[0].excerpt.startswith("# Reference")

    @pytest.mark.asyncio
    async def test_unreadable_notebook_skipped(self, config: AppConfig) -> None:
        (config.notebooks_dir / "reference.md").unlink()

        result = await BrainService(config).query("hello")

        assert result.notebooks == ["reference", "project-taskforge"]
        assert [r.notebook for r in result.results] == ["project-taskforge"]

    @pytest.mark.asyncio
    async def test_excerpt_from_matching_lines(self, config: AppConfig) -> None:
        (config.notebooks_dir / "errors.md").write_text(
            "# Known issues\n\nTimeout error from ollama: raise the timeout\nunrelated\n"
        )

        result = await BrainService(config).query("timeout error")

        assert result.results[0].notebook == "errors"
        assert result.results[0].excerpt == "Timeout error from ollama: raise the timeout"


class TestPrerequisites:
    """Test BrainService.query_prerequisites."""

    @pytest.mark.asyncio
    async def test_ranked_by_task_terms(self, config: AppConfig) -> None:
        (config.notebooks_dir / "history-engineering.md").write_text(HISTORY)

        items = await BrainService(config).query_prerequisites(
            "beta", classify_task("build", "beta")
        )

        assert items == ["beta two", "gamma three", "alpha one"]

    @pytest.mark.asyncio
    async def test_capped_and_deduplicated(self, config: AppConfig) -> None:
        bullets = "\n".join(f"- item {i}" for i in range(12))
        (config.notebooks_dir / "history-engineering.md").write_text(
            f"### Prerequisites for Follow-up\n{bullets}\n- item 11\n"
        )

        items = await BrainService(config).query_prerequisites(
            "zzz", classify_task("build", "zzz")
        )

        assert len(items) == 8
        assert items[0] == "item 11"
        assert items.count("item 11") == 1

    @pytest.mark.asyncio
    async def test_unregistered_department(self, config: AppConfig) -> None:
        classification = dataclasses.replace(classify_task("build", "x"), department="legal")
        assert await BrainService(config).query_prerequisites("x", classification) == []

    @pytest.mark.asyncio
    async def test_missing_file(self, config: AppConfig) -> None:
        (config.notebooks_dir / "history-engineering.md").unlink()
        items = await BrainService(config).query_prerequisites("x", classify_task("build", "x"))
        assert items == []


class TestAppend:
    """Test BrainService.append_task_summary."""

    @pytest.mark.asyncio
    async def test_appends_block(self, config: AppConfig) -> None:
        path = config.notebooks_dir / "errors.md"
        before = path.read_text()

        await BrainService(config).append_task_summary("errors", "## Task: x\n\n")

        assert path.read_text() == before + "\n\n## Task: x\n"

    @pytest.mark.asyncio
    async def test_unknown_notebook(self, config: AppConfig) -> None:
        with pytest.raises(NotebookNotFoundError):
            await BrainService(config).append_task_summary("nope", "text")


@pytest.mark.asyncio
async def test_bounded_gather_keeps_order_and_limit() -> None:
    in_flight = 0
    peak = 0

    async def work(i: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01 * (3 - i))
        in_flight -= 1
        return i

    assert await bounded_gather([work(i) for i in range(4)], 2) == [0, 1, 2, 3]
    assert peak == 2
