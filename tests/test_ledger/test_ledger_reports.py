"""Tests for routing performance reports."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from taskforge.ledger import (
    Ledger,
    LedgerEntry,
    RoutingAnalysis,
    RoutingStats,
    analyze_routing_performance,
    maybe_write_reports,
    suggest_routing_changes,
    write_routing_reports,
)


def stats(**overrides: object) -> RoutingStats:
    fields: dict[str, object] = {
        "workflow": "code_review",
        "backend": "ollama",
        "model": "qwen",
        "calls": 3,
        "successes": 3,
        "avg_duration_ms": 1200.0,
        "total_cost": 0.0,
    }
    fields.update(overrides)
    return RoutingStats(**fields)  # type: ignore[arg-type]


def free_entry() -> LedgerEntry:
    return LedgerEntry(
        command="review",
        backend="ollama",
        model="qwen",
        workflow="code_review",
        duration_ms=1000,
        success=True,
    )


class TestSuggestions:
    """Test suggest_routing_changes."""

    def test_promotes_free_repeated_workflows(self) -> None:
        assert suggest_routing_changes([stats()]) == [
            "Consider promoting 'code_review' on ollama to Tier 1 heuristics."
        ]

    def test_skips_paid_rare_and_excluded(self) -> None:
        rows = [
            stats(total_cost=0.2),
            stats(calls=2),
            stats(workflow="raw_query"),
            stats(workflow="commit_message"),
        ]
        assert suggest_routing_changes(rows) == []

    def test_slow_workflow(self) -> None:
        suggestions = suggest_routing_changes([stats(total_cost=1.0, avg_duration_ms=7000.0)])
        assert suggestions == [
            "Workflow 'code_review' on qwen is slow; review escalation thresholds."
        ]

    def test_deduplicated(self) -> None:
        assert len(suggest_routing_changes([stats(), stats(model="llama")])) == 1


def test_write_routing_reports(tmp_path: Path) -> None:
    analysis = RoutingAnalysis(
        generated_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        total_calls=3,
        rows=[stats()],
        suggestions=["Try something."],
    )

    report, suggestions = write_routing_reports(analysis, tmp_path / "reports")

    assert report.name == "routing-performance.md"
    text = report.read_text()
    assert text.startswith("# Routing Performance Summary\n")
    assert "Total calls: 3" in text
    assert "- code_review via ollama/qwen: 3 calls, 3 successes, avg 1200.0ms, $0.0" in text
    assert suggestions.read_text() == "# Orchestrator Prompt Suggestions\n\n- Try something.\n"


class TestMaybeWriteReports:
    """Test the report interval."""

    @pytest.mark.asyncio
    async def test_only_on_interval(self, ledger: Ledger, tmp_path: Path) -> None:
        reports_dir = tmp_path / "reports"
        total = 0
        for _ in range(3):
            total = await ledger.append(free_entry())
            if total < 3:
                assert await maybe_write_reports(ledger, total, reports_dir, 3) is None
        assert not reports_dir.exists()

        analysis = await maybe_write_reports(ledger, total, reports_dir, 3)

        assert analysis is not None
        assert analysis.total_calls == 3
        assert analysis.suggestions == [
            "Consider promoting 'code_review' on ollama to Tier 1 heuristics."
        ]
        assert (reports_dir / "orchestrator-suggestions.md").is_file()

    @pytest.mark.asyncio
    async def test_disabled(self, ledger: Ledger, tmp_path: Path) -> None:
        assert await maybe_write_reports(ledger, 0, tmp_path, 3) is None
        assert await maybe_write_reports(ledger, 5, tmp_path, 0) is None


@pytest.mark.asyncio
async def test_analyze_empty_ledger(ledger: Ledger) -> None:
    analysis = await analyze_routing_performance(ledger)
    assert analysis.total_calls == 0
    assert analysis.rows == []
    assert analysis.suggestions == []
