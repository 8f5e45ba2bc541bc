"""Routing performance reports generated from the ledger.

Every ``report_interval`` entries the ledger is analyzed per
(workflow, backend, model) and two markdown files are rewritten under
``<home>/reports``: a performance summary and a list of routing suggestions.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from taskforge.ledger.models import RoutingStats
from taskforge.ledger.tracker import Ledger
from taskforge.telemetry import ROUTING_REPORT_WRITTEN, get_logger

log = get_logger(__name__)

PERFORMANCE_REPORT = "routing-performance.md"
SUGGESTIONS_REPORT = "orchestrator-suggestions.md"

PROMOTION_MIN_CALLS = 3
SLOW_WORKFLOW_MS = 5000
NEVER_PROMOTED = frozenset({"raw_query", "commit_message"})


@dataclass(frozen=True)
class RoutingAnalysis:
    """Snapshot of routing performance."""

    generated_at: datetime
    total_calls: int
    rows: list[RoutingStats]
    suggestions: list[str]


def suggest_routing_changes(rows: list[RoutingStats]) -> list[str]:
    """Heuristic suggestions, deduplicated in row order.

    Free workflows seen at least three times are candidates for Tier 1;
    workflows averaging over five seconds deserve a look at escalation.
    """
    suggestions: list[str] = []
    for row in rows:
        if (
            row.calls >= PROMOTION_MIN_CALLS
            and row.total_cost == 0
            and row.workflow not in NEVER_PROMOTED
        ):
            suggestions.append(
                f"Consider promoting '{row.workflow}' on {row.backend} to Tier 1 heuristics."
            )
        if row.avg_duration_ms > SLOW_WORKFLOW_MS:
            suggestions.append(
                f"Workflow '{row.workflow}' on {row.model} is slow; "
                "review escalation thresholds."
            )
    return list(dict.fromkeys(suggestions))


async def analyze_routing_performance(ledger: Ledger) -> RoutingAnalysis:
    """Collect per-route statistics and suggestions."""
    rows = await ledger.routing_stats()
    return RoutingAnalysis(
        generated_at=datetime.now(timezone.utc),
        total_calls=sum(row.calls for row in rows),
        rows=rows,
        suggestions=suggest_routing_changes(rows),
    )


def write_routing_reports(analysis: RoutingAnalysis, reports_dir: Path) -> tuple[Path, Path]:
    """Rewrite both report files.

    Returns:
        Paths of the performance report and the suggestions file.
    """
    performance = [
        "# Routing Performance Summary",
        "",
        f"Generated: {analysis.generated_at.isoformat()}",
        f"Total calls: {analysis.total_calls}",
        "",
        "## Workflows",
        *(
            f"- {row.workflow} via {row.backend}/{row.model}: {row.calls} calls, "
            f"{row.successes} successes, avg {row.avg_duration_ms}ms, ${row.total_cost}"
            for row in analysis.rows
        ),
    ]
    suggestions = [
        "# Orchestrator Prompt Suggestions",
        "",
        *(f"- {item}" for item in analysis.suggestions),
    ]

    reports_dir.mkdir(parents=True, exist_ok=True)
    report_path = reports_dir / PERFORMANCE_REPORT
    suggestions_path = reports_dir / SUGGESTIONS_REPORT
    report_path.write_text("\n".join(performance) + "\n", encoding="utf-8")
    suggestions_path.write_text("\n".join(suggestions) + "\n", encoding="utf-8")
    return report_path, suggestions_path


async def maybe_write_reports(
    ledger: Ledger, total_entries: int, reports_dir: Path, interval: int
) -> RoutingAnalysis | None:
    """Write reports when ``total_entries`` is a positive multiple of ``interval``."""
    if interval <= 0 or total_entries == 0 or total_entries % interval != 0:
        return None
    analysis = await analyze_routing_performance(ledger)
    report_path, suggestions_path = write_routing_reports(analysis, reports_dir)
    log.info(
        ROUTING_REPORT_WRITTEN,
        total_calls=analysis.total_calls,
        report=str(report_path),
        suggestions=str(suggestions_path),
    )
    return analysis
