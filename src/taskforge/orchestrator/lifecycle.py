"""Post-task compression and knowledge-base persistence.

After a Tier 2 task the final answer is reduced to a short summary (decisions,
patterns, follow-up prerequisites, tags) and appended to the notebooks chosen
by teardown routing. Persistence is best-effort.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from taskforge.brain.models import TaskSummary
from taskforge.brain.router import route_teardown
from taskforge.brain.service import BrainError, BrainService
from taskforge.config.loader import ConfigLoadError
from taskforge.orchestrator.types import Classification, CostEstimate, ExecutionResult
from taskforge.telemetry import BRAIN_SUMMARY_STORED, get_logger

log = get_logger(__name__)

MAX_EXTRACTED_ITEMS = 6
DEFAULT_PROJECT = "taskforge"

_HEADING_RE = re.compile(r"^#+\s+")
_BULLET_RE = re.compile(r"^[-*]\s+")


@dataclass(frozen=True)
class StoredSummary:
    """Where a summary was written and what it said."""

    notebooks: list[str]
    markdown: str


def project_name(cwd: Path) -> str:
    """Project name derived from the working directory."""
    return cwd.name or DEFAULT_PROJECT


def extract_list(heading: str, text: str) -> list[str]:
    """Bullets following the first line that mentions ``heading``.

    Capture stops at the next markdown heading; at most 6 items are returned.
    """
    items: list[str] = []
    capture = False
    needle = heading.lower()
    for line in text.split("\n"):
        if not capture:
            if needle in line.lower():
                capture = True
            continue
        if _HEADING_RE.match(line):
            break
        stripped = line.strip()
        if _BULLET_RE.match(stripped):
            items.append(_BULLET_RE.sub("", stripped))
    return items[:MAX_EXTRACTED_ITEMS]


def compress_execution(
    command: str,
    task: str,
    result: ExecutionResult,
    backend: str,
    classification: Classification,
    cost: CostEstimate,
    project: str,
) -> TaskSummary:
    """Reduce a finished task to a TaskSummary.

    Missing decisions and patterns get a generic default so every summary
    has content; missing prerequisites stay empty.
    """
    outcome = result.text.strip()
    decisions = extract_list("decision", outcome)
    patterns = extract_list("pattern", outcome)
    tags = [classification.department, classification.task_type, classification.complexity.value]
    tags.extend(Path(path).name for path in classification.context_needed)

    return TaskSummary(
        task=f"{command}: {task}",
        command=command,
        model=result.model,
        backend=backend,
        project=project,
        department=classification.department,
        outcome=outcome,
        decisions=decisions or [f"Completed {command} workflow"],
        patterns=patterns or [f"Tier {classification.tier} routing used"],
        prerequisites=extract_list("prerequisite", outcome),
        tags=[tag for tag in tags if tag],
        escalated=result.escalated,
        success=result.success,
        prompt_tokens=result.usage["prompt_tokens"] or cost.prompt_tokens,
        completion_tokens=result.usage["completion_tokens"] or cost.completion_tokens,
        estimated_cost=cost.estimated_cost,
    )


def render_summary(summary: TaskSummary, now: datetime | None = None) -> str:
    """Markdown block appended to notebooks."""
    now = now or datetime.now(timezone.utc)
    prerequisites = summary.prerequisites or ["None recorded"]
    lines = [
        f"## Task: {summary.task}",
        f"**Date**: {now.isoformat()}",
        f"**Model Used**: {summary.model}",
        f"**Tokens**: {summary.prompt_tokens} in / {summary.completion_tokens} out "
        f"(${summary.estimated_cost:.6f})",
        f"**Project**: {summary.project or DEFAULT_PROJECT} | **Dept**: {summary.department}",
        "",
        "### Decisions",
        *(f"- {item}" for item in summary.decisions),
        "",
        "### Patterns Discovered",
        *(f"- {item}" for item in summary.patterns),
        "",
        "### Prerequisites for Follow-up",
        *(f"- {item}" for item in prerequisites),
        "",
        "### Tags",
        ", ".join(summary.tags),
    ]
    return "\n".join(lines)


async def store_summary(brain: BrainService, summary: TaskSummary) -> StoredSummary:
    """Append the summary to every routed notebook concurrently.

    A notebook that is unregistered or unwritable, or a registry that cannot
    be loaded, is logged and left out of the returned list; nothing is raised.
    """
    routed = route_teardown(summary)
    markdown = render_summary(summary)

    async def _append(name: str) -> bool:
        try:
            await brain.append_task_summary(name, markdown)
        except (BrainError, ConfigLoadError, OSError) as e:
            log.warning("summary_store_failed", notebook=name, error=str(e))
            return False
        return True

    outcomes = await asyncio.gather(*(_append(name) for name in routed))
    stored = [name for name, ok in zip(routed, outcomes) if ok]
    log.info(BRAIN_SUMMARY_STORED, notebooks=stored, routed=routed)
    return StoredSummary(notebooks=stored, markdown=markdown)
