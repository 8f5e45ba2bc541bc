"""Keyword routing of queries and task summaries to notebooks."""

import re

from taskforge.brain.models import TaskSummary

PROJECT_NOTEBOOK = "project-taskforge"

# (notebook, keywords); a query may match several notebooks.
QUERY_ROUTES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("models", ("model", "pricing", "benchmark", "tokens", "cost")),
    ("errors", ("error", "stack", "trace", "failure", "exception")),
    (PROJECT_NOTEBOOK, ("taskforge", "project", "cli", "orchestrator", "intent", "brain")),
    ("history-engineering", ("build", "review", "debug", "refactor", "architecture", "code")),
    ("history-research", ("research", "compare", "summary", "summarize", "tradeoff", "benchmark")),
    (
        "history-infrastructure",
        ("deploy", "diagnose", "provision", "infra", "kubernetes", "docker", "network"),
    ),
    ("history-operations", ("commit", "pr", "merge", "ci", "release")),
    ("reference", ("reference", "docs", "doc", "guide", "example")),
)

FALLBACK_NOTEBOOKS = ("reference", PROJECT_NOTEBOOK)

_ERROR_RE = re.compile(r"error|exception|failed|stack|trace")


def route_brain_query(query: str) -> list[str]:
    """Notebooks whose keywords appear in ``query``, in route order.

    Queries matching nothing go to the reference and project notebooks.
    """
    lower = query.lower()
    matches = [
        notebook
        for notebook, keywords in QUERY_ROUTES
        if any(keyword in lower for keyword in keywords)
    ]
    return list(dict.fromkeys(matches)) or list(FALLBACK_NOTEBOOKS)


def route_teardown(summary: TaskSummary) -> list[str]:
    """Notebooks a finished task's summary is appended to.

    Always the department history and the project notebook; ``errors`` when
    the task failed or mentions errors; ``models`` when it escalated.
    """
    notebooks = [f"history-{summary.department or 'engineering'}"]
    notebooks.append(f"project-{summary.project}" if summary.project else PROJECT_NOTEBOOK)

    text = f"{summary.task}\n{summary.outcome}\n{' '.join(summary.tags)}".lower()
    if not summary.success or _ERROR_RE.search(text):
        notebooks.append("errors")
    if summary.escalated:
        notebooks.append("models")
    return list(dict.fromkeys(notebooks))
