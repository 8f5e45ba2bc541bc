"""Markdown notebook knowledge base.

Notebooks registered in ``brain.yaml`` hold project context and the
summaries of past tasks. Queries are routed by keyword and answered with
short ranked excerpts.
"""

from taskforge.brain.models import (
    BrainQueryResult,
    BrainResult,
    Notebook,
    NotebookRegistry,
    TaskSummary,
)
from taskforge.brain.router import route_brain_query, route_teardown
from taskforge.brain.service import (
    BrainError,
    BrainService,
    NotebookNotFoundError,
    bounded_gather,
    excerpt_content,
)

__all__ = [
    "BrainService",
    "BrainQueryResult",
    "BrainResult",
    "Notebook",
    "NotebookRegistry",
    "TaskSummary",
    "route_brain_query",
    "route_teardown",
    "excerpt_content",
    "bounded_gather",
    "BrainError",
    "NotebookNotFoundError",
]
