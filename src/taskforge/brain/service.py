"""Notebook knowledge base service.

Notebooks are plain markdown files registered in ``brain.yaml``. Queries are
routed by keyword and read with a bounded concurrent fan-out; each notebook
contributes a short excerpt of its best-matching lines.
"""

import asyncio
import re
from pathlib import Path
from typing import TYPE_CHECKING

from taskforge.brain.models import BrainQueryResult, BrainResult, Notebook, NotebookRegistry
from taskforge.brain.router import route_brain_query
from taskforge.config.cache import MtimeCache
from taskforge.config.loader import load_yaml_model
from taskforge.config.settings import AppConfig
from taskforge.telemetry import BRAIN_QUERIED, get_logger

if TYPE_CHECKING:
    from taskforge.orchestrator.types import Classification

log = get_logger(__name__)

EXCERPT_MAX_LINES = 6
EXCERPT_FALLBACK_LINES = 12
PREREQUISITE_MAX_LINES = 8
PREREQUISITE_HEADING = "### Prerequisites for Follow-up"

_TERM_SPLIT_RE = re.compile(r"\W+")
_BULLET_RE = re.compile(r"^[-*]\s+")


class BrainError(Exception):
    """Base exception for knowledge base failures."""

    pass


class NotebookNotFoundError(BrainError):
    """Raised when a notebook name is not registered."""

    pass


def _query_terms(query: str) -> list[str]:
    return [term for term in _TERM_SPLIT_RE.split(query.lower()) if term]


def score_line(terms: list[str], line: str) -> int:
    """Total occurrences of every query term in ``line``."""
    lower = line.lower()
    return sum(lower.count(term) for term in terms)


def excerpt_content(query: str, content: str) -> str:
    """Best matching lines of a notebook, or its head when nothing matches.

    Args:
        query: Query text.
        content: Notebook markdown.

    Returns:
        Up to 6 ranked lines, or the first 12 lines as a fallback.
    """
    terms = _query_terms(query)
    lines = content.split("\n")
    scored = [(score_line(terms, line), line.strip()) for line in lines]
    ranked = sorted(
        (entry for entry in scored if entry[0] > 0 and entry[1]),
        key=lambda entry: entry[0],
        reverse=True,
    )
    if ranked:
        return "\n".join(line for _, line in ranked[:EXCERPT_MAX_LINES])
    return "\n".join(lines[:EXCERPT_FALLBACK_LINES])


def extract_prerequisites(content: str) -> list[str]:
    """Bullets under every "Prerequisites for Follow-up" heading, newest first."""
    items: list[str] = []
    capture = False
    for line in content.split("\n"):
        stripped = line.strip()
        if stripped.startswith("#"):
            capture = stripped == PREREQUISITE_HEADING
            continue
        if capture and _BULLET_RE.match(stripped):
            item = _BULLET_RE.sub("", stripped)
            if item and item != "None recorded":
                items.append(item)
    items.reverse()
    return items


def _parse_registry(path: Path) -> NotebookRegistry:
    return load_yaml_model(path, NotebookRegistry, "Notebook registry")


async def bounded_gather(coros: list, limit: int) -> list:
    """Await independent coroutines concurrently with at most ``limit`` in flight.

    Results keep the input order.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _run(coro):  # type: ignore[no-untyped-def]
        async with semaphore:
            return await coro

    return list(await asyncio.gather(*(_run(coro) for coro in coros)))


class BrainService:
    """Reads and appends to the notebooks registered in ``brain.yaml``.

    Attributes:
        home: Directory relative notebook paths resolve against.
        registry_path: Location of ``brain.yaml``.
        max_concurrency: Concurrent notebook reads per query.
    """

    def __init__(self, config: AppConfig, cache: MtimeCache | None = None) -> None:
        self.home = config.home
        self.registry_path = config.brain_path
        self.max_concurrency = config.brain_max_concurrency
        self.cache = cache

    def load_registry(self) -> NotebookRegistry:
        """Load ``brain.yaml``; a missing registry means no notebooks."""
        if not self.registry_path.is_file():
            log.debug("notebook_registry_missing", path=str(self.registry_path))
            return NotebookRegistry()
        if self.cache is None:
            return _parse_registry(self.registry_path)
        return self.cache.get_or_load(self.registry_path, _parse_registry)

    def notebook_path(self, notebook: Notebook) -> Path:
        """Absolute path of a notebook file."""
        path = Path(notebook.file).expanduser()
        return path if path.is_absolute() else self.home / path

    def _resolve(self, name: str) -> Notebook:
        notebook = self.load_registry().get(name)
        if notebook is None:
            raise NotebookNotFoundError(f"Notebook '{name}' not found.")
        return notebook

    async def query_notebook(self, name: str, query: str) -> BrainResult | None:
        """Excerpt one notebook; None when its file cannot be read."""
        path = self.notebook_path(self._resolve(name))
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as e:
            log.warning("notebook_unreadable", notebook=name, path=str(path), error=str(e))
            return None
        return BrainResult(notebook=name, query=query, excerpt=excerpt_content(query, content))

    async def query(
        self, text: str, classification: "Classification | None" = None
    ) -> BrainQueryResult:
        """Route a query to notebooks and excerpt each concurrently.

        Args:
            text: Query text (usually the task).
            classification: Optional classification; its department history
                notebook is always consulted.

        Returns:
            Routed notebook names and one excerpt per readable notebook.
        """
        registered = set(self.load_registry().names)
        routed = route_brain_query(text)
        if classification is not None:
            routed.append(f"history-{classification.department}")
        notebooks = [name for name in dict.fromkeys(routed) if name in registered]

        results = await bounded_gather(
            [self.query_notebook(name, text) for name in notebooks], self.max_concurrency
        )
        found = [result for result in results if result is not None]
        log.debug(BRAIN_QUERIED, notebooks=notebooks, results=len(found))
        return BrainQueryResult(query=text, notebooks=notebooks, results=found)

    async def query_prerequisites(
        self, task: str, classification: "Classification"
    ) -> list[str]:
        """Follow-up prerequisites recorded by earlier tasks of the same department.

        Lines sharing terms with ``task`` rank first; ties keep newest first.

        Returns:
            At most 8 prerequisite lines.
        """
        name = f"history-{classification.department}"
        if self.load_registry().get(name) is None:
            return []
        path = self.notebook_path(self._resolve(name))
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as e:
            log.warning("notebook_unreadable", notebook=name, path=str(path), error=str(e))
            return []

        terms = _query_terms(task)
        items = list(dict.fromkeys(extract_prerequisites(content)))
        items.sort(key=lambda item: score_line(terms, item), reverse=True)
        return items[:PREREQUISITE_MAX_LINES]

    async def append_task_summary(self, name: str, markdown: str) -> None:
        """Append a markdown block to a notebook.

        Raises:
            NotebookNotFoundError: If ``name`` is not registered.
            OSError: If the file cannot be written.
        """
        path = self.notebook_path(self._resolve(name))

        def _append() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(f"\n\n{markdown.strip()}\n")

        await asyncio.to_thread(_append)
