"""Task context loading and budget-based truncation.

Gathers the raw material a Tier 2 prompt may embed: attached files, the staged
diff, a pull-request diff, the project manifest, recent history and per-file
blame. Every source is optional; failures leave the field empty.
"""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

from taskforge.backends.types import estimate_tokens
from taskforge.orchestrator.git import run_command, run_git
from taskforge.telemetry import get_logger

log = get_logger(__name__)

MANIFEST_FILES = ("pyproject.toml", "package.json", "Cargo.toml", "go.mod")

BLAME_LINES = "1,20"

# Fields dropped first when over budget; files are truncated last.
TRUNCATION_ORDER = ("blame", "recent_changes", "pr_diff", "staged_diff", "manifest", "files")


@dataclass(frozen=True)
class ContextFile:
    """One attached file; ``content`` is None when unreadable or dropped."""

    path: str
    content: str | None


@dataclass(frozen=True)
class TaskContext:
    """Everything loaded for one task.

    Attributes:
        cwd: Directory the task runs in.
        files: Attached files in the order given.
        staged_diff: ``git diff --cached`` output, when requested.
        pr_diff: ``gh pr diff`` output, when a PR number was given.
        manifest_name: File name of the project manifest, if found.
        manifest: Manifest content.
        recent_changes: ``git log --oneline -5`` output.
        blame: Path to the first 20 lines of ``git blame``.
    """

    cwd: Path
    files: tuple[ContextFile, ...] = ()
    staged_diff: str | None = None
    pr_diff: str | None = None
    manifest_name: str | None = None
    manifest: str | None = None
    recent_changes: str | None = None
    blame: dict[str, str] = field(default_factory=dict)

    def summary(self) -> dict[str, object]:
        """Compact description used in AgentSpec.context and session records."""
        return {
            "cwd": str(self.cwd),
            "files": [item.path for item in self.files],
            "has_staged_diff": bool(self.staged_diff),
            "has_pr_diff": bool(self.pr_diff),
            "manifest": self.manifest_name,
            "estimated_tokens": estimate_context_tokens(self),
        }


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


async def load_context(
    cwd: Path,
    file_paths: list[str] | tuple[str, ...] = (),
    review_staged: bool = False,
    pr_number: int | None = None,
) -> TaskContext:
    """Load task context from the working directory.

    Args:
        cwd: Working directory (the worktree when one was created).
        file_paths: Files to embed, relative to ``cwd`` or absolute.
        review_staged: Include ``git diff --cached``.
        pr_number: Include ``gh pr diff <n>``.

    Returns:
        Loaded TaskContext.
    """
    files = tuple(ContextFile(path, _read_text(cwd / path)) for path in file_paths)

    staged_diff = None
    if review_staged:
        stdout, _, rc = await run_git(["diff", "--cached"], cwd)
        staged_diff = stdout if rc == 0 else None

    pr_diff = None
    if pr_number:
        stdout, stderr, rc = await run_command("gh", ["pr", "diff", str(pr_number)], cwd)
        if rc == 0:
            pr_diff = stdout
        else:
            log.warning("pr_diff_unavailable", pr_number=pr_number, error=stderr)

    manifest_name = None
    manifest = None
    for name in MANIFEST_FILES:
        manifest = _read_text(cwd / name)
        if manifest is not None:
            manifest_name = name
            break

    stdout, _, rc = await run_git(["log", "--oneline", "-5"], cwd)
    recent_changes = stdout if rc == 0 and stdout else None

    blame: dict[str, str] = {}
    for path in file_paths:
        stdout, _, rc = await run_git(["blame", "-L", BLAME_LINES, path], cwd)
        if rc == 0 and stdout:
            blame[path] = stdout

    return TaskContext(
        cwd=cwd,
        files=files,
        staged_diff=staged_diff,
        pr_diff=pr_diff,
        manifest_name=manifest_name,
        manifest=manifest,
        recent_changes=recent_changes,
        blame=blame,
    )


def estimate_context_tokens(context: TaskContext) -> int:
    """Approximate token size of all loaded context."""
    total = sum(estimate_tokens(item.content) for item in context.files)
    total += estimate_tokens(context.staged_diff)
    total += estimate_tokens(context.pr_diff)
    total += estimate_tokens(context.manifest)
    total += estimate_tokens(context.recent_changes)
    total += sum(estimate_tokens(value) for value in context.blame.values())
    return total


def _truncate_files(
    files: tuple[ContextFile, ...], tokens_to_free: int
) -> tuple[ContextFile, ...]:
    result = list(files)
    freed = 0
    for index in range(len(result) - 1, -1, -1):
        if freed >= tokens_to_free:
            break
        content = result[index].content
        tokens = estimate_tokens(content)
        if not content or tokens == 0:
            continue
        remaining = tokens_to_free - freed
        if tokens <= remaining:
            freed += tokens
            result[index] = ContextFile(result[index].path, None)
        else:
            keep_chars = (tokens - remaining) * 4
            result[index] = ContextFile(result[index].path, content[:keep_chars])
            freed = tokens_to_free
    return tuple(result)


def truncate_context(context: TaskContext, max_tokens: int) -> TaskContext:
    """Drop or shorten context fields until it fits ``max_tokens``.

    Fields go in order: blame, recent history, PR diff, staged diff, manifest;
    files are then shortened from the last one backwards.

    Args:
        context: Loaded context.
        max_tokens: Budget; zero or negative disables truncation.

    Returns:
        The original context when it fits, otherwise a truncated copy.
    """
    if max_tokens <= 0:
        return context
    current = estimate_context_tokens(context)
    if current <= max_tokens:
        return context

    truncated = context
    for name in TRUNCATION_ORDER:
        if current <= max_tokens:
            break
        if name == "files":
            truncated = dataclasses.replace(
                truncated, files=_truncate_files(truncated.files, current - max_tokens)
            )
        elif name == "blame":
            truncated = dataclasses.replace(truncated, blame={})
        elif name == "manifest":
            truncated = dataclasses.replace(truncated, manifest=None, manifest_name=None)
        else:
            truncated = dataclasses.replace(truncated, **{name: None})
        current = estimate_context_tokens(truncated)

    log.debug("context_truncated", max_tokens=max_tokens, remaining_tokens=current)
    return truncated
