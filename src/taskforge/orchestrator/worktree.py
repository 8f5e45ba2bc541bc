"""Isolated git worktrees for destructive, high-complexity tasks.

A worktree gets its own branch named from the task slug and session id, so
concurrent tasks never share a working copy. Removal is best-effort: failures
are logged and never surface to the caller.
"""

import re
from pathlib import Path

from taskforge.config.settings import AppConfig
from taskforge.orchestrator.git import run_git
from taskforge.orchestrator.types import Classification, Complexity, Worktree
from taskforge.telemetry import (
    WORKTREE_CLEANUP_FAILED,
    WORKTREE_CREATED,
    WORKTREE_REMOVED,
    get_logger,
)

log = get_logger(__name__)

WORKTREE_COMMANDS = frozenset({"refactor", "build"})
BRANCH_PREFIX = "taskforge"
MAX_SLUG_LENGTH = 40


class WorktreeError(Exception):
    """Raised when a worktree cannot be created."""

    pass


def slugify(text: str) -> str:
    """Lowercase slug of at most 40 characters; ``task`` when nothing is left."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].strip("-")
    return slug or "task"


def branch_name(task: str, session_id: str) -> str:
    """Deterministic branch name for a task and session."""
    return f"{BRANCH_PREFIX}/{slugify(task)}-{session_id[:8]}"


async def is_git_repository(cwd: Path) -> bool:
    """True when ``cwd`` is inside a git working tree."""
    stdout, _, rc = await run_git(["rev-parse", "--is-inside-work-tree"], cwd)
    return rc == 0 and stdout == "true"


async def should_create_worktree(cwd: Path, command: str, classification: Classification) -> bool:
    """Worktrees are used only for high-complexity refactor/build in a git working copy."""
    if command not in WORKTREE_COMMANDS:
        return False
    if classification.complexity is not Complexity.HIGH:
        return False
    return await is_git_repository(cwd)


class WorktreeManager:
    """Creates and removes per-session worktrees under ``<home>/worktrees``."""

    def __init__(self, config: AppConfig) -> None:
        self.root = config.worktrees_dir

    def path_for(self, branch: str) -> Path:
        """Worktree directory for a branch."""
        return self.root / branch.replace("/", "-")

    async def create(self, cwd: Path, task: str, session_id: str) -> Worktree:
        """Create a worktree on a new branch.

        Args:
            cwd: Directory inside the source repository.
            task: Task text used for the branch slug.
            session_id: Owning session id.

        Returns:
            The created Worktree.

        Raises:
            WorktreeError: If ``git worktree add`` fails.
        """
        stdout, stderr, rc = await run_git(["rev-parse", "--show-toplevel"], cwd)
        if rc != 0:
            raise WorktreeError(f"Not a git repository: {cwd} ({stderr})")
        repo_root = Path(stdout)

        branch = branch_name(task, session_id)
        path = self.path_for(branch)
        self.root.mkdir(parents=True, exist_ok=True)

        _, stderr, rc = await run_git(
            ["worktree", "add", "-b", branch, str(path)], repo_root, timeout=60.0
        )
        if rc != 0:
            raise WorktreeError(f"git worktree add failed: {stderr}")

        log.info(WORKTREE_CREATED, branch=branch, path=str(path), session_id=session_id)
        return Worktree(branch=branch, path=path, repo_root=repo_root)

    async def remove(self, worktree: Worktree) -> bool:
        """Remove the worktree and delete its branch; never raises.

        Returns:
            True when both the worktree and the branch were removed.
        """
        ok = True
        _, stderr, rc = await run_git(
            ["worktree", "remove", "--force", str(worktree.path)], worktree.repo_root
        )
        if rc != 0:
            ok = False
            log.warning(
                WORKTREE_CLEANUP_FAILED,
                step="worktree_remove",
                path=str(worktree.path),
                error=stderr,
            )

        _, stderr, rc = await run_git(["branch", "-D", worktree.branch], worktree.repo_root)
        if rc != 0:
            ok = False
            log.warning(
                WORKTREE_CLEANUP_FAILED,
                step="branch_delete",
                branch=worktree.branch,
                error=stderr,
            )

        if ok:
            log.info(WORKTREE_REMOVED, branch=worktree.branch, path=str(worktree.path))
        return ok
