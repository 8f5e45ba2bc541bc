"""CLI interface for taskforge.

This module provides a Typer-based command-line interface for running tasks
through the orchestrator and inspecting the spend ledger.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from taskforge.backends import BackendClient, BackendError
from taskforge.config import ConfigLoadError, ensure_home, get_settings
from taskforge.ledger import Ledger
from taskforge.orchestrator import (
    AutoApproveConfirmer,
    ConsoleConfirmer,
    DryRunPlan,
    Orchestrator,
    OrchestratorError,
    OrchestratorResult,
    SessionManager,
    TaskRequest,
)
from taskforge.telemetry import configure_logging
from taskforge.ui.progress import ProgressInvoker

app = typer.Typer(help="taskforge - route development tasks to the right AI backend")
console = Console()
err_console = Console(stderr=True)

sessions_app = typer.Typer(help="Session maintenance")
app.add_typer(sessions_app, name="sessions")

SPEND_GROUPS = ("backend", "workflow", "department", "model", "project", "day")


@app.callback()
def main() -> None:
    """Configure logging and the home directory before any command."""
    configure_logging()
    ensure_home(get_settings())


@app.command(name="run")
def run_command(
    command: str = typer.Argument(..., help="Command: ask, build, review, commit, refactor..."),
    task: str = typer.Argument("", help="Free-text task description"),
    files: Optional[list[str]] = typer.Option(
        None, "--file", "-f", help="File to attach as context (repeatable)"
    ),
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Pin the backend"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Pin the model"),
    staged: bool = typer.Option(False, "--staged", help="Include the staged git diff"),
    pr: Optional[int] = typer.Option(None, "--pr", help="Include a pull request diff"),
    deep: bool = typer.Option(False, "--deep", help="Full orchestration for 'ask'"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without running it"),
    force: bool = typer.Option(
        False, "--force", help="Bypass the cost hard stop and protected-command checkpoint"
    ),
    conventional: bool = typer.Option(
        False, "--conventional", help="Conventional commit message (commit only)"
    ),
    keep_worktree: bool = typer.Option(
        False, "--keep-worktree", help="Keep a created worktree without asking"
    ),
    cwd: Optional[Path] = typer.Option(None, "--cwd", help="Directory to run the task against"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Run one task through the orchestrator.

    Examples:
        taskforge run ask "What does EADDRINUSE mean?"
        taskforge run build "add an /health endpoint" -f app.py
        taskforge run commit --staged --conventional
        taskforge run refactor "split the billing module" --dry-run --json
    """
    request = TaskRequest(
        command=command,
        task=task,
        cwd=(cwd or Path.cwd()).resolve(),
        file_paths=tuple(files or ()),
        explicit_backend=backend,
        explicit_model=model,
        review_staged=staged,
        pr_number=pr,
        deep=deep,
        dry_run=dry_run,
        force=force,
        conventional_commit=conventional,
        keep_worktree=keep_worktree,
    )

    try:
        outcome = asyncio.run(_handle_request(request))
    except (OrchestratorError, ConfigLoadError, BackendError) as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    if outcome.get("dry_run"):
        _print_plan(outcome, json_output)  # type: ignore[arg-type]
    else:
        _print_result(outcome, json_output)  # type: ignore[arg-type]


async def _handle_request(request: TaskRequest) -> OrchestratorResult | DryRunPlan:
    """Run a request with the configured backends and confirmer.

    Args:
        request: The task to run.

    Returns:
        The orchestrator's result or dry-run plan.
    """
    config = get_settings()
    confirmer = AutoApproveConfirmer() if config.auto_approve else ConsoleConfirmer()
    ledger = Ledger(config.ledger_path)
    orchestrator = Orchestrator(
        config,
        ProgressInvoker(BackendClient(config)),
        confirmer,
        ledger=ledger,
    )
    try:
        return await orchestrator.run(request)
    finally:
        await ledger.close()


def _print_plan(plan: DryRunPlan, json_output: bool) -> None:
    if json_output:
        console.print_json(json.dumps(plan, default=str))
        return

    table = Table(title="Dry Run Plan", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white", overflow="fold")
    table.add_row("Tier", str(plan["tier"]))
    table.add_row("Passthrough", str(plan["passthrough"]))
    table.add_row("Department", plan["department"])
    table.add_row("Backend", plan["backend"] or "auto")
    table.add_row("Model", plan["model"])
    table.add_row("Estimated cost", f"${plan['estimated_cost']:.4f}")
    if "brain_notebooks" in plan:
        table.add_row("Notebooks", ", ".join(plan["brain_notebooks"]) or "-")
    if plan.get("pipeline_step_names"):
        table.add_row("Pipeline", " -> ".join(plan["pipeline_step_names"]))
    if plan.get("worktree"):
        table.add_row("Worktree", plan["worktree"]["branch"])  # type: ignore[index]
    console.print(table)


def _print_result(result: OrchestratorResult, json_output: bool) -> None:
    if json_output:
        console.print_json(json.dumps(result, default=_json_default))
        return

    console.print(Markdown(result["text"]))
    details = f"{result['model']} via {result['backend']}, ${result['estimated_cost']:.4f}"
    if result["escalated"]:
        details += ", escalated"
    if result["worktree"]:
        details += f", worktree kept at {result['worktree']}"
    console.print(f"\n[dim]{details}[/dim]")


def _json_default(value: Any) -> Any:
    if hasattr(value, "__dataclass_fields__"):
        return {name: getattr(value, name) for name in value.__dataclass_fields__}
    return str(value)


@app.command(name="spend")
def spend_command(
    by: Optional[str] = typer.Option(
        None, "--by", help=f"Group by one of: {', '.join(SPEND_GROUPS)}"
    ),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Only the last N days"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show spend recorded in the ledger.

    Examples:
        taskforge spend
        taskforge spend --by backend --days 7
    """
    if by is not None and by not in SPEND_GROUPS:
        err_console.print(f"[red]Error: unknown grouping '{by}'[/red]")
        raise typer.Exit(1)
    since = datetime.now(timezone.utc) - timedelta(days=days) if days else None

    try:
        rows = asyncio.run(_aggregate(by, since))
    except (ValueError, OSError) as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    if json_output:
        console.print_json(json.dumps(rows, default=str))
        return

    table = Table(title="Spend" if by is None else f"Spend by {by}")
    if by is not None:
        table.add_column(by.capitalize(), style="cyan")
    table.add_column("Calls", justify="right")
    table.add_column("Prompt tokens", justify="right")
    table.add_column("Completion tokens", justify="right")
    table.add_column("Cost", justify="right", style="green")
    for row in rows:
        cells = [
            str(row["calls"]),
            str(row["prompt_tokens"]),
            str(row["completion_tokens"]),
            f"${row['total_cost']:.4f}",
        ]
        if by is not None:
            cells.insert(0, str(row["key"] or "unknown"))
        table.add_row(*cells)
    console.print(table)


async def _aggregate(group_by: str | None, since: datetime | None) -> list[dict[str, Any]]:
    ledger = Ledger(get_settings().ledger_path)
    try:
        return await ledger.aggregate(group_by, since)
    finally:
        await ledger.close()


@sessions_app.command("clean")
def sessions_clean(
    max_age_days: float = typer.Option(7.0, "--max-age-days", help="Remove sessions older than this"),
) -> None:
    """Remove stale session records."""
    removed = SessionManager(get_settings()).clean_stale_sessions(max_age_days * 86400)
    console.print(f"Removed {removed} stale session(s).")


if __name__ == "__main__":
    app()
