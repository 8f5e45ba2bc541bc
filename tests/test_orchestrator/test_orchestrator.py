"""End-to-end tests for Orchestrator.run with a scripted backend."""

import subprocess
from pathlib import Path

import orjson
import pytest
from conftest import FakeInvoker, RecordingConfirmer, init_repo, requires_git

from taskforge.backends.types import BackendConnectionError
from taskforge.config import AppConfig, MtimeCache
from taskforge.ledger import Ledger
from taskforge.orchestrator import (
    BackendInvocationError,
    BudgetExceededError,
    CheckpointDeclinedError,
    Orchestrator,
    TaskRequest,
)
from taskforge.orchestrator.orchestrator import build_tier_one_prompt


def make_orchestrator(
    config: AppConfig,
    invoker: FakeInvoker,
    confirmer: RecordingConfirmer,
    ledger: Ledger,
) -> Orchestrator:
    return Orchestrator(config, invoker, confirmer, ledger=ledger, cache=MtimeCache())


def session_records(config: AppConfig) -> list[dict]:
    return [orjson.loads(path.read_bytes()) for path in config.sessions_dir.glob("*.json")]


def test_tier_one_commit_prompt() -> None:
    prompt = build_tier_one_prompt("commit", "", None, conventional_commit=True)
    assert prompt == (
        "Return a single conventional commit message.\n\n"
        "Staged diff:\n```diff\nNo staged diff was found.\n```"
    )
    assert build_tier_one_prompt("ask", "what is a monad", "diff") == "what is a monad"


class TestTierOne:
    """Test the deterministic passthrough tier."""

    @pytest.mark.asyncio
    async def test_ask_passthrough(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        result = await orchestrator.run(TaskRequest("ask", "what is a monad", tmp_path))

        assert result["tier"] == 1
        assert result["session_id"] is None
        assert result["model"] == "ollama-qwen2.5-coder"
        assert result["backend"] == "ollama"
        assert invoker.calls[0]["prompt"] == "what is a monad"
        assert await ledger.count() == 1
        assert session_records(config) == []

    @pytest.mark.asyncio
    async def test_commit_outside_git(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        await orchestrator.run(TaskRequest("commit", "", tmp_path))

        assert "No staged diff was found." in invoker.calls[0]["prompt"]
        assert invoker.models == ["ollama-qwen2.5-coder"]

    @pytest.mark.asyncio
    async def test_dry_run_has_no_side_effects(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        plan = await orchestrator.run(TaskRequest("ask", "hello", tmp_path, dry_run=True))

        assert plan["dry_run"] is True
        assert plan["tier"] == 1
        assert plan["passthrough"] is True
        assert plan["estimated_cost"] == 0
        serialized = orjson.dumps(plan).decode()
        assert '"spec":' not in serialized
        assert '"brain' not in serialized
        assert invoker.calls == []
        assert await ledger.count() == 0

    @pytest.mark.asyncio
    async def test_failure_still_recorded(
        self, config: AppConfig, confirmer: RecordingConfirmer, ledger: Ledger, tmp_path: Path
    ) -> None:
        invoker = FakeInvoker({"ollama-qwen2.5-coder": BackendConnectionError("ollama is down")})
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        with pytest.raises(BackendInvocationError, match="ollama is down"):
            await orchestrator.run(TaskRequest("ask", "hello", tmp_path))

        stats = await ledger.routing_stats()
        assert [(row.calls, row.successes) for row in stats] == [(1, 0)]


class TestTierTwo:
    """Test the full orchestration tier."""

    @pytest.mark.asyncio
    async def test_build_success(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        result = await orchestrator.run(TaskRequest("build", "add an endpoint", tmp_path))

        assert result["tier"] == 2
        assert result["model"] == "claude-code"
        assert result["escalated"] is False
        assert result["notebooks_updated"] == ["history-engineering"]
        assert result["worktree"] is None
        prompt = invoker.calls[0]["prompt"]
        assert prompt.startswith("You are Senior implementation engineer")
        assert invoker.calls[0]["options"].max_tokens == 3000

        records = session_records(config)
        assert len(records) == 1
        assert records[0]["id"] == result["session_id"]
        assert records[0]["stage"] == "teardown"
        assert records[0]["status"] == "success"
        assert await ledger.count() == 1

    @pytest.mark.asyncio
    async def test_dry_run_plan(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        plan = await orchestrator.run(TaskRequest("refactor", "utils", tmp_path, dry_run=True))

        assert plan["tier"] == 2
        assert plan["classification"]["complexity"] == "high"
        assert plan["classification"]["department"] == "engineering"
        assert len(plan["pipeline_step_names"]) == 7
        assert plan["worktree"] is None
        assert plan["spec"]["runtime"]["model"] == "claude-code"
        assert "history-engineering" in plan["brain_notebooks"]
        assert invoker.calls == []
        assert session_records(config) == []
        assert await ledger.count() == 0

    @pytest.mark.asyncio
    async def test_budget_exceeded(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        strict = AppConfig(home=config.home, auto_approve=True, cost_hard_stop=0.001)
        orchestrator = make_orchestrator(strict, invoker, confirmer, ledger)

        with pytest.raises(BudgetExceededError):
            await orchestrator.run(TaskRequest("build", "add an endpoint", tmp_path))
        assert invoker.calls == []
        assert await ledger.count() == 0

        await orchestrator.run(TaskRequest("build", "add an endpoint", tmp_path, force=True))
        assert await ledger.count() == 1

    @pytest.mark.asyncio
    async def test_short_answer_escalates(
        self, config: AppConfig, confirmer: RecordingConfirmer, ledger: Ledger, tmp_path: Path
    ) -> None:
        invoker = FakeInvoker({"ollama-qwen2.5-coder": "ok"})
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        result = await orchestrator.run(
            TaskRequest("build", "add an endpoint", tmp_path, explicit_model="ollama")
        )

        assert invoker.models == ["ollama-qwen2.5-coder", "gemini-2.0-flash"]
        assert result["escalated"] is True
        assert result["model"] == "gemini-2.0-flash"
        assert result["backend"] == "gemini"
        assert result["estimated_cost"] > 0
        assert "models" in result["notebooks_updated"]
        rows = await ledger.aggregate("backend")
        assert [row["key"] for row in rows] == ["gemini"]

    @pytest.mark.asyncio
    async def test_pinned_backend_failure(
        self, config: AppConfig, confirmer: RecordingConfirmer, ledger: Ledger, tmp_path: Path
    ) -> None:
        invoker = FakeInvoker({"ollama-qwen2.5-coder": BackendConnectionError("ollama is down")})
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        with pytest.raises(BackendInvocationError):
            await orchestrator.run(
                TaskRequest("build", "add an endpoint", tmp_path, explicit_backend="ollama")
            )

        assert invoker.models == ["ollama-qwen2.5-coder"]
        assert await ledger.count() == 1
        records = session_records(config)
        assert records[0]["status"] == "failed"
        assert records[0]["final_state"]["success"] is False

    @pytest.mark.asyncio
    async def test_judge_verdict_escalates(
        self, config: AppConfig, confirmer: RecordingConfirmer, ledger: Ledger, tmp_path: Path
    ) -> None:
        judged = AppConfig(home=config.home, auto_approve=True, quality_judge_enabled=True)
        invoker = FakeInvoker(
            {
                "gemini-2.5-flash": (
                    '{"verdict": "INADEQUATE", "reason": "misses tests", "confidence": 0.9}'
                )
            }
        )
        orchestrator = make_orchestrator(judged, invoker, confirmer, ledger)

        result = await orchestrator.run(
            TaskRequest("build", "add an endpoint", tmp_path, explicit_model="ollama")
        )

        assert invoker.models == ["ollama-qwen2.5-coder", "gemini-2.5-flash", "gemini-2.0-flash"]
        assert result["escalated"] is True

    @pytest.mark.asyncio
    async def test_review_runs_two_stages(
        self, config: AppConfig, confirmer: RecordingConfirmer, ledger: Ledger, tmp_path: Path
    ) -> None:
        invoker = FakeInvoker({"gemini-2.5-flash": "- Missing docstring on handler"})
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        await orchestrator.run(TaskRequest("review", "the api module", tmp_path))

        assert invoker.models == ["gemini-2.5-flash", "claude-code"]
        assert invoker.calls[0]["prompt"].endswith(
            "Stage 1: Check spec compliance and list deviations only."
        )
        assert "Stage 1 review findings:\n- Missing docstring on handler" in (
            invoker.calls[1]["prompt"]
        )

    @pytest.mark.asyncio
    async def test_refactor_pipeline(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        result = await orchestrator.run(TaskRequest("refactor", "utils", tmp_path))

        assert len(result["step_results"]) == 7
        assert all(step.success for step in result["step_results"])
        assert len(confirmer.questions) == 2
        assert len(invoker.calls) == 8
        final_prompt = invoker.calls[-1]["prompt"]
        assert "Pipeline results:\n### Research best practices" in final_prompt
        assert final_prompt.endswith("Synthesize a final response.")
        assert await ledger.count() == 1


    @pytest.mark.asyncio
    async def test_malformed_brain_registry_does_not_abort(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        config.brain_path.write_text("notebooks: [unclosed\n", encoding="utf-8")
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        result = await orchestrator.run(TaskRequest("build", "add an endpoint", tmp_path))

        assert result["success"] is True
        assert result["notebooks_updated"] == []
        records = session_records(config)
        assert records[0]["stage"] == "teardown"
        assert records[0]["status"] == "success"
        stats = await ledger.routing_stats()
        assert [(row.calls, row.successes) for row in stats] == [(1, 1)]

class TestCheckpoints:
    """Test protected commands."""

    @pytest.mark.asyncio
    async def test_declined_deploy(
        self, config: AppConfig, invoker: FakeInvoker, ledger: Ledger, tmp_path: Path
    ) -> None:
        confirmer = RecordingConfirmer(answer=False)
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        with pytest.raises(CheckpointDeclinedError, match="--force"):
            await orchestrator.run(TaskRequest("deploy", "staging", tmp_path))

        assert confirmer.questions == ["Run protected 'deploy': staging"]
        assert invoker.calls == []
        assert await ledger.count() == 0

    @pytest.mark.asyncio
    async def test_forced_deploy_skips_declined_steps(
        self, config: AppConfig, invoker: FakeInvoker, ledger: Ledger, tmp_path: Path
    ) -> None:
        confirmer = RecordingConfirmer(answer=False)
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        result = await orchestrator.run(TaskRequest("deploy", "staging", tmp_path, force=True))

        assert [step.skipped for step in result["step_results"]] == [False, False, True, True]
        assert "Skipped: declined at checkpoint" in invoker.calls[-1]["prompt"]
        assert len(invoker.calls) == 3


@pytest.mark.asyncio
async def test_follow_up_prerequisites_feed_next_task(
    config: AppConfig,
    invoker: FakeInvoker,
    confirmer: RecordingConfirmer,
    ledger: Ledger,
    tmp_path: Path,
) -> None:
    orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

    await orchestrator.run(TaskRequest("build", "add an endpoint", tmp_path))
    await orchestrator.run(TaskRequest("build", "add a second endpoint", tmp_path))

    assert "[Brain] Add a readiness probe to the deployment manifest" not in (
        invoker.calls[0]["prompt"]
    )
    assert "[Brain] Add a readiness probe to the deployment manifest" in (
        invoker.calls[1]["prompt"]
    )
    assert await ledger.count() == 2


def task_branches(repo: Path) -> list[str]:
    listing = subprocess.run(
        ["git", "branch", "--list", "taskforge/*", "--format=%(refname:short)"],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return listing.stdout.split()


def keep_prompt_unanswerable(description: str) -> bool:
    if description.startswith("Keep worktree"):
        raise EOFError("stdin closed")
    return True


@requires_git
class TestWorktrees:
    """Test isolated worktrees for high-complexity builds in a git repository."""

    TASK = "architecture overhaul"

    def expected_path(self, config: AppConfig, session_id: str) -> Path:
        return config.worktrees_dir / f"taskforge-architecture-overhaul-{session_id[:8]}"

    @pytest.mark.asyncio
    async def test_runs_in_worktree_and_removes_it(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        repo = init_repo(tmp_path / "repo")
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        result = await orchestrator.run(TaskRequest("build", self.TASK, repo))

        worktree = self.expected_path(config, result["session_id"])
        assert result["worktree"] is None
        assert len(result["step_results"]) == 5
        assert {str(call["options"].cwd) for call in invoker.calls} == {str(worktree)}
        records = session_records(config)
        assert records[0]["context"]["cwd"] == str(worktree)
        assert records[0]["status"] == "success"
        assert not worktree.exists()
        assert task_branches(repo) == []

    @pytest.mark.asyncio
    async def test_keep_worktree(
        self,
        config: AppConfig,
        invoker: FakeInvoker,
        confirmer: RecordingConfirmer,
        ledger: Ledger,
        tmp_path: Path,
    ) -> None:
        repo = init_repo(tmp_path / "repo")
        orchestrator = make_orchestrator(config, invoker, confirmer, ledger)

        result = await orchestrator.run(
            TaskRequest("build", self.TASK, repo, keep_worktree=True)
        )

        worktree = self.expected_path(config, result["session_id"])
        assert result["worktree"] == str(worktree)
        assert worktree.is_dir()
        branch = f"taskforge/architecture-overhaul-{result['session_id'][:8]}"
        assert task_branches(repo) == [branch]

    @pytest.mark.asyncio
    async def test_unanswerable_keep_prompt_removes_worktree(
        self, config: AppConfig, invoker: FakeInvoker, ledger: Ledger, tmp_path: Path
    ) -> None:
        repo = init_repo(tmp_path / "repo")
        interactive = AppConfig(home=config.home, auto_approve=False)
        confirmer = RecordingConfirmer(answer=keep_prompt_unanswerable)
        orchestrator = make_orchestrator(interactive, invoker, confirmer, ledger)

        result = await orchestrator.run(TaskRequest("build", self.TASK, repo))

        worktree = self.expected_path(config, result["session_id"])
        assert confirmer.questions[-1].startswith("Keep worktree")
        assert result["success"] is True
        assert result["worktree"] is None
        assert not worktree.exists()
        assert task_branches(repo) == []
        records = session_records(config)
        assert records[0]["stage"] == "teardown"
        assert records[0]["status"] == "success"
