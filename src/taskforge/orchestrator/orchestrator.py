"""High-level orchestrator API.

``Orchestrator.run`` is the single entry point for a task. It classifies the
task, then either short-circuits through Tier 1 (one deterministic backend
call) or runs the full Tier 2 flow: checkpoint, identity and knowledge-base
lookup, planning, spec assembly, cost guard, session and worktree, execution,
escalation, summary and teardown. Dry runs stop after the cost estimate and
never touch sessions, worktrees or the ledger.

Exactly one ledger entry is written per non-dry-run invocation, from a
``finally`` block, so failures are recorded too.
"""

import dataclasses
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from taskforge.backends.models import ModelRegistry
from taskforge.backends.registry import backend_for_model, resolve_model_id
from taskforge.backends.types import BackendInvoker
from taskforge.brain.models import BrainQueryResult
from taskforge.brain.service import BrainError, BrainService
from taskforge.config.cache import MtimeCache
from taskforge.config.identity_loader import Identity, load_identity
from taskforge.config.loader import ConfigLoadError
from taskforge.config.model_loader import default_model_registry, load_model_registry
from taskforge.config.settings import AppConfig
from taskforge.ledger.models import LedgerEntry
from taskforge.ledger.reports import maybe_write_reports
from taskforge.ledger.tracker import Ledger
from taskforge.orchestrator.assembler import assemble_agent_spec, render_agent_prompt
from taskforge.orchestrator.checkpoint import Confirmer
from taskforge.orchestrator.classifier import Classifier
from taskforge.orchestrator.context_loader import (
    TaskContext,
    load_context,
    truncate_context,
)
from taskforge.orchestrator.cost_estimator import CostEstimator, enforce_cost_guard
from taskforge.orchestrator.escalation import EscalationPolicy, QualityJudge, should_escalate
from taskforge.orchestrator.lifecycle import compress_execution, project_name, store_summary
from taskforge.orchestrator.pipeline import PipelineRunner
from taskforge.orchestrator.routing import (
    Route,
    resolve_tier_one_route,
    resolve_tier_two_route,
)
from taskforge.orchestrator.runner import AgentRunner
from taskforge.orchestrator.session import SessionManager
from taskforge.orchestrator.types import (
    AgentSpec,
    BackendInvocationError,
    CheckpointDeclinedError,
    Classification,
    CostEstimate,
    DryRunPlan,
    ExecutionResult,
    OrchestratorResult,
    Session,
    Step,
    StepResult,
    SubAgentSpec,
    Worktree,
)
from taskforge.orchestrator.workflows import (
    generate_steps_for_command,
    is_multi_step_command,
    plan_sub_agents,
    summarize_sub_agent_results,
)
from taskforge.orchestrator.worktree import (
    WorktreeError,
    WorktreeManager,
    branch_name,
    should_create_worktree,
)
from taskforge.telemetry import (
    APPROVAL_DENIED,
    DRY_RUN_PLANNED,
    LEDGER_WRITE_FAILED,
    SUB_AGENT_COMPLETED,
    TASK_COMPLETED,
    TASK_FAILED,
    TASK_STARTED,
    WORKTREE_KEPT,
    get_logger,
)
from taskforge.telemetry.trace import TraceContext

log = get_logger(__name__)

PROTECTED_COMMANDS = frozenset({"deploy", "provision"})

DEFAULT_CONTEXT_TOKEN_BUDGET = 32_000

PIPELINE_SYNTHESIS_INSTRUCTION = "Synthesize a final response."
REVIEW_STAGE_INSTRUCTION = "Stage 1: Check spec compliance and list deviations only."


@dataclass(frozen=True)
class TaskRequest:
    """One human-issued task.

    Attributes:
        command: CLI command (``build``, ``review``, ``commit``...).
        task: Free-text task description.
        cwd: Directory the task runs against.
        file_paths: Files to attach as context.
        explicit_backend: Pin the backend (disables department routing and
            heuristic escalation).
        explicit_model: Pin the model.
        review_staged: Include the staged diff.
        pr_number: Include a pull-request diff.
        deep: For ``ask``, use full orchestration.
        dry_run: Return the plan without executing.
        force: Bypass the cost hard stop and protected-command checkpoint.
        conventional_commit: Ask for a conventional commit message.
        keep_worktree: Keep a created worktree without asking.
    """

    command: str
    task: str
    cwd: Path
    file_paths: tuple[str, ...] = ()
    explicit_backend: str | None = None
    explicit_model: str | None = None
    review_staged: bool = False
    pr_number: int | None = None
    deep: bool = False
    dry_run: bool = False
    force: bool = False
    conventional_commit: bool = False
    keep_worktree: bool = False


def build_tier_one_prompt(
    command: str, task: str, staged_diff: str | None, conventional_commit: bool = False
) -> str:
    """Minimal passthrough prompt; commit prompts wrap the staged diff."""
    if command != "commit":
        return task
    instruction = (
        "Return a single conventional commit message."
        if conventional_commit
        else "Return a single concise commit message."
    )
    diff = (staged_diff or "").strip() or "No staged diff was found."
    return f"{instruction}\n\nStaged diff:\n```diff\n{diff}\n```"


def final_backend(route: Route, result: ExecutionResult | None) -> str:
    """Backend that produced ``result``; escalation may have moved it."""
    if result is not None and result.escalated:
        return backend_for_model(result.model) or route.backend
    return route.backend


class Orchestrator:
    """Task orchestrator.

    All collaborators are injected; ``invoker`` is the only way to reach a
    backend and ``confirmer`` the only way to reach a human.
    """

    def __init__(
        self,
        config: AppConfig,
        invoker: BackendInvoker,
        confirmer: Confirmer,
        *,
        ledger: Ledger | None = None,
        brain: BrainService | None = None,
        cache: MtimeCache | None = None,
        sessions: SessionManager | None = None,
        worktrees: WorktreeManager | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Application settings.
            invoker: Backend capability (possibly wrapped for progress display).
            confirmer: Human checkpoint capability.
            ledger: Ledger; defaults to ``<home>/ledger.db``.
            brain: Knowledge base; defaults to ``<home>/brain.yaml``.
            cache: Shared mtime cache for the identity, registry and patterns.
            sessions: Session manager; defaults to ``<home>/sessions``.
            worktrees: Worktree manager; defaults to ``<home>/worktrees``.
        """
        self.config = config
        self.confirmer = confirmer
        self.cache = cache or MtimeCache()
        self.ledger = ledger or Ledger(config.ledger_path)
        self.brain = brain or BrainService(config, self.cache)
        self.sessions = sessions or SessionManager(config)
        self.worktrees = worktrees or WorktreeManager(config)
        self.classifier = Classifier(config.learned_patterns_path, self.cache)
        self.runner = AgentRunner(invoker, config.backend_timeout_seconds)
        self.escalation = EscalationPolicy(self.runner)
        self.judge = QualityJudge(self.runner, config.quality_judge_model)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _model_registry(self) -> ModelRegistry:
        if not self.config.models_path.is_file():
            return default_model_registry()
        return load_model_registry(self.config.models_path, self.cache)

    def _identity(self) -> Identity:
        return load_identity(self.config.intent_path, self.cache)

    def _context_budget(self, registry: ModelRegistry, model: str) -> int:
        entry = registry.get(model)
        if entry is None or entry.context_window is None:
            return DEFAULT_CONTEXT_TOKEN_BUDGET
        return min(DEFAULT_CONTEXT_TOKEN_BUDGET, entry.context_window // 2)

    async def _record(
        self,
        request: TaskRequest,
        classification: Classification,
        route: Route,
        estimate: CostEstimate,
        result: ExecutionResult | None,
        duration_ms: int,
        *,
        escalated: bool = False,
        session_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Write the invocation's ledger entry; failures are logged only."""
        usage = result.usage if result is not None else None
        entry = LedgerEntry(
            command=request.command,
            backend=route.backend,
            model=result.model if result is not None else route.model,
            workflow=classification.task_type,
            department=classification.department,
            prompt_tokens=(usage["prompt_tokens"] if usage else 0) or estimate.prompt_tokens,
            completion_tokens=(
                (usage["completion_tokens"] if usage else 0) or estimate.completion_tokens
            ),
            estimated_cost=estimate.estimated_cost,
            duration_ms=duration_ms,
            success=result is not None and result.success,
            escalated=escalated,
            session_id=session_id,
            project=project_name(request.cwd),
            metadata={
                "tier": classification.tier,
                "passthrough": classification.passthrough,
                "route_reason": classification.route_reason,
                "file_paths": list(request.file_paths),
                **(metadata or {}),
            },
        )
        try:
            total = await self.ledger.append(entry)
            await maybe_write_reports(
                self.ledger, total, self.config.reports_dir, self.config.report_interval
            )
        except (SQLAlchemyError, OSError) as e:
            log.error(LEDGER_WRITE_FAILED, command=request.command, error=str(e), exc_info=True)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, request: TaskRequest) -> OrchestratorResult | DryRunPlan:
        """Run one task.

        Args:
            request: The task.

        Returns:
            A DryRunPlan when ``request.dry_run`` is set, else an
            OrchestratorResult.

        Raises:
            BudgetExceededError: Estimate above the hard stop without ``force``.
            CheckpointDeclinedError: A protected command was not approved.
            BackendInvocationError: The primary call failed and escalation did
                not recover it.
        """
        trace = TraceContext.new_trace()
        tlog = log.bind(trace_id=trace.trace_id)
        classification = self.classifier.classify(
            request.command, request.task, request.file_paths, request.deep
        )
        tlog.info(
            TASK_STARTED,
            command=request.command,
            tier=classification.tier,
            dry_run=request.dry_run,
        )
        try:
            if classification.tier == 1:
                return await self._run_tier_one(request, classification)
            return await self._run_tier_two(request, classification, trace)
        except Exception as e:
            tlog.warning(TASK_FAILED, command=request.command, error=str(e))
            raise

    # ------------------------------------------------------------------
    # Tier 1
    # ------------------------------------------------------------------

    async def _run_tier_one(
        self, request: TaskRequest, classification: Classification
    ) -> OrchestratorResult | DryRunPlan:
        route = resolve_tier_one_route(
            request.command, classification, request.explicit_backend, request.explicit_model
        )
        staged_diff = None
        if request.command == "commit":
            context = await load_context(request.cwd, review_staged=True)
            staged_diff = context.staged_diff
        prompt = build_tier_one_prompt(
            request.command, request.task, staged_diff, request.conventional_commit
        )

        estimate = CostEstimator(self._model_registry()).estimate(route.model, prompt, classification)
        enforce_cost_guard(estimate, self.config, force=request.force, dry_run=request.dry_run)

        if request.dry_run:
            plan = DryRunPlan(
                dry_run=True,
                tier=classification.tier,
                passthrough=classification.passthrough,
                backend=route.backend,
                model=route.model,
                estimated_cost=estimate.estimated_cost,
                department=classification.department,
                cost=estimate.to_dict(),
            )
            log.info(DRY_RUN_PLANNED, tier=1, model=route.model)
            return plan

        start = time.monotonic()
        result: ExecutionResult | None = None
        try:
            result = await self.runner.execute(route.backend, route.model, prompt, cwd=request.cwd)
        finally:
            await self._record(
                request,
                classification,
                route,
                estimate,
                result,
                int((time.monotonic() - start) * 1000),
            )

        if not result.success:
            raise BackendInvocationError(result.text, result)

        log.info(TASK_COMPLETED, command=request.command, tier=1, model=result.model)
        return OrchestratorResult(
            text=result.text,
            tier=1,
            backend=route.backend,
            model=result.model,
            success=True,
            escalated=False,
            session_id=None,
            usage=result.usage,
            estimated_cost=estimate.estimated_cost,
            duration_ms=result.duration_ms,
            step_results=[],
            notebooks_updated=[],
            worktree=None,
        )

    # ------------------------------------------------------------------
    # Tier 2
    # ------------------------------------------------------------------

    async def _query_brain(
        self, task: str, classification: Classification
    ) -> tuple[BrainQueryResult, list[str]]:
        try:
            brain = await self.brain.query(task, classification)
        except (BrainError, ConfigLoadError) as e:
            log.warning("brain_query_failed", error=str(e))
            brain = BrainQueryResult(query=task)
        try:
            prerequisites = await self.brain.query_prerequisites(task, classification)
        except (BrainError, ConfigLoadError) as e:
            log.warning("brain_prerequisites_failed", error=str(e))
            prerequisites = []
        return brain, prerequisites

    async def _load_context(self, request: TaskRequest, cwd: Path, budget: int) -> TaskContext:
        context = await load_context(
            cwd, request.file_paths, request.review_staged, request.pr_number
        )
        return truncate_context(context, budget)

    async def _run_sub_agents(
        self, sub_agents: list[SubAgentSpec], cwd: Path, trace: TraceContext
    ) -> list[tuple[SubAgentSpec, ExecutionResult]]:
        results = []
        for agent in sub_agents:
            _, span_id = trace.new_span()
            if agent.requires_confirmation and not await self.confirmer.confirm(
                f"{agent.name} ({agent.model})"
            ):
                continue
            model = resolve_model_id(agent.model) or agent.model
            outcome = await self.runner.execute(
                backend_for_model(model) or "", model, agent.prompt, cwd=cwd
            )
            log.info(
                SUB_AGENT_COMPLETED,
                trace_id=trace.trace_id,
                span_id=span_id,
                name=agent.name,
                model=model,
                success=outcome.success,
            )
            results.append((agent, outcome))
        return results

    async def _review_stage_one(self, prompt: str, cwd: Path) -> str | None:
        model = resolve_model_id(self.config.review_stage_model) or self.config.review_stage_model
        outcome = await self.runner.execute(
            backend_for_model(model) or "", model, f"{prompt}\n\n{REVIEW_STAGE_INSTRUCTION}", cwd=cwd
        )
        return outcome.text if outcome.success and outcome.text.strip() else None

    async def _maybe_escalate(
        self,
        request: TaskRequest,
        prompt: str,
        result: ExecutionResult,
        classification: Classification,
        cwd: Path,
    ) -> ExecutionResult:
        allowed = self.config.auto_escalate and not request.explicit_backend
        needs_escalation = should_escalate(
            result,
            classification,
            auto_escalate=self.config.auto_escalate,
            explicit_backend=request.explicit_backend,
        ) or (allowed and not result.success)

        if not needs_escalation and allowed and self.config.quality_judge_enabled:
            verdict = await self.judge.judge(request.task, result, classification)
            needs_escalation = verdict.warrants_escalation(self.config.escalation_threshold)

        if not needs_escalation:
            return result
        return await self.escalation.escalate(prompt, result, classification, cwd=cwd)

    async def _resolve_worktree_cleanup(self, worktree: Worktree, success: bool, keep: bool) -> bool:
        """Remove the worktree unless it should be kept; returns True when kept."""
        if success and not keep and not self.config.auto_approve:
            try:
                keep = await self.confirmer.confirm(
                    f"Keep worktree at {worktree.path}? (merge manually)"
                )
            except Exception as e:
                # An unanswerable prompt counts as "do not keep".
                log.warning("worktree_keep_prompt_failed", path=str(worktree.path), error=str(e))
                keep = False
        if success and keep:
            log.info(WORKTREE_KEPT, branch=worktree.branch, path=str(worktree.path))
            return True
        await self.worktrees.remove(worktree)
        return False

    async def _run_tier_two(
        self, request: TaskRequest, classification: Classification, trace: TraceContext
    ) -> OrchestratorResult | DryRunPlan:
        command = request.command
        if command in PROTECTED_COMMANDS and not request.force and not request.dry_run:
            approved = await self.confirmer.confirm(f"Run protected '{command}': {request.task}")
            if not approved:
                log.info(APPROVAL_DENIED, command=command)
                raise CheckpointDeclinedError(
                    f"'{command}' requires confirmation. Re-run with --force."
                )

        identity = self._identity()
        registry = self._model_registry()
        brain, brain_prerequisites = await self._query_brain(request.task, classification)
        sub_agents = plan_sub_agents(classification, request.task)
        use_pipeline = is_multi_step_command(command, classification)
        steps = (
            generate_steps_for_command(command, request.task, classification)
            if use_pipeline
            else []
        )
        route = resolve_tier_two_route(
            command,
            classification,
            identity,
            request.explicit_backend,
            request.explicit_model,
        )
        budget = self._context_budget(registry, route.model)
        context = await self._load_context(request, request.cwd, budget)

        spec = assemble_agent_spec(
            identity,
            classification,
            context,
            brain,
            sub_agents,
            request.task,
            route.backend,
            route.model,
            brain_prerequisites,
            timeout_seconds=self.config.backend_timeout_seconds,
        )
        prompt = render_agent_prompt(spec, context, request.task)
        estimator = CostEstimator(registry)
        estimate = estimator.estimate(route.model, prompt, classification)
        enforce_cost_guard(estimate, self.config, force=request.force, dry_run=request.dry_run)

        if request.dry_run:
            return await self._dry_run_plan(
                request, classification, route, estimate, brain, spec, [s.name for s in steps]
            )

        session = self.sessions.scaffold(
            command,
            request.task,
            metadata={
                "trace_id": trace.trace_id,
                "cwd": str(request.cwd),
                "backend": route.backend,
                "model": route.model,
                "classification": classification.to_dict(),
            },
        )

        worktree: Worktree | None = None
        exec_cwd = request.cwd
        if await should_create_worktree(request.cwd, command, classification):
            try:
                worktree = await self.worktrees.create(request.cwd, request.task, session.id)
                exec_cwd = worktree.path
            except WorktreeError as e:
                log.warning("worktree_create_failed", session_id=session.id, error=str(e))

        if exec_cwd != request.cwd:
            context = await self._load_context(request, exec_cwd, budget)
            spec = dataclasses.replace(spec, context={**spec.context, "cwd": str(exec_cwd)})
            prompt = render_agent_prompt(spec, context, request.task)
        self.sessions.hydrate(session, {"context": context.summary(), "cwd": str(exec_cwd)})

        return await self._execute_tier_two(
            request,
            classification,
            route,
            estimate,
            estimator,
            identity,
            brain,
            session,
            worktree,
            exec_cwd,
            spec,
            prompt,
            sub_agents,
            steps,
            trace,
        )

    async def _dry_run_plan(
        self,
        request: TaskRequest,
        classification: Classification,
        route: Route,
        estimate: CostEstimate,
        brain: BrainQueryResult,
        spec: AgentSpec,
        step_names: list[str],
    ) -> DryRunPlan:
        worktree = None
        if await should_create_worktree(request.cwd, request.command, classification):
            worktree = {
                "branch": branch_name(request.task, "<session>"),
                "root": str(self.worktrees.root),
            }
        plan = DryRunPlan(
            dry_run=True,
            tier=classification.tier,
            passthrough=classification.passthrough,
            backend=route.backend,
            model=route.model,
            estimated_cost=estimate.estimated_cost,
            department=classification.department,
            cost=estimate.to_dict(),
            classification=classification.to_dict(),
            brain_notebooks=list(brain.notebooks),
            spec=spec.to_dict(),
            worktree=worktree,
            pipeline_step_names=step_names,
        )
        log.info(DRY_RUN_PLANNED, tier=2, model=route.model, steps=len(step_names))
        return plan

    async def _execute_tier_two(
        self,
        request: TaskRequest,
        classification: Classification,
        route: Route,
        estimate: CostEstimate,
        estimator: CostEstimator,
        identity: Identity,
        brain: BrainQueryResult,
        session: Session,
        worktree: Worktree | None,
        exec_cwd: Path,
        spec: AgentSpec,
        prompt: str,
        sub_agents: list[SubAgentSpec],
        steps: list[Step],
        trace: TraceContext,
    ) -> OrchestratorResult:
        start = time.monotonic()
        result: ExecutionResult | None = None
        step_results: list[StepResult] = []
        sub_agent_names: list[str] = []
        success = False
        kept_worktree = False
        try:
            if steps:
                pipeline = PipelineRunner(self.runner, self.confirmer, self.config, estimator)
                step_results = await pipeline.run(
                    session, steps, cwd=exec_cwd, force=request.force, trace=trace
                )
                prompt = (
                    f"{prompt}\n\nPipeline results:\n"
                    f"{summarize_sub_agent_results(step_results)}\n\n"
                    f"{PIPELINE_SYNTHESIS_INSTRUCTION}"
                )
            else:
                if sub_agents:
                    outcomes = await self._run_sub_agents(sub_agents, exec_cwd, trace)
                    sub_agent_names = [agent.name for agent, _ in outcomes]
                    if outcomes:
                        prompt = (
                            f"{prompt}\n\nSub-agent results:\n"
                            f"{summarize_sub_agent_results(outcomes)}"
                        )
                engineering = identity.department("engineering")
                if request.command == "review" and engineering and engineering.review_standard:
                    findings = await self._review_stage_one(prompt, exec_cwd)
                    if findings:
                        prompt = f"{prompt}\n\nStage 1 review findings:\n{findings}"

            result = await self.runner.execute(
                route.backend,
                route.model,
                prompt,
                cwd=exec_cwd,
                temperature=spec.runtime.temperature,
                max_tokens=spec.runtime.max_tokens,
            )
            result = await self._maybe_escalate(
                request, prompt, result, classification, exec_cwd
            )
            if result.escalated:
                escalated_estimate = estimator.estimate(result.model, prompt, classification)
                estimate = dataclasses.replace(
                    estimate,
                    estimated_cost=round(
                        estimate.estimated_cost + escalated_estimate.estimated_cost, 6
                    ),
                )

            if not result.success:
                raise BackendInvocationError(
                    f"{result.model} failed: {result.text}", result
                )
            success = True
        finally:
            escalated = result is not None and result.escalated
            await self._record(
                request,
                classification,
                Route(route.model, final_backend(route, result)),
                estimate,
                result,
                int((time.monotonic() - start) * 1000),
                escalated=escalated,
                session_id=session.id,
                metadata={
                    "brain_notebooks": list(brain.notebooks),
                    "sub_agents": sub_agent_names,
                    "pipeline_steps": [step.name for step in steps],
                    "branch": worktree.branch if worktree else None,
                },
            )
            try:
                if worktree is not None:
                    kept_worktree = await self._resolve_worktree_cleanup(
                        worktree, success, request.keep_worktree
                    )
            finally:
                if not success:
                    self.sessions.teardown(
                        session,
                        {
                            "success": False,
                            "notebooks": [],
                            "escalated": escalated,
                            "model": result.model if result is not None else route.model,
                        },
                    )

        summary = compress_execution(
            request.command,
            request.task,
            result,
            final_backend(route, result),
            classification,
            estimate,
            project_name(request.cwd),
        )
        stored = await store_summary(self.brain, summary)
        self.sessions.teardown(
            session,
            {
                "success": True,
                "notebooks": stored.notebooks,
                "escalated": result.escalated,
                "model": result.model,
            },
        )

        log.info(
            TASK_COMPLETED,
            command=request.command,
            tier=2,
            model=result.model,
            escalated=result.escalated,
            session_id=session.id,
        )
        return OrchestratorResult(
            text=result.text,
            tier=2,
            backend=final_backend(route, result),
            model=result.model,
            success=True,
            escalated=result.escalated,
            session_id=session.id,
            usage=result.usage,
            estimated_cost=estimate.estimated_cost,
            duration_ms=int((time.monotonic() - start) * 1000),
            step_results=step_results,
            notebooks_updated=stored.notebooks,
            worktree=str(worktree.path) if worktree is not None and kept_worktree else None,
        )
