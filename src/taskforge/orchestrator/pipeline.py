"""Sequential multi-step pipeline execution.

Steps run strictly in order: each step sees a compressed summary of the
outputs before it. Checkpoint and destructive steps ask the Confirmer first;
a declined step is recorded as skipped and contributes nothing to the prior
context. Step failures are recorded as text, never raised.
"""

import time
from collections.abc import Sequence
from pathlib import Path

from taskforge.backends.registry import backend_for_model, resolve_model_id
from taskforge.config.settings import AppConfig
from taskforge.orchestrator.checkpoint import Confirmer
from taskforge.orchestrator.cost_estimator import CostEstimator, enforce_cost_guard
from taskforge.orchestrator.runner import AgentRunner
from taskforge.orchestrator.types import Session, Step, StepResult, zero_usage
from taskforge.telemetry import (
    PIPELINE_ABORTED,
    PIPELINE_STARTED,
    PIPELINE_STEP_COMPLETED,
    PIPELINE_STEP_SKIPPED,
    TraceContext,
    get_logger,
)

log = get_logger(__name__)

HEAD_FRACTION = 0.6
TAIL_FRACTION = 0.3


def compress_context(text: str, budget_chars: int) -> str:
    """Bound prior-step text to roughly ``budget_chars``.

    Keeps the first 60% and the last 30% of the budget with a
    ``[...compressed N chars...]`` marker between them.
    """
    if budget_chars <= 0 or len(text) <= budget_chars:
        return text
    head = int(budget_chars * HEAD_FRACTION)
    tail = int(budget_chars * TAIL_FRACTION)
    omitted = len(text) - head - tail
    return f"{text[:head]}\n[...compressed {omitted} chars...]\n{text[len(text) - tail :]}"


def build_step_prompt(step: Step, prior_context: str) -> str:
    """Prefix a step's instructions with the prior-step summary."""
    if not prior_context:
        return step.prompt
    return f"Prior context:\n{prior_context}\n\n{step.prompt}"


def _skipped(step: Step, reason: str) -> StepResult:
    return StepResult(
        name=step.name,
        model=resolve_model_id(step.model) or step.model,
        text=f"Skipped: {reason}",
        usage=zero_usage(),
        duration_ms=0,
        success=False,
        skipped=True,
    )


class PipelineRunner:
    """Runs a hand-authored step list for one session.

    Attributes:
        runner: Agent runner used for every step.
        confirmer: Human checkpoint capability.
        estimator: Optional cost estimator; when set, every step passes the
            cost guard before it is invoked.
        context_budget_chars: Prior-context size limit.
        skip_policy: ``continue`` runs the remaining steps after a declined
            checkpoint; ``abort`` skips them.
    """

    def __init__(
        self,
        runner: AgentRunner,
        confirmer: Confirmer,
        config: AppConfig,
        estimator: CostEstimator | None = None,
    ) -> None:
        self.runner = runner
        self.confirmer = confirmer
        self.config = config
        self.estimator = estimator
        self.context_budget_chars = config.pipeline_context_budget_chars
        self.skip_policy = config.checkpoint_skip_policy

    async def run(
        self,
        session: Session,
        steps: Sequence[Step],
        *,
        cwd: Path | None = None,
        force: bool = False,
        trace: TraceContext | None = None,
    ) -> list[StepResult]:
        """Execute ``steps`` in order.

        Args:
            session: Owning session.
            steps: Planned steps.
            cwd: Working directory for CLI backends.
            force: Passed to the cost guard.
            trace: Task trace; each executed step logs under its own child span.

        Returns:
            One StepResult per step, in order.

        Raises:
            BudgetExceededError: If a step's estimate exceeds the hard stop.
        """
        plog = log.bind(session_id=session.id)
        if trace is not None:
            plog = plog.bind(trace_id=trace.trace_id)
        plog.info(PIPELINE_STARTED, steps=[step.name for step in steps])
        results: list[StepResult] = []
        outputs: list[str] = []
        aborted = False

        for step in steps:
            if aborted:
                results.append(_skipped(step, "pipeline aborted at checkpoint"))
                continue

            slog = plog.bind(step=step.name)
            if trace is not None:
                slog = slog.bind(span_id=trace.new_span()[1])

            if step.requires_confirmation and not await self.confirmer.confirm(
                f"{step.name} ({step.model})"
            ):
                slog.info(PIPELINE_STEP_SKIPPED)
                results.append(_skipped(step, "declined at checkpoint"))
                if self.skip_policy == "abort":
                    aborted = True
                    slog.warning(PIPELINE_ABORTED)
                continue

            model = resolve_model_id(step.model) or step.model
            backend = backend_for_model(model) or ""
            prior_context = compress_context("\n\n".join(outputs), self.context_budget_chars)
            prompt = build_step_prompt(step, prior_context)

            if self.estimator is not None:
                enforce_cost_guard(self.estimator.estimate(model, prompt), self.config, force=force)

            start = time.monotonic()
            outcome = await self.runner.execute(backend, model, prompt, cwd=cwd)
            result = StepResult(
                name=step.name,
                model=model,
                text=outcome.text,
                usage=outcome.usage,
                duration_ms=int((time.monotonic() - start) * 1000),
                success=outcome.success,
            )
            results.append(result)
            if outcome.success:
                outputs.append(f"### {step.name}\n{outcome.text.strip()}")
            slog.info(
                PIPELINE_STEP_COMPLETED,
                model=model,
                success=outcome.success,
                duration_ms=result.duration_ms,
            )

        return results
