"""Token and cost estimation, plus the cost hard-stop guard.

Prices come from the model registry (USD per million tokens). Estimation never
fails: a model missing from the registry, or one without per-token pricing, is
reported at zero cost with its token counts intact.
"""

from taskforge.backends.models import ModelRegistry
from taskforge.backends.registry import resolve_model_id
from taskforge.backends.types import estimate_tokens
from taskforge.config.settings import AppConfig
from taskforge.orchestrator.types import (
    BudgetExceededError,
    Classification,
    Complexity,
    CostEstimate,
)
from taskforge.telemetry import BUDGET_EXCEEDED, COST_ESTIMATED, COST_WARNING, get_logger

log = get_logger(__name__)

__all__ = [
    "CostEstimator",
    "enforce_cost_guard",
    "estimate_tokens",
    "expected_completion_tokens",
]

_COMPLETION_BY_TASK_TYPE = {
    "commit_message": 80,
    "raw_query": 120,
}

_COMPLETION_BY_COMPLEXITY = {
    Complexity.HIGH: 3000,
    Complexity.MEDIUM: 1000,
}

DEFAULT_COMPLETION_TOKENS = 200


def expected_completion_tokens(classification: Classification | None) -> int:
    """Expected completion size for a task.

    Args:
        classification: Task classification, or None for an unclassified prompt.

    Returns:
        80 for commit messages, 120 for raw queries, then 3000/1000/200 by
        complexity.
    """
    if classification is None:
        return DEFAULT_COMPLETION_TOKENS
    if classification.task_type in _COMPLETION_BY_TASK_TYPE:
        return _COMPLETION_BY_TASK_TYPE[classification.task_type]
    return _COMPLETION_BY_COMPLEXITY.get(classification.complexity, DEFAULT_COMPLETION_TOKENS)


class CostEstimator:
    """Converts a prompt and model id into a CostEstimate."""

    def __init__(self, registry: ModelRegistry) -> None:
        self.registry = registry

    def estimate(
        self,
        model_id: str,
        prompt: str,
        classification: Classification | None = None,
        completion_tokens: int | None = None,
    ) -> CostEstimate:
        """Estimate tokens and price.

        Args:
            model_id: Registry id or alias.
            prompt: Prompt text; tokens are ``ceil(len / 4)``.
            classification: Drives the expected completion size.
            completion_tokens: Explicit completion size, overriding the table.

        Returns:
            CostEstimate with the cost rounded to 6 decimal places.
        """
        resolved = resolve_model_id(model_id) or model_id
        prompt_tokens = estimate_tokens(prompt)
        if completion_tokens is None:
            completion_tokens = expected_completion_tokens(classification)

        entry = self.registry.get(resolved)
        if entry is None:
            log.debug("model_pricing_unknown", model=resolved)
            return CostEstimate(resolved, prompt_tokens, completion_tokens, 0.0)

        input_rate = entry.cost.input_per_1m or 0.0
        output_rate = entry.cost.output_per_1m or 0.0
        cost = input_rate * prompt_tokens / 1_000_000 + output_rate * completion_tokens / 1_000_000
        return CostEstimate(resolved, prompt_tokens, completion_tokens, round(cost, 6))


def enforce_cost_guard(
    estimate: CostEstimate,
    config: AppConfig,
    *,
    force: bool = False,
    dry_run: bool = False,
) -> None:
    """Fail fast when an estimate exceeds the configured hard stop.

    Args:
        estimate: Estimate for the prompt about to run.
        config: Settings with ``cost_warning_threshold`` and ``cost_hard_stop``.
        force: Caller explicitly accepted the cost.
        dry_run: Nothing will be spent, so the guard does not apply.

    Raises:
        BudgetExceededError: If the estimate is above the hard stop and neither
            ``force`` nor ``dry_run`` is set.
    """
    log.info(
        COST_ESTIMATED,
        model=estimate.model,
        prompt_tokens=estimate.prompt_tokens,
        completion_tokens=estimate.completion_tokens,
        estimated_cost=estimate.estimated_cost,
    )

    if estimate.estimated_cost > config.cost_hard_stop and not force and not dry_run:
        log.warning(
            BUDGET_EXCEEDED,
            model=estimate.model,
            estimated_cost=estimate.estimated_cost,
            hard_stop=config.cost_hard_stop,
        )
        raise BudgetExceededError(estimate.estimated_cost, config.cost_hard_stop)

    if estimate.estimated_cost > config.cost_warning_threshold:
        log.warning(
            COST_WARNING,
            model=estimate.model,
            estimated_cost=estimate.estimated_cost,
            threshold=config.cost_warning_threshold,
        )
