"""Tests for cost estimation and the hard-stop guard."""

from pathlib import Path

import pytest

from taskforge.backends.models import ModelCost, ModelEntry, ModelRegistry
from taskforge.config import AppConfig
from taskforge.orchestrator.classifier import classify_task
from taskforge.orchestrator.cost_estimator import (
    CostEstimator,
    enforce_cost_guard,
    expected_completion_tokens,
)
from taskforge.orchestrator.types import BudgetExceededError, CostEstimate


@pytest.fixture
def estimator() -> CostEstimator:
    return CostEstimator(
        ModelRegistry(
            models={
                "free-local-model": ModelEntry(cost=ModelCost(input_per_1m=0.0, output_per_1m=0.0)),
                "paid-model": ModelEntry(cost=ModelCost(input_per_1m=3.0, output_per_1m=15.0)),
                "unpriced-model": ModelEntry(),
            }
        )
    )


def test_free_model_costs_nothing(estimator: CostEstimator) -> None:
    estimate = estimator.estimate("free-local-model", "hello", classify_task("ask", "hello"))
    assert estimate.estimated_cost == 0
    assert estimate.prompt_tokens == 2
    assert estimate.completion_tokens == 120


def test_paid_model_price(estimator: CostEstimator) -> None:
    classification = classify_task("build", "add an endpoint")
    estimate = estimator.estimate("paid-model", "x" * 4000, classification)

    # 1000 prompt tokens and 1000 completion tokens at medium complexity
    assert estimate.prompt_tokens == 1000
    assert estimate.completion_tokens == 1000
    assert estimate.estimated_cost == pytest.approx(0.003 + 0.015)


@pytest.mark.parametrize("model", ["unpriced-model", "not-in-registry"])
def test_unknown_pricing_is_zero(estimator: CostEstimator, model: str) -> None:
    estimate = estimator.estimate(model, "some prompt")
    assert estimate.estimated_cost == 0.0
    assert estimate.prompt_tokens == 3


def test_cost_monotonic_in_prompt_length(estimator: CostEstimator) -> None:
    classification = classify_task("review", "check this")
    costs = [
        estimator.estimate("paid-model", "y" * size, classification).estimated_cost
        for size in (0, 10, 1000, 100_000, 1_000_000)
    ]
    assert costs == sorted(costs)
    assert all(cost >= 0 for cost in costs)


def test_expected_completion_tokens() -> None:
    assert expected_completion_tokens(None) == 200
    assert expected_completion_tokens(classify_task("commit", "")) == 80
    assert expected_completion_tokens(classify_task("refactor", "x")) == 3000
    assert expected_completion_tokens(classify_task("summarize", "notes")) == 200


class TestCostGuard:
    """Test enforce_cost_guard."""

    def test_over_hard_stop_raises(self, tmp_path: Path) -> None:
        config = AppConfig(home=tmp_path, cost_hard_stop=1.0)
        estimate = CostEstimate("paid-model", 10, 10, 1.5)

        with pytest.raises(BudgetExceededError, match="--force") as exc_info:
            enforce_cost_guard(estimate, config)
        assert exc_info.value.estimated_cost == 1.5

    def test_force_and_dry_run_bypass(self, tmp_path: Path) -> None:
        config = AppConfig(home=tmp_path, cost_hard_stop=1.0)
        estimate = CostEstimate("paid-model", 10, 10, 1.5)

        enforce_cost_guard(estimate, config, force=True)
        enforce_cost_guard(estimate, config, dry_run=True)

    def test_under_hard_stop_passes(self, tmp_path: Path) -> None:
        config = AppConfig(home=tmp_path, cost_warning_threshold=0.1, cost_hard_stop=1.0)
        enforce_cost_guard(CostEstimate("paid-model", 10, 10, 0.5), config)
