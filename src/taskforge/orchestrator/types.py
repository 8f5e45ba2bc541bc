"""Core types for the orchestrator.

This module defines the data structures used throughout the orchestrator:
- Complexity / SessionStage: enumerations
- Classification and RoutingOverride: the routing decision for one task
- CostEstimate: token and price estimate attached to every execution
- AgentSpec (Soul, OutputSpec, RuntimeSpec): the assembled Tier 2 plan
- Step / SubAgentSpec / StepResult: pipeline plan entries and their outcomes
- ExecutionResult: outcome of one backend invocation (failures are data)
- Session / Worktree: per-task lifecycle records
- DryRunPlan / OrchestratorResult: payloads returned to the CLI
- Error classes: orchestrator error hierarchy
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, TypedDict

from taskforge.backends.types import Usage


class Complexity(str, Enum):
    """Task complexity levels, ordered low to high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SessionStage(str, Enum):
    """Lifecycle stages of a session (one-directional)."""

    SCAFFOLD = "scaffold"
    HYDRATE = "hydrate"
    TEARDOWN = "teardown"


def zero_usage() -> Usage:
    """Usage of an invocation that never reached a backend."""
    return Usage(prompt_tokens=0, completion_tokens=0)


@dataclass(frozen=True)
class Classification:
    """Structured routing decision derived from a task description.

    Attributes:
        task_type: Workflow name (e.g. ``implementation``, ``code_review``).
        complexity: Low, medium or high.
        department: Identity department that owns the task.
        context_needed: File paths the task attached.
        estimated_context_tokens: Coarse context size estimate.
        sub_agents_needed: Number of sub-agents the planner should produce.
        requires_checkpoint: Whether a human must confirm before destructive work.
        tier: 1 (deterministic passthrough) or 2 (full orchestration).
        passthrough: True when no agent assembly happens.
        route_reason: Human-readable reason for the tier choice.
    """

    task_type: str
    complexity: Complexity
    department: str
    context_needed: tuple[str, ...] = ()
    estimated_context_tokens: int = 400
    sub_agents_needed: int = 0
    requires_checkpoint: bool = False
    tier: int = 2
    passthrough: bool = False
    route_reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible values."""
        data = asdict(self)
        data["complexity"] = self.complexity.value
        data["context_needed"] = list(self.context_needed)
        return data


@dataclass(frozen=True)
class RoutingOverride:
    """Learned routing override for one ``command:complexity`` key.

    Only the tier-related fields can be overridden; ``None`` keeps the computed
    value.
    """

    tier: int | None = None
    passthrough: bool | None = None
    reason: str | None = None


@dataclass(frozen=True)
class CostEstimate:
    """Token and price estimate for one prompt on one model."""

    model: str
    prompt_tokens: int
    completion_tokens: int
    estimated_cost: float

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible values."""
        return asdict(self)


@dataclass(frozen=True)
class Soul:
    """Persona section of an AgentSpec."""

    identity: str
    values: tuple[str, ...] = ()
    tone: str = ""
    owner: str = ""


@dataclass(frozen=True)
class OutputSpec:
    """Expected output format and ordered section headings."""

    format: str
    sections: tuple[str, ...] = ()


@dataclass(frozen=True)
class RuntimeSpec:
    """Where and how the primary prompt runs."""

    backend: str
    model: str
    max_tokens: int
    temperature: float
    timeout_seconds: float


@dataclass(frozen=True)
class Step:
    """One planned unit of work.

    Attributes:
        name: Display name of the step.
        model: Registry model id that runs it.
        prompt: Step instructions (task text is appended at run time).
        kind: Step role (research, analyze, plan, checkpoint, execute, test, review).
        department: Department the step works under.
        destructive: True when the step changes files or infrastructure.
        checkpoint: True when the step is a human confirmation gate.
    """

    name: str
    model: str
    prompt: str
    kind: str
    department: str
    destructive: bool = False
    checkpoint: bool = False

    @property
    def requires_confirmation(self) -> bool:
        """Whether a human must approve this step before it runs."""
        return self.checkpoint or self.destructive


@dataclass(frozen=True)
class SubAgentSpec(Step):
    """A flat, multi-perspective sub-agent; same shape as a pipeline step."""


@dataclass(frozen=True)
class AgentSpec:
    """Fully assembled execution plan for one Tier 2 invocation."""

    department: str
    task: str
    soul: Soul
    output: OutputSpec
    runtime: RuntimeSpec
    methodology: tuple[str, ...] = ()
    constraints: tuple[str, ...] = ()
    prerequisites: tuple[str, ...] = ()
    context: dict[str, Any] = field(default_factory=dict)
    skills: tuple[str, ...] = ()
    sub_agents: tuple[SubAgentSpec, ...] = ()
    safety: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible values."""
        return asdict(self)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one backend invocation.

    ``success=False`` results carry a descriptive ``text``; they are never
    raised.
    """

    text: str
    model: str
    usage: Usage = field(default_factory=zero_usage)
    duration_ms: int = 0
    success: bool = True
    escalated: bool = False
    escalated_from: str | None = None


@dataclass(frozen=True)
class StepResult:
    """Outcome of one pipeline step."""

    name: str
    model: str
    text: str
    usage: Usage = field(default_factory=zero_usage)
    duration_ms: int = 0
    success: bool = True
    skipped: bool = False


@dataclass(frozen=True)
class Worktree:
    """An isolated git worktree bound to one session."""

    branch: str
    path: Path
    repo_root: Path


@dataclass
class Session:
    """Lifecycle record of one task execution.

    Mutated at the scaffold, hydrate and teardown transitions only, always by
    the task that created it.
    """

    id: str
    stage: SessionStage
    command: str
    task: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "active"
    metadata: dict[str, Any] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)
    final_state: dict[str, Any] = field(default_factory=dict)

    @property
    def is_closed(self) -> bool:
        """True once teardown has run."""
        return self.stage is SessionStage.TEARDOWN


class DryRunPlan(TypedDict, total=False):
    """Plan returned by a dry run.

    Tier 1 plans carry only the routing keys; Tier 2 plans add
    ``classification``, ``brain_notebooks``, ``spec``, ``worktree`` and
    ``pipeline_step_names``.
    """

    dry_run: bool
    tier: int
    passthrough: bool
    backend: str
    model: str
    estimated_cost: float
    department: str
    cost: dict[str, Any]
    classification: dict[str, Any]
    brain_notebooks: list[str]
    spec: dict[str, Any]
    worktree: dict[str, str] | None
    pipeline_step_names: list[str]


class OrchestratorResult(TypedDict):
    """Result of a completed (non dry-run) task."""

    text: str
    tier: int
    backend: str
    model: str
    success: bool
    escalated: bool
    session_id: str | None
    usage: Usage
    estimated_cost: float
    duration_ms: int
    step_results: list[StepResult]
    notebooks_updated: list[str]
    worktree: str | None


# Error hierarchy


class OrchestratorError(Exception):
    """Base exception for orchestration failures surfaced to the caller."""

    pass


class BudgetExceededError(OrchestratorError):
    """Raised when a task's estimated cost exceeds the hard stop without ``force``."""

    def __init__(self, estimated_cost: float, hard_stop: float) -> None:
        super().__init__(
            f"Estimated cost ${estimated_cost:.4f} exceeds configured hard stop "
            f"(${hard_stop:.2f}). Re-run with --force to continue."
        )
        self.estimated_cost = estimated_cost
        self.hard_stop = hard_stop


class CheckpointDeclinedError(OrchestratorError):
    """Raised when a human declines the up-front checkpoint of a protected command."""

    pass


class BackendInvocationError(OrchestratorError):
    """Raised when the primary invocation failed and escalation did not recover it."""

    def __init__(self, message: str, result: ExecutionResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class InvalidSessionTransition(OrchestratorError):
    """Raised on a backward or repeated-teardown session transition."""

    pass
