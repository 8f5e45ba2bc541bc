"""Workflow planning: hand-authored step sequences and sub-agent rosters.

Pipelines are fixed per command; there is no workflow DSL. A pipeline is used
only for high-complexity ``refactor``, ``build`` and ``deploy``; otherwise
``plan_sub_agents`` may produce a flat list of independent perspectives.
"""

from collections.abc import Sequence

from taskforge.orchestrator.types import (
    Classification,
    Complexity,
    ExecutionResult,
    Step,
    StepResult,
    SubAgentSpec,
)

MULTI_STEP_COMMANDS = frozenset({"refactor", "build", "deploy"})

SUB_AGENT_OUTCOME_CHARS = 400


def _step(
    name: str,
    model: str,
    prompt: str,
    kind: str,
    department: str = "engineering",
    destructive: bool = False,
    checkpoint: bool = False,
) -> Step:
    return Step(name, model, prompt, kind, department, destructive, checkpoint)


def _refactor_steps(task: str) -> list[Step]:
    return [
        _step(
            "Research best practices",
            "gemini-2.5-pro",
            f"Research best practices for: {task}",
            "research",
            department="research",
        ),
        _step(
            "Analyze current code",
            "ollama-deepseek-r1",
            f"Analyze current code paths for: {task}",
            "analysis",
        ),
        _step(
            "Generate refactor plan",
            "claude-code",
            f"Generate a step-by-step refactor plan for: {task}",
            "plan",
        ),
        _step(
            "Checkpoint: review plan",
            "claude-code",
            f"Confirm the refactor plan is safe for: {task}",
            "checkpoint",
            checkpoint=True,
        ),
        _step(
            "Execute refactor",
            "claude-code",
            f"Execute the refactor for: {task}",
            "execute",
            destructive=True,
        ),
        _step(
            "Run tests",
            "ollama-qwen2.5-coder",
            f"Generate and validate tests for: {task}",
            "tests",
        ),
        _step(
            "Final review",
            "gemini-2.5-pro",
            f"Review the completed refactor for: {task}",
            "review",
        ),
    ]


def _build_steps(task: str) -> list[Step]:
    return [
        _step(
            "Plan implementation",
            "claude-code",
            f"Create an implementation plan for: {task}",
            "plan",
        ),
        _step(
            "Checkpoint: review plan",
            "claude-code",
            f"Confirm the implementation plan for: {task}",
            "checkpoint",
            checkpoint=True,
        ),
        _step(
            "Execute build",
            "claude-code",
            f"Execute the implementation for: {task}",
            "execute",
            destructive=True,
        ),
        _step("Generate tests", "ollama-qwen2.5-coder", f"Draft a test plan for: {task}", "tests"),
        _step(
            "Review",
            "gemini-2.5-pro",
            f"Review the completed implementation for: {task}",
            "review",
        ),
    ]


def _review_steps(task: str) -> list[Step]:
    return [
        _step(
            "Spec compliance check",
            "gemini-2.5-flash",
            f"Check spec compliance for: {task}. List deviations only.",
            "spec_check",
        ),
        _step(
            "Quality review",
            "gemini-2.5-pro",
            f"Perform a thorough quality review for: {task}",
            "quality_review",
        ),
    ]


def _commit_steps(task: str) -> list[Step]:
    return [
        _step(
            "Generate diff summary",
            "ollama-qwen2.5-coder",
            f"Summarize the staged diff for: {task}",
            "summary",
            department="operations",
        ),
        _step(
            "Generate commit message",
            "ollama-qwen2.5-coder",
            f"Generate a commit message for: {task}",
            "message",
            department="operations",
        ),
        _step(
            "Checkpoint: confirm message",
            "ollama-qwen2.5-coder",
            f"Confirm commit message for: {task}",
            "checkpoint",
            department="operations",
            checkpoint=True,
        ),
    ]


def _deploy_steps(task: str) -> list[Step]:
    return [
        _step(
            "Pre-deploy checks",
            "gemini-2.5-flash",
            f"Run pre-deployment checks for: {task}",
            "checks",
            department="infrastructure",
        ),
        _step(
            "Generate deploy plan",
            "claude-code",
            f"Create deployment plan for: {task}",
            "plan",
            department="infrastructure",
        ),
        _step(
            "Checkpoint: review plan",
            "claude-code",
            f"Confirm deployment plan for: {task}",
            "checkpoint",
            department="infrastructure",
            checkpoint=True,
        ),
        _step(
            "Execute deployment",
            "claude-code",
            f"Execute deployment for: {task}",
            "execute",
            department="infrastructure",
            destructive=True,
        ),
    ]


def generate_steps_for_command(
    command: str, task: str, classification: Classification
) -> list[Step]:
    """Return the fixed step sequence for a command.

    ``build`` only has a pipeline at high complexity; commands without a
    sequence return an empty list.
    """
    if command == "refactor":
        return _refactor_steps(task)
    if command == "build":
        return _build_steps(task) if classification.complexity is Complexity.HIGH else []
    if command == "review":
        return _review_steps(task)
    if command == "commit":
        return _commit_steps(task)
    if command == "deploy":
        return _deploy_steps(task)
    return []


def is_multi_step_command(command: str, classification: Classification) -> bool:
    """True only for high-complexity ``refactor``, ``build`` and ``deploy``."""
    return classification.complexity is Complexity.HIGH and command in MULTI_STEP_COMMANDS


def _sub_agent(name: str, department: str, model: str, prompt: str, kind: str) -> SubAgentSpec:
    return SubAgentSpec(name, model, prompt, kind, department)


def plan_sub_agents(classification: Classification, task: str) -> list[SubAgentSpec]:
    """Flat list of independent perspectives for a task.

    Five fixed roles for refactors, two for high-complexity builds, none
    otherwise.
    """
    if classification.task_type == "refactor":
        return [
            _sub_agent(
                "Research current approach",
                "research",
                "gemini-2.5-pro",
                f"Research best practices for: {task}",
                "research",
            ),
            _sub_agent(
                "Analyze current code paths",
                "engineering",
                "ollama-deepseek-r1",
                f"Analyze current code paths for: {task}",
                "analysis",
            ),
            _sub_agent(
                "Generate refactor plan",
                "engineering",
                "claude-code",
                f"Generate a step-by-step refactor plan for: {task}",
                "plan",
            ),
            _sub_agent(
                "Generate tests",
                "engineering",
                "ollama-qwen2.5-coder",
                f"Generate tests for: {task}",
                "tests",
            ),
            _sub_agent(
                "Security review",
                "engineering",
                "gemini-2.5-pro",
                f"Review the refactor plan for security risks: {task}",
                "review",
            ),
        ]

    high = classification.complexity is Complexity.HIGH
    if classification.task_type == "implementation" and high:
        return [
            _sub_agent(
                "Plan implementation",
                "engineering",
                "claude-code",
                f"Create an implementation plan for: {task}",
                "plan",
            ),
            _sub_agent(
                "Generate tests",
                "engineering",
                "ollama-qwen2.5-coder",
                f"Draft a test plan for: {task}",
                "tests",
            ),
        ]

    return []


def summarize_sub_agent_results(
    results: Sequence[tuple[SubAgentSpec, ExecutionResult]] | Sequence[StepResult],
) -> str:
    """Render sub-agent or step outcomes as markdown blocks.

    Each block is ``### name`` followed by the model and the first 400
    characters of the outcome.
    """
    blocks = []
    for item in results:
        if isinstance(item, StepResult):
            name, model, text = item.name, item.model, item.text
        else:
            spec, result = item
            name, model, text = spec.name, result.model, result.text
        blocks.append(
            f"### {name}\n- Model: {model}\n- Outcome: {text[:SUB_AGENT_OUTCOME_CHARS]}"
        )
    return "\n\n".join(blocks)
