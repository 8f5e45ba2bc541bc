"""AgentSpec assembly and prompt rendering.

``assemble_agent_spec`` is a pure transform of identity, classification,
loaded context and knowledge-base results into an AgentSpec.
``render_agent_prompt`` serializes that spec and the raw context into one
prompt string in a fixed section order, omitting empty optional sections.
"""

from collections.abc import Sequence

from taskforge.brain.models import BrainQueryResult
from taskforge.config.identity_loader import Identity
from taskforge.orchestrator.context_loader import TaskContext
from taskforge.orchestrator.types import (
    AgentSpec,
    Classification,
    Complexity,
    OutputSpec,
    RuntimeSpec,
    Soul,
    SubAgentSpec,
)

MAX_TOKENS = {
    Complexity.HIGH: 6000,
    Complexity.MEDIUM: 3000,
    Complexity.LOW: 1200,
}

RESEARCH_TEMPERATURE = 0.4
DEFAULT_TEMPERATURE = 0.2

BRAIN_LINES_PER_RESULT = 3
MAX_BRAIN_EXCERPTS = 6
MAX_PRIOR_KNOWLEDGE = 8

DEFAULT_TONE = "Direct, technical, no fluff"

ROLES = {
    "code_review": "Senior code reviewer",
    "debugging": "Senior debugging engineer",
    "implementation": "Senior implementation engineer",
    "research": "Senior research analyst",
    "comparison": "Senior research analyst",
    "summarization": "Senior research analyst",
    "deployment": "Senior infrastructure engineer",
    "diagnosis": "Senior infrastructure engineer",
    "provisioning": "Senior infrastructure engineer",
    "refactor": "Senior refactoring engineer",
    "commit_message": "Senior release operator",
}
DEFAULT_ROLE = "Senior technical assistant"

OUTPUT_SECTIONS = {
    "structured_review": ("Findings", "Risks", "Recommendations"),
    "research_report": ("Findings", "Tradeoffs", "Recommendation"),
    "commit_message": ("Commit Message", "Rationale"),
    "implementation_notes": ("Plan", "Changes", "Notes"),
}


def output_format_for(classification: Classification) -> str:
    """Output format from task type first, then department."""
    if classification.task_type == "code_review":
        return "structured_review"
    if classification.department == "research":
        return "research_report"
    if classification.task_type == "commit_message":
        return "commit_message"
    return "implementation_notes"


def _brain_excerpts(brain: BrainQueryResult | None) -> list[str]:
    if brain is None:
        return []
    lines: list[str] = []
    for result in brain.results:
        excerpt = [line.strip() for line in result.excerpt.split("\n") if line.strip()]
        lines.extend(excerpt[:BRAIN_LINES_PER_RESULT])
    return lines[:MAX_BRAIN_EXCERPTS]


def assemble_agent_spec(
    identity: Identity,
    classification: Classification,
    context: TaskContext,
    brain: BrainQueryResult | None,
    sub_agents: Sequence[SubAgentSpec],
    task: str,
    backend: str,
    model: str,
    brain_prerequisites: Sequence[str] = (),
    timeout_seconds: float = 300.0,
) -> AgentSpec:
    """Build the AgentSpec for a Tier 2 task.

    Args:
        identity: Parsed identity document.
        classification: Task classification.
        context: Loaded task context.
        brain: Knowledge-base query result, if any.
        sub_agents: Planned sub-agents.
        task: Task text.
        backend: Primary backend.
        model: Primary model id.
        brain_prerequisites: Prior-knowledge lines from earlier tasks.
        timeout_seconds: Per-invocation timeout.

    Returns:
        AgentSpec; assembling has no side effects.
    """
    department = identity.department(classification.department)
    focus = (department.focus if department else "") or classification.department
    methodology = tuple(department.methodology) if department else ()
    safety: list[str] = []
    if department is not None:
        for label, value in (
            ("Review standard", department.review_standard),
            ("Output standard", department.output_standard),
            ("Safety standard", department.safety_standard),
            ("Automation level", department.automation_level),
        ):
            if value:
                safety.append(f"{label}: {value}")

    constraints = ["Minimize context - only use relevant inputs"]
    if classification.department == "engineering":
        constraints.append("Prioritize correctness before style")
    if classification.department == "research":
        constraints.append("Cite concrete evidence from available context")

    owner = identity.owner
    role = ROLES.get(classification.task_type, DEFAULT_ROLE)
    soul = Soul(
        identity=f"{role} for {owner.name or 'the owner'}, focused on {focus}",
        values=tuple(identity.values),
        tone=owner.communication_style or DEFAULT_TONE,
        owner=f"{owner.name} ({owner.role})" if owner.name or owner.role else "",
    )

    prerequisites = [
        f"Department: {classification.department}",
        f"Complexity: {classification.complexity.value}",
    ]
    prerequisites.extend(f"Loaded file: {item.path}" for item in context.files)
    prerequisites.extend(_brain_excerpts(brain))
    prerequisites.extend(f"[Brain] {line}" for line in brain_prerequisites[:MAX_PRIOR_KNOWLEDGE])
    if context.staged_diff:
        prerequisites.append("Review staged git diff")
    if context.pr_diff:
        prerequisites.append("Review pull request diff")

    skills = ["file_read"]
    if context.staged_diff or context.pr_diff:
        skills.append("git_diff")
    if context.files:
        skills.append("context_loader")
    if sub_agents:
        skills.append("sub_agent_dispatch")

    output_format = output_format_for(classification)
    return AgentSpec(
        department=classification.department,
        task=task,
        soul=soul,
        output=OutputSpec(format=output_format, sections=OUTPUT_SECTIONS[output_format]),
        runtime=RuntimeSpec(
            backend=backend,
            model=model,
            max_tokens=MAX_TOKENS[classification.complexity],
            temperature=(
                RESEARCH_TEMPERATURE
                if classification.department == "research"
                else DEFAULT_TEMPERATURE
            ),
            timeout_seconds=timeout_seconds,
        ),
        methodology=methodology,
        constraints=tuple(constraints),
        prerequisites=tuple(prerequisites),
        context={
            "cwd": str(context.cwd),
            "files": [{"path": item.path, "role": "primary context"} for item in context.files],
            "manifest": context.manifest_name,
        },
        skills=tuple(skills),
        sub_agents=tuple(sub_agents),
        safety=tuple(safety),
    )


def _bullets(title: str, items: Sequence[str]) -> list[str]:
    return ["", f"{title}:", *(f"- {item}" for item in items)]


def _code_block(title: str, language: str, body: str) -> list[str]:
    return ["", title, f"```{language}", body.strip(), "```"]


def render_agent_prompt(spec: AgentSpec, context: TaskContext, task: str) -> str:
    """Serialize an AgentSpec and its raw context into a prompt.

    Section order: role, tone, owner, constraints, values, task, methodology,
    prerequisites, safety, sub-agents, skills, then manifest, files, staged
    diff, PR diff, recent history and blame.
    """
    lines = [f"You are {spec.soul.identity}."]
    if spec.soul.tone:
        lines.append(f"Tone: {spec.soul.tone}.")
    if spec.soul.owner:
        lines.append(f"Owner context: {spec.soul.owner}.")

    if spec.constraints:
        lines.extend(_bullets("Constraints", spec.constraints))
    if spec.soul.values:
        lines.extend(_bullets("Values", spec.soul.values))
    lines.extend(["", "Task:", task])
    lines.extend(_bullets("Methodology", spec.methodology or ("Use pragmatic judgment.",)))
    if spec.prerequisites:
        lines.extend(_bullets("Prerequisites", spec.prerequisites))
    if spec.safety:
        lines.extend(_bullets("Safety", spec.safety))
    if spec.sub_agents:
        lines.extend(
            _bullets(
                "Sub-agents",
                [f"{agent.name} ({agent.model}): {agent.prompt}" for agent in spec.sub_agents],
            )
        )
    if spec.skills:
        lines.extend(_bullets("Skills", spec.skills))
    if spec.output.sections:
        lines.extend(
            [
                "",
                f"Output format: {spec.output.format}",
                "Sections: " + ", ".join(spec.output.sections),
            ]
        )

    if context.manifest and context.manifest_name:
        lines.extend(_code_block(f"{context.manifest_name}:", "", context.manifest))
    for item in context.files:
        if item.content:
            lines.extend(_code_block(f"File: {item.path}", "", item.content))
    if context.staged_diff:
        lines.extend(_code_block("Staged diff:", "diff", context.staged_diff))
    if context.pr_diff:
        lines.extend(_code_block("PR diff:", "diff", context.pr_diff))
    if context.recent_changes:
        lines.extend(_code_block("Recent git changes:", "text", context.recent_changes))
    for path, blame in context.blame.items():
        if blame:
            lines.extend(_code_block(f"Git blame for {path}:", "text", blame))

    return "\n".join(lines)
