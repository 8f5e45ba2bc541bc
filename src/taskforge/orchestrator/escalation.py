"""Escalation policy: when to retry on a stronger model, and which one.

The chain is an explicit directed graph checked for cycles at import time.
Escalation is a single explicit hop, never an automatic retry loop.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import orjson

from taskforge.backends.registry import backend_for_model, resolve_model_id
from taskforge.orchestrator.runner import AgentRunner
from taskforge.orchestrator.types import Classification, Complexity, ExecutionResult
from taskforge.telemetry import (
    ESCALATION_SKIPPED,
    ESCALATION_TRIGGERED,
    QUALITY_JUDGE_FAILED,
    QUALITY_JUDGE_VERDICT,
    get_logger,
)

log = get_logger(__name__)

TERMINAL_MODEL = "claude-code"

# Adjacency map: model -> next stronger model. Models absent from the map are
# terminal (claude-code) or never escalated (jules-cli, async only).
ESCALATION_GRAPH: dict[str, str] = {
    "ollama-qwen2.5-coder": "gemini-2.0-flash",
    "ollama-deepseek-r1": "o3-mini",
    "ollama-llama-3.3-70b": "gemini-2.0-pro",
    "gemini-2.0-flash": "gemini-2.0-pro",
    "gemini-2.5-flash": "gemini-2.5-pro",
    "gpt-4o-mini": "gpt-4.5",
    "o3-mini": "o3",
    "claude-3.5-haiku": TERMINAL_MODEL,
    "codex-cli": TERMINAL_MODEL,
    "gemini-2.0-pro": TERMINAL_MODEL,
    "gemini-2.5-pro": TERMINAL_MODEL,
    "gpt-4.5": TERMINAL_MODEL,
    "o3": TERMINAL_MODEL,
}

MIN_RESPONSE_CHARS = {
    Complexity.HIGH: 600,
    Complexity.MEDIUM: 200,
    Complexity.LOW: 50,
}

REFUSAL_PATTERN = re.compile(r"^(error|failed|sorry|i can't|unable to)", re.IGNORECASE)

ESCALATION_INSTRUCTION = "Previous attempt was insufficient. Return a stronger answer."


def find_cycle(graph: dict[str, str]) -> list[str] | None:
    """Return one cycle in a successor map, or None if the graph is acyclic."""
    for start in graph:
        seen: list[str] = []
        node: str | None = start
        while node is not None:
            if node in seen:
                return seen[seen.index(node) :] + [node]
            seen.append(node)
            node = graph.get(node)
    return None


def _assert_acyclic(graph: dict[str, str]) -> None:
    cycle = find_cycle(graph)
    if cycle is not None:
        raise ValueError(f"Escalation graph contains a cycle: {' -> '.join(cycle)}")


_assert_acyclic(ESCALATION_GRAPH)


def get_escalation_target(model: str) -> str | None:
    """Next model in the chain, or None for terminal and never-escalated models."""
    resolved = resolve_model_id(model) or model
    return ESCALATION_GRAPH.get(resolved)


def escalation_path(model: str) -> list[str]:
    """Full chain starting at ``model`` (inclusive) and ending at a terminal model."""
    path = [resolve_model_id(model) or model]
    while (target := get_escalation_target(path[-1])) is not None:
        path.append(target)
    return path


def should_escalate(
    result: ExecutionResult,
    classification: Classification,
    *,
    auto_escalate: bool = True,
    explicit_backend: str | None = None,
) -> bool:
    """Heuristic check for an insufficient answer.

    Escalates only when auto-escalation is on and no backend was pinned, and
    the text is empty, starts with a refusal/error phrase, or is shorter than
    the complexity minimum (high 600, medium 200, low 50 characters).
    """
    if not auto_escalate or explicit_backend:
        return False

    text = (result.text or "").strip()
    if not text:
        return True
    if REFUSAL_PATTERN.match(text):
        return True
    return len(text) < MIN_RESPONSE_CHARS.get(classification.complexity, 50)


class Verdict(str, Enum):
    """Quality judge verdicts."""

    ADEQUATE = "ADEQUATE"
    INADEQUATE = "INADEQUATE"
    UNCERTAIN = "UNCERTAIN"


@dataclass(frozen=True)
class JudgeVerdict:
    """Parsed quality-judge answer."""

    verdict: Verdict
    reason: str
    confidence: float

    def warrants_escalation(self, threshold: float) -> bool:
        """True only for a confident INADEQUATE verdict."""
        return self.verdict is Verdict.INADEQUATE and self.confidence >= threshold


UNCERTAIN = JudgeVerdict(Verdict.UNCERTAIN, "judge unavailable", 0.0)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

JUDGE_PROMPT = """You grade whether an AI answer adequately solves a task.
Reply with a single JSON object and nothing else:
{{"verdict": "ADEQUATE" | "INADEQUATE" | "UNCERTAIN", "reason": "<one sentence>", "confidence": <0.0-1.0>}}

Task type: {task_type} (complexity: {complexity})

## Task
{task}

## Answer
{answer}
"""


def parse_verdict(text: str) -> JudgeVerdict:
    """Parse a judge reply; anything malformed becomes UNCERTAIN."""
    match = _JSON_OBJECT_RE.search(text or "")
    if not match:
        return JudgeVerdict(Verdict.UNCERTAIN, "unparseable judge reply", 0.0)
    try:
        data = orjson.loads(match.group(0))
        verdict = Verdict(str(data["verdict"]).upper())
        confidence = float(data.get("confidence", 0.0))
    except (orjson.JSONDecodeError, KeyError, ValueError, TypeError, AttributeError):
        return JudgeVerdict(Verdict.UNCERTAIN, "unparseable judge reply", 0.0)
    return JudgeVerdict(verdict, str(data.get("reason", "")), min(max(confidence, 0.0), 1.0))


class QualityJudge:
    """Asks a lightweight model to grade a prior answer."""

    def __init__(self, runner: AgentRunner, model: str) -> None:
        self.runner = runner
        self.model = resolve_model_id(model) or model

    async def judge(
        self, task: str, result: ExecutionResult, classification: Classification
    ) -> JudgeVerdict:
        """Grade ``result``; judge failures fail safe to UNCERTAIN."""
        backend = backend_for_model(self.model) or ""
        prompt = JUDGE_PROMPT.format(
            task_type=classification.task_type,
            complexity=classification.complexity.value,
            task=task,
            answer=result.text[:8000],
        )
        outcome = await self.runner.execute(backend, self.model, prompt)
        if not outcome.success:
            log.warning(QUALITY_JUDGE_FAILED, model=self.model, error=outcome.text)
            return UNCERTAIN

        verdict = parse_verdict(outcome.text)
        log.info(
            QUALITY_JUDGE_VERDICT,
            model=self.model,
            verdict=verdict.verdict.value,
            confidence=verdict.confidence,
        )
        return verdict


class EscalationPolicy:
    """Performs the single escalation hop."""

    def __init__(self, runner: AgentRunner) -> None:
        self.runner = runner

    async def escalate(
        self,
        prompt: str,
        current: ExecutionResult,
        classification: Classification,
        cwd: Path | None = None,
    ) -> ExecutionResult:
        """Re-run ``prompt`` on the next model in the chain.

        Args:
            prompt: The prompt that produced ``current``.
            current: The insufficient result.
            classification: Task classification (for logging).
            cwd: Working directory for CLI backends.

        Returns:
            The original result with ``escalated=False`` when no stronger model
            exists; otherwise the new result with ``escalated=True``, tagged
            ``[Escalated from X to Y]`` when it succeeded.
        """
        current_model = resolve_model_id(current.model) or current.model
        next_model = get_escalation_target(current_model)
        if next_model is None:
            log.info(ESCALATION_SKIPPED, model=current_model, reason="terminal_model")
            return current

        log.info(
            ESCALATION_TRIGGERED,
            from_model=current_model,
            to_model=next_model,
            complexity=classification.complexity.value,
        )
        retried = await self.runner.execute(
            backend_for_model(next_model) or "",
            next_model,
            f"{prompt}\n\n{ESCALATION_INSTRUCTION}",
            cwd=cwd,
        )
        text = retried.text
        if retried.success:
            text = f"{text}\n\n[Escalated from {current_model} to {next_model}]"
        return ExecutionResult(
            text=text,
            model=next_model,
            usage=retried.usage,
            duration_ms=retried.duration_ms,
            success=retried.success,
            escalated=True,
            escalated_from=current_model,
        )
