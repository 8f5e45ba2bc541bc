"""Task classification.

Maps a command, its free-text task and any attached files to a
Classification. The keyword tables and the tier policy are fixed; the only
external input is an optional learned-pattern table keyed by
``command:complexity`` that may override the tier fields.
"""

import dataclasses
import re
from collections.abc import Mapping, Sequence
from pathlib import Path

import orjson

from taskforge.config.cache import MtimeCache
from taskforge.orchestrator.types import Classification, Complexity, RoutingOverride
from taskforge.telemetry import TASK_CLASSIFIED, get_logger

log = get_logger(__name__)

HIGH_COMPLEXITY_KEYWORDS = (
    "multi-file",
    "architecture",
    "migration",
    "production",
    "deploy",
    "oauth",
    "system",
    "compare",
    "research",
    "kubernetes",
    "infrastructure",
)

MEDIUM_COMPLEXITY_KEYWORDS = (
    "build",
    "debug",
    "review",
    "refactor",
    "endpoint",
    "api",
    "feature",
    "error",
)

TASK_TYPES = {
    "ask": "raw_query",
    "build": "implementation",
    "review": "code_review",
    "debug": "debugging",
    "research": "research",
    "compare": "comparison",
    "summarize": "summarization",
    "refactor": "refactor",
    "commit": "commit_message",
    "deploy": "deployment",
    "diagnose": "diagnosis",
    "provision": "provisioning",
}

COMMAND_DEPARTMENTS = {
    "research": "research",
    "compare": "research",
    "summarize": "research",
    "deploy": "infrastructure",
    "diagnose": "infrastructure",
    "provision": "infrastructure",
    "commit": "operations",
}

# Checked in order; the first match wins.
DEPARTMENT_PATTERNS = (
    (
        "infrastructure",
        re.compile(r"deploy|infrastructure|terraform|network|kubernetes|docker|vlan|homelab"),
    ),
    ("research", re.compile(r"research|compare|summarize|analysis|benchmark")),
    ("operations", re.compile(r"commit|pr|merge|ci|release")),
)

PINNED_HIGH_COMMANDS = frozenset({"refactor", "research", "compare"})
CHECKPOINT_COMMANDS = frozenset({"deploy", "provision"})
DESTRUCTIVE_COMMANDS = frozenset({"refactor", "build"})

TOKENS_PER_FILE = 1500
DEFAULT_CONTEXT_TOKENS = 400


def _detect_complexity(command: str, text: str, has_files: bool) -> Complexity:
    complexity = Complexity.LOW
    if any(term in text for term in HIGH_COMPLEXITY_KEYWORDS):
        complexity = Complexity.HIGH
    elif any(term in text for term in MEDIUM_COMPLEXITY_KEYWORDS) or has_files:
        complexity = Complexity.MEDIUM

    if command in ("review", "debug") and has_files and complexity is Complexity.LOW:
        complexity = Complexity.MEDIUM

    if command in PINNED_HIGH_COMMANDS:
        complexity = Complexity.HIGH
    return complexity


def _detect_department(command: str, text: str) -> str:
    if command in COMMAND_DEPARTMENTS:
        return COMMAND_DEPARTMENTS[command]
    for department, pattern in DEPARTMENT_PATTERNS:
        if pattern.search(text):
            return department
    return "engineering"


def _detect_tier(command: str, deep: bool) -> tuple[int, bool, str]:
    if command == "commit":
        return 1, True, "deterministic commit-message workflow"
    if command == "ask" and not deep:
        return 1, True, "raw passthrough ask command"
    return 2, False, "requires orchestrated agent assembly"


def apply_override(classification: Classification, override: RoutingOverride) -> Classification:
    """Merge a learned override into a classification.

    Only ``tier``, ``passthrough`` and ``route_reason`` can change.
    """
    return dataclasses.replace(
        classification,
        tier=override.tier if override.tier is not None else classification.tier,
        passthrough=(
            override.passthrough
            if override.passthrough is not None
            else classification.passthrough
        ),
        route_reason=(
            override.reason if override.reason is not None else classification.route_reason
        ),
    )


def classify_task(
    command: str,
    task: str,
    file_paths: Sequence[str] = (),
    deep: bool = False,
    learned_patterns: Mapping[str, RoutingOverride] | None = None,
) -> Classification:
    """Classify a task.

    Total over its inputs: empty text classifies as low complexity and unknown
    commands fall through to the engineering department with the command name
    as task type.

    Args:
        command: CLI command (``build``, ``review``, ``commit``...).
        task: Free-text task description.
        file_paths: Attached files.
        deep: For ``ask``, request full orchestration instead of passthrough.
        learned_patterns: Optional overrides keyed by ``command:complexity``.

    Returns:
        Immutable Classification.
    """
    command = command.strip().lower()
    text = f"{command} {task}".lower()
    has_files = len(file_paths) > 0

    complexity = _detect_complexity(command, text, has_files)
    tier, passthrough, reason = _detect_tier(command, deep)

    if command == "refactor":
        sub_agents = 5
    elif command == "build" and complexity is Complexity.HIGH:
        sub_agents = 2
    else:
        sub_agents = 0

    requires_checkpoint = command in CHECKPOINT_COMMANDS or (
        command in DESTRUCTIVE_COMMANDS and complexity is Complexity.HIGH
    )

    classification = Classification(
        task_type=TASK_TYPES.get(command, command),
        complexity=complexity,
        department=_detect_department(command, text),
        context_needed=tuple(file_paths),
        estimated_context_tokens=(
            len(file_paths) * TOKENS_PER_FILE if has_files else DEFAULT_CONTEXT_TOKENS
        ),
        sub_agents_needed=sub_agents,
        requires_checkpoint=requires_checkpoint,
        tier=tier,
        passthrough=passthrough,
        route_reason=reason,
    )

    override = (learned_patterns or {}).get(f"{command}:{complexity.value}")
    if override is not None:
        classification = apply_override(classification, override)
    return classification


def _parse_learned_patterns(path: Path) -> dict[str, RoutingOverride]:
    try:
        raw = orjson.loads(path.read_bytes())
    except (OSError, orjson.JSONDecodeError) as e:
        log.warning("learned_patterns_unreadable", path=str(path), error=str(e))
        return {}
    if not isinstance(raw, dict):
        log.warning("learned_patterns_invalid", path=str(path))
        return {}

    patterns: dict[str, RoutingOverride] = {}
    for key, value in raw.items():
        if not isinstance(value, dict):
            continue
        tier = value.get("tier")
        passthrough = value.get("passthrough")
        reason = value.get("reason")
        patterns[key] = RoutingOverride(
            tier=tier if tier in (1, 2) else None,
            passthrough=passthrough if isinstance(passthrough, bool) else None,
            reason=reason if isinstance(reason, str) else None,
        )
    return patterns


def load_learned_patterns(
    path: Path, cache: MtimeCache | None = None
) -> dict[str, RoutingOverride]:
    """Load learned routing overrides from a JSON object file.

    The table is advisory: a missing or malformed file yields no overrides.

    Args:
        path: ``learned-patterns.json`` location.
        cache: Optional mtime cache.

    Returns:
        Overrides keyed by ``command:complexity``.
    """
    if not path.is_file():
        return {}
    if cache is None:
        return _parse_learned_patterns(path)
    return cache.get_or_load(path, _parse_learned_patterns)


class Classifier:
    """Classifier bound to a learned-pattern source."""

    def __init__(self, patterns_path: Path | None = None, cache: MtimeCache | None = None) -> None:
        self.patterns_path = patterns_path
        self.cache = cache

    def classify(
        self,
        command: str,
        task: str,
        file_paths: Sequence[str] = (),
        deep: bool = False,
    ) -> Classification:
        """Classify a task, consulting the learned-pattern table if configured."""
        patterns = (
            load_learned_patterns(self.patterns_path, self.cache) if self.patterns_path else None
        )
        classification = classify_task(command, task, file_paths, deep, patterns)
        log.info(
            TASK_CLASSIFIED,
            command=command,
            task_type=classification.task_type,
            complexity=classification.complexity.value,
            department=classification.department,
            tier=classification.tier,
        )
        return classification
