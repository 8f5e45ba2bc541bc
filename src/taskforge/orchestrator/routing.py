"""Model and backend selection.

Tier 1 uses a fixed per-command fallback table. Tier 2 first asks the owning
department of the identity document for a model matching the task, then falls
back to the same table. An explicit model or backend always wins.
"""

import re
from dataclasses import dataclass

from taskforge.backends.registry import backend_for_model, resolve_model_id
from taskforge.config.identity_loader import Identity
from taskforge.orchestrator.types import Classification, Complexity

BACKEND_DEFAULT_MODELS = {
    "ollama": "ollama-qwen2.5-coder",
    "claude": "claude-code",
    "gemini": "gemini-2.0-pro",
    "openai": "gpt-4.5",
    "codex": "codex-cli",
    "jules": "jules-cli",
}

COMMAND_FALLBACK_MODELS = {
    "review": "claude-code",
    "build": "claude-code",
    "refactor": "claude-code",
    "research": "gemini-2.0-pro",
    "compare": "gemini-2.0-pro",
    "summarize": "gemini-2.0-flash",
    "deploy": "claude-code",
    "diagnose": "claude-code",
    "provision": "claude-code",
    "commit": "ollama-qwen2.5-coder",
}

DEFAULT_FALLBACK_MODEL = "ollama-qwen2.5-coder"

# Human model names used in the identity document's "Default models" bullets.
HUMAN_MODEL_ALIASES = {
    "claude code": "claude-code",
    "ollama": "ollama-qwen2.5-coder",
    "gemini pro": "gemini-2.5-pro",
    "gemini flash": "gemini-2.5-flash",
    "codex": "codex-cli",
    "jules": "jules-cli",
}

# Purpose keys tried in order, by task type.
_TASK_TYPE_PREFERENCES = {
    "summarization": ("quick", "simple", "default"),
    "diagnosis": ("troubleshooting", "complex", "deep"),
    "deployment": ("iac", "complex", "default"),
    "provisioning": ("iac", "complex", "default"),
}
_RESEARCH_PREFERENCES = ("deep", "primary", "quick")
_LOW_COMPLEXITY_PREFERENCES = ("simple", "quick", "commits", "default")
_GENERAL_PREFERENCES = ("complex", "deep", "iac", "troubleshooting", "simple", "quick", "default")


@dataclass(frozen=True)
class Route:
    """Resolved model and backend for a primary invocation."""

    model: str
    backend: str


def fallback_model_for_command(
    command: str,
    classification: Classification,
    explicit_backend: str | None = None,
    explicit_model: str | None = None,
) -> str:
    """Deterministic model choice from the command alone."""
    if explicit_model:
        return resolve_model_id(explicit_model) or explicit_model
    if explicit_backend in BACKEND_DEFAULT_MODELS:
        return BACKEND_DEFAULT_MODELS[explicit_backend]
    if command == "debug":
        return (
            "claude-code" if classification.complexity is Complexity.HIGH else "ollama-deepseek-r1"
        )
    return COMMAND_FALLBACK_MODELS.get(command, DEFAULT_FALLBACK_MODEL)


def normalize_human_model_name(name: str) -> str | None:
    """Map ``"Claude Code"`` or ``"Gemini Pro"`` to a registry model id."""
    if not name:
        return None
    normalized = re.sub(r"[^a-z0-9]+", " ", name.lower()).strip()
    return HUMAN_MODEL_ALIASES.get(normalized) or resolve_model_id(name)


def pick_department_model(identity: Identity, classification: Classification) -> str | None:
    """Pick a model from the owning department's default models.

    Returns:
        Registry model id, or None when the department lists nothing usable.
    """
    department = identity.department(classification.department)
    if department is None or not department.default_models:
        return None
    models = department.default_models

    if classification.task_type in _TASK_TYPE_PREFERENCES:
        preferences = _TASK_TYPE_PREFERENCES[classification.task_type]
    elif classification.department == "research":
        preferences = _RESEARCH_PREFERENCES
    elif classification.complexity is Complexity.LOW:
        preferences = _LOW_COMPLEXITY_PREFERENCES
    else:
        preferences = _GENERAL_PREFERENCES

    for key in preferences:
        if key in models:
            return normalize_human_model_name(models[key])
    return normalize_human_model_name(next(iter(models.values())))


def resolve_tier_one_route(
    command: str,
    classification: Classification,
    explicit_backend: str | None = None,
    explicit_model: str | None = None,
) -> Route:
    """Route for a Tier 1 passthrough."""
    model = fallback_model_for_command(command, classification, explicit_backend, explicit_model)
    return Route(model=model, backend=explicit_backend or backend_for_model(model) or "")


def resolve_tier_two_route(
    command: str,
    classification: Classification,
    identity: Identity,
    explicit_backend: str | None = None,
    explicit_model: str | None = None,
) -> Route:
    """Route for a Tier 2 primary invocation.

    The department model is skipped when a backend is pinned, so the model
    always belongs to that backend.
    """
    model: str | None = None
    if explicit_model:
        model = resolve_model_id(explicit_model) or explicit_model
    elif not explicit_backend:
        model = pick_department_model(identity, classification)
    if not model:
        model = fallback_model_for_command(command, classification, explicit_backend)
    return Route(model=model, backend=explicit_backend or backend_for_model(model) or "")
