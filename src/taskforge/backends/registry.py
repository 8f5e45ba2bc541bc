"""Model id resolution and model-to-backend mapping."""

import re

from taskforge.config.settings import AppConfig

# Human and shorthand names accepted on the command line and in Intent.md.
MODEL_ALIASES: dict[str, str] = {
    "claude": "claude-code",
    "claude_code": "claude-code",
    "claude code": "claude-code",
    "gemini": "gemini-2.5-pro",
    "gemini_pro": "gemini-2.5-pro",
    "gemini pro": "gemini-2.5-pro",
    "gemini_flash": "gemini-2.5-flash",
    "gemini flash": "gemini-2.5-flash",
    "ollama": "ollama-qwen2.5-coder",
    "ollama_reasoning": "ollama-deepseek-r1",
    "codex": "codex-cli",
    "jules": "jules-cli",
    "openai": "gpt-4o-mini",
}

# Ordered prefix table; the first matching prefix wins.
_BACKEND_PREFIXES: tuple[tuple[str, str], ...] = (
    ("ollama-", "ollama"),
    ("claude", "claude"),
    ("gemini", "gemini"),
    ("codex", "codex"),
    ("jules", "jules"),
    ("gpt-", "openai"),
    ("o1", "openai"),
    ("o3", "openai"),
    ("o4", "openai"),
)

SUPPORTED_BACKENDS = ("ollama", "claude", "gemini", "codex", "jules", "openai")


def resolve_model_id(name: str | None) -> str | None:
    """Map an alias (``claude``, ``gemini flash``) to a registry model id.

    Unknown names are returned unchanged.
    """
    if not name:
        return name
    normalized = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    return MODEL_ALIASES.get(name) or MODEL_ALIASES.get(normalized) or name


def backend_for_model(model_id: str) -> str | None:
    """Return the backend that serves ``model_id``, or None if unknown."""
    for prefix, backend in _BACKEND_PREFIXES:
        if model_id.startswith(prefix):
            return backend
    return None


def resolve_runtime_model_name(model_id: str, backend: str, config: AppConfig) -> str:
    """Translate a registry model id into the name the provider expects.

    Args:
        model_id: Registry id such as ``ollama-deepseek-r1`` or ``gemini-2.5-flash``.
        backend: Backend that will run it.
        config: Settings holding per-backend default model names.

    Returns:
        Provider-side model name (an Ollama tag, a CLI ``--model`` value, or an
        OpenAI model name).
    """
    if backend == "ollama":
        name = model_id.removeprefix("ollama-")
        if "deepseek" in name:
            return config.ollama_reasoning_model
        if "llama" in name:
            return config.ollama_general_model
        return config.ollama_code_model

    if backend == "claude":
        if "haiku" in model_id:
            return "haiku"
        if "opus" in model_id:
            return "opus"
        return config.claude_default_model

    if backend == "gemini":
        if model_id.startswith("gemini-") and model_id != "gemini":
            return model_id
        return config.gemini_default_model

    if backend == "codex":
        return "" if model_id == "codex-cli" else model_id

    return model_id
