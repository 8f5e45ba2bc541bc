"""Type definitions for the backends module.

This module defines the core types shared by every backend transport:
- Usage / BackendResponse: normalized result of one invocation
- InvokeOptions: per-call knobs (temperature, token limit, working directory)
- BackendInvoker: the protocol the orchestrator depends on
- Error classes: hierarchy of backend errors
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from typing_extensions import TypedDict


class Usage(TypedDict):
    """Token usage of one invocation.

    Attributes:
        prompt_tokens: Tokens sent to the model.
        completion_tokens: Tokens produced by the model.
    """

    prompt_tokens: int
    completion_tokens: int


class BackendResponse(TypedDict):
    """Normalized response of one backend invocation.

    Attributes:
        text: Final text produced by the model.
        model: Provider-side model name that produced the text.
        usage: Token usage (reported by the provider or estimated).
    """

    text: str
    model: str
    usage: Usage


@dataclass(frozen=True)
class InvokeOptions:
    """Per-invocation options.

    Attributes:
        temperature: Sampling temperature, if the transport supports it.
        max_tokens: Completion token limit, if the transport supports it.
        cwd: Working directory for CLI backends (e.g. a task worktree).
        system_prompt: Optional system instructions.
    """

    temperature: float | None = None
    max_tokens: int | None = None
    cwd: Path | None = None
    system_prompt: str | None = None


class BackendInvoker(Protocol):
    """Uniform "run this prompt against this backend/model" capability."""

    async def invoke(
        self,
        backend: str,
        model: str,
        prompt: str,
        options: InvokeOptions | None = None,
    ) -> BackendResponse:
        """Run ``prompt`` on ``model`` through ``backend``.

        Raises:
            BackendError: On any transport or provider failure.
        """
        ...


def estimate_tokens(text: str | None) -> int:
    """Approximate a token count as ``ceil(len(text) / 4)``.

    Args:
        text: Any text; None counts as empty.

    Returns:
        Estimated token count.
    """
    return math.ceil(len(text or "") / 4)


def make_response(
    text: str, model: str, prompt: str, usage: dict[str, Any] | None = None
) -> BackendResponse:
    """Build a BackendResponse, estimating any usage the provider did not report."""
    usage = usage or {}
    return BackendResponse(
        text=text,
        model=model,
        usage=Usage(
            prompt_tokens=int(usage.get("prompt_tokens") or estimate_tokens(prompt)),
            completion_tokens=int(usage.get("completion_tokens") or estimate_tokens(text)),
        ),
    )


# Error hierarchy


class BackendError(Exception):
    """Base exception for all backend errors."""

    pass


class BackendTimeout(BackendError):
    """Raised when a backend does not answer within the invocation timeout."""

    pass


class BackendConnectionError(BackendError):
    """Raised when a backend endpoint is unreachable or its CLI is not installed."""

    pass


class BackendProcessError(BackendError):
    """Raised when a CLI backend exits with a non-zero status."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class BackendResponseError(BackendError):
    """Raised when a backend answers with an error status or an unusable body."""

    pass


class UnsupportedBackendError(BackendError):
    """Raised when no transport exists for a backend or model."""

    pass
