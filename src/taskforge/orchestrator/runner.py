"""Agent runner: one backend invocation turned into an ExecutionResult.

The runner is the innermost layer. It applies the invocation timeout and
converts every backend failure into ``success=False`` data, so sub-agents and
pipeline steps can fail without aborting the task.
"""

import time
from pathlib import Path

from taskforge.backends.client import invoke_with_timeout
from taskforge.backends.types import BackendError, BackendInvoker, BackendTimeout, InvokeOptions
from taskforge.orchestrator.types import ExecutionResult, zero_usage
from taskforge.telemetry import get_logger

log = get_logger(__name__)


class AgentRunner:
    """Runs prompts through a BackendInvoker under a fixed timeout.

    Attributes:
        invoker: Backend capability (possibly wrapped by a progress decorator).
        timeout_seconds: Per-invocation timeout.
    """

    def __init__(self, invoker: BackendInvoker, timeout_seconds: float) -> None:
        self.invoker = invoker
        self.timeout_seconds = timeout_seconds

    async def execute(
        self,
        backend: str,
        model: str,
        prompt: str,
        *,
        cwd: Path | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ExecutionResult:
        """Run one prompt; never raises for backend failures.

        Args:
            backend: Backend name (empty derives it from ``model``).
            model: Registry model id.
            prompt: Prompt text.
            cwd: Working directory for CLI backends.
            temperature: Optional sampling temperature.
            max_tokens: Optional completion limit.

        Returns:
            ExecutionResult; on failure ``success`` is False and ``text`` is
            ``"Agent failed: <message>"``; a timeout reads
            ``"Agent failed: timed out after Ns"``.
        """
        options = InvokeOptions(temperature=temperature, max_tokens=max_tokens, cwd=cwd)
        start = time.monotonic()
        try:
            response = await invoke_with_timeout(
                self.invoker, backend, model, prompt, self.timeout_seconds, options
            )
        except BackendTimeout:
            return ExecutionResult(
                text=f"Agent failed: timed out after {self.timeout_seconds:g}s",
                model=model,
                usage=zero_usage(),
                duration_ms=int((time.monotonic() - start) * 1000),
                success=False,
            )
        except BackendError as e:
            log.debug("agent_execution_failed", backend=backend, model=model, error=str(e))
            return ExecutionResult(
                text=f"Agent failed: {e}",
                model=model,
                usage=zero_usage(),
                duration_ms=int((time.monotonic() - start) * 1000),
                success=False,
            )

        return ExecutionResult(
            text=response["text"],
            model=model,
            usage=response["usage"],
            duration_ms=int((time.monotonic() - start) * 1000),
            success=True,
        )
