"""Backend dispatcher implementing the BackendInvoker protocol.

``BackendClient.invoke`` picks the transport for a backend, translates the
registry model id into the provider's name and emits model-call telemetry.
``invoke_with_timeout`` races any invoker against the configured timeout.
"""

import asyncio
import time

import httpx

from taskforge.backends.cli import CLIBackend
from taskforge.backends.ollama import OllamaBackend
from taskforge.backends.openai import OpenAIBackend
from taskforge.backends.registry import (
    SUPPORTED_BACKENDS,
    backend_for_model,
    resolve_runtime_model_name,
)
from taskforge.backends.types import (
    BackendError,
    BackendInvoker,
    BackendResponse,
    BackendTimeout,
    InvokeOptions,
    UnsupportedBackendError,
)
from taskforge.config.settings import AppConfig
from taskforge.telemetry import (
    MODEL_CALL_COMPLETED,
    MODEL_CALL_ERROR,
    MODEL_CALL_STARTED,
    MODEL_CALL_TIMEOUT,
    get_logger,
)

log = get_logger(__name__)


class BackendClient:
    """Uniform entry point to every backend transport.

    Attributes:
        config: Settings with backend hosts, keys and default model names.
    """

    def __init__(
        self, config: AppConfig, http_transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        """Initialize the client.

        Args:
            config: Application settings.
            http_transport: Optional transport shared by the HTTP backends (tests).
        """
        self.config = config
        self._ollama = OllamaBackend(
            config.ollama_host, config.backend_timeout_seconds, transport=http_transport
        )
        self._openai = OpenAIBackend(
            config.openai_base_url,
            config.openai_api_key,
            config.backend_timeout_seconds,
            transport=http_transport,
        )

    async def invoke(
        self,
        backend: str,
        model: str,
        prompt: str,
        options: InvokeOptions | None = None,
    ) -> BackendResponse:
        """Run ``prompt`` on ``model`` through ``backend``.

        Args:
            backend: Backend name; empty means derive it from the model id.
            model: Registry model id (e.g. ``ollama-qwen2.5-coder``).
            prompt: Prompt text.
            options: Per-call options.

        Returns:
            Normalized backend response.

        Raises:
            UnsupportedBackendError: If no transport serves the backend/model.
            BackendError: Any transport-specific failure.
        """
        effective_backend = backend or backend_for_model(model)
        if effective_backend not in SUPPORTED_BACKENDS:
            raise UnsupportedBackendError(
                f"Unsupported backend '{effective_backend}' for model '{model}'"
            )

        runtime_model = resolve_runtime_model_name(model, effective_backend, self.config)
        start = time.monotonic()
        log.info(
            MODEL_CALL_STARTED,
            backend=effective_backend,
            model=model,
            runtime_model=runtime_model,
            prompt_chars=len(prompt),
        )

        try:
            if effective_backend == "ollama":
                response = await self._ollama.generate(runtime_model, prompt, options)
            elif effective_backend == "openai":
                response = await self._openai.complete(runtime_model, prompt, options)
            else:
                response = await CLIBackend(effective_backend).run(runtime_model, prompt, options)
        except BackendError as e:
            log.warning(
                MODEL_CALL_ERROR,
                backend=effective_backend,
                model=model,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        log.info(
            MODEL_CALL_COMPLETED,
            backend=effective_backend,
            model=model,
            duration_ms=int((time.monotonic() - start) * 1000),
            prompt_tokens=response["usage"]["prompt_tokens"],
            completion_tokens=response["usage"]["completion_tokens"],
        )
        return response


async def invoke_with_timeout(
    invoker: BackendInvoker,
    backend: str,
    model: str,
    prompt: str,
    timeout_seconds: float,
    options: InvokeOptions | None = None,
) -> BackendResponse:
    """Invoke a backend, abandoning the call locally once the timeout expires.

    The provider is not guaranteed to stop work; only the local await is
    cancelled.

    Raises:
        BackendTimeout: If the call did not finish in ``timeout_seconds``.
        BackendError: Whatever the invoker raised.
    """
    try:
        return await asyncio.wait_for(
            invoker.invoke(backend, model, prompt, options), timeout=timeout_seconds
        )
    except asyncio.TimeoutError:
        log.warning(MODEL_CALL_TIMEOUT, backend=backend, model=model, timeout_s=timeout_seconds)
        raise BackendTimeout(
            f"{backend or model} did not respond within {timeout_seconds:g}s"
        ) from None
