"""Ollama HTTP backend.

Checks that the requested tag is installed (``GET /api/tags``) before calling
``POST /api/generate`` with streaming disabled.
"""

from typing import Any

import httpx

from taskforge.backends.types import (
    BackendConnectionError,
    BackendResponse,
    BackendResponseError,
    BackendTimeout,
    InvokeOptions,
    make_response,
)
from taskforge.telemetry import get_logger

log = get_logger(__name__)

DEFAULT_TEMPERATURE = 0.2


class OllamaBackend:
    """Client for a local Ollama server.

    Attributes:
        host: Base URL of the Ollama server.
        timeout_seconds: Read timeout for generation requests.
    """

    def __init__(
        self,
        host: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            host: Base URL such as ``http://localhost:11434``.
            timeout_seconds: Read timeout for generation requests.
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        """
        self.host = host.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(connect=10.0, read=self.timeout_seconds, write=10.0, pool=10.0)
        return httpx.AsyncClient(base_url=self.host, timeout=timeout, transport=self._transport)

    async def _ensure_installed(self, client: httpx.AsyncClient, model: str) -> None:
        response = await client.get("/api/tags")
        if response.status_code != 200:
            # Older servers without /api/tags still accept generate calls.
            log.debug("ollama_tags_unavailable", status_code=response.status_code)
            return

        installed = [entry.get("name", "") for entry in response.json().get("models", [])]
        if not installed:
            raise BackendResponseError(
                "Ollama is reachable but no models are installed. "
                f"Pull one first, for example `ollama pull {model}`."
            )
        if model not in installed:
            raise BackendResponseError(
                f"Ollama model '{model}' is not installed. "
                f"Available models: {', '.join(installed)}"
            )

    async def generate(
        self, model: str, prompt: str, options: InvokeOptions | None = None
    ) -> BackendResponse:
        """Run a single non-streaming generation.

        Args:
            model: Installed Ollama tag, e.g. ``qwen2.5-coder:7b``.
            prompt: Full prompt text.
            options: Optional temperature and token limit.

        Returns:
            Normalized response; usage comes from ``prompt_eval_count`` and
            ``eval_count`` when the server reports them.

        Raises:
            BackendConnectionError: If the server is unreachable.
            BackendTimeout: If generation exceeds the read timeout.
            BackendResponseError: If the model is missing or the server errors.
        """
        options = options or InvokeOptions()
        model_options: dict[str, Any] = {
            "temperature": (
                options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE
            )
        }
        if options.max_tokens is not None:
            model_options["num_predict"] = options.max_tokens

        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": model_options,
        }
        if options.system_prompt:
            payload["system"] = options.system_prompt

        try:
            async with self._client() as client:
                await self._ensure_installed(client, model)
                response = await client.post("/api/generate", json=payload)
        except httpx.TimeoutException:
            raise BackendTimeout(
                f"Ollama request timed out after {self.timeout_seconds}s"
            ) from None
        except httpx.ConnectError as e:
            raise BackendConnectionError(f"Failed to connect to Ollama at {self.host}: {e}") from e
        except httpx.RequestError as e:
            raise BackendConnectionError(f"Ollama request error: {e}") from e

        if response.status_code >= 400:
            raise BackendResponseError(
                f"Ollama request failed: {response.status_code} {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BackendResponseError(f"Invalid Ollama response: {e}") from e

        text = (data.get("response") or "").strip()
        return make_response(
            text,
            model,
            prompt,
            usage={
                "prompt_tokens": data.get("prompt_eval_count"),
                "completion_tokens": data.get("eval_count"),
            },
        )
