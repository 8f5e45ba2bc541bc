"""OpenAI-compatible chat completions backend over HTTP."""

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


def build_chat_request(model: str, prompt: str, options: InvokeOptions) -> dict[str, Any]:
    """Build a ``/chat/completions`` request body.

    Args:
        model: Provider model name.
        prompt: User prompt.
        options: Temperature, token limit and optional system prompt.

    Returns:
        JSON-serializable payload.
    """
    messages: list[dict[str, str]] = []
    if options.system_prompt:
        messages.append({"role": "system", "content": options.system_prompt})
    messages.append({"role": "user", "content": prompt})

    payload: dict[str, Any] = {"model": model, "messages": messages}
    if options.temperature is not None and not model.startswith(("o1", "o3", "o4")):
        # Reasoning models reject non-default temperatures.
        payload["temperature"] = options.temperature
    if options.max_tokens is not None:
        payload["max_completion_tokens"] = options.max_tokens
    return payload


class OpenAIBackend:
    """Client for any server exposing the OpenAI chat completions API."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def complete(
        self, model: str, prompt: str, options: InvokeOptions | None = None
    ) -> BackendResponse:
        """Run one chat completion.

        Raises:
            BackendConnectionError: If the endpoint is unreachable or no API key is set.
            BackendTimeout: If the request exceeds the read timeout.
            BackendResponseError: On non-2xx status or an unexpected body.
        """
        if not self.api_key:
            raise BackendConnectionError(
                "No API key configured for the openai backend (set TASKFORGE_OPENAI_API_KEY)"
            )

        payload = build_chat_request(model, prompt, options or InvokeOptions())
        headers = {"Authorization": f"Bearer {self.api_key}"}
        timeout = httpx.Timeout(connect=10.0, read=self.timeout_seconds, write=10.0, pool=10.0)

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=timeout, transport=self._transport
            ) as client:
                response = await client.post("/chat/completions", json=payload, headers=headers)
        except httpx.TimeoutException:
            raise BackendTimeout(
                f"OpenAI request timed out after {self.timeout_seconds}s"
            ) from None
        except httpx.RequestError as e:
            raise BackendConnectionError(f"Failed to reach {self.base_url}: {e}") from e

        if response.status_code >= 400:
            raise BackendResponseError(
                f"OpenAI request failed: {response.status_code} {response.text[:500]}"
            )

        try:
            data = response.json()
            text = data["choices"][0]["message"].get("content") or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise BackendResponseError(f"Invalid chat completions response: {e}") from e

        log.debug(
            "openai_completion_received",
            model=model,
            finish_reason=data["choices"][0].get("finish_reason"),
        )
        return make_response(text.strip(), data.get("model", model), prompt, data.get("usage"))
