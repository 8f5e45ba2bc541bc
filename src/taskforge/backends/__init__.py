"""Backend transports for running prompts against AI providers.

This module provides:
- BackendClient: dispatcher implementing the BackendInvoker protocol
- invoke_with_timeout: timeout race around any invoker
- Model alias and backend resolution helpers
- The model capability registry schema
"""

from taskforge.backends.client import BackendClient, invoke_with_timeout
from taskforge.backends.models import ModelCost, ModelEntry, ModelRegistry
from taskforge.backends.registry import (
    backend_for_model,
    resolve_model_id,
    resolve_runtime_model_name,
)
from taskforge.backends.types import (
    BackendConnectionError,
    BackendError,
    BackendInvoker,
    BackendProcessError,
    BackendResponse,
    BackendResponseError,
    BackendTimeout,
    InvokeOptions,
    UnsupportedBackendError,
    Usage,
    estimate_tokens,
)

__all__ = [
    # Client
    "BackendClient",
    "BackendInvoker",
    "invoke_with_timeout",
    # Types
    "BackendResponse",
    "InvokeOptions",
    "Usage",
    "ModelCost",
    "ModelEntry",
    "ModelRegistry",
    # Helpers
    "backend_for_model",
    "resolve_model_id",
    "resolve_runtime_model_name",
    "estimate_tokens",
    # Errors
    "BackendError",
    "BackendTimeout",
    "BackendConnectionError",
    "BackendProcessError",
    "BackendResponseError",
    "UnsupportedBackendError",
]
