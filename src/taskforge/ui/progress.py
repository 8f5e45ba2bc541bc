"""Progress display for backend calls.

``ProgressInvoker`` decorates any BackendInvoker with a rich status spinner.
It only observes: arguments, results and exceptions pass through untouched.
"""

import time

from rich.console import Console

from taskforge.backends.types import BackendInvoker, BackendResponse, InvokeOptions


class ProgressInvoker:
    """BackendInvoker wrapper that shows which model is running."""

    def __init__(self, inner: BackendInvoker, console: Console | None = None) -> None:
        self.inner = inner
        self.console = console or Console(stderr=True)
        self.calls = 0

    async def invoke(
        self,
        backend: str,
        model: str,
        prompt: str,
        options: InvokeOptions | None = None,
    ) -> BackendResponse:
        """Invoke the wrapped backend while a spinner is displayed."""
        self.calls += 1
        start = time.monotonic()
        with self.console.status(f"[cyan]{model}[/cyan] via {backend or 'auto'}..."):
            response = await self.inner.invoke(backend, model, prompt, options)
        self.console.print(
            f"[dim]{model} finished in {time.monotonic() - start:.1f}s[/dim]", highlight=False
        )
        return response
