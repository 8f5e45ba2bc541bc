"""CLI backends: claude, gemini, codex and jules run as subprocesses.

Each CLI prints its final answer on stdout. A non-zero exit raises
BackendProcessError with the tail of stderr; a missing executable raises
BackendConnectionError.
"""

import asyncio
from pathlib import Path

from taskforge.backends.types import (
    BackendConnectionError,
    BackendProcessError,
    BackendResponse,
    InvokeOptions,
    UnsupportedBackendError,
    make_response,
)
from taskforge.telemetry import get_logger

log = get_logger(__name__)


async def run_subprocess(
    command: str, args: list[str], cwd: Path | None = None, stdin: str = ""
) -> tuple[str, str]:
    """Run a command and return its stripped (stdout, stderr).

    Cancelling the awaiting task (e.g. an outer timeout) kills the child.

    Args:
        command: Executable name.
        args: Arguments.
        cwd: Working directory; defaults to the current one.
        stdin: Text written to the child's stdin.

    Returns:
        Tuple of stdout and stderr.

    Raises:
        BackendConnectionError: If the executable is not installed.
        BackendProcessError: If the command exits non-zero.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError:
        raise BackendConnectionError(f"'{command}' is not installed or not on PATH") from None

    try:
        stdout, stderr = await proc.communicate(stdin.encode())
    except asyncio.CancelledError:
        proc.kill()
        raise

    out = stdout.decode(errors="replace").strip()
    err = stderr.decode(errors="replace").strip()
    if proc.returncode != 0:
        raise BackendProcessError(
            err or f"{command} exited with code {proc.returncode}", returncode=proc.returncode
        )
    return out, err


def build_cli_args(backend: str, model: str, prompt: str, options: InvokeOptions) -> list[str]:
    """Build the argument vector (executable first) for a CLI backend.

    Args:
        backend: One of ``claude``, ``gemini``, ``codex``, ``jules``.
        model: Provider-side model name; empty means the CLI default.
        prompt: Prompt text.
        options: Invocation options (``cwd`` and ``system_prompt`` are used).

    Returns:
        Command line as a list.

    Raises:
        UnsupportedBackendError: For any other backend name.
    """
    if backend == "claude":
        args = [
            "claude",
            "--print",
            "--output-format",
            "text",
            "--permission-mode",
            "default",
            "--model",
            model or "sonnet",
        ]
        if options.system_prompt:
            args += ["--append-system-prompt", options.system_prompt]
        return [*args, prompt]

    if backend == "gemini":
        args = [
            "gemini",
            "--prompt",
            prompt,
            "--output-format",
            "text",
            "--approval-mode",
            "default",
        ]
        if model:
            args += ["--model", model]
        return args

    if backend == "codex":
        args = [
            "codex",
            "exec",
            "--skip-git-repo-check",
            "--sandbox",
            "workspace-write",
            "--cd",
            str(options.cwd or Path.cwd()),
        ]
        if model:
            args += ["--model", model]
        return [*args, prompt]

    if backend == "jules":
        # Jules runs through the gemini CLI.
        return ["gemini", "--prompt", prompt, "--model", "jules"]

    raise UnsupportedBackendError(f"No CLI transport for backend '{backend}'")


class CLIBackend:
    """Runs prompts through an installed AI CLI."""

    def __init__(self, backend: str) -> None:
        self.backend = backend

    async def run(
        self, model: str, prompt: str, options: InvokeOptions | None = None
    ) -> BackendResponse:
        """Run one prompt; usage is estimated from prompt and output length."""
        options = options or InvokeOptions()
        command, *args = build_cli_args(self.backend, model, prompt, options)
        log.debug("cli_backend_spawn", backend=self.backend, command=command, model=model)
        stdout, _ = await run_subprocess(command, args, cwd=options.cwd)
        reported_model = "jules" if self.backend == "jules" else (model or self.backend)
        return make_response(stdout, reported_model, prompt)
