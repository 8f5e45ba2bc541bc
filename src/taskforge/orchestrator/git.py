"""Thin async wrappers around git and gh subprocesses."""

import asyncio
from pathlib import Path

from taskforge.telemetry import get_logger

log = get_logger(__name__)

DEFAULT_COMMAND_TIMEOUT = 30.0


async def run_command(
    command: str, args: list[str], cwd: Path, timeout: float = DEFAULT_COMMAND_TIMEOUT
) -> tuple[str, str, int]:
    """Run a command and return (stdout, stderr, returncode).

    A missing executable returns code 127 and a timeout returns -1; neither
    raises.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
        )
    except FileNotFoundError:
        return ("", f"{command}: command not found", 127)
    except NotADirectoryError:
        return ("", f"not a directory: {cwd}", 1)

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        return ("", f"{command} {args[0] if args else ''} timed out after {timeout}s", -1)
    return (
        stdout.decode(errors="replace").strip(),
        stderr.decode(errors="replace").strip(),
        proc.returncode or 0,
    )


async def run_git(
    args: list[str], cwd: Path, timeout: float = DEFAULT_COMMAND_TIMEOUT
) -> tuple[str, str, int]:
    """Run a git command and return (stdout, stderr, returncode)."""
    return await run_command("git", args, cwd, timeout)
