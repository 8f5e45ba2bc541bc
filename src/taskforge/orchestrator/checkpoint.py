"""Human checkpoint confirmation.

The orchestrator and pipeline only depend on the ``Confirmer`` protocol. The
console implementation asks on the terminal; ``auto_approve`` (env
``TASKFORGE_AUTO_APPROVE``) approves everything for non-interactive runs.
"""

import asyncio
from typing import Protocol

from rich.console import Console
from rich.prompt import Confirm

from taskforge.telemetry import APPROVAL_DENIED, APPROVAL_GRANTED, APPROVAL_REQUIRED, get_logger

log = get_logger(__name__)


class Confirmer(Protocol):
    """Yes/no confirmation capability."""

    async def confirm(self, description: str) -> bool:
        """Ask whether ``description`` may proceed."""
        ...


class AutoApproveConfirmer:
    """Approves every request (tests, automation)."""

    async def confirm(self, description: str) -> bool:
        log.debug(APPROVAL_GRANTED, description=description, auto=True)
        return True


class ConsoleConfirmer:
    """Asks on the terminal via a rich prompt.

    Attributes:
        auto_approve: Skip the prompt and approve.
        console: Console the prompt is written to.
    """

    def __init__(self, auto_approve: bool = False, console: Console | None = None) -> None:
        self.auto_approve = auto_approve
        self.console = console or Console(stderr=True)

    async def confirm(self, description: str) -> bool:
        """Ask for approval; blocking input runs in a worker thread."""
        if self.auto_approve:
            log.info(APPROVAL_GRANTED, description=description, auto=True)
            return True

        log.info(APPROVAL_REQUIRED, description=description)
        approved = await asyncio.to_thread(
            Confirm.ask,
            f"[bold yellow]Checkpoint[/bold yellow] {description}. Proceed?",
            console=self.console,
            default=False,
        )
        log.info(APPROVAL_GRANTED if approved else APPROVAL_DENIED, description=description)
        return bool(approved)
