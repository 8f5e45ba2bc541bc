"""Shared fixtures: an isolated home directory, a scripted backend and git repos."""

import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from taskforge.backends.types import BackendResponse, InvokeOptions, make_response
from taskforge.config import AppConfig, MtimeCache, ensure_home
from taskforge.ledger import Ledger

LONG_ANSWER = (
    "## Summary\n"
    "The change adds a health endpoint and wires it into the router. "
    "Every handler now returns structured JSON and the tests cover the new path.\n\n"
    "## Decisions\n"
    "- Keep the endpoint unauthenticated\n"
    "- Return build metadata alongside status\n\n"
    "## Patterns\n"
    "- Thin handlers delegating to services\n\n"
    "## Prerequisites for Follow-up\n"
    "- Add a readiness probe to the deployment manifest\n\n"
) + ("Additional detail about the implementation and its verification. " * 12)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

Reply = str | Exception | Callable[[str], str]


def init_repo(path: Path) -> Path:
    """Git repository with one empty commit."""
    path.mkdir(parents=True, exist_ok=True)
    git = ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com"]
    subprocess.run([*git, "init", "-q"], cwd=path, check=True)
    subprocess.run([*git, "commit", "-q", "--allow-empty", "-m", "init"], cwd=path, check=True)
    return path


class FakeInvoker:
    """Scripted BackendInvoker.

    Replies are looked up by model id; a reply may be text, an exception to
    raise, or a callable receiving the prompt.
    """

    def __init__(self, replies: dict[str, Reply] | None = None, default: Reply = LONG_ANSWER):
        self.replies = replies or {}
        self.default = default
        self.calls: list[dict[str, Any]] = []

    async def invoke(
        self,
        backend: str,
        model: str,
        prompt: str,
        options: InvokeOptions | None = None,
    ) -> BackendResponse:
        self.calls.append({"backend": backend, "model": model, "prompt": prompt, "options": options})
        reply = self.replies.get(model, self.default)
        if isinstance(reply, Exception):
            raise reply
        text = reply(prompt) if callable(reply) else reply
        return make_response(text, model, prompt)

    @property
    def models(self) -> list[str]:
        return [call["model"] for call in self.calls]


class RecordingConfirmer:
    """Confirmer answering from a fixed policy and recording every question."""

    def __init__(self, answer: bool | Callable[[str], bool] = True) -> None:
        self.answer = answer
        self.questions: list[str] = []

    async def confirm(self, description: str) -> bool:
        self.questions.append(description)
        return self.answer(description) if callable(self.answer) else self.answer


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return tmp_path / "taskforge-home"


@pytest.fixture
def config(home: Path) -> AppConfig:
    """Settings bound to a seeded temporary home."""
    cfg = AppConfig(home=home, auto_approve=True)
    ensure_home(cfg)
    return cfg


@pytest.fixture
def cache() -> MtimeCache:
    return MtimeCache()


@pytest.fixture
def invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def confirmer() -> RecordingConfirmer:
    return RecordingConfirmer()


@pytest_asyncio.fixture
async def ledger(config: AppConfig):
    """Ledger in the temporary home, disposed after the test."""
    db = Ledger(config.ledger_path)
    yield db
    await db.close()
