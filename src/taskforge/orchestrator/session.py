"""Session lifecycle management.

A session follows ``scaffold -> hydrate (repeatable) -> teardown``. Each
transition is persisted as JSON under ``<home>/sessions/<id>.json`` so an
interrupted task leaves a record behind; stale records are removed by
``clean_stale_sessions``.
"""

import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson

from taskforge.config.settings import AppConfig
from taskforge.orchestrator.types import InvalidSessionTransition, Session, SessionStage
from taskforge.telemetry import SESSION_CLOSED, SESSION_CREATED, SESSION_HYDRATED, get_logger

log = get_logger(__name__)

DEFAULT_MAX_SESSION_AGE_SECONDS = 7 * 24 * 3600


def _session_to_dict(session: Session) -> dict[str, Any]:
    return {
        "id": session.id,
        "stage": session.stage.value,
        "command": session.command,
        "task": session.task,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
        "status": session.status,
        "metadata": session.metadata,
        "context": session.context,
        "final_state": session.final_state,
    }


def _session_from_dict(data: dict[str, Any]) -> Session:
    return Session(
        id=data["id"],
        stage=SessionStage(data["stage"]),
        command=data.get("command", ""),
        task=data.get("task", ""),
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
        status=data.get("status", "active"),
        metadata=data.get("metadata", {}),
        context=data.get("context", {}),
        final_state=data.get("final_state", {}),
    )


class SessionManager:
    """Manages session transitions and their JSON records.

    Sessions are also kept in memory for the lifetime of the manager, so
    ``get`` does not hit the disk for sessions created by this process.
    """

    def __init__(self, config: AppConfig) -> None:
        """Initialize with the sessions directory from ``config``."""
        self.sessions_dir = config.sessions_dir
        self._sessions: dict[str, Session] = {}

    def _path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    def _save(self, session: Session) -> None:
        session.updated_at = datetime.now(timezone.utc)
        self._sessions[session.id] = session
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
            self._path(session.id).write_bytes(
                orjson.dumps(_session_to_dict(session), option=orjson.OPT_INDENT_2, default=str)
            )
        except OSError as e:
            log.warning("session_persist_failed", session_id=session.id, error=str(e))

    def scaffold(
        self,
        command: str,
        task: str,
        metadata: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> Session:
        """Start a session and record its initial metadata.

        Args:
            command: CLI command.
            task: Task text.
            metadata: Initial metadata (classification, cwd...).
            session_id: Optional id; a UUID is generated otherwise.

        Returns:
            The new session in the ``scaffold`` stage.

        Raises:
            ValueError: If ``session_id`` already exists.
        """
        if session_id is None:
            session_id = str(uuid.uuid4())
        elif session_id in self._sessions:
            raise ValueError(f"Session {session_id} already exists")

        session = Session(
            id=session_id,
            stage=SessionStage.SCAFFOLD,
            command=command,
            task=task,
            metadata=dict(metadata or {}),
        )
        self._save(session)
        log.info(SESSION_CREATED, session_id=session_id, command=command)
        return session

    def hydrate(self, session: Session, context: dict[str, Any]) -> Session:
        """Attach loaded context; may repeat when the execution directory changes.

        Raises:
            InvalidSessionTransition: If the session was already torn down.
        """
        if session.stage is SessionStage.TEARDOWN:
            raise InvalidSessionTransition(
                f"Session {session.id} is closed; cannot hydrate after teardown"
            )
        session.stage = SessionStage.HYDRATE
        session.context.update(context)
        self._save(session)
        log.debug(SESSION_HYDRATED, session_id=session.id, keys=sorted(context))
        return session

    def teardown(self, session: Session, final_state: dict[str, Any]) -> Session:
        """Record the final state and close the session.

        Args:
            session: Session to close.
            final_state: Notebooks updated, escalation flag, final model...

        Raises:
            InvalidSessionTransition: If the session is already closed.
        """
        if session.stage is SessionStage.TEARDOWN:
            raise InvalidSessionTransition(f"Session {session.id} is already closed")
        session.stage = SessionStage.TEARDOWN
        session.status = "success" if final_state.get("success", True) else "failed"
        session.final_state = dict(final_state)
        self._save(session)
        log.info(SESSION_CLOSED, session_id=session.id, status=session.status)
        return session

    def get(self, session_id: str) -> Session | None:
        """Retrieve a session from memory or its JSON record."""
        session = self._sessions.get(session_id)
        if session is not None:
            return session
        path = self._path(session_id)
        if not path.is_file():
            return None
        try:
            return _session_from_dict(orjson.loads(path.read_bytes()))
        except (OSError, orjson.JSONDecodeError, KeyError, ValueError) as e:
            log.warning("session_unreadable", session_id=session_id, error=str(e))
            return None

    def clean_stale_sessions(self, max_age_seconds: float = DEFAULT_MAX_SESSION_AGE_SECONDS) -> int:
        """Delete session records older than ``max_age_seconds``.

        Returns:
            Number of records removed.
        """
        if not self.sessions_dir.is_dir():
            return 0
        cutoff = time.time() - max_age_seconds
        removed = 0
        for path in self.sessions_dir.glob("*.json"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    self._sessions.pop(path.stem, None)
                    removed += 1
            except OSError as e:
                log.warning("session_cleanup_failed", path=str(path), error=str(e))
        if removed:
            log.info("stale_sessions_removed", count=removed)
        return removed
