"""
Session store -- durable container for chat conversations.

  ChatSession  -- id, title, team, ordered messages
  SessionStore -- create/get/list/delete sessions, append messages

In-memory by default; pass a directory to persist each session as a JSON
file so sessions survive restarts and can be resumed. Thread-safe: the
orchestrator appends from a worker thread (fire-and-forget persistence).
"""

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ..messages import ChatMessage

logger = logging.getLogger(__name__)


@dataclass
class ChatSession:
    """One conversation."""

    id: str
    title: str = ""
    team_id: str | None = None
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "team_id": self.team_id,
            "messages": [m.to_dict() for m in self.messages],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatSession":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            team_id=data.get("team_id"),
            messages=[ChatMessage.from_dict(m) for m in data.get("messages", [])],
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


class SessionStore:
    """
    Keyed store of chat sessions.

    Usage:
        store = SessionStore(directory=Path(".huddle/sessions"))
        session = store.create(title="Pricing", team_id="team_abc")
        store.add_message(session.id, ChatMessage(role="user", content="Hi"))
    """

    def __init__(self, directory: Path | None = None):
        self._directory = directory
        self._sessions: dict[str, ChatSession] = {}
        self._lock = threading.Lock()
        self._load()

    def _path(self, session_id: str) -> Path:
        return self._directory / f"{session_id}.json"

    def _load(self) -> None:
        if self._directory is None or not self._directory.exists():
            return
        for path in sorted(self._directory.glob("*.json")):
            try:
                with open(path) as f:
                    session = ChatSession.from_dict(json.load(f))
                self._sessions[session.id] = session
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"[SessionStore] Skipping unreadable session {path.name}: {e}")
        logger.info(f"[SessionStore] Loaded {len(self._sessions)} sessions from {self._directory}")

    def _save(self, session: ChatSession) -> None:
        if self._directory is None:
            return
        self._directory.mkdir(parents=True, exist_ok=True)
        with open(self._path(session.id), "w") as f:
            json.dump(session.to_dict(), f, indent=2)
        logger.debug(f"[SessionStore] Saved session {session.id}")

    def create(
        self,
        title: str = "",
        team_id: str | None = None,
        session_id: str | None = None,
    ) -> ChatSession:
        session = ChatSession(
            id=session_id or f"session_{uuid.uuid4().hex[:12]}",
            title=title or f"New Session {datetime.now().date().isoformat()}",
            team_id=team_id,
        )
        with self._lock:
            self._sessions[session.id] = session
            self._save(session)
        return session

    def get(self, session_id: str) -> ChatSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: str, team_id: str | None = None) -> ChatSession:
        session = self.get(session_id)
        if session is not None:
            return session
        return self.create(team_id=team_id, session_id=session_id)

    def list(self, limit: int = 50) -> list[ChatSession]:
        """Most recently updated first."""
        with self._lock:
            sessions = sorted(
                self._sessions.values(), key=lambda s: s.updated_at, reverse=True
            )
        return sessions[:limit]

    def delete(self, session_id: str) -> bool:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                return False
            if self._directory is not None:
                self._path(session_id).unlink(missing_ok=True)
        return True

    def add_message(self, session_id: str, message: ChatMessage) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(f"Session not found: {session_id}")
            session.messages.append(message)
            session.updated_at = datetime.now().isoformat()
            self._save(session)
