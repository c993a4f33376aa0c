"""Conversation persistence: user/assistant turns per chat session."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
import uuid
from pathlib import Path

from loguru import logger

from docrag.db.connection import Database
from docrag.db.models import ConversationTurn
from docrag.db.repository import Repository
from docrag.db.schema import initialize
from docrag.errors import PersistenceError

_CONTEXT_HEADER = "Previous conversation context:"
_ROLE_LABELS = {"user": "User", "assistant": "Assistant"}


class ConversationStore:
    """Stores chat turns in the ``chat_messages`` table of the docrag database."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._repo: Repository | None = None
        self._lock = threading.Lock()

    def _repository(self) -> Repository:
        # Caller holds self._lock.
        if self._repo is None:
            conn = Database(self._db_path).connect()
            initialize(conn)
            self._conn = conn
            self._repo = Repository(conn)
        return self._repo

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
            self._conn = None
            self._repo = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save_exchange(
        self,
        session_id: str,
        query: str,
        response: str,
        referenced_docs: list[str],
    ) -> list[ConversationTurn]:
        """Persist the user turn and the assistant turn atomically.

        Raises:
            PersistenceError: If the write fails; nothing is stored.
        """
        turns = [
            ConversationTurn(
                id=str(uuid.uuid4()), session_id=session_id, role="user", content=query
            ),
            ConversationTurn(
                id=str(uuid.uuid4()),
                session_id=session_id,
                role="assistant",
                content=response,
                referenced_docs=list(referenced_docs),
            ),
        ]
        await asyncio.to_thread(self._add_turns, turns)
        logger.debug(f"Saved exchange for session {session_id}")
        return turns

    def _add_turns(self, turns: list[ConversationTurn]) -> None:
        with self._lock:
            try:
                self._repository().add_turns(turns)
            except (sqlite3.Error, OSError) as exc:
                raise PersistenceError(f"Could not save conversation turns: {exc}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_turns(self, session_id: str, limit: int | None = None) -> list[ConversationTurn]:
        """Turns of *session_id*, oldest first (the latest *limit* if given)."""
        return await asyncio.to_thread(self._list_turns, session_id, limit)

    def _list_turns(self, session_id: str, limit: int | None) -> list[ConversationTurn]:
        with self._lock:
            try:
                return self._repository().list_turns(session_id, limit)
            except (sqlite3.Error, OSError) as exc:
                raise PersistenceError(f"Could not read conversation turns: {exc}") from exc

    async def recent_context(self, session_id: str, limit: int = 6) -> str:
        """Render the latest *limit* turns as conversation context ("" if none)."""
        if limit <= 0:
            return ""
        turns = await self.list_turns(session_id, limit)
        return format_context(turns)


def format_context(turns: list[ConversationTurn]) -> str:
    """``Previous conversation context:`` followed by one ``Role: content`` line per turn."""
    if not turns:
        return ""
    lines = [_CONTEXT_HEADER]
    lines.extend(f"{_ROLE_LABELS.get(t.role, t.role)}: {t.content}" for t in turns)
    return "\n".join(lines)
