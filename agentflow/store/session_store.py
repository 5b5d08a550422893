"""
Session Store

Durable mapping from (session_id, agent_id) to workflow position, context and
turn history.

A turn's load-mutate-persist sequence for one session is serialised with a
per-key lock (``async with store.lock(session_id, agent_id)``); turns for
different sessions never wait on each other.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Hashable, List, Optional, Tuple

from ..common.errors import SessionNotFound
from ..common.schemas import Session, TurnRecord
from .database import Database

logger = logging.getLogger("agentflow.store.session_store")


class KeyedLocks:
    """asyncio locks created on demand per key and dropped when idle"""

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def acquire(self, key: Hashable):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class SessionStore(ABC):
    """Base class for session persistence"""

    def __init__(self):
        self._locks = KeyedLocks()

    def lock(self, session_id: str, agent_id: str):
        """Per-session lock guarding a read-modify-write"""
        return self._locks.acquire((agent_id, session_id))

    @abstractmethod
    async def load(self, session_id: str, agent_id: str) -> Optional[Session]:
        """Return the stored session, or None if never seen"""
        pass

    @abstractmethod
    async def save(self, session: Session) -> None:
        """Insert or replace a session"""
        pass

    @abstractmethod
    async def list_sessions(self, agent_id: str) -> List[Session]:
        pass

    async def get(self, session_id: str, agent_id: str) -> Session:
        """
        Lookup-only access.

        Raises:
            SessionNotFound: If the session does not exist
        """
        session = await self.load(session_id, agent_id)
        if session is None:
            raise SessionNotFound(session_id, agent_id)
        return session


class InMemorySessionStore(SessionStore):
    """Process-local store; sessions are kept serialised so loads never alias"""

    def __init__(self):
        super().__init__()
        self._sessions: Dict[Tuple[str, str], str] = {}

    async def load(self, session_id: str, agent_id: str) -> Optional[Session]:
        raw = self._sessions.get((agent_id, session_id))
        if raw is None:
            return None
        return Session.model_validate_json(raw)

    async def save(self, session: Session) -> None:
        self._sessions[(session.agent_id, session.session_id)] = session.model_dump_json()

    async def list_sessions(self, agent_id: str) -> List[Session]:
        return [
            Session.model_validate_json(raw)
            for (stored_agent, _), raw in self._sessions.items()
            if stored_agent == agent_id
        ]


class SqliteSessionStore(SessionStore):
    """Sessions table in the shared SQLite database"""

    def __init__(self, database: Database):
        super().__init__()
        self._db = database

    async def load(self, session_id: str, agent_id: str) -> Optional[Session]:
        conn = await self._db.connect()
        async with conn.execute(
            "SELECT * FROM sessions WHERE session_id = ? AND agent_id = ?",
            (session_id, agent_id),
        ) as cursor:
            row = await cursor.fetchone()
        return self._to_session(row) if row else None

    async def save(self, session: Session) -> None:
        conn = await self._db.connect()
        history = json.dumps([turn.model_dump(mode="json") for turn in session.history])
        await conn.execute(
            """
            INSERT INTO sessions
                (session_id, agent_id, current_node, context, history, ended, revision, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (session_id, agent_id) DO UPDATE SET
                current_node = excluded.current_node,
                context = excluded.context,
                history = excluded.history,
                ended = excluded.ended,
                revision = excluded.revision,
                updated_at = excluded.updated_at
            """,
            (
                session.session_id,
                session.agent_id,
                session.current_node,
                json.dumps(session.context),
                history,
                int(session.ended),
                session.revision,
                session.created_at.isoformat(),
                session.updated_at.isoformat(),
            ),
        )
        await conn.commit()

    async def list_sessions(self, agent_id: str) -> List[Session]:
        conn = await self._db.connect()
        async with conn.execute(
            "SELECT * FROM sessions WHERE agent_id = ? ORDER BY created_at", (agent_id,)
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._to_session(row) for row in rows]

    @staticmethod
    def _to_session(row: Any) -> Session:
        return Session(
            session_id=row["session_id"],
            agent_id=row["agent_id"],
            current_node=row["current_node"],
            context=json.loads(row["context"]) if row["context"] else {},
            history=[TurnRecord.model_validate(t) for t in json.loads(row["history"] or "[]")],
            ended=bool(row["ended"]),
            revision=row["revision"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
