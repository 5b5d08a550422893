"""
SQLite database shared by the agent, session and lead stores.

Context, history and graphs are stored as JSON text.
"""

import logging
from pathlib import Path
from typing import Optional

import aiosqlite

logger = logging.getLogger("agentflow.store.database")

SCHEMA = """
CREATE TABLE IF NOT EXISTS agents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    goal TEXT NOT NULL,
    domain TEXT NOT NULL,
    tone TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS workflows (
    agent_id TEXT PRIMARY KEY,
    workflow_json TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT NOT NULL,
    agent_id TEXT NOT NULL,
    current_node TEXT NOT NULL,
    context TEXT NOT NULL,
    history TEXT NOT NULL,
    ended INTEGER NOT NULL DEFAULT 0,
    revision INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (session_id, agent_id)
);

CREATE TABLE IF NOT EXISTS leads (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    needs TEXT NOT NULL,
    followup_info TEXT NOT NULL,
    arguments TEXT NOT NULL,
    captured_at TEXT NOT NULL,
    UNIQUE (agent_id, session_id)
);
"""


class Database:
    """
    Lazily opened aiosqlite connection.

    Usage:
        db = Database("~/.agentflow/agentflow.db")
        conn = await db.connect()
        ...
        await db.close()
    """

    def __init__(self, path: str = ":memory:"):
        self._path = path if path == ":memory:" else str(Path(path).expanduser())
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def path(self) -> str:
        return self._path

    async def connect(self) -> aiosqlite.Connection:
        """Open the connection and create tables on first use"""
        if self._conn is None:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(self._path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.executescript(SCHEMA)
            await self._conn.commit()
            logger.info("Opened database %s", self._path)
        return self._conn

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
