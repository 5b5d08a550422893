"""
Agent Store

Agent profiles and their current workflow graph. Graphs are stored whole and
replaced whole; the runtime swaps the in-memory copy atomically.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..common.errors import AgentNotFound
from ..common.schemas import AgentProfile, ConversationGraph
from .database import Database

logger = logging.getLogger("agentflow.store.agent_store")


class AgentStore(ABC):
    """Base class for agent persistence"""

    @abstractmethod
    async def create_agent(self, profile: AgentProfile, graph: ConversationGraph) -> str:
        """Store a new agent and its graph, returning the assigned id"""
        pass

    @abstractmethod
    async def get_agent(self, agent_id: str) -> AgentProfile:
        """Raises AgentNotFound for unknown ids"""
        pass

    @abstractmethod
    async def list_agents(self) -> List[AgentProfile]:
        pass

    @abstractmethod
    async def get_graph(self, agent_id: str) -> ConversationGraph:
        """Raises AgentNotFound for agents without a stored graph"""
        pass

    @abstractmethod
    async def save_graph(self, agent_id: str, graph: ConversationGraph) -> None:
        pass


class InMemoryAgentStore(AgentStore):
    def __init__(self):
        self._ids = itertools.count(1)
        self._agents: Dict[str, AgentProfile] = {}
        self._graphs: Dict[str, str] = {}

    async def create_agent(self, profile: AgentProfile, graph: ConversationGraph) -> str:
        agent_id = str(next(self._ids))
        self._agents[agent_id] = profile.model_copy(update={"id": agent_id})
        self._graphs[agent_id] = graph.model_dump_json()
        return agent_id

    async def get_agent(self, agent_id: str) -> AgentProfile:
        profile = self._agents.get(agent_id)
        if profile is None:
            raise AgentNotFound(agent_id)
        return profile

    async def list_agents(self) -> List[AgentProfile]:
        return list(self._agents.values())

    async def get_graph(self, agent_id: str) -> ConversationGraph:
        raw = self._graphs.get(agent_id)
        if raw is None:
            raise AgentNotFound(agent_id)
        return ConversationGraph.model_validate_json(raw)

    async def save_graph(self, agent_id: str, graph: ConversationGraph) -> None:
        if agent_id not in self._agents:
            raise AgentNotFound(agent_id)
        self._graphs[agent_id] = graph.model_dump_json()


class SqliteAgentStore(AgentStore):
    """agents and workflows tables in the shared SQLite database"""

    def __init__(self, database: Database):
        self._db = database

    async def create_agent(self, profile: AgentProfile, graph: ConversationGraph) -> str:
        conn = await self._db.connect()
        cursor = await conn.execute(
            "INSERT INTO agents (name, goal, domain, tone) VALUES (?, ?, ?, ?)",
            (profile.name, profile.goal, profile.domain, profile.tone),
        )
        agent_id = str(cursor.lastrowid)
        await cursor.close()
        await conn.execute(
            "INSERT INTO workflows (agent_id, workflow_json, updated_at) VALUES (?, ?, ?)",
            (agent_id, graph.model_dump_json(), datetime.now(timezone.utc).isoformat()),
        )
        await conn.commit()
        logger.info("Created agent %s (%s)", agent_id, profile.name)
        return agent_id

    async def get_agent(self, agent_id: str) -> AgentProfile:
        conn = await self._db.connect()
        async with conn.execute("SELECT * FROM agents WHERE id = ?", (agent_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise AgentNotFound(agent_id)
        return self._to_profile(row)

    async def list_agents(self) -> List[AgentProfile]:
        conn = await self._db.connect()
        async with conn.execute("SELECT * FROM agents ORDER BY id") as cursor:
            rows = await cursor.fetchall()
        return [self._to_profile(row) for row in rows]

    async def get_graph(self, agent_id: str) -> ConversationGraph:
        raw = await self._load_workflow(agent_id)
        if raw is None:
            raise AgentNotFound(agent_id)
        return ConversationGraph.model_validate_json(raw)

    async def save_graph(self, agent_id: str, graph: ConversationGraph) -> None:
        await self.get_agent(agent_id)
        conn = await self._db.connect()
        await conn.execute(
            """
            INSERT INTO workflows (agent_id, workflow_json, updated_at) VALUES (?, ?, ?)
            ON CONFLICT (agent_id) DO UPDATE SET
                workflow_json = excluded.workflow_json,
                updated_at = excluded.updated_at
            """,
            (agent_id, graph.model_dump_json(), datetime.now(timezone.utc).isoformat()),
        )
        await conn.commit()
        logger.info("Replaced workflow for agent %s", agent_id)

    async def _load_workflow(self, agent_id: str) -> Optional[str]:
        conn = await self._db.connect()
        async with conn.execute(
            "SELECT workflow_json FROM workflows WHERE agent_id = ?", (agent_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return row["workflow_json"] if row else None

    @staticmethod
    def _to_profile(row) -> AgentProfile:
        return AgentProfile(
            id=str(row["id"]),
            name=row["name"],
            goal=row["goal"],
            domain=row["domain"],
            tone=row["tone"],
        )
