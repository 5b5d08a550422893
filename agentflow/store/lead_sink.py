"""
Lead Sink

Append-only destination for captured leads. At most one lead is written per
(agent, session); capture() reports whether this call wrote it.

Backends:
- InMemoryLeadSink: process-local, for tests and single-process runs
- JsonLeadSink: persisted to ~/.agentflow/leads.json
- SqliteLeadSink: leads table in the shared database
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite

from ..common.config import LEADS_PATH
from ..common.schemas import LeadRecord
from .database import Database

logger = logging.getLogger("agentflow.store.lead_sink")


class LeadSink(ABC):
    """Base class for lead persistence"""

    @abstractmethod
    async def capture(self, lead: LeadRecord) -> bool:
        """
        Store a lead unless one already exists for its (agent, session).

        Returns:
            True if this call stored the lead, False if it was a duplicate
        """
        pass

    @abstractmethod
    async def has_lead(self, agent_id: str, session_id: str) -> bool:
        pass

    @abstractmethod
    async def list_leads(self, agent_id: Optional[str] = None) -> List[LeadRecord]:
        pass


class InMemoryLeadSink(LeadSink):
    def __init__(self):
        self._leads: Dict[Tuple[str, str], LeadRecord] = {}
        self._lock = asyncio.Lock()

    async def capture(self, lead: LeadRecord) -> bool:
        async with self._lock:
            key = (lead.agent_id, lead.session_id)
            if key in self._leads:
                logger.info("Lead already captured for session %s", lead.session_id)
                return False
            self._leads[key] = lead
            await self._persist()
        logger.info("Captured lead %s for agent %s", lead.id, lead.agent_id)
        return True

    async def has_lead(self, agent_id: str, session_id: str) -> bool:
        return (agent_id, session_id) in self._leads

    async def list_leads(self, agent_id: Optional[str] = None) -> List[LeadRecord]:
        return [
            lead for lead in self._leads.values()
            if agent_id is None or lead.agent_id == agent_id
        ]

    async def _persist(self) -> None:
        pass


class JsonLeadSink(InMemoryLeadSink):
    """
    Leads persisted to a JSON file.

    The file is loaded once on construction and rewritten after every
    captured lead.
    """

    def __init__(self, leads_path: Optional[Path] = None):
        """
        Args:
            leads_path: Path to leads file (default: ~/.agentflow/leads.json)
        """
        super().__init__()
        self._leads_path = Path(leads_path) if leads_path else LEADS_PATH
        self._load_leads()

    @property
    def path(self) -> Path:
        return self._leads_path

    def _load_leads(self) -> None:
        """Load leads from disk"""
        if not self._leads_path.exists():
            return

        try:
            with open(self._leads_path) as f:
                data = json.load(f)
            for item in data:
                lead = LeadRecord.model_validate(item)
                self._leads[(lead.agent_id, lead.session_id)] = lead
        except (json.JSONDecodeError, IOError, ValueError) as e:
            logger.warning("Failed to load leads from %s: %s", self._leads_path, e)
            self._leads = {}

    async def _persist(self) -> None:
        await asyncio.to_thread(self._save_leads)

    def _save_leads(self) -> None:
        """Save leads to disk"""
        self._leads_path.parent.mkdir(parents=True, exist_ok=True)
        data = [lead.model_dump(mode="json") for lead in self._leads.values()]
        with open(self._leads_path, "w") as f:
            json.dump(data, f, indent=2, default=str)


class SqliteLeadSink(LeadSink):
    """Leads table with UNIQUE(agent_id, session_id) enforcing the dedup"""

    def __init__(self, database: Database):
        self._db = database

    async def capture(self, lead: LeadRecord) -> bool:
        conn = await self._db.connect()
        try:
            await conn.execute(
                """
                INSERT INTO leads
                    (id, agent_id, session_id, name, email, needs, followup_info, arguments, captured_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    lead.id,
                    lead.agent_id,
                    lead.session_id,
                    lead.name,
                    lead.email,
                    lead.needs,
                    lead.followup_info,
                    json.dumps(lead.arguments, default=str),
                    lead.captured_at.isoformat(),
                ),
            )
        except aiosqlite.IntegrityError:
            logger.info("Lead already captured for session %s", lead.session_id)
            return False
        await conn.commit()
        logger.info("Captured lead %s for agent %s", lead.id, lead.agent_id)
        return True

    async def has_lead(self, agent_id: str, session_id: str) -> bool:
        conn = await self._db.connect()
        async with conn.execute(
            "SELECT 1 FROM leads WHERE agent_id = ? AND session_id = ?",
            (agent_id, session_id),
        ) as cursor:
            return await cursor.fetchone() is not None

    async def list_leads(self, agent_id: Optional[str] = None) -> List[LeadRecord]:
        conn = await self._db.connect()
        if agent_id is None:
            query, params = "SELECT * FROM leads ORDER BY captured_at", ()
        else:
            query, params = "SELECT * FROM leads WHERE agent_id = ? ORDER BY captured_at", (agent_id,)
        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [self._to_lead(row) for row in rows]

    @staticmethod
    def _to_lead(row: Any) -> LeadRecord:
        return LeadRecord(
            id=row["id"],
            agent_id=row["agent_id"],
            session_id=row["session_id"],
            name=row["name"],
            email=row["email"],
            needs=row["needs"],
            followup_info=row["followup_info"],
            arguments=json.loads(row["arguments"] or "{}"),
            captured_at=datetime.fromisoformat(row["captured_at"]),
        )
