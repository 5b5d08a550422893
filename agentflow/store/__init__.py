"""
Persistence

Sessions, leads and agents, each with an in-memory and a SQLite backend.
"""

from .database import Database
from .session_store import SessionStore, InMemorySessionStore, SqliteSessionStore, KeyedLocks
from .lead_sink import LeadSink, InMemoryLeadSink, JsonLeadSink, SqliteLeadSink
from .agent_store import AgentStore, InMemoryAgentStore, SqliteAgentStore

__all__ = [
    "Database",
    "SessionStore",
    "InMemorySessionStore",
    "SqliteSessionStore",
    "KeyedLocks",
    "LeadSink",
    "InMemoryLeadSink",
    "JsonLeadSink",
    "SqliteLeadSink",
    "AgentStore",
    "InMemoryAgentStore",
    "SqliteAgentStore",
]
