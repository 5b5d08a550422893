"""
agentflow Schemas

Conversation graph, session state, captured leads and agent metadata.
"""

from .graph import Node, ConversationGraph
from .session import Session, TurnRecord
from .lead import LeadRecord, generate_lead_id
from .agent import AgentProfile, KnowledgeDoc, CreateAgentRequest

__all__ = [
    "Node",
    "ConversationGraph",
    "Session",
    "TurnRecord",
    "LeadRecord",
    "generate_lead_id",
    "AgentProfile",
    "KnowledgeDoc",
    "CreateAgentRequest",
]
