"""
Lead Record Schema

Structured artifact captured by the saveLeadData function call.
At most one lead per (agent, session); the store is append-only.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, Field


def generate_lead_id() -> str:
    """Generate a unique ID for a lead record"""
    return f"lead_{uuid.uuid4().hex[:12]}"


class LeadRecord(BaseModel):
    """A captured lead / contact"""
    id: str = Field(default_factory=generate_lead_id)
    agent_id: str
    session_id: str
    name: str = "Unknown"
    email: str = ""
    needs: str = "Not specified"
    followup_info: str = ""
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Raw function arguments")
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
