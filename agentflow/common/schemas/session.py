"""
Session Schema

Durable per-session workflow state: where the conversation is in the graph,
the facts accumulated so far, and an append-only audit trail of turns.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TurnRecord(BaseModel):
    """One request/response exchange (audit only, never read by the engine)"""
    user_input: str
    reply: str
    node: str = Field(..., description="Node the turn was executed at")
    next_node: Optional[str] = None
    function_call: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class Session(BaseModel):
    """Per-session state owned by the SessionStore"""
    session_id: str
    agent_id: str = "default"
    current_node: str
    context: Dict[str, Any] = Field(default_factory=dict)
    history: List[TurnRecord] = Field(default_factory=list)
    ended: bool = False
    revision: int = Field(default=0, description="Bumped on every persisted turn")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def start(cls, session_id: str, agent_id: str, start_node: str) -> "Session":
        """New session at the graph's start node with empty context and history"""
        return cls(session_id=session_id, agent_id=agent_id, current_node=start_node)

    def apply_turn(
        self,
        turn: TurnRecord,
        context_writes: Dict[str, Any],
        next_node: Optional[str],
    ) -> None:
        """
        Apply one turn's outcome.

        A terminal turn leaves the session on the node it executed and marks
        it ended.
        """
        self.history.append(turn)
        self.context.update(context_writes)
        if next_node is not None:
            self.current_node = next_node
            self.ended = False
        else:
            self.current_node = turn.node
            self.ended = True
        self.revision += 1
        self.updated_at = _utcnow()
