"""
Agent Schemas

Agent identity/metadata and the admin payload that creates an agent together
with its knowledge documents and initial workflow graph.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .graph import ConversationGraph


class KnowledgeDoc(BaseModel):
    """A document to ingest into the agent's knowledge base"""
    type: str = Field(default="csv", description='"csv", "text", ...')
    source: str = Field(..., description="URL of the document")
    description: str = ""


class AgentProfile(BaseModel):
    """Agent identity and persona"""
    id: Optional[str] = None
    name: str
    goal: str = ""
    domain: str = ""
    tone: str = ""

    def persona_text(self) -> str:
        """Persona block prepended to node instructions"""
        lines = [f"You are {self.name}, a helpful AI assistant."]
        if self.goal:
            lines.append(f"Your goal: {self.goal}")
        if self.domain:
            lines.append(f"Domain: {self.domain}")
        if self.tone:
            lines.append(f"Tone: {self.tone}")
        return "\n".join(lines)


class CreateAgentRequest(BaseModel):
    """Payload for agent creation"""
    name: str
    goal: str = ""
    domain: str = ""
    tone: str = ""
    knowledge_docs: List[KnowledgeDoc] = Field(default_factory=list)
    workflow: Union[ConversationGraph, List[Dict[str, Any]]]

    @field_validator("workflow", mode="before")
    @classmethod
    def _accept_workflow_list(cls, value: Any) -> Any:
        if isinstance(value, list):
            return ConversationGraph.from_workflow(value)
        return value

    def profile(self) -> AgentProfile:
        return AgentProfile(name=self.name, goal=self.goal, domain=self.domain, tone=self.tone)

    @property
    def graph(self) -> ConversationGraph:
        return self.workflow
