"""
Function Calls

Structured side effects the generation backend may request by name.
Handlers are pure: they return the reply and the lead to write, and the
engine performs the write as the last step of the turn.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..common.config import DEFAULT_LEAD_CONFIRMATION
from ..common.schemas import LeadRecord

logger = logging.getLogger("agentflow.engine.functions")

SAVE_LEAD_DATA = "saveLeadData"


@dataclass
class FunctionOutcome:
    """Result of dispatching a function call"""
    reply: str
    lead: Optional[LeadRecord] = None


# handler(arguments, context, agent_id, session_id) -> FunctionOutcome
FunctionHandler = Callable[[Dict[str, Any], Dict[str, Any], str, str], FunctionOutcome]


@dataclass
class FunctionSpec:
    name: str
    description: str
    handler: FunctionHandler
    parameters: Dict[str, Any] = field(default_factory=dict)


class FunctionRegistry:
    """Registry of callable functions, looked up by name"""

    def __init__(self):
        self._functions: Dict[str, FunctionSpec] = {}

    def register(self, spec: FunctionSpec) -> None:
        if spec.name in self._functions:
            logger.warning("Replacing registered function: %s", spec.name)
        self._functions[spec.name] = spec

    def get(self, name: str) -> Optional[FunctionSpec]:
        return self._functions.get(name)

    def names(self) -> List[str]:
        return list(self._functions)

    def permitted(self, allowed: Optional[List[str]]) -> List[FunctionSpec]:
        """Specs allowed at a node (None = every registered function)"""
        if allowed is None:
            return list(self._functions.values())
        return [self._functions[name] for name in allowed if name in self._functions]

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)


def make_save_lead_data(confirmation: str = DEFAULT_LEAD_CONFIRMATION) -> FunctionSpec:
    """
    saveLeadData(info): capture the visitor as a lead.

    Name, email and needs come from the session context, with placeholders
    for anything not collected yet; info is the follow-up payload.
    """

    def save_lead_data(
        arguments: Dict[str, Any], context: Dict[str, Any], agent_id: str, session_id: str
    ) -> FunctionOutcome:
        lead = LeadRecord(
            agent_id=agent_id,
            session_id=session_id,
            name=str(context.get("name") or "Unknown"),
            email=str(context.get("email") or ""),
            needs=str(context.get("needs") or "Not specified"),
            followup_info=str(arguments.get("info", "")),
            arguments=dict(arguments),
        )
        return FunctionOutcome(reply=confirmation, lead=lead)

    return FunctionSpec(
        name=SAVE_LEAD_DATA,
        description="Save the user's contact details and follow-up request as a lead.",
        handler=save_lead_data,
        parameters={
            "type": "object",
            "properties": {
                "info": {"type": "string", "description": "What the user wants followed up"},
            },
            "required": ["info"],
        },
    )


def default_registry(lead_confirmation: str = DEFAULT_LEAD_CONFIRMATION) -> FunctionRegistry:
    registry = FunctionRegistry()
    registry.register(make_save_lead_data(lead_confirmation))
    return registry
