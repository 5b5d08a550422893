"""
Workflow Engine

Key Components:
- WorkflowEngine: executes one turn for a session against the agent's graph
- GraphHolder: live graph reference, swapped whole on replacement
- GenerationBackend: text reply or structured function call
- FunctionRegistry: function calls the backend may request (saveLeadData)
- AgentRuntime: per-agent engines wired from configuration
"""

from .graph_holder import GraphHolder
from .functions import (
    FunctionOutcome,
    FunctionRegistry,
    FunctionSpec,
    SAVE_LEAD_DATA,
    default_registry,
)
from .generation import (
    GenerationBackend,
    GenerationRequest,
    GenerationResult,
    LLMGenerationBackend,
    TextReply,
    FunctionCallReply,
    NO_RESPONSE_REPLY,
)
from .workflow_engine import WorkflowEngine, TurnResult
from .runtime import AgentRuntime

__all__ = [
    "GraphHolder",
    "FunctionOutcome",
    "FunctionRegistry",
    "FunctionSpec",
    "SAVE_LEAD_DATA",
    "default_registry",
    "GenerationBackend",
    "GenerationRequest",
    "GenerationResult",
    "LLMGenerationBackend",
    "TextReply",
    "FunctionCallReply",
    "NO_RESPONSE_REPLY",
    "WorkflowEngine",
    "TurnResult",
    "AgentRuntime",
]
