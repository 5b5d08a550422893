"""
agentflow - workflow-driven conversational agents

Each agent follows a small conversation graph. Every turn runs the session's
current node: knowledge retrieval, reply generation (or a saveLeadData
function call), context capture, then a move to the next node.

Usage:
    from agentflow.common import load_config
    from agentflow.common.schemas import ConversationGraph, CreateAgentRequest
    from agentflow.engine import AgentRuntime, WorkflowEngine
    from agentflow.server import run_server
"""

__version__ = "0.1.0"
