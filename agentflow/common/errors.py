"""
Error taxonomy shared by the engine, retrievers, stores and server.

Only GraphIntegrityError and input validation errors cross the turn boundary;
the remote-dependency errors are recovered by the WorkflowEngine.
"""


class AgentFlowError(Exception):
    """Base class for agentflow errors."""
    pass


class GraphIntegrityError(AgentFlowError):
    """A session or graph references a node that does not exist."""

    def __init__(self, message: str, node_id: str = None):
        super().__init__(message)
        self.node_id = node_id


class RetrievalUnavailable(AgentFlowError):
    """Knowledge lookup failed (embedding or index error)."""
    pass


class GenerationUnavailable(AgentFlowError):
    """Generation backend failed, timed out or is not configured."""
    pass


class NoValidInput(AgentFlowError, ValueError):
    """Embedding requested with no non-blank text."""
    pass


class IngestionError(AgentFlowError):
    """A knowledge document could not be fetched or stored."""
    pass


class SessionNotFound(AgentFlowError, LookupError):
    """Lookup-only session access for an unknown session."""

    def __init__(self, session_id: str, agent_id: str = None):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id
        self.agent_id = agent_id


class AgentNotFound(AgentFlowError, LookupError):
    """Unknown agent id."""

    def __init__(self, agent_id: str):
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id
