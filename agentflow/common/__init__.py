"""
agentflow Common Module

Shared infrastructure for the engine, retrievers, stores and server.
"""

from .config import AgentFlowConfig, load_config
from .embedding_service import EmbeddingService
from .llm_client import LLMClient
from .vector_index import VectorIndex

__all__ = [
    "AgentFlowConfig",
    "load_config",
    "EmbeddingService",
    "LLMClient",
    "VectorIndex",
]
