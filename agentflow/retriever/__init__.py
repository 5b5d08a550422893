"""
Knowledge Retrieval

Finds domain knowledge relevant to the user's input.

Key Components:
- KeywordRetriever: substring keyword matching over a static corpus
- VectorRetriever: similarity search over ingested passages
- NullRetriever: retrieval disabled
- KnowledgeIngestor: loads external documents into the vector index
"""

from typing import Optional

from ..common.embedding_service import EmbeddingService
from ..common.vector_index import VectorIndex
from .base import (
    KnowledgeRetriever,
    KnowledgeEntry,
    Passage,
    NullRetriever,
    RETRIEVAL_STRATEGIES,
    load_keyword_corpus,
)
from .keyword import KeywordRetriever
from .vector import VectorRetriever
from .ingestion import KnowledgeIngestor, IngestionReport


def build_retriever(
    retrieval_config,
    embedding_service: Optional[EmbeddingService] = None,
    index: Optional[VectorIndex] = None,
    agent_id: Optional[str] = None,
    keyword_retriever: Optional[KeywordRetriever] = None,
) -> KnowledgeRetriever:
    """
    Select a retrieval strategy from configuration.

    Args:
        retrieval_config: RetrievalConfig (strategy, topk, corpus path)
        embedding_service: Required for the vector strategy
        index: Required for the vector strategy
        agent_id: Scope vector results to one agent
        keyword_retriever: Shared keyword retriever (loaded from the corpus path if absent)
    """
    strategy = retrieval_config.strategy
    if strategy not in RETRIEVAL_STRATEGIES:
        raise ValueError(f"Unsupported retrieval strategy: {strategy}")

    if strategy == "disabled":
        return NullRetriever()

    if strategy == "keyword":
        if keyword_retriever is not None:
            return keyword_retriever
        entries = []
        if retrieval_config.keyword_corpus_path:
            entries = load_keyword_corpus(retrieval_config.keyword_corpus_path)
        return KeywordRetriever(entries)

    if embedding_service is None or index is None:
        raise ValueError("Vector retrieval requires an embedding service and an index")
    return VectorRetriever(embedding_service, index, agent_id=agent_id, topk=retrieval_config.topk)


__all__ = [
    "KnowledgeRetriever",
    "KnowledgeEntry",
    "Passage",
    "NullRetriever",
    "KeywordRetriever",
    "VectorRetriever",
    "KnowledgeIngestor",
    "IngestionReport",
    "load_keyword_corpus",
    "build_retriever",
]
