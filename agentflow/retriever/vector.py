"""
Vector Retriever

Embeds the query and searches the vector index for the top-k nearest
knowledge passages belonging to one agent.
"""

import asyncio
import logging
from typing import List, Optional

from ..common.errors import RetrievalUnavailable
from ..common.embedding_service import EmbeddingService
from ..common.vector_index import VectorIndex
from .base import KnowledgeRetriever, Passage

logger = logging.getLogger("agentflow.retriever.vector")


class VectorRetriever(KnowledgeRetriever):
    """
    Similarity search over ingested knowledge.

    Results are returned in descending similarity order; matches with a
    non-positive score are dropped. Any embedding or index failure is raised
    as RetrievalUnavailable.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        index: VectorIndex,
        agent_id: Optional[str] = None,
        topk: int = 3,
    ):
        """
        Initialize vector retriever.

        Args:
            embedding_service: For embedding queries
            index: Vector index holding ingested passages
            agent_id: Restrict results to this agent's knowledge (None = all)
            topk: Number of passages to return
        """
        self._embedding = embedding_service
        self._index = index
        self._agent_id = agent_id
        self._topk = topk

    @property
    def topk(self) -> int:
        return self._topk

    async def retrieve(self, query: str) -> List[Passage]:
        return await asyncio.to_thread(self._search, query)

    def _search(self, query: str) -> List[Passage]:
        try:
            query_vector = self._embedding.embed_single(query)
        except Exception as e:
            raise RetrievalUnavailable(f"Query embedding failed: {e}") from e

        search_filter = {"agent_id": self._agent_id} if self._agent_id is not None else None
        try:
            result = self._index.query(query_vector, topk=self._topk, filter=search_filter)
        except Exception as e:
            raise RetrievalUnavailable(f"Vector index query failed: {e}") from e

        if not result.get("ok"):
            raise RetrievalUnavailable(f"Vector index query failed: {result.get('error')}")

        passages = []
        for match in result.get("matches", []):
            metadata = match.get("metadata", {})
            content = metadata.get("content", "")
            # Orthogonal or zero vectors carry no relevance signal
            if not content or match.get("score", 0.0) <= 0.0:
                continue
            passages.append(Passage(
                content=content,
                score=match.get("score", 0.0),
                source=metadata.get("source"),
                entry_id=match.get("id"),
            ))

        logger.debug("Vector search returned %d passages", len(passages))
        return passages
