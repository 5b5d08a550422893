"""
Knowledge Retriever interface

Given a query string, a retriever returns zero or more relevant passages.
Failures raise RetrievalUnavailable; the WorkflowEngine treats that as an
empty result.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..common.errors import RetrievalUnavailable

logger = logging.getLogger("agentflow.retriever.base")

RETRIEVAL_STRATEGIES = ("keyword", "vector", "disabled")


@dataclass
class Passage:
    """A single retrieved knowledge passage"""
    content: str
    score: float = 1.0
    source: Optional[str] = None
    entry_id: Optional[str] = None


@dataclass
class KnowledgeEntry:
    """A keyword-indexed knowledge corpus entry"""
    id: str
    content: str
    keywords: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.keywords = [k.lower() for k in self.keywords if k and k.strip()]


class KnowledgeRetriever(ABC):
    """Base class for retrieval strategies"""

    @abstractmethod
    async def retrieve(self, query: str) -> List[Passage]:
        """
        Find passages relevant to the query.

        Raises:
            RetrievalUnavailable: If the backing lookup fails
        """
        pass


class NullRetriever(KnowledgeRetriever):
    """Retrieval disabled: never returns anything"""

    async def retrieve(self, query: str) -> List[Passage]:
        return []


def load_keyword_corpus(path: str) -> List[KnowledgeEntry]:
    """
    Load a keyword corpus from a JSON file.

    Expected format: [{"id": "...", "keywords": ["..."], "content": "..."}]
    """
    corpus_path = Path(path).expanduser()
    try:
        with open(corpus_path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise RetrievalUnavailable(f"Failed to load keyword corpus {corpus_path}: {e}") from e

    entries = []
    for i, item in enumerate(data):
        entries.append(KnowledgeEntry(
            id=str(item.get("id", i)),
            content=item["content"],
            keywords=item.get("keywords", []),
        ))

    logger.info("Loaded %d keyword entries from %s", len(entries), corpus_path)
    return entries
