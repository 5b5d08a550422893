"""
Keyword Retriever

Naive keyword matching: an entry matches when any of its keywords appears as
a substring of the lower-cased query. Matches come back in corpus order, one
passage per entry.
"""

from typing import List, Iterable

from .base import KnowledgeRetriever, KnowledgeEntry, Passage


class KeywordRetriever(KnowledgeRetriever):
    """Substring keyword matcher over a static corpus"""

    def __init__(self, entries: Iterable[KnowledgeEntry] = ()):
        self._entries: List[KnowledgeEntry] = list(entries)

    def match(self, query: str) -> List[KnowledgeEntry]:
        """Entries whose keywords occur in the query, in corpus order"""
        query_lower = (query or "").lower()
        if not query_lower.strip():
            return []

        matched = []
        seen_ids = set()
        for entry in self._entries:
            if entry.id in seen_ids:
                continue
            if any(keyword in query_lower for keyword in entry.keywords):
                seen_ids.add(entry.id)
                matched.append(entry)
        return matched

    async def retrieve(self, query: str) -> List[Passage]:
        return [
            Passage(content=entry.content, entry_id=entry.id, source="keyword")
            for entry in self.match(query)
        ]
