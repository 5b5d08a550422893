"""
Knowledge Ingestion

Loads external knowledge documents into the vector index when an agent is
created. Runs once per document, outside the per-turn path.

Pipeline:
1. Fetch the document over HTTP
2. Split into trimmed, non-blank lines (one record per line)
3. Embed records in batches
4. Upsert {id, values, metadata: {source, description, content, agent_id}}
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

import httpx

from ..common.errors import IngestionError, NoValidInput
from ..common.embedding_service import EmbeddingService
from ..common.vector_index import VectorIndex
from ..common.schemas import KnowledgeDoc

logger = logging.getLogger("agentflow.retriever.ingestion")

SUPPORTED_DOC_TYPES = ("csv", "text", "txt")


@dataclass
class IngestionReport:
    """Outcome of ingesting one knowledge document"""
    source: str
    doc_type: str
    records: int = 0
    skipped: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class KnowledgeIngestor:
    """
    Fetches line-oriented documents, embeds each line and upserts it.

    Record ids are "{agent_id}-{run}-{position}", where run is unique per
    ingest() call, so ingesting the same source twice never overwrites.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        index: VectorIndex,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self._embedding = embedding_service
        self._index = index
        self._http = http_client
        self._timeout = timeout

    async def fetch_lines(self, url: str) -> List[str]:
        """
        Fetch a document and split it into trimmed, non-blank lines.

        Raises:
            IngestionError: On transport errors or non-2xx responses
        """
        try:
            if self._http is not None:
                response = await self._http.get(url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            raise IngestionError(f"Failed to fetch {url}: {e}") from e

        if response.is_error:
            raise IngestionError(f"Failed to fetch {url}: HTTP {response.status_code}")

        return [line.strip() for line in response.text.split("\n") if line.strip()]

    async def ingest(self, doc: KnowledgeDoc, agent_id: str) -> int:
        """
        Ingest one document for an agent.

        Returns:
            Number of records upserted

        Raises:
            IngestionError: Fetch or upsert failure
            NoValidInput: Document has no non-blank lines
        """
        lines = await self.fetch_lines(doc.source)
        if not lines:
            raise NoValidInput(f"Document {doc.source} has no content to embed")

        embeddings = await asyncio.to_thread(self._embedding.embed, lines)

        run_id = uuid.uuid4().hex[:8]
        vectors = [
            {
                "id": f"{agent_id}-{run_id}-{i}",
                "values": embeddings[i],
                "metadata": {
                    "source": doc.source,
                    "description": doc.description,
                    "content": line,
                    "agent_id": agent_id,
                },
            }
            for i, line in enumerate(lines)
        ]

        result = await asyncio.to_thread(self._index.upsert, vectors)
        if not result.get("ok"):
            raise IngestionError(f"Failed to store {doc.source}: {result.get('error')}")

        logger.info("Ingested %d records from %s for agent %s", len(vectors), doc.source, agent_id)
        return len(vectors)

    async def ingest_all(self, docs: List[KnowledgeDoc], agent_id: str) -> List[IngestionReport]:
        """Ingest every supported document, reporting per-document outcomes"""
        reports = []
        for doc in docs:
            doc_type = doc.type.lower()
            if doc_type not in SUPPORTED_DOC_TYPES:
                logger.info("Skipping unsupported doc type: %s", doc.type)
                reports.append(IngestionReport(source=doc.source, doc_type=doc.type, skipped=True))
                continue

            try:
                count = await self.ingest(doc, agent_id)
                reports.append(IngestionReport(source=doc.source, doc_type=doc.type, records=count))
            except (IngestionError, NoValidInput) as e:
                logger.warning("Ingestion failed for %s: %s", doc.source, e)
                reports.append(IngestionReport(source=doc.source, doc_type=doc.type, error=str(e)))

        return reports
