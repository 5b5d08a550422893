"""Tests for the knowledge ingestion pipeline."""

import httpx
import pytest
from unittest.mock import Mock

from agentflow.common.embedding_service import EmbeddingService
from agentflow.common.errors import IngestionError, NoValidInput
from agentflow.common.schemas import KnowledgeDoc
from agentflow.common.vector_index import VectorIndex
from agentflow.retriever import KnowledgeIngestor


DOCS = {
    "https://example.com/faq.csv": "question,answer\n  Do you ship abroad?,Yes  \n\n   \nReturns,30 days\n",
    "https://example.com/empty.csv": "\n   \n",
}


def _handler(request: httpx.Request) -> httpx.Response:
    body = DOCS.get(str(request.url))
    if body is None:
        return httpx.Response(404, text="not found")
    return httpx.Response(200, text=body)


@pytest.fixture
def index():
    return VectorIndex(dimension=4)


@pytest.fixture
def ingestor(index):
    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    return KnowledgeIngestor(EmbeddingService(mode="disabled", dimension=4), index, http_client=client)


class TestFetch:
    @pytest.mark.asyncio
    async def test_lines_trimmed_and_blank_dropped(self, ingestor):
        lines = await ingestor.fetch_lines("https://example.com/faq.csv")
        assert lines == ["question,answer", "Do you ship abroad?,Yes", "Returns,30 days"]

    @pytest.mark.asyncio
    async def test_http_error_raises_ingestion_error(self, ingestor):
        with pytest.raises(IngestionError, match="404"):
            await ingestor.fetch_lines("https://example.com/missing.csv")


class TestIngest:
    @pytest.mark.asyncio
    async def test_records_upserted_with_metadata(self, ingestor, index):
        doc = KnowledgeDoc(type="csv", source="https://example.com/faq.csv", description="FAQ")
        count = await ingestor.ingest(doc, agent_id="3")

        assert count == 3
        assert index.count() == 3
        matches = index.query([0.0] * 4, topk=3, filter={"agent_id": "3"})["matches"]
        assert {m["metadata"]["content"] for m in matches} == {
            "question,answer", "Do you ship abroad?,Yes", "Returns,30 days",
        }
        assert all(m["metadata"]["source"] == doc.source for m in matches)
        assert all(m["metadata"]["description"] == "FAQ" for m in matches)
        assert all(m["id"].startswith("3-") for m in matches)

    @pytest.mark.asyncio
    async def test_repeat_ingestion_never_overwrites(self, ingestor, index):
        doc = KnowledgeDoc(source="https://example.com/faq.csv")
        await ingestor.ingest(doc, agent_id="3")
        await ingestor.ingest(doc, agent_id="3")
        assert index.count() == 6

    @pytest.mark.asyncio
    async def test_empty_document_raises_no_valid_input(self, ingestor, index):
        with pytest.raises(NoValidInput):
            await ingestor.ingest(KnowledgeDoc(source="https://example.com/empty.csv"), agent_id="3")
        assert index.count() == 0

    @pytest.mark.asyncio
    async def test_upsert_failure_raises_ingestion_error(self):
        index = Mock()
        index.upsert.return_value = {"ok": False, "error": "dimension mismatch"}
        client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
        ingestor = KnowledgeIngestor(EmbeddingService(mode="disabled", dimension=4), index, http_client=client)

        with pytest.raises(IngestionError, match="dimension mismatch"):
            await ingestor.ingest(KnowledgeDoc(source="https://example.com/faq.csv"), agent_id="3")


class TestIngestAll:
    @pytest.mark.asyncio
    async def test_reports_per_document(self, ingestor):
        docs = [
            KnowledgeDoc(type="csv", source="https://example.com/faq.csv"),
            KnowledgeDoc(type="pdf", source="https://example.com/brochure.pdf"),
            KnowledgeDoc(type="csv", source="https://example.com/missing.csv"),
        ]
        reports = await ingestor.ingest_all(docs, agent_id="3")

        assert [r.records for r in reports] == [3, 0, 0]
        assert reports[0].ok
        assert reports[1].skipped
        assert not reports[2].ok
        assert "404" in reports[2].error
