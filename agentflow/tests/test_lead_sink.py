"""Tests for lead sinks."""

import asyncio
import json
import pytest
import pytest_asyncio

from agentflow.common.schemas import LeadRecord
from agentflow.store import Database, InMemoryLeadSink, JsonLeadSink, SqliteLeadSink


@pytest_asyncio.fixture(params=["memory", "json", "sqlite"])
async def sink(request, tmp_path):
    if request.param == "memory":
        yield InMemoryLeadSink()
    elif request.param == "json":
        yield JsonLeadSink(tmp_path / "leads.json")
    else:
        database = Database(str(tmp_path / "agentflow.db"))
        yield SqliteLeadSink(database)
        await database.close()


def _lead(session_id="s1", agent_id="1", **kwargs):
    return LeadRecord(agent_id=agent_id, session_id=session_id, **kwargs)


class TestLeadSink:
    @pytest.mark.asyncio
    async def test_capture_and_list(self, sink):
        lead = _lead(name="Ada", email="ada@example.com", followup_info="wants a callback",
                     arguments={"info": "wants a callback"})
        assert await sink.capture(lead)

        leads = await sink.list_leads()
        assert len(leads) == 1
        assert leads[0].followup_info == "wants a callback"
        assert leads[0].arguments == {"info": "wants a callback"}
        assert leads[0].id == lead.id

    @pytest.mark.asyncio
    async def test_at_most_once_per_session(self, sink):
        assert await sink.capture(_lead(followup_info="first"))
        assert not await sink.capture(_lead(followup_info="second"))

        leads = await sink.list_leads()
        assert [l.followup_info for l in leads] == ["first"]

    @pytest.mark.asyncio
    async def test_concurrent_capture_writes_once(self, sink):
        results = await asyncio.gather(*[sink.capture(_lead(followup_info=str(i))) for i in range(5)])
        assert sum(results) == 1
        assert len(await sink.list_leads()) == 1

    @pytest.mark.asyncio
    async def test_has_lead(self, sink):
        await sink.capture(_lead())
        assert await sink.has_lead("1", "s1")
        assert not await sink.has_lead("1", "s2")
        assert not await sink.has_lead("2", "s1")

    @pytest.mark.asyncio
    async def test_filter_by_agent(self, sink):
        await sink.capture(_lead(session_id="a", agent_id="1"))
        await sink.capture(_lead(session_id="b", agent_id="2"))
        assert [l.session_id for l in await sink.list_leads("2")] == ["b"]
        assert len(await sink.list_leads()) == 2


class TestJsonLeadSink:
    @pytest.mark.asyncio
    async def test_persisted_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "leads.json"
        await JsonLeadSink(path).capture(_lead(name="Ada"))

        data = json.loads(path.read_text())
        assert data[0]["name"] == "Ada"

        reloaded = JsonLeadSink(path)
        assert await reloaded.has_lead("1", "s1")
        assert not await reloaded.capture(_lead())

    def test_corrupt_file_starts_empty(self, tmp_path, caplog):
        import logging
        path = tmp_path / "leads.json"
        path.write_text("{corrupt")
        with caplog.at_level(logging.WARNING, logger="agentflow.store.lead_sink"):
            sink = JsonLeadSink(path)
        assert asyncio.run(sink.list_leads()) == []
        assert "Failed to load leads" in caplog.text
