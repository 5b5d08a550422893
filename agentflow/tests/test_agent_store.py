"""Tests for agent stores."""

import pytest
import pytest_asyncio

from agentflow.common.errors import AgentNotFound
from agentflow.common.schemas import AgentProfile, ConversationGraph
from agentflow.store import Database, InMemoryAgentStore, SqliteAgentStore


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryAgentStore()
        return
    database = Database(str(tmp_path / "agentflow.db"))
    yield SqliteAgentStore(database)
    await database.close()


@pytest.fixture
def graph():
    return ConversationGraph.from_workflow([
        {"id": "greet", "description": "Greet the visitor", "nextNode": "collectInformation"},
        {"id": "collectInformation", "description": "Ask for their name", "collect": "name",
         "functions": ["saveLeadData"]},
    ])


@pytest.fixture
def profile():
    return AgentProfile(name="Sunny", goal="Book solar consultations", domain="solar", tone="friendly")


class TestAgentStore:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store, profile, graph):
        agent_id = await store.create_agent(profile, graph)
        assert isinstance(agent_id, str)

        stored = await store.get_agent(agent_id)
        assert stored.id == agent_id
        assert stored.name == "Sunny"
        assert stored.tone == "friendly"

    @pytest.mark.asyncio
    async def test_ids_unique(self, store, profile, graph):
        first = await store.create_agent(profile, graph)
        second = await store.create_agent(profile, graph)
        assert first != second
        assert [a.id for a in await store.list_agents()] == [first, second]

    @pytest.mark.asyncio
    async def test_graph_round_trip(self, store, profile, graph):
        agent_id = await store.create_agent(profile, graph)
        loaded = await store.get_graph(agent_id)
        assert loaded == graph
        assert loaded.nodes["collectInformation"].functions == ["saveLeadData"]

    @pytest.mark.asyncio
    async def test_save_graph_replaces_whole(self, store, profile, graph):
        agent_id = await store.create_agent(profile, graph)
        replacement = ConversationGraph.from_workflow([{"id": "only", "description": "Single step"}])
        await store.save_graph(agent_id, replacement)

        loaded = await store.get_graph(agent_id)
        assert list(loaded.nodes) == ["only"]
        assert loaded.start_node == "only"

    @pytest.mark.asyncio
    async def test_unknown_agent(self, store, graph):
        with pytest.raises(AgentNotFound):
            await store.get_agent("404")
        with pytest.raises(AgentNotFound):
            await store.get_graph("404")
        with pytest.raises(AgentNotFound):
            await store.save_graph("404", graph)
