"""
Agent Runtime

Wires configuration, stores, retrieval, generation and ingestion together and
exposes the administrative and conversational operations used by the server.

One WorkflowEngine per agent is built on first use and cached; replacing an
agent's graph persists it and then swaps the engine's GraphHolder reference.
"""

import asyncio
import dataclasses
import logging
from typing import Dict, List, Optional, Tuple

from ..common.config import AgentFlowConfig, EngineConfig, RetrievalConfig
from ..common.embedding_service import EmbeddingService
from ..common.vector_index import VectorIndex
from ..common.schemas import (
    AgentProfile,
    ConversationGraph,
    CreateAgentRequest,
    LeadRecord,
    Session,
)
from ..retriever import (
    IngestionReport,
    KeywordRetriever,
    KnowledgeIngestor,
    build_retriever,
    load_keyword_corpus,
)
from ..store import (
    AgentStore,
    Database,
    InMemoryAgentStore,
    InMemoryLeadSink,
    InMemorySessionStore,
    JsonLeadSink,
    LeadSink,
    SessionStore,
    SqliteAgentStore,
    SqliteLeadSink,
    SqliteSessionStore,
)
from .functions import FunctionRegistry, default_registry
from .generation import GenerationBackend, LLMGenerationBackend
from .graph_holder import GraphHolder
from .workflow_engine import TurnResult, WorkflowEngine

logger = logging.getLogger("agentflow.engine.runtime")


class AgentRuntime:
    """
    Usage:
        runtime = AgentRuntime.from_config(load_config())
        agent_id, reports = await runtime.create_agent(request)
        result = await runtime.handle_turn(agent_id, "session-1", "hi")
        await runtime.close()
    """

    def __init__(
        self,
        agent_store: AgentStore,
        session_store: SessionStore,
        lead_sink: LeadSink,
        backend: GenerationBackend,
        *,
        embedding_service: Optional[EmbeddingService] = None,
        index: Optional[VectorIndex] = None,
        ingestor: Optional[KnowledgeIngestor] = None,
        functions: Optional[FunctionRegistry] = None,
        retrieval_config: Optional[RetrievalConfig] = None,
        engine_config: Optional[EngineConfig] = None,
        keyword_retriever: Optional[KeywordRetriever] = None,
        database: Optional[Database] = None,
    ):
        self.agent_store = agent_store
        self.session_store = session_store
        self.lead_sink = lead_sink
        self.backend = backend
        self.embedding_service = embedding_service
        self.index = index
        self.ingestor = ingestor
        self.retrieval_config = retrieval_config or RetrievalConfig(strategy="disabled")
        self.engine_config = engine_config or EngineConfig()
        self.functions = functions if functions is not None else default_registry(self.engine_config.lead_confirmation)
        self._keyword_retriever = keyword_retriever
        self._database = database
        self._engines: Dict[str, WorkflowEngine] = {}
        self._engines_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: AgentFlowConfig) -> "AgentRuntime":
        """Build every component from configuration"""
        database = None
        if config.storage.backend == "sqlite":
            database = Database(config.storage.database_path)
            agent_store = SqliteAgentStore(database)
            session_store = SqliteSessionStore(database)
            lead_sink = SqliteLeadSink(database)
        elif config.storage.backend == "memory":
            agent_store = InMemoryAgentStore()
            session_store = InMemorySessionStore()
            lead_sink = JsonLeadSink(config.storage.leads_path) if config.storage.leads_path else InMemoryLeadSink()
        else:
            raise ValueError(f"Unsupported storage backend: {config.storage.backend}")

        retrieval_config = config.retrieval
        if retrieval_config.strategy == "vector" and config.embedding.mode == "disabled":
            logger.info("Embeddings disabled, skipping knowledge ingestion and vector retrieval")
            retrieval_config = dataclasses.replace(retrieval_config, strategy="disabled")

        embedding_service = None
        index = None
        ingestor = None
        keyword_retriever = None
        if retrieval_config.strategy == "vector":
            embedding_service = EmbeddingService.from_config(config.embedding)
            index = VectorIndex(
                dimension=config.embedding.dimension,
                snapshot_path=retrieval_config.vector_index_path or None,
            )
            ingestor = KnowledgeIngestor(embedding_service, index)
        elif retrieval_config.strategy == "keyword":
            entries = []
            if retrieval_config.keyword_corpus_path:
                entries = load_keyword_corpus(retrieval_config.keyword_corpus_path)
            keyword_retriever = KeywordRetriever(entries)

        backend = LLMGenerationBackend.from_config(config.llm)
        if not backend.is_available:
            logger.warning("No LLM configured for provider %s, replies will use the fallback", config.llm.provider)

        return cls(
            agent_store,
            session_store,
            lead_sink,
            backend,
            embedding_service=embedding_service,
            index=index,
            ingestor=ingestor,
            retrieval_config=retrieval_config,
            engine_config=config.engine,
            keyword_retriever=keyword_retriever,
            database=database,
        )

    async def close(self) -> None:
        if self._database is not None:
            await self._database.close()

    # Agents

    async def create_agent(self, request: CreateAgentRequest) -> Tuple[str, List[IngestionReport]]:
        """
        Persist an agent with its graph and ingest its knowledge documents.

        Ingestion failures are reported per document and never undo the
        agent creation.
        """
        graph = request.graph
        graph.validate_integrity()
        agent_id = await self.agent_store.create_agent(request.profile(), graph)

        reports: List[IngestionReport] = []
        if request.knowledge_docs:
            if self.ingestor is None:
                logger.info("Vector retrieval disabled, skipping ingestion for agent %s", agent_id)
            else:
                reports = await self.ingestor.ingest_all(request.knowledge_docs, agent_id)

        logger.info("Agent %s created with %d workflow nodes", agent_id, len(graph.nodes))
        return agent_id, reports

    async def list_agents(self) -> List[AgentProfile]:
        return await self.agent_store.list_agents()

    async def get_graph(self, agent_id: str) -> ConversationGraph:
        engine = await self.engine_for(agent_id)
        return engine.graph.current

    async def replace_graph(self, agent_id: str, graph: ConversationGraph) -> None:
        """Persist the new graph, then swap it in for subsequent turns"""
        graph.validate_integrity()
        await self.agent_store.save_graph(agent_id, graph)
        engine = self._engines.get(agent_id)
        if engine is not None:
            engine.graph.replace(graph)

    # Conversation

    async def engine_for(self, agent_id: str) -> WorkflowEngine:
        """
        Cached engine for an agent.

        Raises:
            AgentNotFound: Unknown agent
        """
        engine = self._engines.get(agent_id)
        if engine is not None:
            return engine

        async with self._engines_lock:
            engine = self._engines.get(agent_id)
            if engine is None:
                engine = await self._build_engine(agent_id)
                self._engines[agent_id] = engine
        return engine

    async def _build_engine(self, agent_id: str) -> WorkflowEngine:
        profile = await self.agent_store.get_agent(agent_id)
        graph = await self.agent_store.get_graph(agent_id)
        retriever = build_retriever(
            self.retrieval_config,
            embedding_service=self.embedding_service,
            index=self.index,
            agent_id=agent_id,
            keyword_retriever=self._keyword_retriever,
        )
        return WorkflowEngine(
            GraphHolder(graph),
            self.session_store,
            self.lead_sink,
            self.backend,
            retriever,
            self.functions,
            agent_id=agent_id,
            profile=profile,
            fallback_reply=self.engine_config.fallback_reply,
            retrieval_timeout=self.retrieval_config.timeout,
            generation_timeout=self.engine_config.generation_timeout,
        )

    async def handle_turn(self, agent_id: str, session_id: str, user_input: Optional[str]) -> TurnResult:
        engine = await self.engine_for(agent_id)
        return await engine.handle_turn(session_id, user_input)

    async def get_session(self, agent_id: str, session_id: str) -> Session:
        """
        Lookup-only session access.

        Raises:
            AgentNotFound: Unknown agent
            SessionNotFound: No such session for the agent
        """
        await self.agent_store.get_agent(agent_id)
        return await self.session_store.get(session_id, agent_id)

    async def list_leads(self, agent_id: Optional[str] = None) -> List[LeadRecord]:
        return await self.lead_sink.list_leads(agent_id)
