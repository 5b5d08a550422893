"""
Workflow Engine

Executes one conversational turn for a session against the agent's graph.

Turn phases:
1. Load   - under the session lock, load (or start) the session and copy it
2. Remote - retrieval and generation with no lock held, each under a timeout
3. Commit - re-lock, apply the turn to the latest stored state, persist once,
            then write the lead (shielded from cancellation)

Remote failures never fail the turn: retrieval degrades to no context and
generation to a fixed fallback reply. Only GraphIntegrityError and invalid
input reach the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..common.config import DEFAULT_FALLBACK_REPLY
from ..common.errors import GraphIntegrityError
from ..common.schemas import AgentProfile, LeadRecord, Node, Session, TurnRecord
from ..retriever.base import KnowledgeRetriever, NullRetriever
from ..store.lead_sink import LeadSink
from ..store.session_store import SessionStore
from .functions import FunctionRegistry, default_registry
from .generation import (
    FunctionCallReply,
    GenerationBackend,
    GenerationRequest,
    GenerationResult,
)
from .graph_holder import GraphHolder

logger = logging.getLogger("agentflow.engine.workflow_engine")


@dataclass
class TurnResult:
    """What the caller gets back from a turn"""
    reply: str
    next_node: Optional[str]
    ended: bool
    session_id: str
    node: str
    context: Dict[str, Any] = field(default_factory=dict)
    lead_captured: bool = False


class _TemplateValues(dict):
    """Leaves unknown {placeholders} in place"""

    def __missing__(self, key):
        return "{" + key + "}"


@dataclass
class _Response:
    reply: str
    function_call: Optional[str] = None
    lead: Optional[LeadRecord] = None


class WorkflowEngine:
    """
    Per-agent turn handler.

    Usage:
        engine = WorkflowEngine(GraphHolder(graph), sessions, leads, backend)
        result = await engine.handle_turn("session-1", "hi")
    """

    def __init__(
        self,
        graph: GraphHolder,
        session_store: SessionStore,
        lead_sink: LeadSink,
        backend: GenerationBackend,
        retriever: Optional[KnowledgeRetriever] = None,
        functions: Optional[FunctionRegistry] = None,
        *,
        agent_id: str = "default",
        profile: Optional[AgentProfile] = None,
        fallback_reply: str = DEFAULT_FALLBACK_REPLY,
        retrieval_timeout: float = 5.0,
        generation_timeout: float = 30.0,
    ):
        self._graph = graph
        self._sessions = session_store
        self._leads = lead_sink
        self._backend = backend
        self._retriever = retriever or NullRetriever()
        self._functions = functions if functions is not None else default_registry()
        self._agent_id = agent_id
        self._profile = profile
        self._fallback_reply = fallback_reply
        self._retrieval_timeout = retrieval_timeout
        self._generation_timeout = generation_timeout

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def graph(self) -> GraphHolder:
        return self._graph

    async def handle_turn(self, session_id: str, user_input: Optional[str]) -> TurnResult:
        """
        Advance a session by one node.

        Raises:
            ValueError: Empty session_id
            GraphIntegrityError: The session's node is missing from the graph
        """
        if not session_id or not session_id.strip():
            raise ValueError("session_id must be non-empty")
        user_input = user_input or ""

        # One graph snapshot for the whole turn
        graph = self._graph.current

        async with self._sessions.lock(session_id, self._agent_id):
            session = await self._sessions.load(session_id, self._agent_id)
            if session is None:
                session = Session.start(session_id, self._agent_id, graph.start_node)
                logger.info("Starting session %s at %s", session_id, graph.start_node)
            snapshot = session.model_copy(deep=True)

        try:
            node = graph.get_node(snapshot.current_node)
        except GraphIntegrityError:
            logger.error(
                "Session %s is at node %r which is not in the current graph",
                session_id, snapshot.current_node,
            )
            raise

        passages = await self._retrieve(node, user_input)
        response = await self._respond(node, snapshot, passages, user_input)

        context_writes = {node.collect: user_input} if node.collect else {}
        next_node = node.next
        turn = TurnRecord(
            user_input=user_input,
            reply=response.reply,
            node=node.id,
            next_node=next_node,
            function_call=response.function_call,
        )

        committed, lead_captured = await asyncio.shield(
            self._commit(snapshot, turn, context_writes, next_node, response.lead)
        )

        logger.info(
            "Session %s: %s -> %s%s",
            session_id, node.id, next_node, " (ended)" if next_node is None else "",
        )
        return TurnResult(
            reply=response.reply,
            next_node=next_node,
            ended=next_node is None,
            session_id=session_id,
            node=node.id,
            context=dict(committed.context),
            lead_captured=lead_captured,
        )

    async def _retrieve(self, node: Node, user_input: str) -> List[str]:
        """Distinct passage texts in retrieval order; empty on any failure"""
        if not node.retrieve or not user_input.strip():
            return []

        try:
            passages = await asyncio.wait_for(
                self._retriever.retrieve(user_input), timeout=self._retrieval_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Knowledge retrieval timed out after %.1fs", self._retrieval_timeout)
            return []
        except Exception as e:
            logger.warning("Knowledge retrieval failed: %s", e)
            return []

        seen = set()
        contents = []
        for passage in passages:
            if passage.content and passage.content not in seen:
                seen.add(passage.content)
                contents.append(passage.content)
        return contents

    def _compose(
        self, node: Node, session: Session, passages: List[str], user_input: str
    ) -> GenerationRequest:
        instructions = node.instructions
        if self._profile is not None:
            instructions = f"{self._profile.persona_text()}\n\n{instructions}"
        return GenerationRequest(
            system_instructions=instructions,
            user_message=user_input,
            retrieved_context=passages,
            functions=self._functions.permitted(node.functions),
            context=dict(session.context),
        )

    async def _respond(
        self, node: Node, session: Session, passages: List[str], user_input: str
    ) -> _Response:
        if not node.generate:
            return _Response(reply=self._render_static(node, session, user_input))

        request = self._compose(node, session, passages, user_input)
        result = await self._generate(request)
        if result is None:
            return _Response(reply=self._fallback_reply)

        if isinstance(result, FunctionCallReply):
            response = self._dispatch(node, session, result)
            if response.lead is not None and await self._leads.has_lead(self._agent_id, session.session_id):
                logger.info("Session %s already has a lead, not saving another", session.session_id)
                response.lead = None
            return response

        return _Response(reply=result.text)

    async def _generate(self, request: GenerationRequest) -> Optional[GenerationResult]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._backend.generate, request),
                timeout=self._generation_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Generation timed out after %.1fs", self._generation_timeout)
        except Exception as e:
            logger.warning("Generation failed: %s", e)
        return None

    def _dispatch(self, node: Node, session: Session, call: FunctionCallReply) -> _Response:
        spec = self._functions.get(call.name)
        if spec is None:
            logger.warning("Ignoring unknown function call: %s", call.name)
            return _Response(reply=self._fallback_reply)
        if not node.permits(call.name):
            logger.warning("Ignoring function call %s, not permitted at node %s", call.name, node.id)
            return _Response(reply=self._fallback_reply)

        outcome = spec.handler(call.arguments, session.context, self._agent_id, session.session_id)
        logger.info("Dispatched %s for session %s", call.name, session.session_id)
        return _Response(reply=outcome.reply, function_call=call.name, lead=outcome.lead)

    def _render_static(self, node: Node, session: Session, user_input: str) -> str:
        template = node.reply or node.instructions or self._fallback_reply
        values = _TemplateValues(session.context, input=user_input)
        try:
            return template.format_map(values)
        except (ValueError, IndexError, AttributeError):
            logger.warning("Malformed reply template at node %s", node.id)
            return template

    async def _commit(
        self,
        snapshot: Session,
        turn: TurnRecord,
        context_writes: Dict[str, Any],
        next_node: Optional[str],
        lead: Optional[LeadRecord],
    ) -> Tuple[Session, bool]:
        async with self._sessions.lock(snapshot.session_id, self._agent_id):
            latest = await self._sessions.load(snapshot.session_id, self._agent_id)
            if latest is None:
                latest = snapshot
            elif latest.revision != snapshot.revision:
                logger.warning(
                    "Session %s advanced concurrently (revision %d -> %d), applying turn to latest state",
                    snapshot.session_id, snapshot.revision, latest.revision,
                )
            latest.apply_turn(turn, context_writes, next_node)
            await self._sessions.save(latest)

        lead_captured = False
        if lead is not None:
            lead_captured = await self._leads.capture(lead)
        return latest, lead_captured
