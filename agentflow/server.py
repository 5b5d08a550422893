"""
agentflow Server

FastAPI server for conversational agents driven by workflow graphs.

Endpoints:
- GET  /health: Health check
- POST /agent/create: Create an agent and ingest its knowledge documents
- GET  /agents: List agents
- GET  /agent/{agent_id}/workflow: Read the current graph
- PUT  /agent/{agent_id}/workflow: Replace the graph (atomic swap)
- POST /agent/{agent_id}/interact: Submit one turn
- GET  /agent/{agent_id}/sessions/{session_id}: Session lookup
- GET  /leads: Captured leads

Turn pipeline:
1. Load or start the session
2. Retrieve knowledge for the node (best effort)
3. Generate a reply or a function call (fallback reply on failure)
4. Dispatch saveLeadData, apply context writes, advance to the next node
5. Persist the session, then the lead
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from . import __version__
from .common.config import load_config, ensure_directories
from .common.errors import AgentNotFound, GraphIntegrityError, SessionNotFound
from .common.schemas import ConversationGraph, CreateAgentRequest
from .engine.runtime import AgentRuntime

load_dotenv()

logger = logging.getLogger("agentflow.server")


# Global state
runtime: Optional[AgentRuntime] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global runtime

    owns_runtime = runtime is None
    if owns_runtime:
        logger.info("Starting up...")
        ensure_directories()
        config = load_config()
        logger.info(
            "Loaded config (llm: %s, retrieval: %s, storage: %s)",
            config.llm.provider, config.retrieval.strategy, config.storage.backend,
        )
        runtime = AgentRuntime.from_config(config)

    logger.info("Ready to receive turns")

    yield

    logger.info("Shutting down...")
    if owns_runtime and runtime is not None:
        await runtime.close()
        runtime = None


app = FastAPI(
    title="agentflow",
    description="Workflow-driven conversational agents",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Request/Response Models
# =============================================================================

class InteractRequest(BaseModel):
    """One user turn"""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("sessionId", "session_id")
    )
    input: str = ""


# =============================================================================
# Error Mapping
# =============================================================================

@app.exception_handler(GraphIntegrityError)
async def graph_integrity_handler(request: Request, exc: GraphIntegrityError):
    return JSONResponse(
        status_code=409,
        content={"status": "error", "error": str(exc), "node": exc.node_id},
    )


@app.exception_handler(AgentNotFound)
@app.exception_handler(SessionNotFound)
async def not_found_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=404, content={"status": "error", "error": str(exc)})


def _get_runtime() -> AgentRuntime:
    if runtime is None:
        raise HTTPException(status_code=503, detail="Runtime not initialized")
    return runtime


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "agentflow",
        "initialized": runtime is not None,
        "retrieval": runtime.retrieval_config.strategy if runtime else None,
        "indexed_passages": runtime.index.count() if runtime and runtime.index else 0,
    }


@app.post("/agent/create")
async def create_agent(payload: CreateAgentRequest):
    """Create an agent, store its workflow and ingest its knowledge documents"""
    agent_id, reports = await _get_runtime().create_agent(payload)
    return {
        "status": "success",
        "message": "Agent created successfully",
        "agentId": agent_id,
        "ingestion": [
            {
                "source": report.source,
                "type": report.doc_type,
                "records": report.records,
                "skipped": report.skipped,
                "error": report.error,
            }
            for report in reports
        ],
    }


@app.get("/agents")
async def list_agents():
    agents = await _get_runtime().list_agents()
    return {"agents": [agent.model_dump() for agent in agents]}


@app.get("/agent/{agent_id}/workflow")
async def get_workflow(agent_id: str):
    graph = await _get_runtime().get_graph(agent_id)
    return graph.model_dump()


@app.put("/agent/{agent_id}/workflow")
async def replace_workflow(agent_id: str, payload: Union[ConversationGraph, List[Dict[str, Any]]]):
    """Replace the whole graph; accepts the graph form or the workflow list form"""
    if isinstance(payload, list):
        try:
            payload = ConversationGraph.from_workflow(payload)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    await _get_runtime().replace_graph(agent_id, payload)
    return {"status": "success", "agentId": agent_id, "startNode": payload.start_node}


@app.post("/agent/{agent_id}/interact")
async def interact(agent_id: str, payload: InteractRequest):
    """Submit one turn for a session"""
    try:
        result = await _get_runtime().handle_turn(agent_id, payload.session_id, payload.input)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "status": "success",
        "message": result.reply,
        "nextNode": result.next_node,
        "ended": result.ended,
        "context": result.context,
    }


@app.get("/agent/{agent_id}/sessions/{session_id}")
async def get_session(agent_id: str, session_id: str):
    session = await _get_runtime().get_session(agent_id, session_id)
    return session.model_dump(mode="json")


@app.get("/leads")
async def list_leads(agent_id: Optional[str] = None):
    leads = await _get_runtime().list_leads(agent_id)
    return {
        "count": len(leads),
        "leads": [lead.model_dump(mode="json") for lead in leads],
    }


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the agentflow server"""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    logger.info("Starting server on port %d", config.server.port)
    uvicorn.run(
        "agentflow.server:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
