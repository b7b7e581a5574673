"""
HTTP API for Replanner.

It exposes the following endpoints:
- **GET /**          - plain-text notice that the server is up.
- **GET /health**    - liveness probe for health checks.
- **POST /sessions** - create a new session, returns a session ID.
- **GET /sessions**  - list all active sessions.
- **POST /agent**    - run the agent once: {"question": "...", "session_id": "..."}

Failures never surface as HTTP errors: they are turned into a textual ``answer``.
"""

import logging
import uuid
from typing import (
    Dict,
    List,
    Optional,
)

from fastapi import (
    Depends,
    FastAPI,
    Request,
)
from fastapi.responses import (
    JSONResponse,
    PlainTextResponse,
)

from replanner.agent.agent_loop import Agent
from replanner.agent.observers import attach_logger
from replanner.agent.planner_interface import (
    BasePlanner,
    load_planner,
)
from replanner.agent.policies import run_with_turn_limit
from replanner.api.models import (
    AnswerResponse,
    QuestionRequest,
    SessionResponse,
)
from replanner.config import settings
from replanner.core.errors import (
    AgentError,
    RunCancelledError,
)
from replanner.memory.memory_store import Memory
from replanner.tools import load_tools
from replanner.tools.base import Tool

logger = logging.getLogger(__name__)

# Persistent memory per session (in-process only)
sessions: Dict[str, Memory] = {}

app = FastAPI(
    title="Replanner API",
    version="0.1.0",
    description="Plan-act-respond agent with structured output and tool calls",
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def get_or_create_session(session_id: Optional[str] = None) -> str:
    """Get existing session or create a new one."""
    if session_id and session_id in sessions:
        return session_id

    new_session_id = session_id or str(uuid.uuid4())
    sessions[new_session_id] = Memory()
    return new_session_id


def get_planner() -> BasePlanner:
    """Planner dependency; overridden in tests."""
    return load_planner()


def get_tools() -> List[Tool]:
    """Tool set dependency; overridden in tests."""
    return load_tools(settings.tool_names())


def describe_error(exc: BaseException) -> str:
    """Render *exc* as the text returned to the caller."""
    if isinstance(exc, RunCancelledError):
        return f"Run cancelled: {exc}"
    return f"{type(exc).__name__}: {exc}"


@app.exception_handler(AgentError)
async def agent_error_handler(_request: Request, exc: AgentError) -> JSONResponse:
    """Errors raised while resolving dependencies (e.g. an unknown planner)."""
    logger.error("Request failed before the agent ran: %s", exc)
    payload = AnswerResponse(answer=describe_error(exc), error=type(exc).__name__)
    return JSONResponse(content=payload.model_dump())


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/", response_class=PlainTextResponse, summary="API root")
async def root() -> str:
    """Return a simple notice."""
    return "Server is up and running!\nUse [URL]/docs to access the swagger UI."


@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.post("/sessions", response_model=SessionResponse, summary="Create a new session")
async def create_session() -> SessionResponse:
    """Create a new conversation session."""
    session_id = get_or_create_session()
    return SessionResponse(session_id=session_id)


@app.get("/sessions", response_model=List[str], summary="List active sessions")
async def list_sessions() -> List[str]:
    """List all active session IDs."""
    return list(sessions.keys())


@app.post("/agent", response_model=AnswerResponse, summary="Ask the agent")
async def agent_endpoint(
    req: QuestionRequest,
    planner: BasePlanner = Depends(get_planner),
    tools: List[Tool] = Depends(get_tools),
) -> AnswerResponse:
    """Run the agent once for *req.question* within its session."""
    session_id = get_or_create_session(req.session_id)
    agent = Agent(planner=planner, tools=tools, memory=sessions[session_id])
    logger.info("Question [%s]: %s", session_id, req.question)

    try:
        output = await run_with_turn_limit(
            agent, req.question, settings.MAX_TURNS, observe=attach_logger
        )
    except AgentError as exc:
        logger.error("Agent run failed: %s", describe_error(exc))
        return AnswerResponse(
            answer=describe_error(exc), session_id=session_id, error=type(exc).__name__
        )
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Unexpected error while running the agent")
        return AnswerResponse(
            answer=describe_error(exc), session_id=session_id, error=type(exc).__name__
        )

    logger.info("Answer [%s]: %s", session_id, output.message.text)
    return AnswerResponse(answer=output.message.text, session_id=session_id)


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 3000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in dev docker-compose).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg‑import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Replanner API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    logger.info("Visit http://localhost:%d/docs for API documentation.", port)
    uvicorn.run(
        "replanner.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m replanner.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
