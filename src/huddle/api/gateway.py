"""
API Gateway -- FastAPI application factory.

Creates the FastAPI app with all routes and shared state. Entrypoint for
uvicorn:

    uvicorn huddle.api.gateway:create_app --factory --host 0.0.0.0 --port 8000

Configuration via environment:
  CORS_ORIGINS               comma-separated allowed origins (default: localhost)
  HUDDLE_REGISTRY_PATH       JSON file for user-defined agents, teams, memories
  HUDDLE_SESSIONS_DIR        directory for session JSON files (default: in-memory)
  HUDDLE_ALLOW_PRIVATE_URLS  "1" lets attachment fetches reach private hosts
  HUDDLE_*                   orchestration limits (see orchestration/config.py)

Route logic lives in routes/.
"""

import logging
import os
import time
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..agents import AgentRegistry, AgentRunner, LLMAgentRunner
from ..extraction import HttpTextExtractor
from ..llm import create_client as create_llm_client
from ..orchestration import ChatOrchestrator, ConsultConfig
from ..sessions import SessionStore
from .middleware.rate_limit import RateLimiter, get_rate_limit
from .routes import agents, chat, health, sessions, teams

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8000",
]


def _get_cors_origins() -> list[str]:
    """Load CORS origins from environment or use safe defaults."""
    origins_env = os.environ.get("CORS_ORIGINS", "")
    if origins_env.strip():
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    return DEFAULT_CORS_ORIGINS


def _env_path(name: str) -> Path | None:
    value = os.environ.get(name, "").strip()
    return Path(value) if value else None


def _default_runner() -> AgentRunner | None:
    try:
        return LLMAgentRunner(create_llm_client())
    except Exception as e:
        logger.warning(f"[Gateway] LLM client init failed (non-fatal, chat disabled): {e}")
        return None


def create_app(
    registry: AgentRegistry | None = None,
    runner: AgentRunner | None = None,
    session_store: SessionStore | None = None,
    config: ConsultConfig | None = None,
) -> FastAPI:
    """
    Application factory -- creates and configures the FastAPI app.

    Args:
        registry: Agent registry (default: built-ins + HUDDLE_REGISTRY_PATH).
        runner: Agent runner (default: LLM-backed, provider from environment).
        session_store: Session store (default: HUDDLE_SESSIONS_DIR or in-memory).
        config: Orchestration limits (default: ConsultConfig.from_env()).
    """
    application = FastAPI(
        title="Huddle API",
        description="Team-lead chat that privately consults specialist agents",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    if registry is None:
        registry = AgentRegistry(persist_path=_env_path("HUDDLE_REGISTRY_PATH"))
    if session_store is None:
        session_store = SessionStore(directory=_env_path("HUDDLE_SESSIONS_DIR"))
    if config is None:
        config = ConsultConfig.from_env()
    if runner is None:
        runner = _default_runner()

    orchestrator = None
    if runner is not None:
        extractor = HttpTextExtractor(
            allow_private=os.environ.get("HUDDLE_ALLOW_PRIVATE_URLS") == "1"
        )
        orchestrator = ChatOrchestrator(
            runner,
            registry,
            config=config,
            session_store=session_store,
            extractor=extractor,
        )

    application.state.registry = registry
    application.state.session_store = session_store
    application.state.config = config
    application.state.runner = runner
    application.state.orchestrator = orchestrator
    application.state.rate_limiter = RateLimiter(get_rate_limit())
    application.state.start_time = time.time()

    application.include_router(health.router, tags=["Health"])
    application.include_router(chat.router, prefix="/api/v1", tags=["Chat"])
    application.include_router(agents.router, prefix="/api/v1", tags=["Agents"])
    application.include_router(teams.router, prefix="/api/v1", tags=["Teams"])
    application.include_router(sessions.router, prefix="/api/v1", tags=["Sessions"])

    logger.info(
        f"[Gateway] API gateway initialized ({registry.count} agents, "
        f"chat {'enabled' if orchestrator else 'disabled'})"
    )
    return application
