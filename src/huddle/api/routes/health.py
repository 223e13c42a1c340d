"""
Health endpoint.

  GET /health -- 200 while the process is alive. Status is "degraded" when
                 no LLM runner could be built, so chat returns 503.
"""

import time

from fastapi import APIRouter, Request

from ..models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def liveness(request: Request) -> HealthResponse:
    state = request.app.state
    chat_enabled = getattr(state, "orchestrator", None) is not None
    return HealthResponse(
        status="healthy" if chat_enabled else "degraded",
        agents_registered=state.registry.count,
        teams=len(state.registry.list_teams()),
        llm_configured=chat_enabled,
        uptime_seconds=round(time.time() - getattr(state, "start_time", time.time()), 1),
    )
