"""
Chat API -- one lead/specialist chat turn per request.

  POST /api/v1/chat/stream  -- Server-Sent Events, one `data: <json>` frame per event
  POST /api/v1/chat         -- Same turn, collected into the final answer

Validation errors (400) and unknown agents (404) are returned before the
stream opens. Once streaming, a failed turn ends with a single error frame.

Security:
  - Request validated and size-limited at the boundary
  - Rate limiting on both endpoints
  - Conversation text wrapped in prompt-injection delimiters before
    reaching meta-agents
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from ...agents import AgentNotFoundError
from ...orchestration import ChatOrchestrator, PreparedTurn
from ...security import ValidationError
from ..middleware.rate_limit import check_rate_limit
from ..models.requests import ChatRequest
from ..models.responses import ChatResponse

logger = logging.getLogger(__name__)
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _get_orchestrator(request: Request) -> ChatOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail="No language model configured (set ANTHROPIC_API_KEY or OPENAI_API_KEY)",
        )
    return orchestrator


async def _prepare(orchestrator: ChatOrchestrator, chat_request: ChatRequest) -> PreparedTurn:
    try:
        return await orchestrator.prepare(chat_request.to_turn_request())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AgentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/chat/stream")
async def chat_stream(
    chat_request: ChatRequest,
    request: Request,
    _rate: None = Depends(check_rate_limit),
) -> StreamingResponse:
    """
    Run a chat turn and stream its frames.

    Frames (team mode): planning -> consulting started/completed per
    specialist -> answering deltas -> one final done frame.
    """
    orchestrator = _get_orchestrator(request)
    turn = await _prepare(orchestrator, chat_request)
    logger.debug(
        f"[ChatAPI] Streaming {turn.mode} turn for {turn.author} "
        f"({len(turn.items)} input items)"
    )

    async def event_generator():
        async for event in orchestrator.stream(turn):
            yield event.to_sse()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(
    chat_request: ChatRequest,
    request: Request,
    _rate: None = Depends(check_rate_limit),
) -> ChatResponse:
    """Run a chat turn and return only the final answer."""
    orchestrator = _get_orchestrator(request)
    turn = await _prepare(orchestrator, chat_request)

    final = None
    failure = None
    async for event in orchestrator.stream(turn):
        if event.is_final:
            final = event
        elif event.error:
            failure = event.error

    if final is None:
        raise HTTPException(status_code=502, detail=failure or "No answer was produced")

    return ChatResponse(
        author=final.author,
        content=final.content or "",
        plan_text=final.plan_text,
        consulted_agents=final.consulted_agents or [],
    )
