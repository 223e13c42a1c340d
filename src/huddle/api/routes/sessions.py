"""
Session management API -- the conversations chat turns read and append to.

  POST   /api/v1/sessions       -- Create a session
  GET    /api/v1/sessions       -- List sessions, most recent first
  GET    /api/v1/sessions/{id}  -- Session with its messages
  DELETE /api/v1/sessions/{id}  -- Delete a session
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from ...security import ValidationError, validate_length
from ...sessions import ChatSession
from ..models.requests import CreateSessionRequest
from ..models.responses import SessionDetail, SessionSummary

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_TITLE_LENGTH = 200


def _summary(session: ChatSession) -> dict:
    return {
        "id": session.id,
        "title": session.title,
        "team_id": session.team_id,
        "message_count": len(session.messages),
        "created_at": session.created_at,
        "updated_at": session.updated_at,
    }


@router.post("/sessions", response_model=SessionSummary)
async def create_session(
    request: Request,
    body: CreateSessionRequest | None = None,
) -> SessionSummary:
    body = body or CreateSessionRequest()
    try:
        validate_length(body.title, "title", max_length=MAX_TITLE_LENGTH)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session = request.app.state.session_store.create(title=body.title, team_id=body.team_id)
    logger.info(f"[SessionsAPI] Created session: {session.id}")
    return SessionSummary(**_summary(session))


@router.get("/sessions", response_model=list[SessionSummary])
async def list_sessions(request: Request, limit: int = 50) -> list[SessionSummary]:
    sessions = request.app.state.session_store.list(limit=max(1, min(limit, 200)))
    return [SessionSummary(**_summary(s)) for s in sessions]


@router.get("/sessions/{session_id}", response_model=SessionDetail)
async def get_session(session_id: str, request: Request) -> SessionDetail:
    session = request.app.state.session_store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return SessionDetail(
        **_summary(session),
        messages=[m.to_dict() for m in session.messages],
    )


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, request: Request) -> dict:
    if not request.app.state.session_store.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    logger.info(f"[SessionsAPI] Deleted session: {session_id}")
    return {"status": "removed", "session": session_id}
