"""Conversation session endpoints."""

import re

from fastapi import APIRouter, HTTPException
from schemas.session import (
    SessionHistoryResponse,
    SessionStartRequest,
    SessionStartResponse,
)
from services import session_store

router = APIRouter(prefix="/api/session")

SESSION_ID_RE = re.compile(r"^[a-zA-Z0-9\-]{1,64}$")


@router.post("/start", response_model=SessionStartResponse)
async def start_session(req: SessionStartRequest) -> SessionStartResponse:
    """Open a conversation session for a user."""
    if not req.user_id.strip():
        raise HTTPException(status_code=400, detail="userId required")
    return SessionStartResponse(session_id=session_store.create_session(req.user_id))


@router.get("/{session_id}/history", response_model=SessionHistoryResponse)
async def session_history(session_id: str) -> SessionHistoryResponse:
    """Return the session's conversation turns, oldest first."""
    if not SESSION_ID_RE.match(session_id):
        raise HTTPException(status_code=400, detail="Invalid session ID")
    try:
        turns = session_store.get_history(session_id)
    except session_store.SessionNotFound:
        raise HTTPException(status_code=404, detail="Invalid session")
    return SessionHistoryResponse(session_id=session_id, turns=turns)
