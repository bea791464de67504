"""Session-aware abbreviation expansion and refinement."""

import logging

from fastapi import APIRouter, HTTPException
from schemas.abbrev import (
    ExpandRequest,
    PhraseCandidate,
    PhraseCandidatesResponse,
    RefineRequest,
)
from schemas.predict import AbbreviationExpansionRequest, PhraseResult
from schemas.session import ConversationTurn
from services import predictor, session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/abbrev")


def _to_response(result: PhraseResult) -> PhraseCandidatesResponse:
    return PhraseCandidatesResponse(
        candidates=[PhraseCandidate(phrase=phrase) for phrase in result.phrases],
        source=result.source,
        model_used=result.model_used,
        llm_error=result.llm_error,
    )


@router.post("/expand", response_model=PhraseCandidatesResponse)
async def expand(req: ExpandRequest) -> PhraseCandidatesResponse:
    """Expand an abbreviation using the session's conversation as context."""
    if not req.session_id or not req.abbreviation.strip():
        raise HTTPException(status_code=400, detail="sessionId and abbreviation required")

    try:
        history = session_store.get_history(req.session_id)
    except session_store.SessionNotFound:
        raise HTTPException(status_code=404, detail="Invalid session")

    logger.info("Expand: session=%s abbreviation=%r keywords=%d", req.session_id, req.abbreviation, len(req.keywords))

    try:
        result = await predictor.run(
            AbbreviationExpansionRequest(acronym=req.abbreviation, keywords=req.keywords),
            history,
        )
    except Exception:
        logger.exception("Abbreviation expand error")
        raise HTTPException(status_code=500, detail="Internal error")

    session_store.append_turn(req.session_id, ConversationTurn(role="user", text=req.abbreviation))
    return _to_response(result)


@router.post("/refine", response_model=PhraseCandidatesResponse)
async def refine(req: RefineRequest) -> PhraseCandidatesResponse:
    """Suggest alternatives to a candidate the user picked."""
    if not req.session_id or not req.selected_candidate.strip():
        raise HTTPException(status_code=400, detail="sessionId and selectedCandidate required")

    try:
        session_store.append_turn(
            req.session_id,
            ConversationTurn(role="user", text=f"Refine: {req.selected_candidate}"),
        )
    except session_store.SessionNotFound:
        raise HTTPException(status_code=404, detail="Invalid session")

    try:
        result = await predictor.refine(
            req.selected_candidate,
            req.new_keywords,
            session_store.get_history(req.session_id),
        )
    except Exception:
        logger.exception("Abbreviation refine error")
        raise HTTPException(status_code=500, detail="Internal error")

    session_store.append_turn(
        req.session_id,
        ConversationTurn(role="assistant", text=f"Refinement suggestions: {'; '.join(result.phrases)}"),
    )
    return _to_response(result)
