"""Prediction endpoints: typed /api/predict and the web UI's /api:call envelope."""

import json
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, ValidationError
from schemas.predict import (
    AbbreviationExpansionRequest,
    AmbiguousPredictionRequest,
    PhraseResult,
    PredictRequest,
    TextContinuationRequest,
    WordPredictionRequest,
    WordResult,
)
from schemas.session import ConversationTurn
from services import predictor, session_store
from services.errors import InvalidInput

logger = logging.getLogger(__name__)

router = APIRouter()

PROBABILITY_DIGITS = 6


class CallEnvelope(BaseModel):
    """Body of /api:call; ``json`` holds the payload as an object or a JSON string."""
    payload: dict | str | None = Field(default=None, alias="json")


def _history_for(session_id: str | None) -> list[ConversationTurn]:
    if not session_id:
        return []
    try:
        return session_store.get_history(session_id)
    except session_store.SessionNotFound:
        raise HTTPException(status_code=404, detail="Invalid session")


@router.post("/api/predict", response_model=WordResult | PhraseResult)
async def predict(req: PredictRequest) -> WordResult | PhraseResult:
    """Run one prediction mode, optionally with a session's conversation."""
    history = _history_for(req.session_id)
    logger.info("Predict: mode=%s session=%s turns=%d", req.request.mode, req.session_id, len(history))
    try:
        return await predictor.run(req.request, history)
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value)


def _provenance(result: WordResult | PhraseResult) -> dict:
    return {
        "modelUsed": result.model_used,
        "source": result.source,
        "llmError": result.llm_error,
    }


def _predictions(result: WordResult) -> list[dict]:
    return [
        {"word": c.word, "probability": round(c.probability, PROBABILITY_DIGITS)}
        for c in result.candidates
    ]


def _parse_envelope(envelope: CallEnvelope) -> dict:
    if isinstance(envelope.payload, str):
        try:
            payload = json.loads(envelope.payload)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="json must be a JSON object")
    else:
        payload = envelope.payload or {}
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="json must be a JSON object")
    return payload


async def _dispatch_legacy(payload: dict) -> dict:
    match payload.get("mode"):
        case "ping":
            return {"ping_response": "ok"}
        case "word_prediction":
            result = await predictor.run(
                WordPredictionRequest(
                    prefix=_text(payload, "prefix"),
                    preceding_text=_text(payload, "precedingText"),
                    speech_content=_text(payload, "speechContent"),
                    speech_history=_text(payload, "speechHistory"),
                )
            )
            return {"predictions": _predictions(result), **_provenance(result)}
        case "ambiguous_prediction":
            result = await predictor.run(
                AmbiguousPredictionRequest(
                    letter_sets=payload.get("letterSets"),
                    prefix=_text(payload, "prefix"),
                    preceding_text=_text(payload, "precedingText"),
                    speech_content=_text(payload, "speechContent"),
                    speech_history=_text(payload, "speechHistory"),
                )
            )
            return {"predictions": _predictions(result), **_provenance(result)}
        case "text_continuation":
            result = await predictor.run(
                TextContinuationRequest(
                    prefix=_text(payload, "text"),
                    preceding_text=_text(payload, "precedingText"),
                    speech_content=_text(payload, "speechContent"),
                    speech_history=_text(payload, "speechHistory"),
                )
            )
            return {"outputs": result.phrases, "contextualPhrases": [], **_provenance(result)}
        case "abbreviation_expansion":
            result = await predictor.run(
                AbbreviationExpansionRequest(
                    acronym=_text(payload, "acronym").strip(),
                    preceding_text=_text(payload, "precedingText"),
                    speech_content=_text(payload, "speechContent"),
                    keywords=payload.get("keywords") or [],
                )
            )
            return {"exactMatches": result.phrases, **_provenance(result)}
        case "retrieve_context":
            return {"result": "SUCCESS", "contextSignals": []}
        case "get_lexicon":
            return {"words": []}
        case _:
            return {}


@router.post("/api:call")
async def legacy_call(envelope: CallEnvelope) -> dict:
    """Mode-switched endpoint used by the AAC web UI."""
    payload = _parse_envelope(envelope)
    logger.info("api:call mode=%s", payload.get("mode"))
    try:
        return {"json": await _dispatch_legacy(payload)}
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception:
        logger.exception("api:call error")
        raise HTTPException(status_code=500, detail="internal")
