"""Health check endpoint."""

from fastapi import APIRouter
from services.config import get_settings

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    """Return service health and which prediction source is active."""
    settings = get_settings()
    return {
        "status": "ok",
        "predictor": settings.model_label if settings.is_configured else "heuristic",
    }
