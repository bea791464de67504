"""AAC prediction FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from routers import abbrev, health, predict, session
from services.config import Provider, get_settings
from services.llm_service import list_models

load_dotenv()

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("aac_predict")

# Any localhost origin during development (the web UI runs on several ports)
LOCALHOST_ORIGIN_RE = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


async def _log_available_models() -> None:
    startup = get_settings()
    if startup.provider is not Provider.OPENAI or not startup.openai_api_key:
        logger.info("[Startup] Model listing skipped (provider not openai or missing OPENAI_API_KEY)")
        return
    try:
        ids = await list_models(startup)
    except Exception as exc:
        logger.warning("[Startup] Failed to list OpenAI models: %s", exc)
        return
    logger.info("[Startup] OpenAI models available to this key: %d", len(ids))
    for model_id in ids:
        logger.info("  - %s", model_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log which models the configured key can reach."""
    await _log_available_models()
    yield


app = FastAPI(title="AAC Predict", version="0.1.0", lifespan=lifespan)

cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_origin_regex=None if cors_origins else LOCALHOST_ORIGIN_RE,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(session.router)
app.include_router(abbrev.router)
app.include_router(predict.router)
