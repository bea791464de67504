"""Environment-driven settings for the generative backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TIMEOUT_SECONDS = 30.0


class Provider(str, Enum):
    """Supported generative text providers."""

    OPENAI = "openai"
    GEMINI = "gemini"


def _parse_provider(raw: str | None) -> Provider | None:
    if not raw or not raw.strip():
        return None
    try:
        return Provider(raw.strip().lower())
    except ValueError:
        logger.warning("Unsupported PROVIDER=%r; LLM disabled", raw)
        return None


def _parse_timeout(raw: str | None) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT_SECONDS
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid LLM_TIMEOUT_SECONDS=%r; using %s", raw, DEFAULT_TIMEOUT_SECONDS)
        return DEFAULT_TIMEOUT_SECONDS


def _blank_to_none(raw: str | None) -> str | None:
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass(frozen=True)
class LLMSettings:
    """Provider, model and credentials for the generative source."""

    provider: Provider | None = None
    model: str | None = None
    openai_api_key: str | None = None
    gemini_api_key: str | None = None
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> LLMSettings:
        """Load settings from environment variables."""
        return cls(
            provider=_parse_provider(os.getenv("PROVIDER")),
            model=_blank_to_none(os.getenv("MODEL")),
            openai_api_key=_blank_to_none(os.getenv("OPENAI_API_KEY")),
            gemini_api_key=_blank_to_none(os.getenv("GEMINI_API_KEY")),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL).rstrip("/"),
            timeout_seconds=_parse_timeout(os.getenv("LLM_TIMEOUT_SECONDS")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def credential(self) -> str | None:
        """API key for the configured provider, if any."""
        match self.provider:
            case Provider.OPENAI:
                return self.openai_api_key
            case Provider.GEMINI:
                return self.gemini_api_key
            case None:
                return None

    @property
    def is_configured(self) -> bool:
        return bool(self.provider and self.model and self.credential)

    @property
    def model_label(self) -> str:
        """``provider:model`` label reported as provenance."""
        if self.provider is None or not self.model:
            return "heuristic"
        return f"{self.provider.value}:{self.model}"


def get_settings() -> LLMSettings:
    """Read settings fresh from the environment."""
    return LLMSettings.from_env()
