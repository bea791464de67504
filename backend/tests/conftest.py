import pytest
from services import session_store
from services.config import LLMSettings, Provider

LLM_ENV_VARS = ("PROVIDER", "MODEL", "OPENAI_API_KEY", "GEMINI_API_KEY", "LLM_TIMEOUT_SECONDS", "CORS_ORIGINS")


@pytest.fixture(autouse=True)
def no_llm_env(monkeypatch):
    """Keep a developer's .env from routing tests to a real backend."""
    for name in LLM_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def fresh_sessions():
    session_store.clear()
    yield
    session_store.clear()


@pytest.fixture
def openai_settings():
    return LLMSettings(provider=Provider.OPENAI, model="gpt-test", openai_api_key="sk-test")


@pytest.fixture
def gemini_settings():
    return LLMSettings(
        provider=Provider.GEMINI,
        model="gemini-test",
        gemini_api_key="g-key",
        gemini_base_url="https://gemini.test/v1beta",
    )
