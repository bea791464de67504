"""Generative text backend: OpenAI or Gemini behind one ``generate`` call."""

import logging
from collections.abc import Sequence
from urllib.parse import quote

import httpx
from openai import AsyncOpenAI, OpenAIError
from schemas.session import ConversationTurn
from services.config import LLMSettings, Provider, get_settings
from services.errors import BackendError, ConfigurationMissing

logger = logging.getLogger(__name__)

_client: AsyncOpenAI | None = None
_client_key: str | None = None

SYSTEM_PROMPT = """\
You are a text prediction assistant for an augmentative and alternative \
communication (AAC) device user. Keep suggestions short, natural and \
conversational. Follow the requested output format exactly, with no \
markdown and no explanation.
"""


def _get_client(api_key: str, timeout: float) -> AsyncOpenAI:
    """Return the OpenAI async client, rebuilding it if the key changed."""
    global _client, _client_key
    if _client is None or _client_key != api_key:
        # one attempt only; a failure goes straight to the heuristic fallback
        _client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        _client_key = api_key
    return _client


def _status_of(exc: Exception) -> int | None:
    return getattr(exc, "status_code", None)


async def _openai_generate(
    prompt: str,
    context: Sequence[ConversationTurn],
    settings: LLMSettings,
    system_prompt: str,
) -> str:
    client = _get_client(settings.openai_api_key, settings.timeout_seconds)
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend({"role": turn.role, "content": turn.text} for turn in context)
    messages.append({"role": "user", "content": prompt})

    try:
        response = await client.chat.completions.create(
            model=settings.model,
            messages=messages,
        )
        return response.choices[0].message.content or ""
    except OpenAIError as exc:
        # Some newer models only accept the Responses API
        logger.warning("chat.completions failed; trying responses API: %s", exc)

    try:
        response = await client.responses.create(
            model=settings.model,
            instructions=system_prompt,
            input=prompt,
        )
    except OpenAIError as exc:
        raise BackendError(_status_of(exc), str(exc)) from exc
    return response.output_text or ""


def _gemini_contents(prompt: str, context: Sequence[ConversationTurn]) -> list[dict]:
    """Map conversation turns to Gemini roles, ending with the prompt."""
    contents = [
        {
            "role": "model" if turn.role == "assistant" else "user",
            "parts": [{"text": turn.text}],
        }
        for turn in context
        if turn.text
    ]
    contents.append({"role": "user", "parts": [{"text": prompt}]})
    return contents


async def _gemini_generate(
    prompt: str,
    context: Sequence[ConversationTurn],
    settings: LLMSettings,
    system_prompt: str,
    http_client: httpx.AsyncClient | None,
) -> str:
    url = f"{settings.gemini_base_url}/models/{quote(settings.model, safe='')}:generateContent"
    body: dict = {"contents": _gemini_contents(prompt, context)}
    if system_prompt:
        body["systemInstruction"] = {"role": "system", "parts": [{"text": system_prompt}]}

    client = http_client or httpx.AsyncClient(timeout=settings.timeout_seconds)
    try:
        response = await client.post(url, params={"key": settings.gemini_api_key}, json=body)
    except httpx.HTTPError as exc:
        raise BackendError(None, f"Gemini request failed: {exc}") from exc
    finally:
        if http_client is None:
            await client.aclose()

    if response.is_error:
        raise BackendError(response.status_code, f"Gemini HTTP {response.status_code}: {response.text}")

    try:
        data = response.json()
    except ValueError as exc:
        raise BackendError(response.status_code, "Gemini returned invalid JSON") from exc

    candidates = data.get("candidates") if isinstance(data, dict) else None
    first = candidates[0] if candidates and isinstance(candidates[0], dict) else {}
    parts = (first.get("content") or {}).get("parts") or []
    return "\n".join(p["text"] for p in parts if isinstance(p, dict) and p.get("text"))


async def generate(
    prompt: str,
    context: Sequence[ConversationTurn] = (),
    *,
    settings: LLMSettings | None = None,
    system_prompt: str = SYSTEM_PROMPT,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """Send ``prompt`` (after the conversation ``context``) to the configured provider.

    Raises:
        ConfigurationMissing: provider, model or key is not set.
        BackendError: the provider call failed.
    """
    settings = settings or get_settings()
    if not settings.is_configured:
        raise ConfigurationMissing("PROVIDER, MODEL and the provider API key are required")

    match settings.provider:
        case Provider.OPENAI:
            return await _openai_generate(prompt, context, settings, system_prompt)
        case Provider.GEMINI:
            return await _gemini_generate(prompt, context, settings, system_prompt, http_client)
        case _:
            raise ConfigurationMissing(f"Unsupported provider: {settings.provider}")


async def list_models(settings: LLMSettings) -> list[str]:
    """Model ids visible to the configured OpenAI key."""
    if settings.provider is not Provider.OPENAI or not settings.openai_api_key:
        return []
    client = _get_client(settings.openai_api_key, settings.timeout_seconds)
    page = await client.models.list()
    return [model.id for model in page.data]
