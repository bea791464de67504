"""Mode dispatcher: LLM first, deterministic heuristic as the safety net.

Every mode runs the same pipeline::

    CONFIG_CHECK -> GENERATE_ATTEMPT -> EXTRACT -> (DONE | FALLBACK) -> DONE

A request never fails because the backend did; it only loses quality. The
single exception is a structurally missing field, raised as ``InvalidInput``.
"""

import functools
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from schemas.predict import (
    AbbreviationExpansionRequest,
    AmbiguousPredictionRequest,
    ModeRequest,
    ModeResult,
    PhraseResult,
    TextContinuationRequest,
    WordPredictionRequest,
    WordResult,
)
from schemas.session import ConversationTurn
from services import llm_service
from services.config import LLMSettings, get_settings
from services.constraints import Constraints, expand_combinations, parse_constraints
from services.errors import BackendError, ConfigurationMissing, InvalidInput
from services.extraction import extract_candidates, extract_lines
from services.heuristics import (
    MAX_CANDIDATES,
    MAX_PHRASES,
    continuation_phrases,
    expand_acronym,
    refine_phrases,
    score_words,
)

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str, Sequence[ConversationTurn]], Awaitable[str]]

MAX_PROMPT_COMBINATIONS = 40


class Stage(str, Enum):
    CONFIG_CHECK = "config_check"
    GENERATE_ATTEMPT = "generate_attempt"
    EXTRACT = "extract"
    FALLBACK = "fallback"
    DONE = "done"


@dataclass(frozen=True)
class Generation:
    """Outcome of one backend call: either text or an error message."""

    text: str = ""
    error: str | None = None


@dataclass(frozen=True)
class Plan:
    """What one mode needs from the pipeline.

    ``prompt`` is None when the request lacks the input the LLM would need.
    """

    name: str
    prompt: str | None
    extract: Callable[[str], list]
    fallback: Callable[[], list]


@dataclass(frozen=True)
class Outcome:
    items: list
    source: str
    model_used: str
    llm_error: str | None


async def _attempt(generate: GenerateFn, prompt: str, history: Sequence[ConversationTurn]) -> Generation:
    try:
        return Generation(text=await generate(prompt, history) or "")
    except (BackendError, ConfigurationMissing) as exc:
        logger.error("LLM error; using heuristic: %s", exc)
        return Generation(error=str(exc))
    except Exception as exc:
        logger.exception("Unexpected LLM failure; using heuristic")
        return Generation(error=str(exc) or type(exc).__name__)


async def _execute(
    plan: Plan,
    history: Sequence[ConversationTurn],
    settings: LLMSettings,
    generate: GenerateFn,
) -> Outcome:
    stage = Stage.CONFIG_CHECK
    raw = ""
    items: list = []
    source = "heuristic"
    llm_error: str | None = None

    while stage is not Stage.DONE:
        match stage:
            case Stage.CONFIG_CHECK:
                if not settings.is_configured:
                    logger.warning(
                        "[%s] LLM config missing; falling back to heuristic "
                        "(provider=%s model=%s has_key=%s)",
                        plan.name,
                        settings.provider.value if settings.provider else None,
                        settings.model,
                        bool(settings.credential),
                    )
                    stage = Stage.FALLBACK
                elif plan.prompt is None:
                    logger.info("[%s] not enough input for the LLM; using heuristic", plan.name)
                    stage = Stage.FALLBACK
                else:
                    stage = Stage.GENERATE_ATTEMPT

            case Stage.GENERATE_ATTEMPT:
                logger.info(
                    "[%s] LLM attempt: model=%s prompt_chars=%d history_turns=%d",
                    plan.name,
                    settings.model_label,
                    len(plan.prompt),
                    len(history),
                )
                generation = await _attempt(generate, plan.prompt, history)
                if generation.error is not None:
                    llm_error = generation.error
                    stage = Stage.FALLBACK
                else:
                    raw = generation.text
                    stage = Stage.EXTRACT

            case Stage.EXTRACT:
                items = plan.extract(raw)
                if items:
                    source = "llm"
                    stage = Stage.DONE
                else:
                    logger.warning("[%s] no usable candidates in LLM output; using heuristic", plan.name)
                    stage = Stage.FALLBACK

            case Stage.FALLBACK:
                items = plan.fallback()
                stage = Stage.DONE

    model_used = settings.model_label if source == "llm" else "heuristic"
    logger.info("[%s] result: source=%s items=%d", plan.name, source, len(items))
    return Outcome(items=items, source=source, model_used=model_used, llm_error=llm_error)


def _lines(*parts: str) -> str:
    return "\n".join(part for part in parts if part)


def _history_text(history: Sequence[ConversationTurn], speech_history: str = "") -> str:
    return _lines(*(turn.text for turn in history), speech_history)


_JSON_FORMAT = (
    f"Return a JSON array of up to {MAX_CANDIDATES} objects like "
    '{"word": "the", "probability": 0.2}, most likely first, probabilities summing to 1.'
)


def _word_prompt(req: WordPredictionRequest) -> str:
    return _lines(
        "Predict the next word an AAC device user is most likely to type.",
        f'Preceding text: "{req.preceding_text}"' if req.preceding_text else "",
        f'Partial word typed so far: "{req.prefix}"' if req.prefix else "",
        f'Context: "{req.speech_content}"' if req.speech_content else "",
        _JSON_FORMAT,
    )


def _ambiguous_prompt(req: AmbiguousPredictionRequest, constraints: Constraints) -> str:
    if constraints:
        positions = "; ".join(
            f"{i + 1}: {'/'.join(letters)}" for i, letters in enumerate(constraints)
        )
        beginnings = ", ".join(expand_combinations(constraints, MAX_PROMPT_COMBINATIONS))
        pattern = _lines(
            f"Each typed key allowed several letters. Allowed letters per position: {positions}",
            f"Possible beginnings include: {beginnings}",
            "Only return words whose first letters fit these positions.",
        )
    else:
        pattern = f'The word starts with "{req.prefix}".'
    return _lines(
        "Predict the word an AAC device user is typing with an ambiguous keyboard.",
        pattern,
        f'Preceding text: "{req.preceding_text}"' if req.preceding_text else "",
        f'Context: "{req.speech_content}"' if req.speech_content else "",
        _JSON_FORMAT,
    )


def _continuation_prompt(req: TextContinuationRequest) -> str:
    return _lines(
        "Continue the text an AAC device user is writing.",
        f"Return {MAX_PHRASES} distinct, concise continuations of the whole text, "
        "one per line, no numbering or quotes, most likely first.",
        f'Preceding text: "{req.preceding_text}"' if req.preceding_text else "",
        f'Text typed so far: "{req.prefix}"' if req.prefix else "",
        f'Context: "{req.speech_content}"' if req.speech_content else "",
    )


def _abbreviation_prompt(req: AbbreviationExpansionRequest) -> str:
    keywords = ", ".join(kw.strip() for kw in req.keywords if kw.strip())
    return _lines(
        "You expand AAC abbreviations to natural English phrases.",
        "Rule: each letter maps to the first letter of each word.",
        'Prefer common AAC patterns, e.g., ifX -> "I feel <adjective starting with X>".',
        f"Return {MAX_PHRASES} distinct, concise options, one per line, no numbering or quotes. "
        "Sort them by how commonly an AAC device user would say them.",
        "Examples:",
        "  ifg -> I feel good",
        "  ifb -> I feel better",
        "  ifs -> I feel strong",
        f'Abbreviation: "{req.acronym.strip()}"',
        f'Preceding text: "{req.preceding_text}"' if req.preceding_text else "",
        f'Context: "{req.speech_content}"' if req.speech_content else "",
        f"Keywords: {keywords}" if keywords else "",
    )


def _word_plan(req: WordPredictionRequest, history_text: str) -> Plan:
    return Plan(
        name="word_prediction",
        prompt=_word_prompt(req),
        extract=extract_candidates,
        fallback=lambda: score_words(
            history_text=history_text,
            context_text=req.speech_content,
            preceding_text=req.preceding_text,
            prefix=req.prefix,
        ),
    )


def _ambiguous_plan(req: AmbiguousPredictionRequest, history_text: str) -> Plan:
    constraints = parse_constraints(req.letter_sets)
    prefix = "" if constraints else req.prefix
    has_input = bool(constraints or prefix.strip())
    return Plan(
        name="ambiguous_prediction",
        prompt=_ambiguous_prompt(req, constraints) if has_input else None,
        extract=lambda raw: extract_candidates(raw, constraints, prefix),
        fallback=lambda: score_words(
            history_text=history_text,
            context_text=req.speech_content,
            preceding_text=req.preceding_text,
            prefix=prefix,
            constraints=constraints,
        ),
    )


def _continuation_plan(req: TextContinuationRequest, history_text: str) -> Plan:
    has_input = any(text.strip() for text in (req.prefix, req.preceding_text, req.speech_content))
    return Plan(
        name="text_continuation",
        prompt=_continuation_prompt(req) if has_input else None,
        extract=extract_lines,
        fallback=lambda: continuation_phrases(
            prefix=req.prefix,
            preceding_text=req.preceding_text,
            context_text=req.speech_content,
            history_text=history_text,
        ),
    )


def _abbreviation_plan(req: AbbreviationExpansionRequest) -> Plan:
    if not req.acronym.strip():
        raise InvalidInput("acronym is required")
    return Plan(
        name="abbreviation_expansion",
        prompt=_abbreviation_prompt(req),
        extract=extract_lines,
        fallback=lambda: expand_acronym(req.acronym),
    )


def _resolve(settings: LLMSettings | None, generate: GenerateFn | None) -> tuple[LLMSettings, GenerateFn]:
    settings = settings or get_settings()
    if generate is None:
        generate = functools.partial(llm_service.generate, settings=settings)
    return settings, generate


async def run(
    request: ModeRequest,
    history: Sequence[ConversationTurn] = (),
    *,
    settings: LLMSettings | None = None,
    generate: GenerateFn | None = None,
) -> ModeResult:
    """Produce ranked candidates for one mode request.

    Args:
        request: One of the four mode request variants.
        history: Conversation turns of the caller's session, read only.
        settings: LLM settings; read from the environment when omitted.
        generate: Backend call; defaults to ``llm_service.generate``.

    Raises:
        InvalidInput: A required field (the acronym) is missing.
    """
    settings, generate = _resolve(settings, generate)

    match request:
        case WordPredictionRequest():
            plan = _word_plan(request, _history_text(history, request.speech_history))
        case AmbiguousPredictionRequest():
            plan = _ambiguous_plan(request, _history_text(history, request.speech_history))
        case TextContinuationRequest():
            plan = _continuation_plan(request, _history_text(history, request.speech_history))
        case AbbreviationExpansionRequest():
            plan = _abbreviation_plan(request)
        case _:
            raise InvalidInput(f"Unsupported request type: {type(request).__name__}")

    outcome = await _execute(plan, history, settings, generate)

    if isinstance(request, (WordPredictionRequest, AmbiguousPredictionRequest)):
        return WordResult(
            mode=request.mode,
            candidates=outcome.items,
            source=outcome.source,
            model_used=outcome.model_used,
            llm_error=outcome.llm_error,
        )
    return PhraseResult(
        mode=request.mode,
        phrases=outcome.items,
        source=outcome.source,
        model_used=outcome.model_used,
        llm_error=outcome.llm_error,
    )


async def refine(
    selected: str,
    keywords: Sequence[str] = (),
    history: Sequence[ConversationTurn] = (),
    *,
    settings: LLMSettings | None = None,
    generate: GenerateFn | None = None,
) -> PhraseResult:
    """Suggest improved or alternative phrasings of a chosen candidate."""
    if not selected.strip():
        raise InvalidInput("selectedCandidate is required")
    settings, generate = _resolve(settings, generate)

    extra = ", ".join(kw.strip() for kw in keywords if kw.strip())
    prompt = _lines(
        "Based on previous context:",
        "\n".join(f"{turn.role}: {turn.text}" for turn in history),
        f'User selected candidate: "{selected.strip()}"',
        f"Additional keywords: {extra}",
        f"Generate up to {MAX_PHRASES} improved or alternative candidate phrases, one per line.",
    )
    plan = Plan(
        name="refine",
        prompt=prompt,
        extract=extract_lines,
        fallback=lambda: refine_phrases(selected, keywords),
    )
    outcome = await _execute(plan, history, settings, generate)
    return PhraseResult(
        mode="refine",
        phrases=outcome.items,
        source=outcome.source,
        model_used=outcome.model_used,
        llm_error=outcome.llm_error,
    )
