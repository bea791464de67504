"""Dispatcher tests with fake generative backends."""

import json

import pytest
from schemas.predict import (
    AbbreviationExpansionRequest,
    AmbiguousPredictionRequest,
    PhraseResult,
    TextContinuationRequest,
    WordPredictionRequest,
    WordResult,
)
from schemas.session import ConversationTurn
from services import predictor
from services.config import LLMSettings
from services.constraints import matches
from services.errors import BackendError, InvalidInput
from services.heuristics import score_words

pytestmark = pytest.mark.asyncio


class FakeBackend:
    """Records calls and returns a canned reply or raises a canned error."""

    def __init__(self, reply: str = "", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, list[ConversationTurn]]] = []

    async def __call__(self, prompt, context):
        self.calls.append((prompt, list(context)))
        if self.error is not None:
            raise self.error
        return self.reply


def candidates_json(*pairs):
    return json.dumps([{"word": w, "probability": p} for w, p in pairs])


async def test_word_prediction_uses_llm_output(openai_settings):
    backend = FakeBackend(reply="Sure! " + candidates_json(("the", 0.6), ("to", 0.2)))
    result = await predictor.run(
        WordPredictionRequest(preceding_text="I want"),
        settings=openai_settings,
        generate=backend,
    )

    assert isinstance(result, WordResult)
    assert result.source == "llm"
    assert result.model_used == "openai:gpt-test"
    assert result.llm_error is None
    assert [c.word for c in result.candidates] == ["the", "to"]
    assert sum(c.probability for c in result.candidates) == pytest.approx(1.0)
    assert 'Preceding text: "I want"' in backend.calls[0][0]


async def test_backend_error_falls_back_and_reports_it(openai_settings):
    backend = FakeBackend(error=BackendError(503, "upstream down"))
    result = await predictor.run(
        WordPredictionRequest(prefix="w"),
        settings=openai_settings,
        generate=backend,
    )

    assert result.source == "heuristic"
    assert result.model_used == "heuristic"
    assert result.llm_error == "503: upstream down"
    assert result.candidates == score_words(prefix="w")


async def test_unexpected_backend_failure_is_absorbed(openai_settings):
    backend = FakeBackend(error=RuntimeError("boom"))
    result = await predictor.run(WordPredictionRequest(), settings=openai_settings, generate=backend)

    assert result.source == "heuristic"
    assert result.llm_error == "boom"
    assert len(result.candidates) == 10


async def test_missing_configuration_skips_the_backend():
    backend = FakeBackend(reply=candidates_json(("the", 1.0)))
    settings = LLMSettings(model="gpt-test", openai_api_key="sk-test")
    result = await predictor.run(WordPredictionRequest(), settings=settings, generate=backend)

    assert backend.calls == []
    assert result.source == "heuristic"
    assert result.llm_error is None


async def test_unparsable_output_falls_back_without_error(openai_settings):
    backend = FakeBackend(reply="I'm not sure what you mean.")
    result = await predictor.run(WordPredictionRequest(), settings=openai_settings, generate=backend)

    assert len(backend.calls) == 1
    assert result.source == "heuristic"
    assert result.llm_error is None
    assert [c.word for c in result.candidates] == [c.word for c in score_words()]


async def test_oversized_probability_falls_back_to_heuristic(openai_settings):
    backend = FakeBackend(reply='[{"word": "the", "probability": ' + "9" * 400 + "}]")
    result = await predictor.run(WordPredictionRequest(), settings=openai_settings, generate=backend)

    assert result.source == "heuristic"
    assert result.model_used == "heuristic"
    assert len(result.candidates) == 10


async def test_history_feeds_backend_and_heuristic():
    history = [ConversationTurn(role="assistant", text="Do you want water or juice? water?")]
    result = await predictor.run(WordPredictionRequest(), history, settings=LLMSettings())

    assert result.candidates[0].word == "water"


async def test_history_is_sent_as_conversation_context(openai_settings):
    history = [ConversationTurn(role="user", text="hello")]
    backend = FakeBackend(reply=candidates_json(("hi", 1.0)))
    await predictor.run(WordPredictionRequest(), history, settings=openai_settings, generate=backend)

    assert backend.calls[0][1] == history


async def test_ambiguous_prediction_enforces_constraints_on_llm_output(openai_settings):
    backend = FakeBackend(reply=candidates_json(("the", 0.4), ("cat", 0.4), ("why", 0.2)))
    result = await predictor.run(
        AmbiguousPredictionRequest(letter_sets="tw|h"),
        settings=openai_settings,
        generate=backend,
    )

    assert result.source == "llm"
    assert [c.word for c in result.candidates] == ["the", "why"]
    prompt = backend.calls[0][0]
    assert "1: t/w; 2: h" in prompt
    assert "th, wh" in prompt


async def test_ambiguous_prediction_falls_back_when_llm_ignores_constraints(openai_settings):
    backend = FakeBackend(reply=candidates_json(("cat", 0.5), ("dog", 0.5)))
    result = await predictor.run(
        AmbiguousPredictionRequest(letter_sets=[["t", "w"], ["h"]]),
        settings=openai_settings,
        generate=backend,
    )

    assert result.source == "heuristic"
    assert result.candidates
    assert all(matches(c.word, (("t", "w"), ("h",))) for c in result.candidates)


async def test_ambiguous_single_token_defers_to_prefix():
    result = await predictor.run(
        AmbiguousPredictionRequest(letter_sets="wa", prefix="wh"),
        settings=LLMSettings(),
    )

    assert [c.word for c in result.candidates] == ["what", "where", "why", "who"]


async def test_ambiguous_without_any_input_skips_the_backend(openai_settings):
    backend = FakeBackend(reply=candidates_json(("the", 1.0)))
    result = await predictor.run(
        AmbiguousPredictionRequest(letter_sets="  "),
        settings=openai_settings,
        generate=backend,
    )

    assert backend.calls == []
    assert result.source == "heuristic"
    assert len(result.candidates) == 10


async def test_ambiguous_constraint_matching_nothing_is_empty_not_an_error():
    result = await predictor.run(
        AmbiguousPredictionRequest(letter_sets=["x", "q"]),
        settings=LLMSettings(),
    )

    assert result.candidates == []
    assert result.source == "heuristic"


async def test_continuation_truncates_llm_lines(openai_settings):
    backend = FakeBackend(reply="\n".join(f"I want option {i}" for i in range(9)))
    result = await predictor.run(
        TextContinuationRequest(preceding_text="I want"),
        settings=openai_settings,
        generate=backend,
    )

    assert isinstance(result, PhraseResult)
    assert result.source == "llm"
    assert result.phrases == [f"I want option {i}" for i in range(6)]


async def test_continuation_without_input_uses_templates(openai_settings):
    backend = FakeBackend(reply="anything")
    result = await predictor.run(TextContinuationRequest(), settings=openai_settings, generate=backend)

    assert backend.calls == []
    assert result.phrases == ["okay", "sure", "thank you"]


async def test_abbreviation_without_backend():
    result = await predictor.run(AbbreviationExpansionRequest(acronym="ifg"), settings=LLMSettings())

    assert result.phrases == ["I feel good", "I feel great", "I feel grateful"]
    assert result.source == "heuristic"
    assert result.model_used == "heuristic"


async def test_abbreviation_prompt_carries_context_and_keywords(openai_settings):
    backend = FakeBackend(reply="I feel great\n\nI feel good\n")
    result = await predictor.run(
        AbbreviationExpansionRequest(acronym="ifg", speech_content="How are you?", keywords=["mood"]),
        settings=openai_settings,
        generate=backend,
    )

    assert result.phrases == ["I feel great", "I feel good"]
    prompt = backend.calls[0][0]
    assert 'Abbreviation: "ifg"' in prompt
    assert 'Context: "How are you?"' in prompt
    assert "Keywords: mood" in prompt


async def test_abbreviation_backend_error_still_expands(openai_settings):
    backend = FakeBackend(error=BackendError(None, "connection refused"))
    result = await predictor.run(
        AbbreviationExpansionRequest(acronym="ifg"),
        settings=openai_settings,
        generate=backend,
    )

    assert result.phrases == ["I feel good", "I feel great", "I feel grateful"]
    assert result.llm_error == "connection refused"


async def test_missing_acronym_is_rejected():
    with pytest.raises(InvalidInput):
        await predictor.run(AbbreviationExpansionRequest(acronym="  "), settings=LLMSettings())


async def test_refine_falls_back_to_keyword_variants(openai_settings):
    backend = FakeBackend(error=BackendError(401, "bad key"))
    history = [ConversationTurn(role="user", text="Refine: I feel good")]
    result = await predictor.refine(
        "I feel good",
        ["today"],
        history,
        settings=openai_settings,
        generate=backend,
    )

    assert result.mode == "refine"
    assert result.phrases == ["I feel good", "I feel good today"]
    assert result.llm_error == "401: bad key"
    assert "user: Refine: I feel good" in backend.calls[0][0]


async def test_refine_requires_a_selection():
    with pytest.raises(InvalidInput):
        await predictor.refine("", settings=LLMSettings())
