from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class Candidate(BaseModel):
    """A predicted word with its normalized probability."""
    word: str
    probability: float = Field(ge=0.0, le=1.0)


class WordPredictionRequest(BaseModel):
    """Next-word prediction for the word currently being typed."""
    mode: Literal["word_prediction"] = "word_prediction"
    prefix: str = ""
    preceding_text: str = ""
    speech_content: str = ""
    speech_history: str = ""


class AmbiguousPredictionRequest(BaseModel):
    """Prediction from per-position letter groups (multi-tap / scanning input)."""
    mode: Literal["ambiguous_prediction"] = "ambiguous_prediction"
    # Any shape; parse_constraints drops what it cannot read
    letter_sets: Any = None
    prefix: str = ""
    preceding_text: str = ""
    speech_content: str = ""
    speech_history: str = ""


class TextContinuationRequest(BaseModel):
    """Whole-phrase continuation of the text typed so far."""
    mode: Literal["text_continuation"] = "text_continuation"
    prefix: str = ""
    preceding_text: str = ""
    speech_content: str = ""
    speech_history: str = ""


class AbbreviationExpansionRequest(BaseModel):
    """Expansion of an initial-letter abbreviation such as ``ifg``."""
    mode: Literal["abbreviation_expansion"] = "abbreviation_expansion"
    acronym: str = ""
    preceding_text: str = ""
    speech_content: str = ""
    keywords: list[str] = Field(default_factory=list)


ModeRequest = Annotated[
    WordPredictionRequest
    | AmbiguousPredictionRequest
    | TextContinuationRequest
    | AbbreviationExpansionRequest,
    Field(discriminator="mode"),
]

Source = Literal["llm", "heuristic"]


class WordResult(BaseModel):
    """Word-level result for the two prediction modes."""
    mode: Literal["word_prediction", "ambiguous_prediction"]
    candidates: list[Candidate]
    source: Source
    model_used: str
    llm_error: str | None = None


class PhraseResult(BaseModel):
    """Line-level result for continuation, expansion and refinement."""
    mode: Literal["text_continuation", "abbreviation_expansion", "refine"]
    phrases: list[str]
    source: Source
    model_used: str
    llm_error: str | None = None


ModeResult = WordResult | PhraseResult


class PredictRequest(BaseModel):
    """Input to /api/predict."""
    request: ModeRequest
    session_id: str | None = None
