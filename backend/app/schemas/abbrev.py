from pydantic import BaseModel, ConfigDict, Field, field_validator


def _split_keywords(value: object) -> object:
    """Accept ``"a, b"`` as well as ``["a", "b"]``."""
    if value is None:
        return []
    if isinstance(value, str):
        return [kw.strip() for kw in value.split(",") if kw.strip()]
    return value


class ExpandRequest(BaseModel):
    """Input to /api/abbrev/expand."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(default="", alias="sessionId")
    abbreviation: str = ""
    keywords: list[str] = Field(default_factory=list)

    @field_validator("keywords", mode="before")
    @classmethod
    def split_keywords(cls, value: object) -> object:
        return _split_keywords(value)


class RefineRequest(BaseModel):
    """Input to /api/abbrev/refine."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(default="", alias="sessionId")
    selected_candidate: str = Field(default="", alias="selectedCandidate")
    new_keywords: list[str] = Field(default_factory=list, alias="newKeywords")

    @field_validator("new_keywords", mode="before")
    @classmethod
    def split_keywords(cls, value: object) -> object:
        return _split_keywords(value)


class PhraseCandidate(BaseModel):
    phrase: str
    score: float | None = None


class PhraseCandidatesResponse(BaseModel):
    """Output from the expand and refine endpoints."""
    candidates: list[PhraseCandidate]
    source: str
    model_used: str = Field(serialization_alias="modelUsed")
    llm_error: str | None = Field(default=None, serialization_alias="llmError")
