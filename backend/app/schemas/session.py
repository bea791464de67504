from typing import Literal

from pydantic import BaseModel, Field


class ConversationTurn(BaseModel):
    """One utterance in a session's conversation log."""
    role: Literal["user", "assistant"]
    text: str


class SessionStartRequest(BaseModel):
    """Input to /api/session/start."""
    user_id: str = Field(default="", alias="userId")


class SessionStartResponse(BaseModel):
    """Output from /api/session/start."""
    session_id: str = Field(serialization_alias="sessionId")


class SessionHistoryResponse(BaseModel):
    session_id: str = Field(serialization_alias="sessionId")
    turns: list[ConversationTurn]
