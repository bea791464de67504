"""In-memory conversation log keyed by session id.

Sessions live for the lifetime of the process only.
"""

import logging
import uuid
from dataclasses import dataclass, field

from schemas.session import ConversationTurn

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    """Raised for an unknown session id."""


@dataclass
class _Session:
    user_id: str
    turns: list[ConversationTurn] = field(default_factory=list)


_sessions: dict[str, _Session] = {}


def create_session(user_id: str) -> str:
    """Open a new session for ``user_id`` and return its id."""
    session_id = uuid.uuid4().hex
    _sessions[session_id] = _Session(user_id=user_id)
    logger.info("Session created: session=%s user=%s", session_id, user_id)
    return session_id


def _get(session_id: str) -> _Session:
    try:
        return _sessions[session_id]
    except KeyError:
        raise SessionNotFound(session_id) from None


def get_history(session_id: str) -> list[ConversationTurn]:
    """Return a copy of the session's turns, oldest first."""
    return list(_get(session_id).turns)


def append_turn(session_id: str, turn: ConversationTurn) -> None:
    _get(session_id).turns.append(turn)


def clear() -> None:
    _sessions.clear()
