"""Text normalization helpers shared by the scorer and the decoder."""

import re

_WORD_RE = re.compile(r"[a-z]+")
_NON_ALPHA_RE = re.compile(r"[^a-z]+")


def normalize_alpha(text: str | None) -> str:
    """Lowercase ``text`` and drop every character outside ``[a-z]``."""
    if not text:
        return ""
    return _NON_ALPHA_RE.sub("", text.lower())


def tokenize(text: str | None) -> list[str]:
    """Split ``text`` into lowercase alphabetic tokens, in order."""
    if not text:
        return []
    return _WORD_RE.findall(text.lower())


def last_token(text: str | None) -> str:
    tokens = tokenize(text)
    return tokens[-1] if tokens else ""
