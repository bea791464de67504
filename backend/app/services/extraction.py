"""Parse and validate raw LLM output into candidates or phrases."""

import json
import logging
import math
from numbers import Real

from schemas.predict import Candidate
from services.constraints import Constraints, build_matcher
from services.heuristics import MAX_CANDIDATES, MAX_PHRASES, normalize

logger = logging.getLogger(__name__)


def extract_lines(raw: str | None, limit: int = MAX_PHRASES) -> list[str]:
    """One phrase per non-empty line, duplicates collapsed, at most ``limit``.

    Markdown fence lines are skipped.
    """
    seen: set[str] = set()
    phrases: list[str] = []
    for line in (raw or "").splitlines():
        phrase = line.strip()
        if not phrase or phrase.startswith("```") or phrase.lower() in seen:
            continue
        seen.add(phrase.lower())
        phrases.append(phrase)
        if len(phrases) == limit:
            break
    return phrases


def _json_array_slice(raw: str) -> list | None:
    """Decode the text between the first ``[`` and the last ``]``."""
    start = raw.find("[")
    end = raw.rfind("]")
    if start == -1 or end <= start:
        return None
    try:
        decoded = json.loads(raw[start : end + 1])
    except ValueError:
        logger.debug("LLM output has no decodable JSON array: %r", raw[:120])
        return None
    return decoded if isinstance(decoded, list) else None


def extract_candidates(
    raw: str | None,
    constraints: Constraints = (),
    prefix: str = "",
    limit: int = MAX_CANDIDATES,
) -> list[Candidate]:
    """Validate a JSON array of ``{"word", "probability"}`` objects.

    Malformed elements are dropped, probabilities are clamped to [0, 1], and
    words violating ``constraints`` (or ``prefix`` when there are none) are
    rejected before truncation. The kept candidates are renormalized to sum
    to 1.
    """
    items = _json_array_slice(raw or "")
    if not items:
        return []

    accepts = build_matcher(constraints, prefix)
    seen: set[str] = set()
    kept: list[tuple[str, float]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        word = item.get("word")
        probability = item.get("probability")
        if not isinstance(word, str) or not word.strip():
            continue
        if isinstance(probability, bool) or not isinstance(probability, Real):
            continue
        try:
            probability = float(probability)
        except (OverflowError, ValueError):
            continue
        if math.isnan(probability):
            continue
        word = word.strip()
        key = word.lower()
        if key in seen:
            continue
        if not accepts(word):
            logger.debug("Dropping %r: violates the typed prefix", word)
            continue
        seen.add(key)
        kept.append((word, min(max(probability, 0.0), 1.0)))
        if len(kept) == limit:
            break

    return normalize(kept)
