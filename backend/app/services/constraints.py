"""Positional letter constraints for ambiguous (multi-letter-per-key) input.

A switch-scanning keyboard may select a group of letters with one keypress.
Each group becomes a ``CharacterSet`` and the ordered groups form the
``Constraints`` describing the prefix of the word being typed.
"""

import itertools
import json
import logging
import re
from collections.abc import Callable, Iterable

from services.text import normalize_alpha

logger = logging.getLogger(__name__)

CharacterSet = tuple[str, ...]
Constraints = tuple[CharacterSet, ...]

_GROUP_SPLIT_RE = re.compile(r"[\s|]+")


def _to_character_set(group: object) -> CharacterSet:
    """Collapse a string or an iterable of letters into a sorted letter set."""
    if isinstance(group, str):
        letters = normalize_alpha(group)
    elif isinstance(group, Iterable):
        letters = "".join(normalize_alpha(item) for item in group if isinstance(item, str))
    else:
        return ()
    return tuple(sorted(set(letters)))


def _from_sequence(groups: Iterable[object]) -> Constraints:
    sets = (_to_character_set(group) for group in groups)
    return tuple(s for s in sets if s)


def parse_constraints(raw: object) -> Constraints:
    """Normalize any accepted constraint shape into ``Constraints``.

    Accepts an already-structured sequence, a JSON array string, or a
    whitespace/pipe delimited string of letter groups. A single undelimited
    token means there is no ambiguity and yields no constraints; the caller
    then falls back to its plain prefix.
    """
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        return _from_sequence(raw)
    if not isinstance(raw, str):
        logger.debug("Ignoring constraint value of type %s", type(raw).__name__)
        return ()

    text = raw.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            return _from_sequence(decoded)

    groups = [g for g in _GROUP_SPLIT_RE.split(text) if g]
    if len(groups) < 2:
        return ()
    return _from_sequence(groups)


def matches(word: str, constraints: Constraints) -> bool:
    """True if ``word`` starts with one allowed letter per constrained position."""
    letters = normalize_alpha(word)
    if len(letters) < len(constraints):
        return False
    return all(letters[i] in allowed for i, allowed in enumerate(constraints))


def prefix_matches(word: str, prefix: str) -> bool:
    prefix = prefix.strip().lower()
    if not prefix:
        return True
    return word.lower().startswith(prefix)


def build_matcher(constraints: Constraints, prefix: str = "") -> Callable[[str], bool]:
    """Return the active word predicate: constraints win over the plain prefix."""
    if constraints:
        return lambda word: matches(word, constraints)
    return lambda word: prefix_matches(word, prefix)


def expand_combinations(constraints: Constraints, max_count: int) -> list[str]:
    """Enumerate concrete prefixes, stopping once ``max_count`` are produced."""
    if not constraints or max_count <= 0:
        return []
    product = itertools.product(*constraints)
    return ["".join(combo) for combo in itertools.islice(product, max_count)]
