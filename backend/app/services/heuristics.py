"""Deterministic fallback predictions used when the LLM is unavailable."""

from collections.abc import Iterable, Sequence

from schemas.predict import Candidate
from services.constraints import Constraints, build_matcher
from services.text import last_token, tokenize

MAX_CANDIDATES = 10
MAX_PHRASES = 6

HISTORY_WEIGHT = 1.5
CONTEXT_WEIGHT = 0.8
CONNECTIVE_BOOST = 0.3

# Ordered by how often AAC users reach for them; earlier words get a higher prior.
BASE_VOCABULARY: tuple[str, ...] = (
    "i", "you", "the", "to", "and", "a", "it", "is", "want", "need",
    "in", "that", "of", "for", "me", "my", "we", "can", "do", "not",
    "have", "be", "with", "on", "this", "what", "go", "help", "please", "yes",
    "no", "like", "feel", "am", "are", "was", "will", "get", "know", "think",
    "thank", "good", "more", "here", "there", "now", "time", "about", "just", "so",
    "but", "if", "all", "your", "how", "when", "where", "why", "who", "see",
    "make", "come", "take", "tell", "some", "eat", "drink", "water", "home", "okay",
)

CONNECTIVES = ("the", "to", "and", "a", "in", "for", "of", "with", "on", "that", "it")

CONTINUATION_TEMPLATES = ["okay", "sure", "thank you"]

ACROSTIC_LEXICON: dict[str, tuple[str, str, str]] = {
    "a": ("a", "and", "able"), "b": ("be", "bring", "buy"), "c": ("can", "call", "come"),
    "d": ("do", "done", "deliver"), "e": ("eat", "enjoy", "extra"), "f": ("for", "find", "feel"),
    "g": ("get", "give", "good"), "h": ("have", "help", "hold"), "i": ("I", "I", "I"),
    "j": ("just", "join", "juice"), "k": ("keep", "know", "kit"), "l": ("like", "love", "lift"),
    "m": ("me", "more", "make"), "n": ("need", "now", "near"), "o": ("on", "or", "one"),
    "p": ("please", "put", "pack"), "q": ("quick", "quiet", "queue"), "r": ("read", "ready", "reach"),
    "s": ("see", "some", "send"), "t": ("to", "take", "try"), "u": ("us", "use", "under"),
    "v": ("very", "visit", "value"), "w": ("want", "with", "will"), "x": ("x-ray", "xtra", "xpress"),
    "y": ("you", "your", "yes"), "z": ("zip", "zone", "zero"),
}

KNOWN_EXPANSIONS: dict[str, list[str]] = {
    "ifg": ["I feel good", "I feel great", "I feel grateful"],
}

MAX_ACROSTIC_LETTERS = 8


def normalize(pairs: Iterable[tuple[str, float]]) -> list[Candidate]:
    """Turn ``(word, score)`` pairs into candidates whose probabilities sum to 1.

    A zero total is spread uniformly instead of dividing by zero.
    """
    pairs = list(pairs)
    if not pairs:
        return []
    total = sum(score for _, score in pairs)
    if total <= 0:
        share = 1.0 / len(pairs)
        return [Candidate(word=word, probability=share) for word, _ in pairs]
    return [Candidate(word=word, probability=score / total) for word, score in pairs]


def score_words(
    history_text: str = "",
    context_text: str = "",
    preceding_text: str = "",
    prefix: str = "",
    constraints: Constraints = (),
    vocabulary: Sequence[str] = BASE_VOCABULARY,
    limit: int = MAX_CANDIDATES,
) -> list[Candidate]:
    """Rank likely next words by weighted frequency.

    Scores combine a rank prior over ``vocabulary``, occurrences in the
    conversation history and in the ambient context, and a small boost for
    connectives after a completed word. Words rejected by the prefix or
    positional constraints never accumulate a score.
    """
    accepts = build_matcher(constraints, prefix)
    scores: dict[str, float] = {}

    def add(word: str, weight: float) -> None:
        if accepts(word):
            scores[word] = scores.get(word, 0.0) + weight

    n = len(vocabulary)
    for rank, word in enumerate(vocabulary):
        add(word, (n - rank) / n)
    for word in tokenize(history_text):
        add(word, HISTORY_WEIGHT)
    for word in tokenize(context_text):
        add(word, CONTEXT_WEIGHT)

    if not constraints and not prefix.strip() and last_token(preceding_text):
        for word in CONNECTIVES:
            add(word, CONNECTIVE_BOOST)

    # sorted() is stable, so ties keep vocabulary / first-seen order
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:limit]
    return normalize(ranked)


def _display(word: str) -> str:
    return "I" if word == "i" else word


def continuation_phrases(
    prefix: str = "",
    preceding_text: str = "",
    context_text: str = "",
    history_text: str = "",
    limit: int = MAX_PHRASES,
) -> list[str]:
    """Extend the typed text with the top scored next words."""
    stem = " ".join(part.strip() for part in (preceding_text, prefix) if part.strip())
    if not stem:
        return CONTINUATION_TEMPLATES[:limit]
    candidates = score_words(
        history_text=history_text,
        context_text=context_text,
        preceding_text=stem,
    )
    return [f"{stem} {_display(c.word)}" for c in candidates[:limit]]


def expand_acronym(acronym: str) -> list[str]:
    """Build phrases whose words start with the acronym's letters."""
    lower = acronym.strip().lower()
    if lower in KNOWN_EXPANSIONS:
        return list(KNOWN_EXPANSIONS[lower])
    if lower.isascii() and lower.isalpha() and len(lower) <= MAX_ACROSTIC_LETTERS:
        phrases = [
            " ".join(
                ACROSTIC_LEXICON[ch][(i + offset) % 3] for i, ch in enumerate(lower)
            )
            for offset in range(3)
        ]
        return list(dict.fromkeys(phrases))
    return [" ".join(acronym.strip())]


def refine_phrases(selected: str, keywords: Sequence[str] = (), limit: int = MAX_PHRASES) -> list[str]:
    selected = selected.strip()
    phrases = [selected]
    phrases.extend(f"{selected} {kw.strip()}" for kw in keywords if kw.strip())
    return list(dict.fromkeys(phrases))[:limit]
