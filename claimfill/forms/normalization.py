"""Text canonicalisation for label matching.

``normalize`` is lossy and meant for comparison only: it folds case and
diacritics, splits identifier casing conventions, expands abbreviations and
drops stop-words. ``normalize_for_display`` only tidies case and separators.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Dict, FrozenSet, List

SYNONYMS: Dict[str, str] = {
    "dept": "department",
    "org": "organization",
    "addr": "address",
    "apt": "apartment",
    "st": "street",
    "ave": "avenue",
    "blvd": "boulevard",
    "num": "number",
    "no": "number",
    "tel": "telephone",
    "ph": "phone",
    "mob": "mobile",
    "dob": "date of birth",
    "fname": "first name",
    "lname": "last name",
    "zip": "postal code",
    "zipcode": "postal code",
    "postcode": "postal code",
    "qty": "quantity",
    "amt": "amount",
}

STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "of", "at", "by",
        "for", "with", "about", "into", "through", "during", "before", "after",
        "above", "below", "to", "from", "up", "down", "in", "out", "on", "off",
        "over", "under", "again", "further", "then", "once", "here", "there",
        "when", "where", "why", "how", "all", "each", "few", "more", "most",
        "other", "some", "such", "only", "own", "same", "so", "than", "too",
        "very", "just", "and", "but", "if", "or", "because", "as", "until",
        "while", "although", "please", "enter", "provide", "your", "you", "i",
        "we", "they", "it", "this", "that", "these", "those",
    }
)

_CAMEL_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")
_CAMEL_ACRONYM = re.compile(r"([A-Z]+)([A-Z][a-z])")
_NON_WORD = re.compile(r"[\W_]+", re.UNICODE)
_SEPARATORS = re.compile(r"[_-]+")
_WHITESPACE = re.compile(r"\s+")
# "e-mail" splits into "e mail" before synonym lookup.
_E_MAIL = re.compile(r"\be mail\b")


def _strip_marks(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _fold(value: str) -> str:
    return _strip_marks(_strip_marks(value).lower())


def split_identifier(value: str) -> str:
    """Split camelCase, snake_case and kebab-case identifiers into words."""

    spaced = _CAMEL_ACRONYM.sub(r"\1 \2", value)
    spaced = _CAMEL_LOWER_UPPER.sub(r"\1 \2", spaced)
    spaced = _SEPARATORS.sub(" ", spaced)
    return _WHITESPACE.sub(" ", spaced).strip()


def tokenize(text: str | None) -> List[str]:
    """Return the meaningful tokens of ``text`` (see :func:`normalize`)."""

    if not text:
        return []
    cleaned = _fold(split_identifier(str(text)))
    cleaned = _NON_WORD.sub(" ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    cleaned = _E_MAIL.sub("email", cleaned)

    tokens: List[str] = []
    for word in cleaned.split(" "):
        if not word:
            continue
        tokens.extend(SYNONYMS.get(word, word).split(" "))

    meaningful: List[str] = []
    for token in tokens:
        if len(token) <= 1 or token in STOP_WORDS:
            continue
        # "zip code" expands to "postal code code"
        if meaningful and meaningful[-1] == token:
            continue
        meaningful.append(token)
    return meaningful


def normalize(text: str | None) -> str:
    """Lossy canonical form used for matching.

    ``normalize(normalize(x)) == normalize(x)`` for every input: synonym
    expansions contain no further synonym keys and the output carries no
    casing, separators or stop-words left to remove.
    """

    return " ".join(tokenize(text))


def normalize_for_display(text: str | None) -> str:
    if not text:
        return ""
    lowered = _SEPARATORS.sub(" ", str(text).lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def normalize_label_key(text: str | None) -> str:
    """Display form with punctuation dropped, used by the literal label table."""

    display = normalize_for_display(text)
    return _WHITESPACE.sub(" ", _NON_WORD.sub(" ", display)).strip()


__all__ = [
    "STOP_WORDS",
    "SYNONYMS",
    "normalize",
    "normalize_for_display",
    "normalize_label_key",
    "split_identifier",
    "tokenize",
]
