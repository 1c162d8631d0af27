"""Text-similarity indexes over the schema keyword corpus.

Both indexes answer the same question: which schema keys have a keyword
phrase resembling this label, and how closely (0..1). The matcher never
depends on how the similarity was computed.
"""
from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Protocol, Sequence, Tuple

from rapidfuzz import fuzz

from .normalization import normalize, tokenize

DEFAULT_FUZZY_CUTOFF = 88


@dataclass(frozen=True, slots=True)
class SimilarityHit:
    key: str
    phrase: str
    similarity: float
    method: str


class SimilarityIndex(Protocol):
    method: str

    def query(self, text: str, *, limit: int = 5) -> List[SimilarityHit]:
        """Return up to ``limit`` hits, best first, at most one per key."""


def _best_per_key(hits: Iterable[SimilarityHit], limit: int) -> List[SimilarityHit]:
    best: Dict[str, SimilarityHit] = {}
    for hit in hits:
        existing = best.get(hit.key)
        if existing is None or hit.similarity > existing.similarity:
            best[hit.key] = hit
    ranked = sorted(best.values(), key=lambda hit: (-hit.similarity, hit.key))
    return ranked[:limit]


class FuzzyIndex:
    """Approximate-string index using RapidFuzz ``token_sort_ratio``.

    Word order is ignored but every word counts, so "Address email" and
    "Emial address" reach "email address" while a label that only shares one
    word with a phrase ("IP address") stays below the cutoff.
    """

    method = "fuzzy"

    def __init__(self, corpus: Sequence[Tuple[str, str]], *, score_cutoff: int = DEFAULT_FUZZY_CUTOFF) -> None:
        self.score_cutoff = score_cutoff
        self._phrases: List[Tuple[str, str, str]] = []
        for key, phrase in corpus:
            normalized = normalize(phrase)
            if normalized:
                self._phrases.append((key, phrase, normalized))

    def __len__(self) -> int:
        return len(self._phrases)

    def query(self, text: str, *, limit: int = 5) -> List[SimilarityHit]:
        if limit <= 0:
            return []
        normalized = normalize(text)
        if not normalized:
            return []
        hits: List[SimilarityHit] = []
        for key, phrase, candidate in self._phrases:
            score = float(fuzz.token_sort_ratio(normalized, candidate, score_cutoff=self.score_cutoff))
            if score >= self.score_cutoff and score > 0:
                hits.append(SimilarityHit(key, phrase, score / 100.0, self.method))
        return _best_per_key(hits, limit)


class RankedTermIndex:
    """Okapi BM25 over the keyword phrases, one phrase per document.

    Raw BM25 scores are unbounded, so each score is divided by the summed IDF
    of the query terms (terms unseen in the corpus count at the maximum IDF).
    Each term contributes at most its IDF, so the similarity is the IDF-weighted
    share of the label covered by the phrase and 1.0 only when it covers all of it.
    """

    method = "ranked"

    def __init__(self, corpus: Sequence[Tuple[str, str]], *, k1: float = 1.2, b: float = 0.75) -> None:
        self.k1 = k1
        self.b = b
        self._docs: List[Tuple[str, str, Counter[str], int]] = []
        document_frequency: Counter[str] = Counter()
        for key, phrase in corpus:
            tokens = tokenize(phrase)
            if not tokens:
                continue
            self._docs.append((key, phrase, Counter(tokens), len(tokens)))
            document_frequency.update(set(tokens))
        self._count = len(self._docs)
        self._avgdl = (sum(length for *_, length in self._docs) / self._count) if self._count else 0.0
        self._idf: Dict[str, float] = {term: self._idf_for(df) for term, df in document_frequency.items()}
        self._max_idf = self._idf_for(0)

    def __len__(self) -> int:
        return self._count

    def _idf_for(self, df: int) -> float:
        return math.log((self._count - df + 0.5) / (df + 0.5) + 1.0)

    def _score(self, query: Sequence[str], frequencies: Counter[str], length: int) -> float:
        score = 0.0
        for term in query:
            idf = self._idf.get(term)
            if idf is None:
                continue
            f = frequencies.get(term, 0)
            if not f:
                continue
            norm = 1 - self.b + self.b * length / max(1.0, self._avgdl)
            score += idf * min(1.0, (f * (self.k1 + 1)) / (f + self.k1 * norm))
        return score

    def query(self, text: str, *, limit: int = 3) -> List[SimilarityHit]:
        if limit <= 0 or not self._docs:
            return []
        terms = list(dict.fromkeys(tokenize(text)))
        if not terms:
            return []
        ceiling = sum(self._idf.get(term, self._max_idf) for term in terms)
        if ceiling <= 0:
            return []
        hits: List[SimilarityHit] = []
        for key, phrase, frequencies, length in self._docs:
            raw = self._score(terms, frequencies, length)
            if raw <= 0:
                continue
            hits.append(SimilarityHit(key, phrase, min(1.0, raw / ceiling), self.method))
        return _best_per_key(hits, limit)


__all__ = [
    "DEFAULT_FUZZY_CUTOFF",
    "FuzzyIndex",
    "RankedTermIndex",
    "SimilarityHit",
    "SimilarityIndex",
]
