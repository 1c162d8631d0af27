"""Tiered decision policy mapping a field descriptor to a schema key.

Tiers are evaluated from most to least trusted and the first tier whose
best candidate clears that tier's floor wins. Later tiers are never consulted
once an earlier one has produced an accepted result.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .normalization import normalize, normalize_label_key
from .records import FieldDescriptor, MatchResult, Tier
from .schema import SchemaRegistry, autocomplete_token, default_registry
from .scoring import CompositeScorer, ScoreWeights
from .similarity import DEFAULT_FUZZY_CUTOFF, FuzzyIndex, RankedTermIndex, SimilarityHit, SimilarityIndex

logger = logging.getLogger(__name__)

AUTOCOMPLETE_CONFIDENCE = 1.0
TYPE_ONLY_CONFIDENCE = 0.95
DETERMINISTIC_FLOOR = 0.9
PATTERN_FLOOR = 0.8
LITERAL_LABEL_CONFIDENCE = 0.9
FUZZY_FLOOR = 0.6
KEYWORD_CONFIDENCE = 0.55
KEYWORD_FLOOR = 0.5
ADVISORY_CAP = 0.5

# Input types whose semantics are unambiguous on their own.
DETERMINISTIC_TYPES = frozenset({"email", "tel"})

QUESTION_PATTERNS: Tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"how many",
        r"number of (?!phone|telephone)",
        r"count of",
        r"quantity",
        r"please describe",
        r"please explain",
        r"tell us about",
        r"\?\s*$",
        r"select all",
        r"choose",
        r"which of",
        r"have you ever",
        r"do you have",
        r"did you",
        r"are you",
        r"were you",
        r"why did",
        r"when did you",
    )
)

# Checked before LITERAL_LABELS: "address line 2" shares most of its tokens
# with the street entries and must still resolve to the unit key.
UNIT_LABELS: Dict[str, str] = {
    "address line 2": "address.unit",
    "address 2": "address.unit",
    "address2": "address.unit",
    "street address line 2": "address.unit",
    "apt": "address.unit",
    "apartment": "address.unit",
    "suite": "address.unit",
    "unit": "address.unit",
    "apt unit suite": "address.unit",
    "apt suite unit": "address.unit",
    "apartment suite unit": "address.unit",
    "apt suite": "address.unit",
    "apartment or suite": "address.unit",
}

LITERAL_LABELS: Dict[str, str] = {
    "phone number": "phone",
    "phone": "phone",
    "telephone": "phone",
    "telephone number": "phone",
    "mobile number": "phone",
    "mobile phone": "phone",
    "cell phone": "phone",
    "cell phone number": "phone",
    "contact phone": "phone",
    "daytime phone": "phone",
    "email": "email",
    "email address": "email",
    "e mail": "email",
    "e mail address": "email",
    "your email": "email",
    "confirm email": "email",
    "confirm email address": "email",
    "confirm your email": "email",
    "verify email": "email",
    "verify email address": "email",
    "first name": "first_name",
    "given name": "first_name",
    "last name": "last_name",
    "surname": "last_name",
    "family name": "last_name",
    "full name": "full_name",
    "your name": "full_name",
    "name": "full_name",
    "street address": "address.street",
    "street": "address.street",
    "mailing address": "address.street",
    "address": "address.street",
    "address line 1": "address.street",
    "address 1": "address.street",
    "city": "address.city",
    "town city": "address.city",
    "state": "address.state",
    "state province": "address.state",
    "province": "address.state",
    "zip code": "address.zip",
    "zip": "address.zip",
    "zipcode": "address.zip",
    "postal code": "address.zip",
    "zip postal code": "address.zip",
    "country": "address.country",
    "date of birth": "date_of_birth",
    "birth date": "date_of_birth",
    "purchase date": "purchase_date",
    "date of purchase": "purchase_date",
    "serial number": "serial_number",
    "model number": "product_model",
    "product name": "product_name",
    "store name": "store_name",
    "retailer": "store_name",
    "purchase amount": "purchase_amount",
    "amount paid": "purchase_amount",
}


def is_question_field(text: str | None) -> bool:
    """True when ``text`` reads like an open-ended or claim-specific question."""

    if not text:
        return False
    lowered = text.strip().lower()
    return any(pattern.search(lowered) for pattern in QUESTION_PATTERNS)


def literal_label_key(label: str | None) -> Optional[str]:
    key = normalize_label_key(label)
    if not key:
        return None
    return UNIT_LABELS.get(key) or LITERAL_LABELS.get(key)


class TieredMatcher:
    """Evaluate the tiers for one descriptor at a time.

    The matcher is stateless between calls; build one per registry and reuse
    it across sweeps.
    """

    def __init__(
        self,
        registry: Optional[SchemaRegistry] = None,
        fuzzy_index: Optional[SimilarityIndex] = None,
        ranked_index: Optional[SimilarityIndex] = None,
        scorer: Optional[CompositeScorer] = None,
        *,
        fuzzy_cutoff: int = DEFAULT_FUZZY_CUTOFF,
        ranked_min_length: int = 10,
        fuzzy_limit: int = 5,
        ranked_limit: int = 3,
    ) -> None:
        self.registry = registry or default_registry()
        corpus = self.registry.keyword_corpus()
        self.fuzzy_index = fuzzy_index if fuzzy_index is not None else FuzzyIndex(corpus, score_cutoff=fuzzy_cutoff)
        self.ranked_index = ranked_index if ranked_index is not None else RankedTermIndex(corpus)
        self.scorer = scorer or CompositeScorer()
        self.ranked_min_length = ranked_min_length
        self.fuzzy_limit = fuzzy_limit
        self.ranked_limit = ranked_limit

    def match(self, descriptor: FieldDescriptor, *, suggested_key: Optional[str] = None) -> Optional[MatchResult]:
        """Return the first accepted tier result, or ``None``."""

        return self._evaluate(descriptor, suggested_key, None)

    def explain(self, descriptor: FieldDescriptor, *, suggested_key: Optional[str] = None) -> List[Dict[str, Any]]:
        """Per-tier trace of how ``descriptor`` was (or was not) matched."""

        trace: List[Dict[str, Any]] = []
        self._evaluate(descriptor, suggested_key, trace)
        return trace

    # ------------------------------------------------------------------
    # Tier evaluation
    # ------------------------------------------------------------------
    def _evaluate(
        self,
        descriptor: FieldDescriptor,
        suggested_key: Optional[str],
        trace: Optional[List[Dict[str, Any]]],
    ) -> Optional[MatchResult]:
        def note(tier: Optional[Tier], outcome: str, key: Optional[str] = None, confidence: Optional[float] = None, detail: str = "") -> None:
            if trace is not None:
                trace.append(
                    {
                        "tier": str(tier) if tier is not None else "-",
                        "outcome": outcome,
                        "key": key,
                        "confidence": round(confidence, 4) if confidence is not None else None,
                        "detail": detail,
                    }
                )

        if is_question_field(descriptor.context_text):
            note(None, "skipped", detail="question-like label")
            logger.debug("Question field skipped", extra={"field": descriptor.field_id})
            return None

        for tier_fn in (self._deterministic, self._pattern, self._literal_label, self._similarity, self._keyword):
            result = tier_fn(descriptor, note)
            if result is not None:
                note(result.tier, "accepted", result.key, result.confidence)
                logger.debug(
                    "Field matched",
                    extra={"field": descriptor.field_id, "key": result.key, "tier": str(result.tier), "confidence": result.confidence},
                )
                return result

        if suggested_key:
            result = self._advisory(descriptor, suggested_key, note)
            if result is not None:
                note(result.tier, "accepted", result.key, result.confidence)
                return result

        note(None, "rejected", detail="no tier cleared its floor")
        logger.debug("No tier match", extra={"field": descriptor.field_id})
        return None

    def _deterministic(self, descriptor: FieldDescriptor, note) -> Optional[MatchResult]:
        token = autocomplete_token(descriptor.autocomplete)
        if token:
            for entry in self.registry:
                if token not in entry.positive.autocomplete:
                    continue
                if self.registry.has_negative_evidence(entry.key, descriptor):
                    note(Tier.DETERMINISTIC, "suppressed", entry.key, detail=f"autocomplete={token}")
                    continue
                return MatchResult(entry.key, Tier.DETERMINISTIC, AUTOCOMPLETE_CONFIDENCE)

        if descriptor.input_type not in DETERMINISTIC_TYPES:
            return None
        keys = [
            entry.key
            for entry in self.registry
            if descriptor.input_type in entry.positive.types
            and not self.registry.has_negative_evidence(entry.key, descriptor)
        ]
        if len(keys) == 1 and TYPE_ONLY_CONFIDENCE >= DETERMINISTIC_FLOOR:
            return MatchResult(keys[0], Tier.DETERMINISTIC, TYPE_ONLY_CONFIDENCE)
        if keys:
            note(Tier.DETERMINISTIC, "rejected", detail=f"type={descriptor.input_type} is ambiguous: {', '.join(keys)}")
        return None

    def _pattern(self, descriptor: FieldDescriptor, note) -> Optional[MatchResult]:
        best: Optional[Tuple[str, float]] = None
        for entry in self.registry:
            if not entry.positive.matches_pattern(descriptor.element_id, descriptor.name):
                continue
            if self.registry.has_negative_evidence(entry.key, descriptor):
                note(Tier.PATTERN, "suppressed", entry.key)
                continue
            score = self.scorer.score_candidate(1.0, entry, descriptor)
            if best is None or score > best[1]:
                best = (entry.key, score)
        if best is None:
            return None
        if best[1] >= PATTERN_FLOOR:
            return MatchResult(best[0], Tier.PATTERN, best[1])
        note(Tier.PATTERN, "rejected", best[0], best[1], detail="below floor")
        return None

    def _literal_label(self, descriptor: FieldDescriptor, note) -> Optional[MatchResult]:
        key = literal_label_key(descriptor.label)
        if key is None or key not in self.registry:
            return None
        if self.registry.has_negative_evidence(key, descriptor):
            note(Tier.LITERAL_LABEL, "suppressed", key)
            return None
        return MatchResult(key, Tier.LITERAL_LABEL, LITERAL_LABEL_CONFIDENCE)

    def _candidates(self, label: str) -> List[SimilarityHit]:
        hits = list(self.fuzzy_index.query(label, limit=self.fuzzy_limit))
        if len(normalize(label)) >= self.ranked_min_length:
            hits.extend(self.ranked_index.query(label, limit=self.ranked_limit))
        return hits

    def _similarity(self, descriptor: FieldDescriptor, note) -> Optional[MatchResult]:
        label = descriptor.label
        if not normalize(label):
            return None
        best: Optional[Tuple[str, float]] = None
        for hit in self._candidates(label):
            entry = self.registry.get(hit.key)
            if entry is None:
                continue
            if self.registry.has_negative_evidence(hit.key, descriptor):
                note(Tier.FUZZY, "suppressed", hit.key, hit.similarity, detail=hit.method)
                continue
            score = self.scorer.score_candidate(hit.similarity, entry, descriptor)
            if best is None or score > best[1]:
                best = (hit.key, score)
        if best is None:
            return None
        if best[1] >= FUZZY_FLOOR:
            return MatchResult(best[0], Tier.FUZZY, best[1])
        note(Tier.FUZZY, "rejected", best[0], best[1], detail="below floor")
        return None

    def _keyword(self, descriptor: FieldDescriptor, note) -> Optional[MatchResult]:
        label = normalize(descriptor.label)
        if len(label) < 3:
            return None
        for entry in self.registry:
            for keyword in entry.positive.keywords:
                normalized = normalize(keyword)
                if not normalized:
                    continue
                if not (
                    label == normalized
                    or label.startswith(normalized + " ")
                    or label.endswith(" " + normalized)
                ):
                    continue
                if self.registry.has_negative_evidence(entry.key, descriptor):
                    note(Tier.KEYWORD, "suppressed", entry.key, detail=keyword)
                    break
                if KEYWORD_CONFIDENCE >= KEYWORD_FLOOR:
                    return MatchResult(entry.key, Tier.KEYWORD, KEYWORD_CONFIDENCE)
        return None

    def _advisory(self, descriptor: FieldDescriptor, suggested_key: str, note) -> Optional[MatchResult]:
        if suggested_key not in self.registry:
            note(Tier.ADVISORY, "rejected", suggested_key, detail="unknown key")
            return None
        if self.registry.has_negative_evidence(suggested_key, descriptor):
            note(Tier.ADVISORY, "suppressed", suggested_key)
            return None
        return MatchResult(suggested_key, Tier.ADVISORY, ADVISORY_CAP)


def build_matcher(
    registry: Optional[SchemaRegistry] = None,
    *,
    fuzzy_cutoff: int = DEFAULT_FUZZY_CUTOFF,
    ranked_min_length: int = 10,
    weights: Optional[Sequence[float]] = None,
) -> TieredMatcher:
    scorer = CompositeScorer(ScoreWeights(*weights)) if weights else CompositeScorer()
    return TieredMatcher(registry, scorer=scorer, fuzzy_cutoff=fuzzy_cutoff, ranked_min_length=ranked_min_length)


__all__ = [
    "DETERMINISTIC_TYPES",
    "LITERAL_LABELS",
    "QUESTION_PATTERNS",
    "TieredMatcher",
    "UNIT_LABELS",
    "build_matcher",
    "is_question_field",
    "literal_label_key",
]
