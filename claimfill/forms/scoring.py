"""Composite scoring of same-tier match candidates."""
from __future__ import annotations

import math
from dataclasses import dataclass

from .records import FieldDescriptor
from .schema import SemanticSchemaEntry, autocomplete_token

AUTOCOMPLETE_BONUS = 0.5
TYPE_BONUS = 0.3
PATTERN_BONUS = 0.2


@dataclass(frozen=True)
class ScoreWeights:
    text: float = 0.7
    schema: float = 0.2
    proximity: float = 0.1

    def __post_init__(self) -> None:
        for name in ("text", "schema", "proximity"):
            if getattr(self, name) < 0:
                raise ValueError(f"Score weight {name!r} must be non-negative")
        total = self.text + self.schema + self.proximity
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"Score weights must sum to 1.0, got {total:.4f}")


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def schema_bonus(entry: SemanticSchemaEntry, descriptor: FieldDescriptor) -> float:
    """Structural agreement between ``descriptor`` and ``entry``, capped at 1.0."""

    bonus = 0.0
    token = autocomplete_token(descriptor.autocomplete)
    if token and token in entry.positive.autocomplete:
        bonus += AUTOCOMPLETE_BONUS
    if descriptor.input_type in entry.positive.types:
        bonus += TYPE_BONUS
    if entry.positive.matches_pattern(descriptor.element_id, descriptor.name):
        bonus += PATTERN_BONUS
    return min(bonus, 1.0)


def dom_proximity(descriptor: FieldDescriptor) -> float:
    """1.0 at the top of the page falling linearly to 0.5 at the bottom.

    Uses the rendered position when known, else the field's document order.
    """

    position = descriptor.position
    if position is not None and position.viewport_height > 0:
        return _clamp(1.0 - 0.5 * position.top / position.viewport_height, 0.5, 1.0)
    if descriptor.total <= 1:
        return 1.0
    return _clamp(1.0 - 0.5 * descriptor.ordinal / (descriptor.total - 1), 0.5, 1.0)


class CompositeScorer:
    def __init__(self, weights: ScoreWeights | None = None) -> None:
        self.weights = weights or ScoreWeights()

    def score(self, text_similarity: float, bonus: float, proximity: float) -> float:
        weights = self.weights
        return _clamp(
            weights.text * _clamp(text_similarity)
            + weights.schema * _clamp(bonus)
            + weights.proximity * _clamp(proximity)
        )

    def score_candidate(self, text_similarity: float, entry: SemanticSchemaEntry, descriptor: FieldDescriptor) -> float:
        return self.score(text_similarity, schema_bonus(entry, descriptor), dom_proximity(descriptor))


__all__ = [
    "CompositeScorer",
    "ScoreWeights",
    "dom_proximity",
    "schema_bonus",
]
