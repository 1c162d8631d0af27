"""Field classification: descriptors, schema, tiered matching, commit planning."""

from .accessible_name import resolve_accessible_name, resolve_description
from .audit import find_duplicate_values
from .committer import plan_answer_write, plan_write, revert_op
from .descriptors import extract_field_descriptors, parse_html
from .matcher import TieredMatcher, build_matcher, is_question_field
from .normalization import normalize, normalize_for_display, tokenize
from .records import (
    AccessibleName,
    DuplicateGroup,
    FieldCategory,
    FieldDescriptor,
    FieldOption,
    FieldPosition,
    FillRecord,
    MatchResult,
    PendingItem,
    PendingReason,
    SweepResult,
    Tier,
    UserPrompt,
    WriteOp,
)
from .schema import SchemaRegistry, SemanticSchemaEntry, SignalSet, default_registry
from .scoring import CompositeScorer, ScoreWeights, dom_proximity, schema_bonus
from .similarity import FuzzyIndex, RankedTermIndex, SimilarityIndex

__all__ = [
    "AccessibleName",
    "CompositeScorer",
    "DuplicateGroup",
    "FieldCategory",
    "FieldDescriptor",
    "FieldOption",
    "FieldPosition",
    "FillRecord",
    "FuzzyIndex",
    "MatchResult",
    "PendingItem",
    "PendingReason",
    "RankedTermIndex",
    "SchemaRegistry",
    "ScoreWeights",
    "SemanticSchemaEntry",
    "SignalSet",
    "SimilarityIndex",
    "SweepResult",
    "Tier",
    "TieredMatcher",
    "UserPrompt",
    "WriteOp",
    "build_matcher",
    "default_registry",
    "dom_proximity",
    "extract_field_descriptors",
    "find_duplicate_values",
    "is_question_field",
    "normalize",
    "normalize_for_display",
    "parse_html",
    "plan_answer_write",
    "plan_write",
    "resolve_accessible_name",
    "resolve_description",
    "revert_op",
    "schema_bonus",
    "tokenize",
]
