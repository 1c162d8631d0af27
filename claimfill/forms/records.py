"""Value types shared by the classification and autofill pipeline.

Everything here lives for a single sweep. Descriptors are built from a page
snapshot, matched, committed and finally summarised; nothing is persisted.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


class Tier(float, enum.Enum):
    """Evidence buckets of the decision policy; lower values are more trusted."""

    DETERMINISTIC = 0.0
    PATTERN = 1.0
    LITERAL_LABEL = 1.5
    FUZZY = 2.0
    KEYWORD = 3.0
    ADVISORY = 4.0

    def __str__(self) -> str:
        return f"T{self.value:g}"


class FieldCategory(str, enum.Enum):
    """Coarse routing category assigned by triage (remote or local)."""

    PROFILE = "profile"
    CASE_ANSWER = "case_answer"
    USER_QUESTION = "user_question"
    FILE_UPLOAD = "file_upload"
    IGNORE = "ignore"


class PendingReason(str, enum.Enum):
    NO_MATCH = "no_match"
    VALIDATION_FAILED = "validation_failed"
    NO_VALUE = "no_value"
    RATE_LIMITED = "rate_limited"
    WRITE_FAILED = "write_failed"


@dataclass(frozen=True, slots=True)
class AccessibleName:
    """Resolved human-readable label plus the markup signal that produced it."""

    text: str
    source: str = "none"

    def __bool__(self) -> bool:
        return bool(self.text)


@dataclass(frozen=True, slots=True)
class FieldOption:
    """A choice of a closed-choice control (``<option>`` or one radio button)."""

    value: str
    label: str = ""
    selector: Optional[str] = None
    selected: bool = False


@dataclass(frozen=True, slots=True)
class FieldPosition:
    top: float
    viewport_height: float


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Everything the matcher knows about one form control.

    Descriptors are plain values: the matcher, scorer and committer never
    touch the DOM, only these attributes. ``selector`` is what a page writer
    uses to address the live element.
    """

    field_id: str
    selector: str
    tag: str = "input"
    input_type: str = "text"
    name: str = ""
    element_id: str = ""
    autocomplete: str = ""
    input_mode: str = ""
    min: Optional[str] = None
    max: Optional[str] = None
    step: Optional[str] = None
    required: bool = False
    placeholder: str = ""
    accessible_name: AccessibleName = field(default_factory=lambda: AccessibleName(""))
    description: str = ""
    options: Tuple[FieldOption, ...] = ()
    current_value: str = ""
    checked: bool = False
    position: Optional[FieldPosition] = None
    ordinal: int = 0
    total: int = 1

    @property
    def label(self) -> str:
        return self.accessible_name.text

    @property
    def context_text(self) -> str:
        return f"{self.accessible_name.text} {self.description}".strip()

    @property
    def is_select(self) -> bool:
        return self.tag == "select"

    @property
    def is_radio_group(self) -> bool:
        return self.input_type == "radio"

    @property
    def is_checkbox(self) -> bool:
        return self.input_type == "checkbox"

    @property
    def is_file(self) -> bool:
        return self.input_type == "file"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldId": self.field_id,
            "selector": self.selector,
            "tag": self.tag,
            "type": self.input_type,
            "name": self.name,
            "id": self.element_id,
            "autocomplete": self.autocomplete,
            "label": self.accessible_name.text,
            "labelSource": self.accessible_name.source,
            "description": self.description,
            "required": self.required,
        }


@dataclass(frozen=True, slots=True)
class MatchResult:
    key: str
    tier: Tier
    confidence: float


@dataclass(frozen=True, slots=True)
class WriteOp:
    """Description of a single DOM mutation, applied later by a page writer."""

    field_id: str
    selector: str
    action: str
    value: Optional[str] = None
    checked: Optional[bool] = None
    previous_value: Optional[str] = None
    previous_checked: Optional[bool] = None
    events: Tuple[str, ...] = ("focus", "input", "change", "blur")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldId": self.field_id,
            "selector": self.selector,
            "action": self.action,
            "value": self.value,
            "checked": self.checked,
            "events": list(self.events),
        }


@dataclass(frozen=True, slots=True)
class FillRecord:
    field: FieldDescriptor
    key: str
    value: Any
    confidence: float
    category: FieldCategory
    provenance: str
    write_op: WriteOp
    tier: Optional[Tier] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldId": self.field.field_id,
            "label": self.field.label,
            "key": self.key,
            "value": self.value,
            "confidence": round(self.confidence, 4),
            "tier": str(self.tier) if self.tier is not None else None,
            "category": self.category.value,
            "provenance": self.provenance,
        }


@dataclass(frozen=True, slots=True)
class PendingItem:
    field: FieldDescriptor
    reason: PendingReason
    key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldId": self.field.field_id,
            "label": self.field.label,
            "key": self.key,
            "reason": self.reason.value,
        }


@dataclass(frozen=True, slots=True)
class UserPrompt:
    """A field handed to the user: an open question or a file to upload."""

    field: FieldDescriptor
    category: FieldCategory
    prompt: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldId": self.field.field_id,
            "category": self.category.value,
            "prompt": self.prompt,
            "required": self.field.required,
        }


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    value: str
    records: Tuple[FillRecord, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "fieldIds": [record.field.field_id for record in self.records],
            "labels": [record.field.label for record in self.records],
        }


@dataclass
class SweepResult:
    """Summary handed to the UI layer."""

    filled: List[FillRecord] = field(default_factory=list)
    pending: List[PendingItem] = field(default_factory=list)
    low_confidence: List[FillRecord] = field(default_factory=list)
    user_questions: List[UserPrompt] = field(default_factory=list)
    file_uploads: List[UserPrompt] = field(default_factory=list)
    duplicates: List[DuplicateGroup] = field(default_factory=list)
    triage_method: str = "local"

    def counts(self) -> Dict[str, int]:
        return {
            "filled": len(self.filled),
            "pending": len(self.pending),
            "lowConfidence": len(self.low_confidence),
            "userQuestions": len(self.user_questions),
            "fileUploads": len(self.file_uploads),
            "duplicates": sum(len(group.records) for group in self.duplicates),
        }

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.counts())
        payload["triageMethod"] = self.triage_method
        payload["records"] = {
            "filled": [record.to_dict() for record in self.filled],
            "pending": [item.to_dict() for item in self.pending],
            "userQuestions": [prompt.to_dict() for prompt in self.user_questions],
            "fileUploads": [prompt.to_dict() for prompt in self.file_uploads],
            "duplicates": [group.to_dict() for group in self.duplicates],
        }
        return payload


__all__ = [
    "AccessibleName",
    "DuplicateGroup",
    "FieldCategory",
    "FieldDescriptor",
    "FieldOption",
    "FieldPosition",
    "FillRecord",
    "MatchResult",
    "PendingItem",
    "PendingReason",
    "SweepResult",
    "Tier",
    "UserPrompt",
    "WriteOp",
]
