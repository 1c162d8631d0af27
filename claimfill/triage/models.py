"""Wire models exchanged with the triage collaborator."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..forms.records import FieldCategory, FieldDescriptor

CONTEXT_LIMIT = 300


class TriageField(BaseModel):
    """One field as described to the collaborator."""
    fieldId: str
    label: str = ""
    type: str = "text"
    required: bool = False
    context: str = ""
    placeholder: str = ""
    name: Optional[str] = None
    options: Optional[List[str]] = None

    @classmethod
    def from_descriptor(cls, descriptor: FieldDescriptor) -> "TriageField":
        options = [option.label or option.value for option in descriptor.options] or None
        return cls(
            fieldId=descriptor.field_id,
            label=descriptor.label,
            type=descriptor.input_type,
            required=descriptor.required,
            context=descriptor.description[:CONTEXT_LIMIT],
            placeholder=descriptor.placeholder,
            name=descriptor.name or None,
            options=options,
        )


class TriageRequest(BaseModel):
    """Batch request covering every field of a sweep."""
    fields: List[TriageField]
    availableUserDataKeys: List[str] = Field(default_factory=list)
    availableCaseAnswerKeys: List[str] = Field(default_factory=list)
    caseAnswerMeta: Dict[str, Any] = Field(default_factory=dict)


class TriageResponse(BaseModel):
    """Raw response; entries are validated individually by ``parse_classifications``."""
    classifications: List[Any] = Field(default_factory=list)
    method: str = "unknown"
    error: Optional[str] = None


class ClassificationResult(BaseModel):
    """Validated, advisory classification of a single field."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    field_id: str = Field(alias="fieldId")
    category: FieldCategory
    suggested_key: Optional[str] = Field(default=None, alias="suggestedKey")
    prompt_for_user: Optional[str] = Field(default=None, alias="promptForUser")
    confidence: float = 0.5
    method: str = "llm"


__all__ = [
    "ClassificationResult",
    "TriageField",
    "TriageRequest",
    "TriageResponse",
]
