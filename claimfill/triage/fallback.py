"""Local heuristic classifier used whenever the collaborator gives no answer."""
from __future__ import annotations

import re
from typing import Optional

from ..forms.matcher import is_question_field
from ..forms.records import FieldCategory, FieldDescriptor
from ..values import KnownValues
from .models import ClassificationResult

ATTESTATION_PATTERN = re.compile(
    r"\b(i agree|agree to|i certify|certify|attest|terms|declare|acknowledge|under penalty|perjury)\b",
    re.IGNORECASE,
)


def user_prompt_for(descriptor: FieldDescriptor, category: FieldCategory) -> str:
    label = descriptor.label or descriptor.placeholder or descriptor.name or descriptor.field_id
    if category == FieldCategory.FILE_UPLOAD:
        return f"Please upload: {label}"
    return label


def classify_locally(descriptor: FieldDescriptor, known_values: Optional[KnownValues] = None) -> ClassificationResult:
    """Categorise ``descriptor`` without the collaborator.

    File inputs go to the upload queue, attestation checkboxes and open
    questions to the user unless a claim answer matches the label, and
    everything else is treated as profile data for the tiered matcher.
    """

    if descriptor.is_file:
        return ClassificationResult(
            field_id=descriptor.field_id,
            category=FieldCategory.FILE_UPLOAD,
            prompt_for_user=user_prompt_for(descriptor, FieldCategory.FILE_UPLOAD),
            confidence=0.9,
            method="local",
        )

    text = descriptor.context_text
    if descriptor.is_checkbox and ATTESTATION_PATTERN.search(text):
        return ClassificationResult(
            field_id=descriptor.field_id,
            category=FieldCategory.USER_QUESTION,
            prompt_for_user=user_prompt_for(descriptor, FieldCategory.USER_QUESTION),
            confidence=0.8,
            method="local",
        )

    if is_question_field(text):
        match = known_values.match_answer(descriptor.label) if known_values is not None else None
        if match is not None:
            return ClassificationResult(
                field_id=descriptor.field_id,
                category=FieldCategory.CASE_ANSWER,
                suggested_key=match[0],
                confidence=0.7,
                method="local",
            )
        return ClassificationResult(
            field_id=descriptor.field_id,
            category=FieldCategory.USER_QUESTION,
            prompt_for_user=user_prompt_for(descriptor, FieldCategory.USER_QUESTION),
            confidence=0.6,
            method="local",
        )

    return ClassificationResult(
        field_id=descriptor.field_id,
        category=FieldCategory.PROFILE,
        confidence=0.5,
        method="local",
    )


__all__ = ["ATTESTATION_PATTERN", "classify_locally", "user_prompt_for"]
