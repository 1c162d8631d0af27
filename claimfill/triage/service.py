"""Batched triage with per-field local fallback."""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..forms.records import FieldCategory, FieldDescriptor
from ..forms.schema import SchemaRegistry, default_registry
from ..values import KnownValues
from .client import TriageClient
from .fallback import classify_locally, user_prompt_for
from .models import ClassificationResult, TriageField, TriageRequest, TriageResponse

logger = logging.getLogger(__name__)

_CATEGORY_ALIASES = {
    "profile_data": FieldCategory.PROFILE,
    "user_data": FieldCategory.PROFILE,
    "case_answers": FieldCategory.CASE_ANSWER,
    "question": FieldCategory.USER_QUESTION,
    "file": FieldCategory.FILE_UPLOAD,
}


@dataclass
class TriageOutcome:
    classifications: Dict[str, ClassificationResult] = field(default_factory=dict)
    method: str = "local"
    fallback_count: int = 0


def _category(value: Any) -> Optional[FieldCategory]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip().lower()
    try:
        return FieldCategory(cleaned)
    except ValueError:
        return _CATEGORY_ALIASES.get(cleaned)


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return 0.5
    try:
        number = float(value)
    except ValueError:
        return 0.5
    if math.isnan(number):
        return 0.5
    return max(0.0, min(1.0, number))


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_classifications(
    payload: TriageResponse | Dict[str, Any] | None,
    field_ids: Iterable[str],
    registry: Optional[SchemaRegistry] = None,
) -> Dict[str, ClassificationResult]:
    """Validate collaborator output entry by entry.

    Entries that are not objects, name an unknown field or carry an unknown
    category are dropped. A suggested profile key missing from ``registry``
    is cleared rather than trusted. Confidence is clamped to [0, 1].
    """

    registry = registry or default_registry()
    known_ids = set(field_ids)
    if payload is None:
        return {}
    if isinstance(payload, TriageResponse):
        entries: Any = payload.classifications
        method = payload.method
    elif isinstance(payload, dict):
        entries = payload.get("classifications")
        method = str(payload.get("method") or "unknown")
    else:
        return {}
    if not isinstance(entries, list):
        return {}

    results: Dict[str, ClassificationResult] = {}
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("Classification %d is not an object", index, extra={"entry": repr(entry)[:200]})
            continue
        field_id = entry.get("fieldId", entry.get("field_id"))
        if not isinstance(field_id, str) or field_id not in known_ids:
            logger.warning("Classification %d names an unknown field", index, extra={"fieldId": field_id})
            continue
        if field_id in results:
            continue
        category = _category(entry.get("category"))
        if category is None:
            logger.warning("Classification %d has an unknown category", index, extra={"category": entry.get("category")})
            continue
        suggested_key = _optional_text(entry.get("suggestedKey", entry.get("suggested_key")))
        if category == FieldCategory.PROFILE and suggested_key is not None and suggested_key not in registry:
            logger.info("Ignoring suggested key outside the schema", extra={"fieldId": field_id, "suggestedKey": suggested_key})
            suggested_key = None
        results[field_id] = ClassificationResult(
            field_id=field_id,
            category=category,
            suggested_key=suggested_key,
            prompt_for_user=_optional_text(entry.get("promptForUser", entry.get("prompt_for_user"))),
            confidence=_confidence(entry.get("confidence", 0.5)),
            method=method,
        )
    return results


def build_request(descriptors: Sequence[FieldDescriptor], known_values: KnownValues) -> TriageRequest:
    return TriageRequest(
        fields=[TriageField.from_descriptor(descriptor) for descriptor in descriptors],
        availableUserDataKeys=known_values.profile_keys(),
        availableCaseAnswerKeys=known_values.answer_keys(),
        caseAnswerMeta=known_values.answer_meta(),
    )


async def triage_fields(
    client: Optional[TriageClient],
    descriptors: Sequence[FieldDescriptor],
    known_values: KnownValues,
    *,
    registry: Optional[SchemaRegistry] = None,
    timeout: float = 10.0,
) -> TriageOutcome:
    """Classify every descriptor with one collaborator round trip.

    Never raises: a failed, timed-out, empty or partial response leaves the
    affected fields to :func:`classify_locally`.
    """

    outcome = TriageOutcome()
    if not descriptors:
        return outcome

    if client is not None:
        try:
            response = await asyncio.wait_for(client.classify(build_request(descriptors, known_values)), timeout=timeout)
            outcome.classifications = parse_classifications(
                response, (descriptor.field_id for descriptor in descriptors), registry
            )
            outcome.method = response.method if outcome.classifications else "local"
        except asyncio.TimeoutError:
            logger.warning("Triage timed out; using local classification", extra={"timeout": timeout, "fields": len(descriptors)})
        except Exception as exc:
            logger.warning("Triage failed; using local classification", exc_info=exc, extra={"fields": len(descriptors)})

    for descriptor in descriptors:
        result = outcome.classifications.get(descriptor.field_id)
        if result is None:
            outcome.classifications[descriptor.field_id] = classify_locally(descriptor, known_values)
            outcome.fallback_count += 1
        elif result.prompt_for_user is None and result.category in (FieldCategory.USER_QUESTION, FieldCategory.FILE_UPLOAD):
            outcome.classifications[descriptor.field_id] = result.model_copy(
                update={"prompt_for_user": user_prompt_for(descriptor, result.category)}
            )

    if outcome.fallback_count:
        logger.info(
            "Local classification applied",
            extra={"fallback": outcome.fallback_count, "fields": len(descriptors), "method": outcome.method},
        )
    return outcome


__all__ = ["TriageOutcome", "build_request", "parse_classifications", "triage_fields"]
