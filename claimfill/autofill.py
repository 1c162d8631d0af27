"""Sweep orchestration: classify every field of a page and commit what is safe.

A sweep has exactly one suspension point before writing, the batched triage
call. Planning afterwards is synchronous and every planned write is flushed
to the page writer in a single batch, so a record exists only for writes the
writer confirmed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from bs4 import BeautifulSoup

from .browser.snapshot import PageSnapshot
from .browser.writers import PageWriter
from .config import Settings, get_settings
from .errors import CommitRejectedError, FillError, ValidationFailedError
from .forms.audit import find_duplicate_values
from .forms.committer import plan_answer_write, plan_write, revert_op
from .forms.descriptors import extract_field_descriptors, parse_html
from .forms.matcher import TieredMatcher
from .forms.records import (
    FieldCategory,
    FieldDescriptor,
    FillRecord,
    MatchResult,
    PendingItem,
    PendingReason,
    SweepResult,
    Tier,
    UserPrompt,
    WriteOp,
)
from .forms.schema import SchemaRegistry, default_registry
from .triage.client import TriageClient, build_triage_client
from .triage.fallback import user_prompt_for
from .triage.models import ClassificationResult
from .triage.service import triage_fields
from .values import KnownValues

logger = logging.getLogger(__name__)

PROFILE_PROVENANCE = "profile"
ANSWER_PROVENANCE = "case_answers"
ANSWER_MATCH_CONFIDENCE = 0.8

SweepSource = Union[PageSnapshot, BeautifulSoup, str]


@dataclass
class _PlannedFill:
    field: FieldDescriptor
    key: str
    value: Any
    confidence: float
    category: FieldCategory
    provenance: str
    op: WriteOp
    tier: Optional[Tier] = None


@dataclass
class SweepContext:
    """Per-sweep state; nothing about a sweep outlives its context."""

    registry: SchemaRegistry
    known_values: KnownValues
    settings: Settings
    writer: PageWriter
    descriptors: List[FieldDescriptor] = field(default_factory=list)
    classifications: Dict[str, ClassificationResult] = field(default_factory=dict)
    matches: Dict[str, Optional[MatchResult]] = field(default_factory=dict)
    result: SweepResult = field(default_factory=SweepResult)

    @property
    def filled(self) -> List[FillRecord]:
        return self.result.filled

    @property
    def pending(self) -> List[PendingItem]:
        return self.result.pending

    def is_suspicious(self, record: FillRecord) -> bool:
        return any(member is record for group in self.result.duplicates for member in group.records)

    def status(self) -> Dict[str, int]:
        return self.result.counts()

    def accept(self, record: FillRecord) -> None:
        """Confirm a low-confidence record; the value stays as written."""

        self.result.low_confidence = [item for item in self.result.low_confidence if item is not record]

    async def reject(self, record: FillRecord) -> bool:
        """Revert one committed record and drop it from every list."""

        if not any(item is record for item in self.result.filled):
            return False
        applied = await self.writer.apply([revert_op(record.write_op, record.field)])
        self._forget(record)
        return bool(applied and applied[0])

    async def clear(self) -> None:
        """Revert every committed write and empty all record lists. Idempotent."""

        records = list(self.result.filled)
        if records:
            ops = [revert_op(record.write_op, record.field) for record in reversed(records)]
            applied = await self.writer.apply(ops)
            failed = len(ops) - sum(1 for flag in applied if flag)
            if failed:
                logger.warning("Some writes could not be reverted", extra={"failed": failed, "total": len(ops)})
        self.result = SweepResult(triage_method=self.result.triage_method)
        self.matches.clear()

    def _forget(self, record: FillRecord) -> None:
        result = self.result
        result.filled = [item for item in result.filled if item is not record]
        result.low_confidence = [item for item in result.low_confidence if item is not record]
        result.duplicates = find_duplicate_values(result.filled)


class AutofillEngine:
    """Run classification-and-fill sweeps against a page.

    ``triage_client`` defaults to the backend selected in settings; pass
    ``None`` explicitly through settings (``CLAIMFILL_TRIAGE_BACKEND=none``) to
    classify locally only.
    """

    def __init__(
        self,
        registry: Optional[SchemaRegistry] = None,
        settings: Optional[Settings] = None,
        triage_client: Optional[TriageClient] = None,
        *,
        matcher: Optional[TieredMatcher] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or default_registry()
        self.triage_client = triage_client if triage_client is not None else build_triage_client(self.settings)
        self.matcher = matcher or TieredMatcher(
            self.registry,
            fuzzy_cutoff=self.settings.fuzzy_score_cutoff,
            ranked_min_length=self.settings.ranked_min_length,
        )

    # ------------------------------------------------------------------
    # Field discovery
    # ------------------------------------------------------------------
    def describe(self, source: SweepSource) -> List[FieldDescriptor]:
        if isinstance(source, PageSnapshot):
            return extract_field_descriptors(
                source.document(),
                boxes=source.boxes,
                viewport_height=source.viewport_height,
                sibling_limit=self.settings.sibling_text_limit,
            )
        document = parse_html(source) if isinstance(source, str) else source
        return extract_field_descriptors(document, sibling_limit=self.settings.sibling_text_limit)

    async def classify(
        self,
        descriptors: List[FieldDescriptor],
        known_values: KnownValues,
    ) -> Tuple[Dict[str, ClassificationResult], str]:
        outcome = await triage_fields(
            self.triage_client,
            descriptors,
            known_values,
            registry=self.registry,
            timeout=self.settings.triage_timeout_seconds,
        )
        return outcome.classifications, outcome.method

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------
    async def run_sweep(
        self,
        source: SweepSource,
        writer: PageWriter,
        known_values: KnownValues,
    ) -> Tuple[SweepContext, SweepResult]:
        context = SweepContext(
            registry=self.registry,
            known_values=known_values,
            settings=self.settings,
            writer=writer,
        )
        context.descriptors = self.describe(source)
        logger.info("Sweep started", extra={"fields": len(context.descriptors)})

        context.classifications, method = await self.classify(context.descriptors, known_values)
        context.result.triage_method = method

        planned: List[_PlannedFill] = []
        for descriptor in context.descriptors:
            classification = context.classifications[descriptor.field_id]
            try:
                self._plan_field(context, descriptor, classification, planned)
            except Exception as exc:
                logger.error("Field planning failed", exc_info=exc, extra={"field": descriptor.field_id})
                context.result.pending.append(PendingItem(descriptor, PendingReason.WRITE_FAILED))

        await self._flush(context, planned)
        context.result.duplicates = find_duplicate_values(context.result.filled)

        logger.info("Sweep finished", extra={**context.result.counts(), "triage": method})
        return context, context.result

    async def clear(self, context: SweepContext) -> None:
        await context.clear()

    def _rate_limited(self, planned: List[_PlannedFill]) -> bool:
        limit = self.settings.max_fills_per_sweep
        return bool(limit) and len(planned) >= limit

    def _plan_field(
        self,
        context: SweepContext,
        descriptor: FieldDescriptor,
        classification: ClassificationResult,
        planned: List[_PlannedFill],
    ) -> None:
        category = classification.category
        result = context.result

        if category == FieldCategory.IGNORE:
            return

        if category == FieldCategory.FILE_UPLOAD or descriptor.is_file:
            prompt = classification.prompt_for_user or user_prompt_for(descriptor, FieldCategory.FILE_UPLOAD)
            result.file_uploads.append(UserPrompt(descriptor, FieldCategory.FILE_UPLOAD, prompt))
            return

        if category in (FieldCategory.CASE_ANSWER, FieldCategory.USER_QUESTION):
            if not self._plan_answer(context, descriptor, classification, planned):
                prompt = classification.prompt_for_user or user_prompt_for(descriptor, FieldCategory.USER_QUESTION)
                result.user_questions.append(UserPrompt(descriptor, FieldCategory.USER_QUESTION, prompt))
            return

        match = self.matcher.match(descriptor, suggested_key=classification.suggested_key)
        context.matches[descriptor.field_id] = match
        if match is None:
            if self._plan_answer(context, descriptor, None, planned):
                return
            if descriptor.required:
                result.pending.append(PendingItem(descriptor, PendingReason.NO_MATCH))
            return

        value = context.known_values.lookup_profile(match.key)
        if value is None:
            result.pending.append(PendingItem(descriptor, PendingReason.NO_VALUE, match.key))
            return

        if self._rate_limited(planned):
            result.pending.append(PendingItem(descriptor, PendingReason.RATE_LIMITED, match.key))
            return

        try:
            op = plan_write(descriptor, value, match.key, self.registry)
        except (ValidationFailedError, CommitRejectedError) as exc:
            logger.info("Value not committed", extra={"field": descriptor.field_id, "key": match.key, "reason": exc.reason})
            result.pending.append(PendingItem(descriptor, PendingReason.VALIDATION_FAILED, match.key))
            return

        planned.append(
            _PlannedFill(
                field=descriptor,
                key=match.key,
                value=value,
                confidence=match.confidence,
                category=FieldCategory.PROFILE,
                provenance=PROFILE_PROVENANCE,
                op=op,
                tier=match.tier,
            )
        )

    def _plan_answer(
        self,
        context: SweepContext,
        descriptor: FieldDescriptor,
        classification: Optional[ClassificationResult],
        planned: List[_PlannedFill],
    ) -> bool:
        """Plan a write from the claim answers; ``False`` when no answer applies."""

        known_values = context.known_values
        key: Optional[str] = None
        value: Any = None
        confidence = ANSWER_MATCH_CONFIDENCE

        if classification is not None and classification.suggested_key:
            value = known_values.lookup_answer(classification.suggested_key)
            if value is not None:
                key = classification.suggested_key
                confidence = classification.confidence
        if key is None:
            match = known_values.match_answer(descriptor.label)
            if match is None:
                return False
            key, value = match

        if self._rate_limited(planned):
            context.result.pending.append(PendingItem(descriptor, PendingReason.RATE_LIMITED, key))
            return True

        try:
            op = plan_answer_write(descriptor, value, key)
        except FillError as exc:
            logger.info("Answer not committed", extra={"field": descriptor.field_id, "key": key, "reason": exc.reason})
            context.result.pending.append(PendingItem(descriptor, PendingReason.VALIDATION_FAILED, key))
            return True

        planned.append(
            _PlannedFill(
                field=descriptor,
                key=key,
                value=value,
                confidence=confidence,
                category=FieldCategory.CASE_ANSWER,
                provenance=ANSWER_PROVENANCE,
                op=op,
            )
        )
        return True

    async def _flush(self, context: SweepContext, planned: List[_PlannedFill]) -> None:
        if not planned:
            return
        try:
            applied = await context.writer.apply([item.op for item in planned])
        except Exception as exc:
            logger.error("Write batch failed", exc_info=exc, extra={"ops": len(planned)})
            applied = [False] * len(planned)
        if len(applied) != len(planned):
            logger.warning("Writer returned a mismatched result", extra={"ops": len(planned), "results": len(applied)})
            applied = list(applied[: len(planned)]) + [False] * max(0, len(planned) - len(applied))

        threshold = self.settings.low_confidence_threshold
        result = context.result
        for item, ok in zip(planned, applied):
            if not ok:
                result.pending.append(PendingItem(item.field, PendingReason.WRITE_FAILED, item.key))
                continue
            record = FillRecord(
                field=item.field,
                key=item.key,
                value=item.value,
                confidence=item.confidence,
                category=item.category,
                provenance=item.provenance,
                write_op=item.op,
                tier=item.tier,
            )
            result.filled.append(record)
            if record.confidence < threshold:
                result.low_confidence.append(record)


__all__ = ["AutofillEngine", "SweepContext"]
